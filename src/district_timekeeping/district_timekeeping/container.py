from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from .audit.mysql_activity_log_repository import MySQLActivityLogRepository
from .audit.repository import AuditSink
from .audit.service import AuditTrail
from .core.constants import (
    DEFAULT_RECOMMENDATION_MAX_WORKERS,
    DEFAULT_RECOMMENDATION_TIMEOUT_SECONDS,
    STANDARD_DAY_HOURS,
)
from .database.connection import DBConfig, DatabaseConnection
from .database.mysql_base import MySQLTransactionManager
from .employees.mysql_employee_repository import MySQLEmployeeDirectory
from .employees.repository import EmployeeDirectory
from .leave.mysql_leave_repository import MySQLLeaveRepository
from .leave.repository import LeaveRequestRepository, LeaveTypeRepository, SubstituteAssignmentRepository
from .leave.service import LeaveRequestLifecycleManager, TransactionManager
from .recommendations.ranker import HttpSubstituteRanker, NullSubstituteRanker, SubstituteRanker
from .timecards.calculator.standard_calculator import StandardHoursCalculator
from .timecards.mysql_timecard_repository import MySQLTimeCardRepository
from .timecards.repository import TimeCardRepository
from .timecards.service import TimeCardService
from .workflow.approval import ApprovalStateMachine
from .workflow.locking import LockOverlay


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    employees: EmployeeDirectory
    time_cards_repo: TimeCardRepository
    leave_requests_repo: LeaveRequestRepository
    audit_sink: AuditSink
    executor: Executor

    audit: AuditTrail
    approvals: ApprovalStateMachine
    locks: LockOverlay
    time_card_service: TimeCardService
    leave_service: LeaveRequestLifecycleManager


def assemble_container(
    *,
    employees: EmployeeDirectory,
    time_cards: TimeCardRepository,
    leave_requests: LeaveRequestRepository,
    leave_types: LeaveTypeRepository,
    assignments: SubstituteAssignmentRepository,
    audit_sink: AuditSink,
    transactions: TransactionManager,
    ranker: Optional[SubstituteRanker] = None,
    executor: Optional[Executor] = None,
    recommendation_timeout: float = DEFAULT_RECOMMENDATION_TIMEOUT_SECONDS,
    standard_day_hours: Decimal = STANDARD_DAY_HOURS,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    """Wire services over already-built collaborators (MySQL or in-memory)."""
    executor = executor or ThreadPoolExecutor(
        max_workers=DEFAULT_RECOMMENDATION_MAX_WORKERS, thread_name_prefix="substitute-ranking"
    )
    audit = AuditTrail(audit_sink)
    approvals = ApprovalStateMachine(time_cards, audit)
    locks = LockOverlay(time_cards, audit)
    time_card_service = TimeCardService(
        time_cards,
        employees,
        audit,
        calculator=StandardHoursCalculator(standard_day_hours=Decimal(standard_day_hours)),
    )
    leave_service = LeaveRequestLifecycleManager(
        leave_requests,
        leave_types,
        assignments,
        time_cards,
        employees,
        approvals,
        audit,
        transactions,
        ranker=ranker or NullSubstituteRanker(),
        executor=executor,
        recommendation_timeout=recommendation_timeout,
        standard_day_hours=Decimal(standard_day_hours),
    )

    return Container(
        conn=conn,
        employees=employees,
        time_cards_repo=time_cards,
        leave_requests_repo=leave_requests,
        audit_sink=audit_sink,
        executor=executor,
        audit=audit,
        approvals=approvals,
        locks=locks,
        time_card_service=time_card_service,
        leave_service=leave_service,
    )


def build_container(*, db_config: dict, settings: Optional[Mapping[str, Any]] = None) -> Container:
    settings = dict(settings or {})
    conn = DatabaseConnection(DBConfig.from_mapping(db_config))

    timeout = float(settings.get("RECOMMENDATION_TIMEOUT_SECONDS", DEFAULT_RECOMMENDATION_TIMEOUT_SECONDS))
    url = str(settings.get("RECOMMENDATION_URL") or "").strip()
    ranker: SubstituteRanker = HttpSubstituteRanker(url, timeout=timeout) if url else NullSubstituteRanker()
    executor = ThreadPoolExecutor(
        max_workers=int(settings.get("RECOMMENDATION_MAX_WORKERS", DEFAULT_RECOMMENDATION_MAX_WORKERS)),
        thread_name_prefix="substitute-ranking",
    )

    leave_repo = MySQLLeaveRepository(conn)
    return assemble_container(
        employees=MySQLEmployeeDirectory(conn),
        time_cards=MySQLTimeCardRepository(conn),
        leave_requests=leave_repo,
        leave_types=leave_repo,
        assignments=leave_repo,
        audit_sink=MySQLActivityLogRepository(conn),
        transactions=MySQLTransactionManager(conn),
        ranker=ranker,
        executor=executor,
        recommendation_timeout=timeout,
        standard_day_hours=Decimal(str(settings.get("STANDARD_DAY_HOURS", STANDARD_DAY_HOURS))),
        conn=conn,
    )
