from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date, parse_iso_datetime
from ..common.http import current_actor, json_body, optional_int, optional_str, respond, roles_required
from ..common.validators import optional_hours, require_positive_int
from ..container import Container
from ..core.context import ActorContext
from ..core.enums import ApprovalStage, Role, TimeCardKind
from ..core.exceptions import AuthorizationError, ValidationError

# URL segment -> card kind
KIND_PATHS = {
    "time-cards": TimeCardKind.REGULAR,
    "substitute-time-cards": TimeCardKind.SUBSTITUTE,
}


def register(app: Flask, container: Container) -> None:
    def _require_own_card(ctx: ActorContext, kind: TimeCardKind, time_card_id: int) -> None:
        """Employees may only approve their own cards; admins may approve any."""
        if ctx.role == Role.ADMIN:
            return
        card = container.time_card_service.get_by_id(ctx, kind=kind, time_card_id=time_card_id)
        me = container.employees.get_employee_by_user(ctx, ctx.actor_id)
        if me is None or me.employee_id != card.worker_id:
            raise AuthorizationError(f"{kind.label} {time_card_id} belongs to another employee")

    for path, kind in KIND_PATHS.items():
        _register_kind(app, container, path, kind, _require_own_card)


def _register_kind(app: Flask, container: Container, path: str, kind: TimeCardKind, require_own_card) -> None:
    base = f"/api/{path}"
    name = kind.value

    @app.route(base, methods=["POST"], endpoint=f"create_{name}_time_card")
    @roles_required(Role.SECRETARY, Role.ADMIN)
    def create_time_card():
        ctx = current_actor()
        payload = json_body()
        worker_key = "substitute_id" if kind is TimeCardKind.SUBSTITUTE else "employee_id"
        card = container.time_card_service.create_time_card(
            ctx,
            kind=kind,
            worker_id=require_positive_int(payload.get(worker_key), worker_key),
            work_date=parse_iso_date(payload.get("date") or payload.get("work_date") or ""),
            clock_in=parse_iso_datetime(payload.get("clock_in")),
            clock_out=parse_iso_datetime(payload.get("clock_out")),
            break_start=parse_iso_datetime(payload.get("break_start")),
            break_end=parse_iso_datetime(payload.get("break_end")),
            total_hours=optional_hours(payload.get("total_hours"), "total_hours"),
            overtime_hours=optional_hours(payload.get("overtime_hours"), "overtime_hours"),
            assignment_id=optional_int(payload, "assignment_id"),
            notes=optional_str(payload, "notes"),
        )
        return respond(card, 201)

    @app.route(f"{base}/<int:time_card_id>", methods=["GET"], endpoint=f"get_{name}_time_card")
    def get_time_card(time_card_id: int):
        ctx = current_actor()
        return respond(container.time_card_service.get_by_id(ctx, kind=kind, time_card_id=time_card_id))

    @app.route(f"{base}/<int:time_card_id>/history", methods=["GET"], endpoint=f"{name}_time_card_history")
    def history(time_card_id: int):
        ctx = current_actor()
        card = container.time_card_service.get_by_id(ctx, kind=kind, time_card_id=time_card_id)
        return respond(
            container.audit.history(ctx, entity_type=f"{kind.value}_time_card", entity_id=card.time_card_id)
        )

    @app.route(f"{base}/employee/<int:worker_id>", methods=["GET"], endpoint=f"list_{name}_time_cards_by_employee")
    def list_by_employee(worker_id: int):
        ctx = current_actor()
        return respond(container.time_card_service.list_by_employee(ctx, kind=kind, worker_id=worker_id))

    @app.route(f"{base}/date-range", methods=["GET"], endpoint=f"list_{name}_time_cards_by_date_range")
    def list_by_date_range():
        ctx = current_actor()
        start_date = request.args.get("start_date") or request.args.get("startDate")
        end_date = request.args.get("end_date") or request.args.get("endDate")
        if not start_date or not end_date:
            raise ValidationError("start_date and end_date are required")
        return respond(
            container.time_card_service.list_by_date_range(
                ctx, kind=kind, start_date=parse_iso_date(start_date), end_date=parse_iso_date(end_date)
            )
        )

    @app.route(f"{base}/approval-stage/<stage>", methods=["GET"], endpoint=f"list_{name}_time_cards_by_stage")
    def list_by_stage(stage: str):
        ctx = current_actor()
        try:
            approval_stage = ApprovalStage(stage)
        except ValueError:
            raise ValidationError(f"Unknown approval stage {stage!r}", allowed=[s.value for s in ApprovalStage])
        return respond(container.time_card_service.list_by_stage(ctx, kind=kind, stage=approval_stage))

    @app.route(f"{base}/pending", methods=["GET"], endpoint=f"list_pending_{name}_time_cards")
    def list_pending():
        ctx = current_actor()
        return respond(container.time_card_service.list_pending(ctx, kind=kind))

    @app.route(f"{base}/<int:time_card_id>/submit", methods=["POST"], endpoint=f"submit_{name}_time_card")
    @roles_required(Role.SECRETARY, Role.ADMIN)
    def submit(time_card_id: int):
        ctx = current_actor()
        payload = json_body()
        card = container.approvals.submit_for_approval(
            ctx, kind=kind, time_card_id=time_card_id, submitted_by=ctx.actor_id, notes=optional_str(payload, "notes")
        )
        return respond(card)

    @app.route(
        f"{base}/<int:time_card_id>/approve-employee", methods=["POST"], endpoint=f"employee_approve_{name}_time_card"
    )
    @roles_required(Role.EMPLOYEE, Role.ADMIN)
    def approve_employee(time_card_id: int):
        ctx = current_actor()
        payload = json_body()
        require_own_card(ctx, kind, time_card_id)
        card = container.approvals.approve_by_employee(
            ctx, kind=kind, time_card_id=time_card_id, employee_id=ctx.actor_id, notes=optional_str(payload, "notes")
        )
        return respond(card)

    @app.route(
        f"{base}/<int:time_card_id>/approve-admin", methods=["POST"], endpoint=f"admin_approve_{name}_time_card"
    )
    @roles_required(Role.ADMIN)
    def approve_admin(time_card_id: int):
        ctx = current_actor()
        payload = json_body()
        card = container.approvals.approve_by_admin(
            ctx, kind=kind, time_card_id=time_card_id, admin_id=ctx.actor_id, notes=optional_str(payload, "notes")
        )
        return respond(card)

    @app.route(
        f"{base}/<int:time_card_id>/process-payroll", methods=["POST"], endpoint=f"payroll_process_{name}_time_card"
    )
    @roles_required(Role.PAYROLL)
    def process_payroll(time_card_id: int):
        ctx = current_actor()
        payload = json_body()
        card = container.approvals.process_by_payroll(
            ctx, kind=kind, time_card_id=time_card_id, payroll_id=ctx.actor_id, notes=optional_str(payload, "notes")
        )
        return respond(card)

    @app.route(f"{base}/<int:time_card_id>/reject", methods=["POST"], endpoint=f"reject_{name}_time_card")
    @roles_required(Role.SECRETARY, Role.ADMIN, Role.PAYROLL)
    def reject(time_card_id: int):
        ctx = current_actor()
        payload = json_body()
        card = container.approvals.reject(
            ctx, kind=kind, time_card_id=time_card_id, rejected_by=ctx.actor_id, notes=optional_str(payload, "notes")
        )
        return respond(card)

    @app.route(f"{base}/<int:time_card_id>/lock", methods=["POST"], endpoint=f"lock_{name}_time_card")
    @roles_required(Role.ADMIN, Role.PAYROLL)
    def lock(time_card_id: int):
        ctx = current_actor()
        payload = json_body()
        card = container.locks.lock(
            ctx, kind=kind, time_card_id=time_card_id, locked_by=ctx.actor_id, reason=optional_str(payload, "reason")
        )
        return respond(card)

    @app.route(f"{base}/<int:time_card_id>/unlock", methods=["POST"], endpoint=f"unlock_{name}_time_card")
    @roles_required(Role.ADMIN, Role.PAYROLL)
    def unlock(time_card_id: int):
        ctx = current_actor()
        return respond(container.locks.unlock(ctx, kind=kind, time_card_id=time_card_id))
