from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import current_actor, json_body, optional_str, respond, roles_required
from ..common.validators import require_positive_int
from ..container import Container
from ..core.enums import LeaveStatus, Role
from ..core.exceptions import ValidationError
from ..workflow.tenant import require_district


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def register(app: Flask, container: Container) -> None:
    leave = container.leave_service

    @app.route("/api/leave-types", methods=["GET"], endpoint="list_leave_types")
    def list_leave_types():
        ctx = current_actor()
        return respond(leave.list_leave_types(ctx))

    @app.route("/api/leave-requests", methods=["GET"], endpoint="list_leave_requests")
    def list_leave_requests():
        ctx = current_actor()
        raw_status = request.args.get("status")
        status = None
        if raw_status:
            try:
                status = LeaveStatus(raw_status)
            except ValueError:
                raise ValidationError(f"Unknown leave status {raw_status!r}", allowed=[s.value for s in LeaveStatus])
        employee_id = request.args.get("employee_id", type=int)
        return respond(leave.list_leave_requests(ctx, status=status, employee_id=employee_id))

    @app.route("/api/leave-requests/pending", methods=["GET"], endpoint="list_pending_leave_requests")
    def list_pending_leave_requests():
        ctx = current_actor()
        return respond(leave.list_pending(ctx))

    @app.route("/api/leave-requests/<int:leave_request_id>", methods=["GET"], endpoint="get_leave_request")
    def get_leave_request(leave_request_id: int):
        ctx = current_actor()
        result = leave.get_leave_request(ctx, leave_request_id=leave_request_id)
        body = {
            "leave_request": result,
            "time_cards": container.time_card_service.list_by_leave_request(ctx, leave_request_id=leave_request_id),
            "substitute_assignments": leave.list_assignments_for_leave_request(
                ctx, leave_request_id=leave_request_id
            ),
        }
        return respond(body)

    @app.route("/api/leave-requests/<int:leave_request_id>/history", methods=["GET"], endpoint="leave_request_history")
    def leave_request_history(leave_request_id: int):
        ctx = current_actor()
        found = leave.get_leave_request(ctx, leave_request_id=leave_request_id)
        return respond(container.audit.history(ctx, entity_type="leave_request", entity_id=found.leave_request_id))

    @app.route("/api/substitutes/available", methods=["GET"], endpoint="list_available_substitutes")
    @roles_required(Role.SECRETARY, Role.ADMIN, Role.HR)
    def list_available_substitutes():
        ctx = current_actor()
        return respond(leave.list_available_substitutes(ctx))

    @app.route("/api/substitutes/assignments", methods=["GET"], endpoint="list_substitute_assignments")
    @roles_required(Role.SECRETARY, Role.ADMIN, Role.HR)
    def list_substitute_assignments():
        ctx = current_actor()
        return respond(leave.list_substitute_assignments(ctx))

    @app.route("/api/leave-requests", methods=["POST"], endpoint="create_leave_request")
    def create_leave_request():
        ctx = current_actor()
        payload = json_body()
        require_district(ctx, payload.get("district_id"))
        created = leave.create_leave_request(
            ctx,
            employee_id=require_positive_int(payload.get("employee_id"), "employee_id"),
            leave_type_id=require_positive_int(payload.get("leave_type_id"), "leave_type_id"),
            start_date=parse_iso_date(payload.get("start_date") or ""),
            end_date=parse_iso_date(payload.get("end_date") or ""),
            reason=optional_str(payload, "reason"),
            substitute_required=_parse_bool(payload.get("substitute_required", False)),
        )
        return respond(created, 201)

    @app.route("/api/leave-requests/<int:leave_request_id>/approve", methods=["POST"], endpoint="approve_leave_request")
    @roles_required(Role.ADMIN, Role.HR)
    def approve_leave_request(leave_request_id: int):
        ctx = current_actor()
        return respond(leave.approve_leave_request(ctx, leave_request_id=leave_request_id, approver_id=ctx.actor_id))

    @app.route("/api/leave-requests/<int:leave_request_id>/reject", methods=["POST"], endpoint="reject_leave_request")
    @roles_required(Role.ADMIN, Role.HR)
    def reject_leave_request(leave_request_id: int):
        ctx = current_actor()
        return respond(leave.reject_leave_request(ctx, leave_request_id=leave_request_id, approver_id=ctx.actor_id))

    @app.route(
        "/api/leave-requests/<int:leave_request_id>/ensure-time-cards",
        methods=["POST"],
        endpoint="ensure_leave_time_cards",
    )
    @roles_required(Role.ADMIN, Role.HR)
    def ensure_time_cards(leave_request_id: int):
        ctx = current_actor()
        return respond(leave.ensure_time_cards_for_leave_request(ctx, leave_request_id=leave_request_id))
