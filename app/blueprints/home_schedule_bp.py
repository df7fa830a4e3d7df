"""Home scheduling blueprint — forecast, gates and block reasons.

REST API over the forecast engine, gate evaluator and scheduling-block
resolver.

Endpoint groups:
  Forecast          GET  /api/v1/homes/<home_id>/forecast
                    POST /api/v1/homes/<home_id>/forecast/recompute
  Gates             GET  /api/v1/homes/<home_id>/gates
  Block reasons     GET  /api/v1/homes/<home_id>/block-reasons
                    GET  /api/v1/tasks/<task_id>/block-reason
  Task actions      POST  /api/v1/homes/<home_id>/tasks
                    PATCH /api/v1/tasks/<task_id>/schedule
                    PATCH /api/v1/tasks/<task_id>/duration
                    POST  /api/v1/tasks/<task_id>/transition
  Template edges    GET/PUT /api/v1/template-items/<item_id>/dependencies

tenant_id is optional and resolved from query param or JSON body; when
given, homes and tasks of other tenants answer 404.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import app.services.forecast_service as forecast_svc
import app.services.gate_service as gate_svc
import app.services.home_task_service as task_svc
import app.services.scheduling_block as block_svc
import app.services.template_service as template_svc
from app.core.exceptions import (
    DependencyCycleError,
    NotFoundError,
    SchedulingBlockedError,
    ValidationError,
)
from app.services.helpers.home_queries import get_home, get_home_task
from app.utils.errors import E, api_error
from app.utils.helpers import parse_date_input, tenant_id_arg

logger = logging.getLogger(__name__)

home_schedule_bp = Blueprint("home_schedule", __name__, url_prefix="/api/v1")


# ── Error handlers ────────────────────────────────────────────────────────────


@home_schedule_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, f"{error.resource} not found")


@home_schedule_bp.errorhandler(DependencyCycleError)
def _handle_cycle(error: DependencyCycleError):
    return api_error(E.DEPENDENCY_CYCLE, str(error), details=error.details)


@home_schedule_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)


@home_schedule_bp.errorhandler(SchedulingBlockedError)
def _handle_blocked(error: SchedulingBlockedError):
    return api_error(E.SCHEDULING_BLOCKED, error.reason, details={"task_id": error.task_id})


@home_schedule_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    logger.exception("Unexpected error in home_schedule_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════
# Forecast
# ═════════════════════════════════════════════════════════════════════════


@home_schedule_bp.route("/homes/<int:home_id>/forecast", methods=["GET"])
def get_forecast(home_id):
    """Stored forecast with per-task dates, block reasons and schedule status."""
    get_home(home_id, tenant_id=tenant_id_arg())
    return jsonify(forecast_svc.get_home_forecast_view(home_id)), 200


@home_schedule_bp.route("/homes/<int:home_id>/forecast/recompute", methods=["POST"])
def recompute_forecast(home_id):
    """Run the critical-path engine and persist the result.

    Returns: forecast summary (200); 422 on a dependency cycle.
    """
    get_home(home_id, tenant_id=tenant_id_arg())
    return jsonify(forecast_svc.compute_home_forecast(home_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Gates & block reasons
# ═════════════════════════════════════════════════════════════════════════


@home_schedule_bp.route("/homes/<int:home_id>/gates", methods=["GET"])
def get_gates(home_id):
    get_home(home_id, tenant_id=tenant_id_arg())
    return jsonify({"home_id": home_id, "gates": gate_svc.get_home_gate_status(home_id)}), 200


@home_schedule_bp.route("/homes/<int:home_id>/block-reasons", methods=["GET"])
def get_block_reasons(home_id):
    """Batch block reasons keyed by task id (null when schedulable)."""
    get_home(home_id, tenant_id=tenant_id_arg())
    reasons = block_svc.get_task_scheduling_block_reasons_batch(home_id)
    return jsonify({
        "home_id": home_id,
        "block_reasons": {str(task_id): reason for task_id, reason in reasons.items()},
    }), 200


@home_schedule_bp.route("/tasks/<int:task_id>/block-reason", methods=["GET"])
def get_block_reason(task_id):
    """Single-task block reason plus the raw gate check."""
    task = get_home_task(task_id, tenant_id=tenant_id_arg())
    reason = block_svc.get_task_scheduling_block_reason(task.home_id, task.id)
    gate = gate_svc.check_gate_blocking(task.home_id, task.id, task.sort_order_snapshot)
    return jsonify({
        "task_id": task.id,
        "home_id": task.home_id,
        "is_blocked": reason is not None,
        "block_reason": reason,
        "gate": gate.to_dict(),
    }), 200


# ═════════════════════════════════════════════════════════════════════════
# Task actions
# ═════════════════════════════════════════════════════════════════════════


@home_schedule_bp.route("/homes/<int:home_id>/tasks", methods=["POST"])
def add_task(home_id):
    """Create a task from a template item.

    Body: { template_item_id, tenant_id? }
    Returns: {"task": ..., "forecast_error": ...} (201).
    """
    data = request.get_json(silent=True) or {}
    template_item_id = data.get("template_item_id")
    if not isinstance(template_item_id, int) or isinstance(template_item_id, bool):
        return api_error(E.VALIDATION_REQUIRED, "template_item_id is required")
    result = task_svc.add_home_task(home_id, template_item_id, tenant_id=tenant_id_arg())
    return jsonify(result), 201


@home_schedule_bp.route("/tasks/<int:task_id>/schedule", methods=["PATCH"])
def schedule_task(task_id):
    """Set or clear the scheduled date.

    Body: { scheduled_date: "YYYY-MM-DD" | null }
    Returns: task dict (200); 409 when scheduling is blocked.
    """
    data = request.get_json(silent=True) or {}
    if "scheduled_date" not in data:
        return api_error(E.VALIDATION_REQUIRED, "scheduled_date is required")
    try:
        scheduled_date = parse_date_input(data["scheduled_date"])
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    task = task_svc.schedule_task(task_id, scheduled_date, tenant_id=tenant_id_arg())
    return jsonify(task.to_dict()), 200


@home_schedule_bp.route("/tasks/<int:task_id>/duration", methods=["PATCH"])
def update_duration(task_id):
    """Body: { duration_days }"""
    data = request.get_json(silent=True) or {}
    if "duration_days" not in data:
        return api_error(E.VALIDATION_REQUIRED, "duration_days is required")
    result = task_svc.update_task_duration(task_id, data["duration_days"], tenant_id=tenant_id_arg())
    return jsonify(result), 200


@home_schedule_bp.route("/tasks/<int:task_id>/transition", methods=["POST"])
def transition_task(task_id):
    """Body: { status }. Returns: task dict (200); 422 on an invalid transition."""
    data = request.get_json(silent=True) or {}
    new_status = data.get("status")
    if not isinstance(new_status, str) or not new_status.strip():
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    task = task_svc.transition_task(task_id, new_status.strip(), tenant_id=tenant_id_arg())
    return jsonify(task.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Template dependencies
# ═════════════════════════════════════════════════════════════════════════


@home_schedule_bp.route("/template-items/<int:item_id>/dependencies", methods=["GET"])
def get_dependencies(item_id):
    deps = template_svc.get_template_dependencies(item_id, tenant_id=tenant_id_arg())
    return jsonify({"template_item_id": item_id, "dependencies": deps}), 200


@home_schedule_bp.route("/template-items/<int:item_id>/dependencies", methods=["PUT"])
def put_dependencies(item_id):
    """Replace prerequisites of a template item.

    Body: { depends_on_item_ids: [int, ...], tenant_id? }
    Returns: new edge list + affected homes (200); 422 on a cycle.
    """
    data = request.get_json(silent=True) or {}
    dep_ids = data.get("depends_on_item_ids")
    if not isinstance(dep_ids, list):
        return api_error(E.VALIDATION_REQUIRED, "depends_on_item_ids must be a list")
    result = template_svc.set_template_dependencies(item_id, dep_ids, tenant_id=tenant_id_arg())
    return jsonify(result), 200
