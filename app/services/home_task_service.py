"""
Home Task Service — scheduling actions on individual home tasks.

Business logic for:
    - Scheduling:           set/clear scheduled_date, guarded by the block resolver
    - Lifecycle transitions: TASK_TRANSITIONS table, completed_at bookkeeping
    - Task creation:        snapshot name/duration/sort order from the template
    - Forecast triggers:    recompute after a task is added or its duration edited

Status flow:
    Unscheduled → Scheduled → PendingConfirm → Confirmed → InProgress → Completed
                                            ↘ Declined
    Any open state → Canceled; Canceled → Unscheduled
"""

import logging
from datetime import date, datetime, timezone

from flask import current_app
from sqlalchemy import select

from app.core.exceptions import (
    DependencyCycleError,
    NotFoundError,
    SchedulingBlockedError,
    ValidationError,
)
from app.models import db
from app.models.construction import (
    TASK_STATUSES,
    HomeTask,
    WorkTemplateItem,
    validate_task_transition,
)
from app.services.forecast_service import compute_home_forecast
from app.services.helpers.home_queries import get_home, get_home_task
from app.services.scheduling_block import get_task_scheduling_block_reason

logger = logging.getLogger(__name__)


def _recompute_enabled() -> bool:
    return bool(current_app.config.get("FORECAST_RECOMPUTE_ON_CHANGE", True))


def refresh_forecast(home_id: int) -> str | None:
    """Recompute a home's forecast after an edit, if enabled.

    The edit itself is already committed; a dependency cycle only makes the
    forecast unavailable, so it is logged and returned as a message.

    Returns:
        The cycle message, or None when the forecast was refreshed (or skipped).
    """
    if not _recompute_enabled():
        return None
    try:
        compute_home_forecast(home_id)
    except DependencyCycleError as exc:
        logger.warning("Forecast not refreshed: %s", exc, extra={"home_id": home_id})
        return str(exc)
    return None


# ── Scheduling ───────────────────────────────────────────────────────────────


def schedule_task(
    task_id: int,
    scheduled_date: date | None,
    *,
    tenant_id: int | None = None,
) -> HomeTask:
    """Set or clear a task's scheduled date.

    Setting a date runs the scheduling-block resolver first. An Unscheduled
    task moves to Scheduled; clearing the date moves the task back to
    Unscheduled when that transition is allowed from its current status.

    Raises:
        NotFoundError: Unknown task (or other tenant's task).
        SchedulingBlockedError: The resolver returned a block reason.
    """
    task = get_home_task(task_id, tenant_id=tenant_id)

    if scheduled_date is None:
        task.scheduled_date = None
        if validate_task_transition(task.status, "Unscheduled"):
            task.status = "Unscheduled"
        db.session.commit()
        logger.info("HomeTask schedule cleared id=%s", task.id,
                    extra={"home_id": task.home_id, "task_id": task.id})
        return task

    reason = get_task_scheduling_block_reason(task.home_id, task.id)
    if reason:
        logger.info("HomeTask schedule rejected id=%s: %s", task.id, reason,
                    extra={"home_id": task.home_id, "task_id": task.id})
        raise SchedulingBlockedError(task.id, reason)

    task.scheduled_date = scheduled_date
    if task.status == "Unscheduled":
        task.status = "Scheduled"
    db.session.commit()
    logger.info("HomeTask scheduled id=%s date=%s", task.id, scheduled_date.isoformat(),
                extra={"home_id": task.home_id, "task_id": task.id})
    return task


def transition_task(task_id: int, new_status: str, *, tenant_id: int | None = None) -> HomeTask:
    """Move a task to a new status.

    completed_at is stamped on entering Completed and cleared on leaving it.

    Raises:
        NotFoundError: Unknown task.
        ValidationError: Unknown status or transition not allowed.
    """
    if new_status not in TASK_STATUSES:
        raise ValidationError(
            f"Unknown task status: {new_status!r}",
            details={"status": new_status, "allowed": sorted(TASK_STATUSES)},
        )

    task = get_home_task(task_id, tenant_id=tenant_id)
    old = task.status
    if not validate_task_transition(old, new_status):
        raise ValidationError(
            f"Invalid transition: {old} → {new_status}",
            details={"from": old, "to": new_status},
        )

    task.status = new_status
    if new_status == "Completed":
        task.completed_at = datetime.now(timezone.utc)
    elif old == "Completed":
        task.completed_at = None
    if new_status == "Unscheduled":
        task.scheduled_date = None

    db.session.commit()
    logger.info("HomeTask transitioned id=%s %s → %s", task.id, old, new_status,
                extra={"home_id": task.home_id, "task_id": task.id})
    return task


# ── Creation / edits ─────────────────────────────────────────────────────────


def add_home_task(home_id: int, template_item_id: int, *, tenant_id: int | None = None) -> dict:
    """Create a task on a home from a template item and refresh the forecast.

    Name, duration and sort order are copied from the template item now and
    never re-read; category, gate flags and edges stay live.

    Returns:
        {"task": <task dict>, "forecast_error": <cycle message or None>}

    Raises:
        NotFoundError: Unknown home or template item.
    """
    home = get_home(home_id, tenant_id=tenant_id)

    stmt = select(WorkTemplateItem).where(WorkTemplateItem.id == template_item_id)
    if home.tenant_id is not None:
        stmt = stmt.where(
            (WorkTemplateItem.tenant_id == home.tenant_id) | WorkTemplateItem.tenant_id.is_(None)
        )
    item = db.session.execute(stmt).scalar_one_or_none()
    if item is None:
        raise NotFoundError(resource="WorkTemplateItem", resource_id=template_item_id,
                            tenant_id=home.tenant_id)

    task = HomeTask(
        tenant_id=home.tenant_id,
        home_id=home.id,
        template_item_id=item.id,
        name_snapshot=item.name,
        duration_days_snapshot=item.default_duration_days,
        sort_order_snapshot=item.sort_order,
        status="Unscheduled",
    )
    db.session.add(task)
    db.session.commit()
    logger.info("HomeTask created id=%s template_item_id=%s", task.id, item.id,
                extra={"home_id": home.id, "task_id": task.id})

    forecast_error = refresh_forecast(home.id)
    return {"task": task.to_dict(), "forecast_error": forecast_error}


def update_task_duration(task_id: int, duration_days: int, *, tenant_id: int | None = None) -> dict:
    """Override a task's duration snapshot and refresh the forecast.

    Raises:
        NotFoundError: Unknown task.
        ValidationError: Duration is not an integer.
    """
    if isinstance(duration_days, bool) or not isinstance(duration_days, int):
        raise ValidationError("duration_days must be an integer",
                              details={"duration_days": duration_days})

    task = get_home_task(task_id, tenant_id=tenant_id)
    task.duration_days_snapshot = duration_days
    db.session.commit()
    logger.info("HomeTask duration updated id=%s days=%s", task.id, duration_days,
                extra={"home_id": task.home_id, "task_id": task.id})

    forecast_error = refresh_forecast(task.home_id)
    return {"task": task.to_dict(), "forecast_error": forecast_error}
