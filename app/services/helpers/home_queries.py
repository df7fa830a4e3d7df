"""
Read models consumed by the scheduling engines.

The gate evaluator, the scheduling-block resolver and the forecast engine
never touch ORM rows directly. They work on the immutable snapshots built
here, which keeps the engines pure and keeps the two read paths apart:

    TaskSnapshot   frozen per-task fields (duration, sort order, name) copied
                   onto the HomeTask row when it was created
    TemplateMeta   gate/dependency topology read live from WorkTemplateItem

Every loader issues a single query. Callers that need several loaders for
one home (the batch resolver) call each once and share the result.

Usage:
    tasks = load_home_tasks_with_template_meta(home_id)
    anchor = load_home_anchor(home_id)
    edges = load_template_dependencies({t.template_item_id for t in tasks}, anchor.tenant_id)
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, or_, select

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.construction import (
    GATE_SCOPE_DOWNSTREAM_ONLY,
    OPEN_PUNCH_STATUSES,
    CategoryGate,
    Home,
    HomeTask,
    PunchItem,
    TemplateDependency,
    WorkTemplateItem,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateMeta:
    """Live template lookup for one task."""

    category: str | None = None
    is_dependency: bool = False
    is_critical_gate: bool = False
    gate_scope: str = GATE_SCOPE_DOWNSTREAM_ONLY
    gate_name: str | None = None
    gate_block_mode: str = "ScheduleOnly"


@dataclass(frozen=True)
class TaskSnapshot:
    """Frozen view of one HomeTask as the engines see it."""

    id: int
    template_item_id: int
    sort_order_snapshot: int
    duration_days_snapshot: int
    name_snapshot: str
    status: str
    template: TemplateMeta | None = None

    @property
    def category(self) -> str | None:
        return self.template.category if self.template else None


@dataclass(frozen=True)
class DependencyEdge:
    """depends_on_item_id must finish before template_item_id."""

    template_item_id: int
    depends_on_item_id: int


@dataclass(frozen=True)
class CategoryGateRule:
    category_name: str
    gate_scope: str = GATE_SCOPE_DOWNSTREAM_ONLY
    gate_name: str | None = None
    gate_block_mode: str = "ScheduleOnly"


@dataclass(frozen=True)
class HomeAnchor:
    home_id: int
    tenant_id: int | None
    start_date: date | None


# ── Snapshot builders ────────────────────────────────────────────────────────


def template_meta_from_item(item: WorkTemplateItem | None) -> TemplateMeta | None:
    if item is None:
        return None
    return TemplateMeta(
        category=item.optional_category,
        is_dependency=bool(item.is_dependency),
        is_critical_gate=bool(item.is_critical_gate),
        gate_scope=item.gate_scope or GATE_SCOPE_DOWNSTREAM_ONLY,
        gate_name=item.gate_name,
        gate_block_mode=item.gate_block_mode or "ScheduleOnly",
    )


def snapshot_from_task(task: HomeTask, item: WorkTemplateItem | None) -> TaskSnapshot:
    return TaskSnapshot(
        id=task.id,
        template_item_id=task.template_item_id,
        sort_order_snapshot=task.sort_order_snapshot,
        duration_days_snapshot=task.duration_days_snapshot,
        name_snapshot=task.name_snapshot,
        status=task.status,
        template=template_meta_from_item(item),
    )


# ── Loaders ──────────────────────────────────────────────────────────────────


def load_home_anchor(home_id: int) -> HomeAnchor:
    """Return the home's tenant and start date.

    Raises:
        NotFoundError: If the home does not exist.
    """
    row = db.session.execute(
        select(Home.id, Home.tenant_id, Home.start_date).where(Home.id == home_id)
    ).one_or_none()
    if row is None:
        raise NotFoundError(resource="Home", resource_id=home_id)
    return HomeAnchor(home_id=row.id, tenant_id=row.tenant_id, start_date=row.start_date)


def load_home_tasks_with_template_meta(home_id: int) -> list[TaskSnapshot]:
    """All tasks of a home with live template metadata, in frozen sort order."""
    rows = db.session.execute(
        select(HomeTask, WorkTemplateItem)
        .outerjoin(WorkTemplateItem, HomeTask.template_item_id == WorkTemplateItem.id)
        .where(HomeTask.home_id == home_id)
        .order_by(HomeTask.sort_order_snapshot, HomeTask.id)
    ).all()
    return [snapshot_from_task(task, item) for task, item in rows]


def load_template_dependencies(template_item_ids, tenant_id: int | None) -> list[DependencyEdge]:
    """Edges whose dependent end is one of template_item_ids.

    Includes the tenant's own rows and global (tenant_id NULL) rows.
    """
    ids = sorted(set(template_item_ids))
    if not ids:
        return []

    scope = TemplateDependency.tenant_id.is_(None)
    if tenant_id is not None:
        scope = or_(TemplateDependency.tenant_id == tenant_id, scope)

    rows = db.session.execute(
        select(TemplateDependency.template_item_id, TemplateDependency.depends_on_item_id)
        .where(TemplateDependency.template_item_id.in_(ids), scope)
        .order_by(TemplateDependency.id)
    ).all()
    return [
        DependencyEdge(template_item_id=r.template_item_id, depends_on_item_id=r.depends_on_item_id)
        for r in rows
    ]


def load_category_gates(tenant_id: int | None) -> list[CategoryGateRule]:
    """Category gates configured for exactly this tenant (NULL tenant → NULL gates)."""
    if tenant_id is not None:
        where = CategoryGate.tenant_id == tenant_id
    else:
        where = CategoryGate.tenant_id.is_(None)

    gates = db.session.execute(
        select(CategoryGate).where(where).order_by(CategoryGate.id)
    ).scalars().all()
    return [
        CategoryGateRule(
            category_name=g.category_name,
            gate_scope=g.gate_scope or GATE_SCOPE_DOWNSTREAM_ONLY,
            gate_name=g.gate_name,
            gate_block_mode=g.gate_block_mode or "ScheduleOnly",
        )
        for g in gates
    ]


def count_open_punch_items(task_id: int) -> int:
    """Open + ReadyForReview punch items attached to one task."""
    return db.session.execute(
        select(func.count(PunchItem.id)).where(
            PunchItem.related_home_task_id == task_id,
            PunchItem.status.in_(OPEN_PUNCH_STATUSES),
        )
    ).scalar() or 0


def count_open_punch_items_by_task(task_ids) -> dict[int, int]:
    """Open punch counts for many tasks in one grouped query (missing → 0)."""
    ids = sorted(set(task_ids))
    if not ids:
        return {}
    rows = db.session.execute(
        select(PunchItem.related_home_task_id, func.count(PunchItem.id))
        .where(
            PunchItem.related_home_task_id.in_(ids),
            PunchItem.status.in_(OPEN_PUNCH_STATUSES),
        )
        .group_by(PunchItem.related_home_task_id)
    ).all()
    return {task_id: count for task_id, count in rows}


# ── Scoped row lookups (write paths) ─────────────────────────────────────────


def get_home(home_id: int, *, tenant_id: int | None = None) -> Home:
    """Fetch a Home row, optionally restricted to a tenant.

    Raises:
        NotFoundError: If missing or owned by a different tenant.
    """
    stmt = select(Home).where(Home.id == home_id)
    if tenant_id is not None:
        stmt = stmt.where(Home.tenant_id == tenant_id)
    home = db.session.execute(stmt).scalar_one_or_none()
    if home is None:
        logger.debug("get_home: id=%s not found (tenant=%s)", home_id, tenant_id)
        raise NotFoundError(resource="Home", resource_id=home_id, tenant_id=tenant_id)
    return home


def get_home_task(task_id: int, *, tenant_id: int | None = None) -> HomeTask:
    """Fetch a HomeTask row, optionally restricted to a tenant."""
    stmt = select(HomeTask).where(HomeTask.id == task_id)
    if tenant_id is not None:
        stmt = stmt.where(HomeTask.tenant_id == tenant_id)
    task = db.session.execute(stmt).scalar_one_or_none()
    if task is None:
        logger.debug("get_home_task: id=%s not found (tenant=%s)", task_id, tenant_id)
        raise NotFoundError(resource="HomeTask", resource_id=task_id, tenant_id=tenant_id)
    return task
