"""
Forecast / Critical-Path Engine.

Critical Path Method over one home's tasks, in working-day offsets from the
home's start date:

    1. Project template dependency edges onto the home's task ids
    2. Kahn topological sort (a short order means a cycle → fatal)
    3. Forward pass   ES = max(EF of predecessors) or 0; EF = ES + duration
    4. Backward pass  LF = span (no successors) or min(LS of successors);
                      LS = LF - duration; critical when LS - ES == 0
    5. Span → calendar date with add_working_days(start_date, span)

Durations come from duration_days_snapshot only and are clamped to >= 0.
compute_forecast() is pure; compute_home_forecast() loads, computes and
writes every task row plus the home row in one commit.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Hashable, Iterable, Mapping, Sequence

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DependencyCycleError
from app.models import db
from app.models.construction import HomeTask
from app.services.categories import (
    CATEGORY_ORDER,
    UNCATEGORIZED,
    category_index,
    normalize_category,
    sort_categories,
)
from app.services.helpers.home_queries import (
    DependencyEdge,
    TaskSnapshot,
    get_home,
    load_home_tasks_with_template_meta,
    load_template_dependencies,
    snapshot_from_task,
)
from app.services.schedule_status import get_schedule_status
from app.services.scheduling_block import get_task_scheduling_block_reasons_batch
from app.services.working_days import add_working_days

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskForecast:
    task_id: int
    early_start: int
    early_finish: int
    late_start: int
    late_finish: int
    predecessor_count: int

    @property
    def slack(self) -> int:
        return self.late_start - self.early_start

    @property
    def is_critical_path(self) -> bool:
        return self.slack == 0


@dataclass
class ForecastResult:
    total_working_days: int
    tasks: dict[int, TaskForecast] = field(default_factory=dict)
    topological_order: list[int] = field(default_factory=list)

    @property
    def critical_path_task_ids(self) -> list[int]:
        return [tid for tid in self.topological_order if self.tasks[tid].is_critical_path]


# ── Graph ────────────────────────────────────────────────────────────────────


def topological_sort(
    node_ids: Sequence[Hashable],
    successors: Mapping[Hashable, Iterable[Hashable]],
) -> tuple[list, list]:
    """Kahn's algorithm over id-indexed adjacency lists.

    Returns (order, unresolved). ``unresolved`` lists, in input order, the
    nodes that could not be ordered; it is empty iff the graph is acyclic.
    Ties are broken by input order so results are deterministic.
    """
    in_degree = {node: 0 for node in node_ids}
    for node in node_ids:
        for succ in successors.get(node, ()):
            in_degree[succ] += 1

    queue = deque(node for node in node_ids if in_degree[node] == 0)
    order = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for succ in successors.get(node, ()):
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                queue.append(succ)

    placed = set(order)
    return order, [node for node in node_ids if node not in placed]


def build_task_graph(
    tasks: Sequence[TaskSnapshot],
    edges: Iterable[DependencyEdge],
) -> tuple[dict[int, list[int]], dict[int, list[int]]]:
    """Project template-level edges onto task ids.

    An edge applies to every task of its template items on this home; edges
    with an end missing from the home are ignored. Duplicate pairs collapse.
    """
    tasks_by_item: dict[int, list[int]] = {}
    for task in tasks:
        tasks_by_item.setdefault(task.template_item_id, []).append(task.id)

    successors: dict[int, list[int]] = {t.id: [] for t in tasks}
    predecessors: dict[int, list[int]] = {t.id: [] for t in tasks}
    seen = set()
    for edge in edges:
        for prereq_id in tasks_by_item.get(edge.depends_on_item_id, ()):
            for dependent_id in tasks_by_item.get(edge.template_item_id, ()):
                if (prereq_id, dependent_id) in seen:
                    continue
                seen.add((prereq_id, dependent_id))
                successors[prereq_id].append(dependent_id)
                predecessors[dependent_id].append(prereq_id)
    return successors, predecessors


# ── Pure CPM ─────────────────────────────────────────────────────────────────


def compute_forecast(tasks: Sequence[TaskSnapshot], edges: Iterable[DependencyEdge]) -> ForecastResult:
    """Run CPM over the tasks.

    Raises:
        DependencyCycleError: If the projected edges contain a cycle.
    """
    if not tasks:
        return ForecastResult(total_working_days=0)

    by_id = {t.id: t for t in tasks}
    task_ids = [t.id for t in tasks]
    successors, predecessors = build_task_graph(tasks, edges)

    order, unresolved = topological_sort(task_ids, successors)
    if unresolved:
        raise DependencyCycleError([by_id[tid].name_snapshot for tid in unresolved])

    duration = {tid: max(0, by_id[tid].duration_days_snapshot or 0) for tid in task_ids}

    early_start: dict[int, int] = {}
    early_finish: dict[int, int] = {}
    for tid in order:
        preds = predecessors[tid]
        early_start[tid] = max((early_finish[p] for p in preds), default=0)
        early_finish[tid] = early_start[tid] + duration[tid]

    total = max(early_finish.values())

    late_start: dict[int, int] = {}
    late_finish: dict[int, int] = {}
    for tid in reversed(order):
        succs = successors[tid]
        late_finish[tid] = min((late_start[s] for s in succs), default=total)
        late_start[tid] = late_finish[tid] - duration[tid]

    return ForecastResult(
        total_working_days=total,
        tasks={
            tid: TaskForecast(
                task_id=tid,
                early_start=early_start[tid],
                early_finish=early_finish[tid],
                late_start=late_start[tid],
                late_finish=late_finish[tid],
                predecessor_count=len(predecessors[tid]),
            )
            for tid in order
        },
        topological_order=order,
    )


# ── Persistence ──────────────────────────────────────────────────────────────


def _forecast_summary(home) -> dict:
    return {
        "home_id": home.id,
        "forecast_completion_date": (
            home.forecast_completion_date.isoformat() if home.forecast_completion_date else None
        ),
        "forecast_total_working_days": home.forecast_total_working_days,
        "forecast_computed_at": (
            home.forecast_computed_at.isoformat() if home.forecast_computed_at else None
        ),
    }


def compute_home_forecast(home_id: int) -> dict:
    """Recompute and persist the forecast for one home.

    Without a start date the completion fields are cleared (not left stale).
    All task rows and the home row are committed together; a cycle raises
    before anything is written.

    Returns:
        Forecast summary dict for the home.

    Raises:
        NotFoundError: Unknown home.
        DependencyCycleError: Template edges for this home form a cycle.
    """
    home = get_home(home_id)
    now = datetime.now(timezone.utc)

    if not home.start_date:
        home.forecast_completion_date = None
        home.forecast_total_working_days = None
        home.forecast_computed_at = now
        db.session.commit()
        logger.info("Forecast cleared: home has no start date", extra={"home_id": home_id})
        return _forecast_summary(home)

    rows = db.session.execute(
        select(HomeTask)
        .where(HomeTask.home_id == home_id)
        .order_by(HomeTask.sort_order_snapshot, HomeTask.id)
    ).scalars().all()

    if not rows:
        home.forecast_completion_date = home.start_date
        home.forecast_total_working_days = 0
        home.forecast_computed_at = now
        db.session.commit()
        return _forecast_summary(home)

    snapshots = [snapshot_from_task(row, row.template_item) for row in rows]
    edges = load_template_dependencies({s.template_item_id for s in snapshots}, home.tenant_id)

    try:
        result = compute_forecast(snapshots, edges)
    except DependencyCycleError as exc:
        logger.warning("Forecast aborted: %s", exc, extra={"home_id": home_id})
        raise

    try:
        for row in rows:
            tf = result.tasks[row.id]
            row.forecast_early_start_offset_working_days = tf.early_start
            row.forecast_early_finish_offset_working_days = tf.early_finish
            row.is_critical_path = tf.is_critical_path
            row.blocked_by_count = tf.predecessor_count
        home.forecast_total_working_days = result.total_working_days
        home.forecast_completion_date = add_working_days(home.start_date, result.total_working_days)
        home.forecast_computed_at = now
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Forecast write failed", extra={"home_id": home_id})
        raise

    logger.info(
        "Forecast computed: %d tasks, %d working days, %d on critical path",
        len(rows), result.total_working_days, len(result.critical_path_task_ids),
        extra={"home_id": home_id},
    )
    return _forecast_summary(home)


def _category_groups(tasks: Sequence[TaskSnapshot]) -> list[dict]:
    """Task ids grouped by construction phase, phases in build order."""
    groups = {}
    for snap in tasks:
        idx = category_index(snap.category)
        if idx < len(CATEGORY_ORDER):
            label = CATEGORY_ORDER[idx]
        else:
            label = (snap.category or UNCATEGORIZED).strip()
        group = groups.setdefault(normalize_category(snap.category), {"category": label, "task_ids": []})
        group["task_ids"].append(snap.id)
    by_label = {g["category"]: g for g in groups.values()}
    return [by_label[label] for label in sort_categories(by_label)]


def get_home_forecast_view(home_id: int) -> dict:
    """Everything the forecast page shows for one home.

    Uses the stored forecast fields (recompute first if they may be stale),
    adds calendar dates per task, the batch block reasons and the tasks
    grouped by phase. A dependency cycle does not fail the view; it is
    reported in ``forecast_error`` and every stored forecast value is
    returned as None.
    """
    home = get_home(home_id)
    tasks = load_home_tasks_with_template_meta(home_id)
    rows = {
        row.id: row
        for row in db.session.execute(
            select(HomeTask).where(HomeTask.home_id == home_id)
        ).scalars()
    }

    forecast_error = None
    try:
        edges = load_template_dependencies({t.template_item_id for t in tasks}, home.tenant_id)
        compute_forecast(tasks, edges)
    except DependencyCycleError as exc:
        forecast_error = str(exc)
    # A cycle invalidates every stored offset and the stored completion date.
    start_date = None if forecast_error else home.start_date

    block_reasons = get_task_scheduling_block_reasons_batch(home_id, tasks)

    task_views = []
    for snap in tasks:
        row = rows[snap.id]
        es = row.forecast_early_start_offset_working_days
        ef = row.forecast_early_finish_offset_working_days
        task_view = row.to_dict()
        if forecast_error:
            task_view["forecast_early_start_offset_working_days"] = None
            task_view["forecast_early_finish_offset_working_days"] = None
            task_view["is_critical_path"] = False
        task_views.append({
            **task_view,
            "category": snap.category,
            "forecast_start_date": (
                add_working_days(start_date, es).isoformat()
                if start_date and es is not None else None
            ),
            "forecast_finish_date": (
                add_working_days(start_date, ef).isoformat()
                if start_date and ef is not None else None
            ),
            "block_reason": block_reasons.get(snap.id),
        })

    home_view = home.to_dict()
    if forecast_error:
        home_view["forecast_completion_date"] = None
        home_view["forecast_total_working_days"] = None

    return {
        "home": {
            **home_view,
            "forecast_stale": forecast_error is not None,
            "schedule_status": get_schedule_status(
                None if forecast_error else home.forecast_completion_date,
                home.target_completion_date,
                at_risk_days=current_app.config.get("SCHEDULE_AT_RISK_DAYS", 7),
            ),
        },
        "tasks": task_views,
        "categories": _category_groups(tasks),
        "forecast_error": forecast_error,
    }
