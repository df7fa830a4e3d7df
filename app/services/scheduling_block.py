"""
Scheduling-Block Resolver.

Answers "may this task get a scheduled date right now, and if not, why?".
Four independent blocking mechanisms exist; each is its own rule function
and they always run in this order (first match wins):

    1. Template prerequisites   TemplateDependency edges onto this home's tasks
    2. Category gates           an earlier gated phase still has open work
    3. Legacy dependencies      earlier tasks flagged is_dependency not Completed
    4. Critical gates           a gate task still has open punch items

Rule 3 predates category gates and overlaps with them; both stay active.

Two entry points share resolve_block_reason():

    get_task_scheduling_block_reason()         one task, loads what it needs
    get_task_scheduling_block_reasons_batch()  whole home, every lookup loaded
                                               once and shared across tasks

For any home both forms MUST return the same reason for every task.
"""

import logging
from collections import defaultdict
from typing import Callable, Mapping, Sequence

from app.services.gate_service import (
    critical_gate_tasks,
    find_category_gate_block,
    find_critical_gate_block,
)
from app.services.helpers.home_queries import (
    CategoryGateRule,
    DependencyEdge,
    TaskSnapshot,
    count_open_punch_items,
    count_open_punch_items_by_task,
    load_category_gates,
    load_home_anchor,
    load_home_tasks_with_template_meta,
    load_template_dependencies,
)

logger = logging.getLogger(__name__)


def _names(tasks: Sequence[TaskSnapshot]) -> str:
    return ", ".join(t.name_snapshot for t in tasks)


# ── Rules ────────────────────────────────────────────────────────────────────


def template_prerequisite_reason(
    candidate: TaskSnapshot,
    all_tasks: Sequence[TaskSnapshot],
    prerequisite_item_ids,
) -> str | None:
    """Rule 1: every task of a prerequisite template item must be Completed."""
    prerequisite_item_ids = set(prerequisite_item_ids)
    if not prerequisite_item_ids:
        return None

    incomplete = [
        t for t in all_tasks
        if t.template_item_id in prerequisite_item_ids and t.status != "Completed"
    ]
    if incomplete:
        return f"Task blocked until prerequisites are completed: {_names(incomplete)}"
    return None


def category_gate_reason(
    candidate: TaskSnapshot,
    all_tasks: Sequence[TaskSnapshot],
    category_gates: Sequence[CategoryGateRule],
) -> str | None:
    """Rule 2: earlier gated categories must be finished."""
    result = find_category_gate_block(all_tasks, candidate.category, category_gates)
    if not result.is_blocked:
        return None
    return (
        f'Cannot schedule this task. All tasks in "{result.blocking_gate_name}" '
        f"must be completed first: {', '.join(result.incomplete_task_names)}"
    )


def legacy_dependency_reason(
    candidate: TaskSnapshot,
    all_tasks: Sequence[TaskSnapshot],
) -> str | None:
    """Rule 3: earlier is_dependency tasks must be Completed."""
    incomplete = [
        t for t in all_tasks
        if t.sort_order_snapshot < candidate.sort_order_snapshot
        and t.template is not None
        and t.template.is_dependency
        and t.status != "Completed"
    ]
    if incomplete:
        return (
            "Cannot schedule this task. The following dependency tasks must be "
            f"completed first: {_names(incomplete)}"
        )
    return None


def critical_gate_reason(
    candidate: TaskSnapshot,
    home_tasks: Sequence[TaskSnapshot],
    open_punch_count: Callable[[int], int],
) -> str | None:
    """Rule 4: applicable critical gates must have no open punch items."""
    result = find_critical_gate_block(home_tasks, candidate.sort_order_snapshot, open_punch_count)
    if not result.is_blocked:
        return None
    return (
        f'Scheduling blocked until "{result.blocking_gate_name}" punchlist is cleared. '
        f"{result.open_punch_count} open punch item(s) remaining."
    )


def resolve_block_reason(
    candidate: TaskSnapshot,
    all_tasks: Sequence[TaskSnapshot],
    *,
    prerequisites_by_item: Mapping[int, set],
    category_gates: Sequence[CategoryGateRule],
    home_tasks: Sequence[TaskSnapshot],
    open_punch_count: Callable[[int], int],
) -> str | None:
    """Run the four rules in order against already-loaded lookups."""
    return (
        template_prerequisite_reason(
            candidate, all_tasks, prerequisites_by_item.get(candidate.template_item_id, ())
        )
        or category_gate_reason(candidate, all_tasks, category_gates)
        or legacy_dependency_reason(candidate, all_tasks)
        or critical_gate_reason(candidate, home_tasks, open_punch_count)
    )


def group_prerequisites(edges: Sequence[DependencyEdge]) -> dict[int, set]:
    """template_item_id -> {depends_on_item_id, ...}"""
    grouped: dict[int, set] = defaultdict(set)
    for edge in edges:
        grouped[edge.template_item_id].add(edge.depends_on_item_id)
    return dict(grouped)


# ── Entry points ─────────────────────────────────────────────────────────────


def get_task_scheduling_block_reason(
    home_id: int,
    task_id: int,
    all_tasks: Sequence[TaskSnapshot] | None = None,
) -> str | None:
    """Return why scheduling this task is blocked, or None if it is not.

    Args:
        home_id: The home the task belongs to.
        task_id: Task to check.
        all_tasks: The home's tasks in sort order. Loaded when omitted.

    Returns:
        Human-readable block reason, or None (also None for an unknown task).
    """
    home_tasks = load_home_tasks_with_template_meta(home_id)
    if all_tasks is None:
        all_tasks = home_tasks

    candidate = next((t for t in all_tasks if t.id == task_id), None)
    if candidate is None:
        return None

    anchor = load_home_anchor(home_id)
    edges = load_template_dependencies([candidate.template_item_id], anchor.tenant_id)

    reason = resolve_block_reason(
        candidate,
        all_tasks,
        prerequisites_by_item=group_prerequisites(edges),
        category_gates=load_category_gates(anchor.tenant_id),
        home_tasks=home_tasks,
        open_punch_count=count_open_punch_items,
    )
    if reason:
        logger.debug("Task %s scheduling blocked: %s", task_id, reason,
                     extra={"home_id": home_id, "task_id": task_id})
    return reason


def get_task_scheduling_block_reasons_batch(
    home_id: int,
    all_tasks: Sequence[TaskSnapshot] | None = None,
) -> dict[int, str | None]:
    """Block reason for every task of a home, keyed by task id.

    Category gates, template edges for all involved template items, the
    critical-gate tasks and their open punch counts are each loaded once.
    """
    home_tasks = load_home_tasks_with_template_meta(home_id)
    if all_tasks is None:
        all_tasks = home_tasks
    if not all_tasks:
        return {}

    anchor = load_home_anchor(home_id)
    prerequisites_by_item = group_prerequisites(
        load_template_dependencies({t.template_item_id for t in all_tasks}, anchor.tenant_id)
    )
    category_gates = load_category_gates(anchor.tenant_id)
    punch_counts = count_open_punch_items_by_task(t.id for t in critical_gate_tasks(home_tasks))

    def open_punch_count(task_id: int) -> int:
        return punch_counts.get(task_id, 0)

    results: dict[int, str | None] = {}
    for candidate in all_tasks:
        results[candidate.id] = resolve_block_reason(
            candidate,
            all_tasks,
            prerequisites_by_item=prerequisites_by_item,
            category_gates=category_gates,
            home_tasks=home_tasks,
            open_punch_count=open_punch_count,
        )

    blocked = sum(1 for r in results.values() if r)
    logger.debug("Block reasons computed: %d/%d tasks blocked", blocked, len(results),
                 extra={"home_id": home_id})
    return results
