"""
Gate Evaluator — critical gates and category gates.

Two kinds of gate can hold a task back:

    Critical gate   a single task whose template item is flagged
                    is_critical_gate; it blocks while it has Open or
                    ReadyForReview punch items.
    Category gate   a tenant rule marking a whole category as a gate; it
                    blocks later categories while any task in the gated
                    category is neither Completed nor Canceled.

The two passes are exposed as pure functions so the scheduling-block
resolver (single and batch) evaluates exactly the same rules:

    find_critical_gate_block(home_tasks, sort_order, open_punch_count)
    find_category_gate_block(tasks, category, category_gates)

check_gate_blocking() is the DB-backed entry point: critical pass first,
category pass only when no critical gate blocks. First blocking gate wins;
multiple reasons are never aggregated.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Callable, Sequence

from app.models.construction import GATE_SCOPE_ALL_SCHEDULING, GATE_SCOPE_DOWNSTREAM_ONLY
from app.services.categories import category_index, gate_display_name, same_category
from app.services.helpers.home_queries import (
    CategoryGateRule,
    TaskSnapshot,
    count_open_punch_items,
    count_open_punch_items_by_task,
    load_category_gates,
    load_home_anchor,
    load_home_tasks_with_template_meta,
)

logger = logging.getLogger(__name__)

DEFAULT_CRITICAL_GATE_NAME = "Critical Gate"

# Statuses that satisfy a category gate.
CATEGORY_GATE_DONE_STATUSES = ("Completed", "Canceled")


@dataclass
class GateCheckResult:
    is_blocked: bool
    blocking_gate_name: str | None = None
    blocking_task_id: int | None = None
    open_punch_count: int | None = None
    incomplete_task_names: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


# ── Pure rules ───────────────────────────────────────────────────────────────


def critical_gate_applies(gate_scope: str | None, candidate_sort_order: int, gate_sort_order: int) -> bool:
    """AllScheduling always applies; DownstreamOnly only to later tasks."""
    scope = gate_scope or GATE_SCOPE_DOWNSTREAM_ONLY
    if scope == GATE_SCOPE_ALL_SCHEDULING:
        return True
    if scope == GATE_SCOPE_DOWNSTREAM_ONLY:
        return candidate_sort_order > gate_sort_order
    return False


def category_gate_applies(gate_scope: str | None, candidate_index: int, gate_index: int) -> bool:
    if gate_index >= candidate_index:
        return False
    scope = gate_scope or GATE_SCOPE_DOWNSTREAM_ONLY
    if scope == GATE_SCOPE_ALL_SCHEDULING:
        return True
    if scope == GATE_SCOPE_DOWNSTREAM_ONLY:
        return candidate_index > gate_index
    return False


def critical_gate_tasks(home_tasks: Sequence[TaskSnapshot]) -> list[TaskSnapshot]:
    return [t for t in home_tasks if t.template and t.template.is_critical_gate]


def find_critical_gate_block(
    home_tasks: Sequence[TaskSnapshot],
    candidate_sort_order: int,
    open_punch_count: Callable[[int], int],
) -> GateCheckResult:
    """Critical-gate pass.

    Args:
        home_tasks: The home's tasks in sort order (gate tasks are picked out here).
        candidate_sort_order: Frozen sort order of the task being scheduled.
        open_punch_count: task_id -> open punch count. Only called for gates
            that apply to the candidate.
    """
    for gate_task in critical_gate_tasks(home_tasks):
        if not critical_gate_applies(
            gate_task.template.gate_scope, candidate_sort_order, gate_task.sort_order_snapshot
        ):
            continue

        count = open_punch_count(gate_task.id)
        if count > 0:
            return GateCheckResult(
                is_blocked=True,
                blocking_gate_name=gate_task.template.gate_name or DEFAULT_CRITICAL_GATE_NAME,
                blocking_task_id=gate_task.id,
                open_punch_count=count,
            )
    return GateCheckResult(is_blocked=False)


def find_category_gate_block(
    tasks: Sequence[TaskSnapshot],
    candidate_category: str | None,
    category_gates: Sequence[CategoryGateRule],
) -> GateCheckResult:
    """Category-gate pass: any earlier gated phase with unfinished work blocks."""
    candidate_index = category_index(candidate_category)

    for gate in category_gates:
        gate_index = category_index(gate.category_name)
        if not category_gate_applies(gate.gate_scope, candidate_index, gate_index):
            continue

        incomplete = [
            t for t in tasks
            if same_category(t.category, gate.category_name)
            and t.status not in CATEGORY_GATE_DONE_STATUSES
        ]
        if incomplete:
            return GateCheckResult(
                is_blocked=True,
                blocking_gate_name=gate_display_name(gate.category_name, gate.gate_name),
                incomplete_task_names=[t.name_snapshot for t in incomplete],
            )
    return GateCheckResult(is_blocked=False)


# ── DB-backed entry points ───────────────────────────────────────────────────


def check_gate_blocking(home_id: int, task_id: int, task_sort_order: int) -> GateCheckResult:
    """Check if scheduling a task is blocked by a critical or category gate.

    Args:
        home_id: The home the task belongs to.
        task_id: The task being checked.
        task_sort_order: The task's frozen sort order.

    Returns:
        GateCheckResult; is_blocked False when nothing blocks.
    """
    home_tasks = load_home_tasks_with_template_meta(home_id)

    result = find_critical_gate_block(home_tasks, task_sort_order, count_open_punch_items)
    if result.is_blocked:
        logger.debug(
            "Task %s blocked by critical gate %r (%s open punch items)",
            task_id, result.blocking_gate_name, result.open_punch_count,
            extra={"home_id": home_id, "task_id": task_id},
        )
        return result

    candidate = next((t for t in home_tasks if t.id == task_id), None)
    if candidate is None:
        return GateCheckResult(is_blocked=False)

    anchor = load_home_anchor(home_id)
    result = find_category_gate_block(
        home_tasks, candidate.category, load_category_gates(anchor.tenant_id)
    )
    if result.is_blocked:
        logger.debug(
            "Task %s blocked by category gate %r",
            task_id, result.blocking_gate_name,
            extra={"home_id": home_id, "task_id": task_id},
        )
    return result


def get_home_gate_status(home_id: int) -> list[dict]:
    """Status of every critical gate on a home, in sort order."""
    gates = critical_gate_tasks(load_home_tasks_with_template_meta(home_id))
    counts = count_open_punch_items_by_task(t.id for t in gates)

    statuses = []
    for gate_task in gates:
        open_count = counts.get(gate_task.id, 0)
        statuses.append({
            "task_id": gate_task.id,
            "task_name": gate_task.name_snapshot,
            "gate_name": gate_task.template.gate_name or DEFAULT_CRITICAL_GATE_NAME,
            "gate_scope": gate_task.template.gate_scope or GATE_SCOPE_DOWNSTREAM_ONLY,
            "gate_block_mode": gate_task.template.gate_block_mode,
            "sort_order": gate_task.sort_order_snapshot,
            "is_blocked": open_count > 0,
            "open_punch_count": open_count,
        })
    return statuses
