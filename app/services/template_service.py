"""
Template Service — prerequisite editing for work template items.

Edges are validated as a whole before anything is written: the tenant's
visible edge set (own rows + global rows) with the proposed prerequisites
substituted must still be orderable by the same Kahn sort the forecast
uses. A rejected edit leaves the stored edges untouched.
"""

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DependencyCycleError, NotFoundError, ValidationError
from app.models import db
from app.models.construction import HomeTask, TemplateDependency, WorkTemplateItem
from app.services.forecast_service import topological_sort
from app.services.home_task_service import refresh_forecast

logger = logging.getLogger(__name__)


def _visible(column, tenant_id: int | None):
    if tenant_id is None:
        return column.is_(None)
    return or_(column == tenant_id, column.is_(None))


def _get_template_item(item_id: int, tenant_id: int | None) -> WorkTemplateItem:
    item = db.session.execute(
        select(WorkTemplateItem).where(
            WorkTemplateItem.id == item_id,
            _visible(WorkTemplateItem.tenant_id, tenant_id),
        )
    ).scalar_one_or_none()
    if item is None:
        raise NotFoundError(resource="WorkTemplateItem", resource_id=item_id, tenant_id=tenant_id)
    return item


def get_template_dependencies(template_item_id: int, *, tenant_id: int | None = None) -> list[dict]:
    """Prerequisites of one template item visible to a tenant."""
    _get_template_item(template_item_id, tenant_id)
    rows = db.session.execute(
        select(TemplateDependency)
        .where(
            TemplateDependency.template_item_id == template_item_id,
            _visible(TemplateDependency.tenant_id, tenant_id),
        )
        .order_by(TemplateDependency.id)
    ).scalars().all()
    return [r.to_dict() for r in rows]


def check_dependency_cycle(
    edges: list[tuple[int, int]],
    names: dict[int, str],
) -> None:
    """Raise DependencyCycleError if (prereq, dependent) pairs contain a cycle."""
    nodes: list[int] = []
    successors: dict[int, list[int]] = {}
    for prereq_id, dependent_id in edges:
        for node in (prereq_id, dependent_id):
            if node not in successors:
                successors[node] = []
                nodes.append(node)
        successors[prereq_id].append(dependent_id)

    _, unresolved = topological_sort(nodes, successors)
    if unresolved:
        raise DependencyCycleError(
            [names.get(node, f"#{node}") for node in unresolved],
            context="these template items",
        )


def set_template_dependencies(
    template_item_id: int,
    depends_on_item_ids,
    *,
    tenant_id: int | None = None,
) -> dict:
    """Replace the tenant's prerequisites of a template item.

    Only rows owned by ``tenant_id`` are replaced; global rows stay in force
    for tenants. On success the forecasts of every home with a task for this
    item are refreshed.

    Returns:
        {"template_item_id", "dependencies", "affected_home_ids", "forecast_errors"}

    Raises:
        NotFoundError: Unknown template item.
        ValidationError: Self-dependency or unknown prerequisite id.
        DependencyCycleError: The resulting edge set has a cycle.
    """
    item = _get_template_item(template_item_id, tenant_id)

    proposed: list[int] = []
    for dep_id in depends_on_item_ids or []:
        if isinstance(dep_id, bool) or not isinstance(dep_id, int):
            raise ValidationError("depends_on_item_ids must be integers",
                                  details={"depends_on_item_ids": depends_on_item_ids})
        if dep_id not in proposed:
            proposed.append(dep_id)

    if template_item_id in proposed:
        raise ValidationError("A template item cannot depend on itself",
                              details={"template_item_id": template_item_id})

    visible_items = {
        row.id: row.name
        for row in db.session.execute(
            select(WorkTemplateItem).where(_visible(WorkTemplateItem.tenant_id, tenant_id))
        ).scalars()
    }
    unknown = [dep_id for dep_id in proposed if dep_id not in visible_items]
    if unknown:
        raise ValidationError("Unknown template item ids", details={"unknown_ids": unknown})

    existing = db.session.execute(
        select(TemplateDependency).where(_visible(TemplateDependency.tenant_id, tenant_id))
    ).scalars().all()
    edges = [
        (dep.depends_on_item_id, dep.template_item_id)
        for dep in existing
        if not (dep.template_item_id == template_item_id and dep.tenant_id == tenant_id)
    ]
    edges.extend((dep_id, template_item_id) for dep_id in proposed)

    try:
        check_dependency_cycle(edges, visible_items)
    except DependencyCycleError as exc:
        logger.warning("Template dependency edit rejected: %s", exc,
                       extra={"tenant_id": tenant_id})
        raise

    if tenant_id is None:
        owner = TemplateDependency.tenant_id.is_(None)
    else:
        owner = TemplateDependency.tenant_id == tenant_id
    try:
        db.session.execute(
            delete(TemplateDependency).where(
                TemplateDependency.template_item_id == template_item_id, owner,
            )
        )
        for dep_id in proposed:
            db.session.add(TemplateDependency(
                tenant_id=tenant_id,
                template_item_id=template_item_id,
                depends_on_item_id=dep_id,
            ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Template dependency write failed", extra={"tenant_id": tenant_id})
        raise

    logger.info("Template dependencies replaced item_id=%s count=%d", item.id, len(proposed),
                extra={"tenant_id": tenant_id})

    home_stmt = select(HomeTask.home_id).where(HomeTask.template_item_id == template_item_id)
    if tenant_id is not None:
        home_stmt = home_stmt.where(HomeTask.tenant_id == tenant_id)
    home_ids = sorted(set(db.session.execute(home_stmt).scalars()))

    forecast_errors = {}
    for home_id in home_ids:
        error = refresh_forecast(home_id)
        if error:
            forecast_errors[home_id] = error

    return {
        "template_item_id": item.id,
        "dependencies": get_template_dependencies(item.id, tenant_id=tenant_id),
        "affected_home_ids": home_ids,
        "forecast_errors": forecast_errors,
    }
