#!/usr/bin/env python3
"""
Homebuilding Production Scheduler — Demo Seed.

Creates a demo builder with a standard work template (one item per
construction phase plus a few trade tasks), template dependencies, a
category gate on Structural, and one or more homes instantiated from the
template. Each home gets its forecast computed at the end.

Usage:
    python scripts/seed_demo_home.py                 # one home starting next Monday
    python scripts/seed_demo_home.py --homes 3       # three lots
    python scripts/seed_demo_home.py --start 2025-03-03
"""

import argparse
import sys
from datetime import date, timedelta

sys.path.insert(0, ".")

from app import create_app
from app.models import db
from app.models.construction import (
    CategoryGate,
    Home,
    HomeTask,
    TemplateDependency,
    WorkTemplateItem,
)
from app.models.tenant import Tenant
from app.services.forecast_service import compute_home_forecast
from app.utils.helpers import parse_date_input

# (name, category, duration, sort_order, is_critical_gate)
TEMPLATE = [
    ("Permits and survey", "Preliminary work", 3, 10, False),
    ("Clear and grade lot", "Preliminary work", 2, 20, False),
    ("Dig footings", "Foundation", 2, 30, False),
    ("Pour slab", "Foundation", 3, 40, False),
    ("Frame walls and roof", "Structural", 8, 50, False),
    ("Rough plumbing", "Structural", 3, 60, False),
    ("Rough electrical", "Structural", 3, 70, False),
    ("Framing inspection", "Structural", 1, 80, True),
    ("Drywall", "Interior finishes / exterior rough work", 6, 90, False),
    ("Siding and masonry", "Interior finishes / exterior rough work", 7, 100, False),
    ("Final inspection", "Finals punches and inspections.", 1, 110, True),
    ("Cleaning and walkthrough", "Pre-sale completion package", 2, 120, False),
]

# (task, depends_on)
DEPENDENCIES = [
    ("Clear and grade lot", "Permits and survey"),
    ("Dig footings", "Clear and grade lot"),
    ("Pour slab", "Dig footings"),
    ("Frame walls and roof", "Pour slab"),
    ("Rough plumbing", "Frame walls and roof"),
    ("Rough electrical", "Frame walls and roof"),
    ("Framing inspection", "Rough plumbing"),
    ("Framing inspection", "Rough electrical"),
    ("Drywall", "Framing inspection"),
    ("Siding and masonry", "Frame walls and roof"),
    ("Final inspection", "Drywall"),
    ("Final inspection", "Siding and masonry"),
    ("Cleaning and walkthrough", "Final inspection"),
]


def _next_monday(today: date) -> date:
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


def seed_tenant():
    tenant = Tenant.query.filter_by(slug="demo-builder").first()
    if tenant:
        return tenant
    tenant = Tenant(name="Demo Builder", slug="demo-builder")
    db.session.add(tenant)
    db.session.flush()
    return tenant


def seed_template(tenant):
    """Create template items and edges; returns {name: WorkTemplateItem}."""
    items = {}
    for name, category, duration, sort_order, is_gate in TEMPLATE:
        item = WorkTemplateItem(
            tenant_id=tenant.id,
            name=name,
            optional_category=category,
            default_duration_days=duration,
            sort_order=sort_order,
            is_critical_gate=is_gate,
            gate_name=f"{name} Gate" if is_gate else None,
        )
        db.session.add(item)
        items[name] = item
    db.session.flush()

    for task_name, prereq_name in DEPENDENCIES:
        db.session.add(TemplateDependency(
            tenant_id=tenant.id,
            template_item_id=items[task_name].id,
            depends_on_item_id=items[prereq_name].id,
        ))

    db.session.add(CategoryGate(
        tenant_id=tenant.id,
        category_name="Structural",
        gate_name="Structural Gate",
    ))
    db.session.flush()
    return items


def seed_homes(tenant, items, count, start):
    homes = []
    for n in range(1, count + 1):
        home = Home(
            tenant_id=tenant.id,
            address_or_lot=f"Lot {n:03d}",
            start_date=start,
            target_completion_date=start + timedelta(weeks=10),
        )
        db.session.add(home)
        db.session.flush()
        for item in items.values():
            db.session.add(HomeTask(
                tenant_id=tenant.id,
                home_id=home.id,
                template_item_id=item.id,
                name_snapshot=item.name,
                duration_days_snapshot=item.default_duration_days,
                sort_order_snapshot=item.sort_order,
            ))
        homes.append(home)
    db.session.commit()
    return homes


def main():
    parser = argparse.ArgumentParser(description="Homebuilding scheduler demo seed")
    parser.add_argument("--homes", type=int, default=1, help="Number of homes to create")
    parser.add_argument("--start", default=None, help="Start date (YYYY-MM-DD or MM/DD/YYYY)")
    args = parser.parse_args()

    start = parse_date_input(args.start) or _next_monday(date.today())

    app = create_app()
    with app.app_context():
        tenant = seed_tenant()
        items = seed_template(tenant)
        homes = seed_homes(tenant, items, args.homes, start)
        print(f"Seeded tenant '{tenant.slug}' with {len(items)} template items")
        for home in homes:
            summary = compute_home_forecast(home.id)
            print(
                f"  {home.address_or_lot}: {summary['forecast_total_working_days']} working days,"
                f" completes {summary['forecast_completion_date']}"
            )


if __name__ == "__main__":
    main()
