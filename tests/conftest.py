"""
Shared pytest fixtures for the Homebuilding Production Scheduler test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - default_tenant: Pre-created Tenant entity
    - seed: ORM helpers for templates, gates, homes, tasks and punch items
"""

from datetime import date

import pytest

from app import create_app
from app.models import db as _db
from app.models.construction import (
    CategoryGate,
    Home,
    HomeTask,
    PunchItem,
    TemplateDependency,
    WorkTemplateItem,
)
from app.models.tenant import Tenant

# Monday
DEFAULT_START = date(2024, 1, 1)


def _ensure_default_tenant():
    """Create a default tenant for tests if it doesn't exist.

    Returns the tenant ID.
    """
    t = Tenant.query.filter_by(slug="test-default").first()
    if not t:
        t = Tenant(name="Test Default", slug="test-default")
        _db.session.add(t)
        _db.session.commit()
    return t.id


class Seed:
    """ORM helpers; every helper flushes so ids are available immediately."""

    def __init__(self, tenant_id):
        self.tenant_id = tenant_id

    def _add(self, obj):
        _db.session.add(obj)
        _db.session.flush()
        return obj

    def template(self, name, *, category=None, duration=1, sort_order=0,
                 is_dependency=False, is_critical_gate=False,
                 gate_scope="DownstreamOnly", gate_name=None, tenant_id="default"):
        return self._add(WorkTemplateItem(
            tenant_id=self.tenant_id if tenant_id == "default" else tenant_id,
            name=name,
            default_duration_days=duration,
            sort_order=sort_order,
            optional_category=category,
            is_dependency=is_dependency,
            is_critical_gate=is_critical_gate,
            gate_scope=gate_scope,
            gate_name=gate_name,
        ))

    def dependency(self, item, depends_on, *, tenant_id="default"):
        return self._add(TemplateDependency(
            tenant_id=self.tenant_id if tenant_id == "default" else tenant_id,
            template_item_id=item.id,
            depends_on_item_id=depends_on.id,
        ))

    def category_gate(self, category_name, *, gate_scope="DownstreamOnly", gate_name=None,
                      tenant_id="default"):
        return self._add(CategoryGate(
            tenant_id=self.tenant_id if tenant_id == "default" else tenant_id,
            category_name=category_name,
            gate_scope=gate_scope,
            gate_name=gate_name,
        ))

    def home(self, *, start_date=DEFAULT_START, target=None, tenant_id="default"):
        return self._add(Home(
            tenant_id=self.tenant_id if tenant_id == "default" else tenant_id,
            address_or_lot="Lot 12",
            start_date=start_date,
            target_completion_date=target,
        ))

    def task(self, home, item, *, status="Unscheduled", duration=None, sort_order=None, name=None):
        """Task snapshotting the template unless overrides are given."""
        return self._add(HomeTask(
            tenant_id=home.tenant_id,
            home_id=home.id,
            template_item_id=item.id,
            name_snapshot=name or item.name,
            duration_days_snapshot=item.default_duration_days if duration is None else duration,
            sort_order_snapshot=item.sort_order if sort_order is None else sort_order,
            status=status,
        ))

    def punch(self, task, *, status="Open", title="Fix drywall seam"):
        return self._add(PunchItem(related_home_task_id=task.id, status=status, title=title))


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        _ensure_default_tenant()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def default_tenant():
    """Return the auto-created default test tenant."""
    return Tenant.query.filter_by(slug="test-default").first()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def seed(default_tenant):
    """ORM helpers scoped to the default tenant."""
    return Seed(default_tenant.id)
