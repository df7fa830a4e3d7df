"""
Homebuilding Production Scheduler
Construction domain models — templates, gates, homes, tasks, punch items.

Models:
    - WorkTemplateItem:     reusable catalog entry (duration, category, gate flags)
    - TemplateDependency:   prerequisite edge between two template items
    - CategoryGate:         tenant rule marking a whole category (phase) as a gate
    - Home:                 one house being built; anchor date + forecast summary
    - HomeTask:             concrete instance of a template item on one home
    - PunchItem:            quality defect raised against a home task

Architecture:
    Tenant ──1:N──▶ WorkTemplateItem ──N:M──▶ WorkTemplateItem  (via TemplateDependency)
    Tenant ──1:N──▶ CategoryGate
    Tenant ──1:N──▶ Home ──1:N──▶ HomeTask ──1:N──▶ PunchItem
    HomeTask ──N:1──▶ WorkTemplateItem

Snapshot fields:
    HomeTask.duration_days_snapshot / sort_order_snapshot / name_snapshot are
    frozen when the task is created. Gate flags, category and dependency
    edges are always read live from the template tables.

Lifecycle states:
    HomeTask:   Unscheduled → Scheduled → PendingConfirm → Confirmed → InProgress
                → Completed  |  Declined / Canceled
    PunchItem:  Open → ReadyForReview → Closed  |  Canceled
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

TASK_STATUSES = {
    "Unscheduled", "Scheduled", "PendingConfirm", "Confirmed",
    "Declined", "InProgress", "Completed", "Canceled",
}

PUNCH_STATUSES = {"Open", "ReadyForReview", "Closed", "Canceled"}

# Only these punch statuses hold a critical gate closed.
OPEN_PUNCH_STATUSES = ("Open", "ReadyForReview")

GATE_SCOPE_DOWNSTREAM_ONLY = "DownstreamOnly"
GATE_SCOPE_ALL_SCHEDULING = "AllScheduling"
GATE_SCOPES = {GATE_SCOPE_DOWNSTREAM_ONLY, GATE_SCOPE_ALL_SCHEDULING}

GATE_BLOCK_MODES = {"ScheduleOnly", "ScheduleAndConfirm"}


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

TASK_TRANSITIONS = {
    "Unscheduled":    ["Scheduled", "Canceled"],
    "Scheduled":      ["PendingConfirm", "Unscheduled", "Canceled", "Completed"],
    "PendingConfirm": ["Confirmed", "Declined", "Unscheduled", "Canceled", "Completed"],
    "Confirmed":      ["InProgress", "Completed", "Unscheduled", "Canceled"],
    "Declined":       ["Unscheduled", "Canceled"],
    "InProgress":     ["Completed", "Canceled"],
    "Completed":      ["Confirmed", "Scheduled", "InProgress"],
    "Canceled":       ["Unscheduled"],
}


def validate_task_transition(old_status, new_status):
    """Return True if HomeTask status transition is valid."""
    return new_status in TASK_TRANSITIONS.get(old_status, [])


def _utcnow():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# 1. WorkTemplateItem
# ═════════════════════════════════════════════════════════════════════════════


class WorkTemplateItem(db.Model):
    """
    Reusable work item from the builder's catalog.
    Home tasks copy name/duration/sort order at creation; everything else
    (category, gate flags) is looked up live.
    """

    __tablename__ = "work_template_items"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    default_duration_days = db.Column(db.Integer, nullable=False, default=1)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    optional_category = db.Column(db.String(100), nullable=True)

    is_dependency = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="Legacy ordering marker: later tasks wait for this one",
    )
    is_critical_gate = db.Column(db.Boolean, nullable=False, default=False)
    gate_scope = db.Column(
        db.String(20), nullable=False, default=GATE_SCOPE_DOWNSTREAM_ONLY,
        comment="DownstreamOnly | AllScheduling",
    )
    gate_block_mode = db.Column(
        db.String(30), nullable=False, default="ScheduleOnly",
        comment="ScheduleOnly | ScheduleAndConfirm",
    )
    gate_name = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "default_duration_days": self.default_duration_days,
            "sort_order": self.sort_order,
            "optional_category": self.optional_category,
            "is_dependency": self.is_dependency,
            "is_critical_gate": self.is_critical_gate,
            "gate_scope": self.gate_scope,
            "gate_block_mode": self.gate_block_mode,
            "gate_name": self.gate_name,
        }

    def __repr__(self):
        return f"<WorkTemplateItem {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. TemplateDependency
# ═════════════════════════════════════════════════════════════════════════════


class TemplateDependency(db.Model):
    """
    depends_on_item → template_item prerequisite edge.
    tenant_id NULL means the edge is global and applies to every tenant.
    """

    __tablename__ = "template_dependencies"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    template_item_id = db.Column(
        db.Integer, db.ForeignKey("work_template_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    depends_on_item_id = db.Column(
        db.Integer, db.ForeignKey("work_template_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint(
            "tenant_id", "template_item_id", "depends_on_item_id",
            name="uq_template_dep",
        ),
        db.CheckConstraint(
            "template_item_id != depends_on_item_id",
            name="ck_template_dep_no_self_loop",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "template_item_id": self.template_item_id,
            "depends_on_item_id": self.depends_on_item_id,
        }

    def __repr__(self):
        return f"<TemplateDependency {self.depends_on_item_id} → {self.template_item_id}>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. CategoryGate
# ═════════════════════════════════════════════════════════════════════════════


class CategoryGate(db.Model):
    """Marks an entire category as a gate: later phases wait until it is done."""

    __tablename__ = "category_gates"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    category_name = db.Column(db.String(100), nullable=False)
    gate_scope = db.Column(db.String(20), nullable=False, default=GATE_SCOPE_DOWNSTREAM_ONLY)
    gate_block_mode = db.Column(db.String(30), nullable=False, default="ScheduleOnly")
    gate_name = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "category_name", name="uq_category_gate"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "category_name": self.category_name,
            "gate_scope": self.gate_scope,
            "gate_block_mode": self.gate_block_mode,
            "gate_name": self.gate_name,
        }


# ═════════════════════════════════════════════════════════════════════════════
# 4. Home
# ═════════════════════════════════════════════════════════════════════════════


class Home(db.Model):
    """A house under construction. start_date anchors the calendar forecast."""

    __tablename__ = "homes"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    address_or_lot = db.Column(db.String(300), nullable=False, default="")
    start_date = db.Column(db.Date, nullable=True)
    target_completion_date = db.Column(db.Date, nullable=True)

    # Forecast summary (written by forecast_service)
    forecast_completion_date = db.Column(db.Date, nullable=True)
    forecast_total_working_days = db.Column(db.Integer, nullable=True)
    forecast_computed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    tasks = db.relationship(
        "HomeTask",
        backref="home",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="HomeTask.sort_order_snapshot",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "address_or_lot": self.address_or_lot,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "target_completion_date": (
                self.target_completion_date.isoformat() if self.target_completion_date else None
            ),
            "forecast_completion_date": (
                self.forecast_completion_date.isoformat() if self.forecast_completion_date else None
            ),
            "forecast_total_working_days": self.forecast_total_working_days,
            "forecast_computed_at": (
                self.forecast_computed_at.isoformat() if self.forecast_computed_at else None
            ),
        }

    def __repr__(self):
        return f"<Home {self.id}: {self.address_or_lot}>"


# ═════════════════════════════════════════════════════════════════════════════
# 5. HomeTask
# ═════════════════════════════════════════════════════════════════════════════


class HomeTask(db.Model):
    """One scheduled instance of a template item on one home."""

    __tablename__ = "home_tasks"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    home_id = db.Column(
        db.Integer, db.ForeignKey("homes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    template_item_id = db.Column(
        db.Integer, db.ForeignKey("work_template_items.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )

    # Frozen at creation
    name_snapshot = db.Column(db.String(200), nullable=False)
    duration_days_snapshot = db.Column(db.Integer, nullable=False, default=1)
    sort_order_snapshot = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(
        db.String(20), nullable=False, default="Unscheduled",
        comment="Unscheduled | Scheduled | PendingConfirm | Confirmed | Declined "
                "| InProgress | Completed | Canceled",
    )
    scheduled_date = db.Column(db.Date, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Forecast (written by forecast_service)
    forecast_early_start_offset_working_days = db.Column(db.Integer, nullable=True)
    forecast_early_finish_offset_working_days = db.Column(db.Integer, nullable=True)
    is_critical_path = db.Column(db.Boolean, nullable=False, default=False)
    blocked_by_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    template_item = db.relationship("WorkTemplateItem", lazy="joined")
    punch_items = db.relationship(
        "PunchItem",
        backref="home_task",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("ix_home_tasks_home_sort", "home_id", "sort_order_snapshot"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "home_id": self.home_id,
            "template_item_id": self.template_item_id,
            "name_snapshot": self.name_snapshot,
            "duration_days_snapshot": self.duration_days_snapshot,
            "sort_order_snapshot": self.sort_order_snapshot,
            "status": self.status,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "forecast_early_start_offset_working_days": self.forecast_early_start_offset_working_days,
            "forecast_early_finish_offset_working_days": self.forecast_early_finish_offset_working_days,
            "is_critical_path": self.is_critical_path,
            "blocked_by_count": self.blocked_by_count,
        }

    def __repr__(self):
        return f"<HomeTask {self.id}: {self.name_snapshot} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 6. PunchItem
# ═════════════════════════════════════════════════════════════════════════════


class PunchItem(db.Model):
    """Quality defect tied to a home task. Open items hold critical gates closed."""

    __tablename__ = "punch_items"

    id = db.Column(db.Integer, primary_key=True)
    related_home_task_id = db.Column(
        db.Integer, db.ForeignKey("home_tasks.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    title = db.Column(db.String(300), nullable=False, default="")
    status = db.Column(
        db.String(20), nullable=False, default="Open",
        comment="Open | ReadyForReview | Closed | Canceled",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('Open','ReadyForReview','Closed','Canceled')",
            name="ck_punch_item_status",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "related_home_task_id": self.related_home_task_id,
            "title": self.title,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
