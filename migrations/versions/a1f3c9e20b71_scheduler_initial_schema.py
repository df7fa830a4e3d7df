"""scheduler_initial_schema

Create tenants, work templates, template dependencies, category gates,
homes, home tasks and punch items.

Revision ID: a1f3c9e20b71
Revises:
Create Date: 2026-10-17 09:12:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1f3c9e20b71"
down_revision = None
branch_labels = None
depends_on = None


def _tenant_fk_column(nullable=True):
    return sa.Column("tenant_id", sa.Integer(), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "tenants" not in existing_tables:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "work_template_items" not in existing_tables:
        op.create_table(
            "work_template_items",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk_column(),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("default_duration_days", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("optional_category", sa.String(length=100), nullable=True),
            sa.Column("is_dependency", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_critical_gate", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("gate_scope", sa.String(length=20), nullable=False, server_default="DownstreamOnly"),
            sa.Column("gate_block_mode", sa.String(length=30), nullable=False, server_default="ScheduleOnly"),
            sa.Column("gate_name", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_work_template_items_tenant_id", "work_template_items", ["tenant_id"])

    if "template_dependencies" not in existing_tables:
        op.create_table(
            "template_dependencies",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk_column(),
            sa.Column("template_item_id", sa.Integer(), nullable=False),
            sa.Column("depends_on_item_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_item_id"], ["work_template_items.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["depends_on_item_id"], ["work_template_items.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "template_item_id", "depends_on_item_id",
                                name="uq_template_dep"),
            sa.CheckConstraint("template_item_id != depends_on_item_id",
                               name="ck_template_dep_no_self_loop"),
        )
        op.create_index("ix_template_dependencies_tenant_id", "template_dependencies", ["tenant_id"])
        op.create_index("ix_template_dependencies_template_item_id", "template_dependencies",
                        ["template_item_id"])
        op.create_index("ix_template_dependencies_depends_on_item_id", "template_dependencies",
                        ["depends_on_item_id"])

    if "category_gates" not in existing_tables:
        op.create_table(
            "category_gates",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk_column(),
            sa.Column("category_name", sa.String(length=100), nullable=False),
            sa.Column("gate_scope", sa.String(length=20), nullable=False, server_default="DownstreamOnly"),
            sa.Column("gate_block_mode", sa.String(length=30), nullable=False, server_default="ScheduleOnly"),
            sa.Column("gate_name", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "category_name", name="uq_category_gate"),
        )
        op.create_index("ix_category_gates_tenant_id", "category_gates", ["tenant_id"])

    if "homes" not in existing_tables:
        op.create_table(
            "homes",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk_column(),
            sa.Column("address_or_lot", sa.String(length=300), nullable=False, server_default=""),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("target_completion_date", sa.Date(), nullable=True),
            sa.Column("forecast_completion_date", sa.Date(), nullable=True),
            sa.Column("forecast_total_working_days", sa.Integer(), nullable=True),
            sa.Column("forecast_computed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_homes_tenant_id", "homes", ["tenant_id"])

    if "home_tasks" not in existing_tables:
        op.create_table(
            "home_tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk_column(),
            sa.Column("home_id", sa.Integer(), nullable=False),
            sa.Column("template_item_id", sa.Integer(), nullable=False),
            sa.Column("name_snapshot", sa.String(length=200), nullable=False),
            sa.Column("duration_days_snapshot", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("sort_order_snapshot", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Unscheduled"),
            sa.Column("scheduled_date", sa.Date(), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("forecast_early_start_offset_working_days", sa.Integer(), nullable=True),
            sa.Column("forecast_early_finish_offset_working_days", sa.Integer(), nullable=True),
            sa.Column("is_critical_path", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("blocked_by_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["home_id"], ["homes.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_item_id"], ["work_template_items.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_home_tasks_tenant_id", "home_tasks", ["tenant_id"])
        op.create_index("ix_home_tasks_home_id", "home_tasks", ["home_id"])
        op.create_index("ix_home_tasks_template_item_id", "home_tasks", ["template_item_id"])
        op.create_index("ix_home_tasks_home_sort", "home_tasks", ["home_id", "sort_order_snapshot"])

    if "punch_items" not in existing_tables:
        op.create_table(
            "punch_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("related_home_task_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False, server_default=""),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Open"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["related_home_task_id"], ["home_tasks.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("status IN ('Open','ReadyForReview','Closed','Canceled')",
                               name="ck_punch_item_status"),
        )
        op.create_index("ix_punch_items_related_home_task_id", "punch_items", ["related_home_task_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in (
        "punch_items",
        "home_tasks",
        "homes",
        "category_gates",
        "template_dependencies",
        "work_template_items",
        "tenants",
    ):
        if table in existing_tables:
            op.drop_table(table)
