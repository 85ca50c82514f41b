"""Add automation tables: rules, rule_versions, automation_executions,
automation_notifications, automation_tasks

Revision ID: 001_add_automation_tables
Revises:
Create Date: 2026-10-01 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_add_automation_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    # Create rules table
    op.create_table(
        "rules",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("scope", sa.String(length=20), nullable=False, server_default="TENANT"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("conditions", JSONB, nullable=False),
        sa.Column("actions", JSONB, nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("execution_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rules_tenant_id", "rules", ["tenant_id"], unique=False)
    op.create_index("ix_rules_event_type", "rules", ["event_type"], unique=False)
    op.create_index("ix_rules_is_active", "rules", ["is_active"], unique=False)
    op.create_index("idx_rules_event_active", "rules", ["event_type", "is_active"], unique=False)
    op.create_index("idx_rules_tenant_active", "rules", ["tenant_id", "is_active"], unique=False)

    # Create rule_versions table
    op.create_table(
        "rule_versions",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("rule_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("definition", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["rule_id"], ["rules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rule_versions_rule_id", "rule_versions", ["rule_id"], unique=False)
    op.create_index("idx_rule_versions_rule_version", "rule_versions", ["rule_id", "version"], unique=True)

    # Create automation_executions table
    op.create_table(
        "automation_executions",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("rule_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("tenant_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("action_results", JSONB, nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["rule_id"], ["rules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_executions_rule_id", "automation_executions", ["rule_id"], unique=False)
    op.create_index("ix_automation_executions_status", "automation_executions", ["status"], unique=False)
    op.create_index("ix_automation_executions_created_at", "automation_executions", ["created_at"], unique=False)
    op.create_index(
        "idx_automation_executions_rule_event", "automation_executions", ["rule_id", "event_id"], unique=True
    )
    op.create_index(
        "idx_automation_executions_rule_status", "automation_executions", ["rule_id", "status"], unique=False
    )

    # Create automation_notifications table
    op.create_table(
        "automation_notifications",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("rule_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", sa.String(length=20), nullable=False, server_default="info"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_notifications_tenant_id", "automation_notifications", ["tenant_id"], unique=False
    )

    # Create automation_tasks table
    op.create_table(
        "automation_tasks",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("rule_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("assignee", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_tasks_tenant_id", "automation_tasks", ["tenant_id"], unique=False)
    op.create_index("ix_automation_tasks_assignee", "automation_tasks", ["assignee"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_automation_tasks_assignee", table_name="automation_tasks")
    op.drop_index("ix_automation_tasks_tenant_id", table_name="automation_tasks")
    op.drop_table("automation_tasks")

    op.drop_index("ix_automation_notifications_tenant_id", table_name="automation_notifications")
    op.drop_table("automation_notifications")

    op.drop_index("idx_automation_executions_rule_status", table_name="automation_executions")
    op.drop_index("idx_automation_executions_rule_event", table_name="automation_executions")
    op.drop_index("ix_automation_executions_created_at", table_name="automation_executions")
    op.drop_index("ix_automation_executions_status", table_name="automation_executions")
    op.drop_index("ix_automation_executions_rule_id", table_name="automation_executions")
    op.drop_table("automation_executions")

    op.drop_index("idx_rule_versions_rule_version", table_name="rule_versions")
    op.drop_index("ix_rule_versions_rule_id", table_name="rule_versions")
    op.drop_table("rule_versions")

    op.drop_index("idx_rules_tenant_active", table_name="rules")
    op.drop_index("idx_rules_event_active", table_name="rules")
    op.drop_index("ix_rules_is_active", table_name="rules")
    op.drop_index("ix_rules_event_type", table_name="rules")
    op.drop_index("ix_rules_tenant_id", table_name="rules")
    op.drop_table("rules")
