"""add_rule_last_executed_at

Track when each rule last finished an execution, and index execution
history by tenant and creation time for the history filters.

Revision ID: 002_add_rule_last_executed_at
Revises: 001_add_automation_tables
Create Date: 2026-10-14 09:12:40.218533+00:00
"""

import sqlalchemy as sa
from alembic import op

revision: str = "002_add_rule_last_executed_at"
down_revision: str | None = "001_add_automation_tables"
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.add_column("rules", sa.Column("last_executed_at", sa.DateTime(timezone=True), nullable=True))
    op.create_index(
        "idx_automation_executions_tenant_created",
        "automation_executions",
        ["tenant_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_automation_executions_tenant_created", table_name="automation_executions")
    op.drop_column("rules", "last_executed_at")
