"""KPI value engine tables.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

This migration:
  * Creates organizations, entities and entity_variables.
  * Creates user_entity_assignments (value-edit access).
  * Creates entity_value_periods, unique per (entity_id, period_start, period_end).
  * Creates entity_variable_values, unique per (value_period_id, variable_id).
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply the migration."""
    op.create_table(
        "organizations",
        sa.Column("id", sa.UUID, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kpi_approval_role", sa.String(32), nullable=True),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "entities",
        sa.Column("id", sa.UUID, primary_key=True),
        sa.Column(
            "org_id",
            sa.UUID,
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("key", sa.String(128), nullable=True),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("entity_type_code", sa.String(64), nullable=False, server_default="KPI"),
        sa.Column("granularity", sa.String(16), nullable=False, server_default="NONE"),
        sa.Column("formula", sa.Text, nullable=True),
        sa.Column("unit", sa.String(64), nullable=True),
        sa.Column("target_value", sa.Float, nullable=True),
        sa.Column("baseline_value", sa.Float, nullable=True),
        sa.Column("weight", sa.Float, nullable=True),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "key", name="uq_entities_org_key"),
    )
    op.create_index("ix_entities_org_id", "entities", ["org_id"])

    op.create_table(
        "entity_variables",
        sa.Column("id", sa.UUID, primary_key=True),
        sa.Column(
            "entity_id",
            sa.UUID,
            sa.ForeignKey("entities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(128), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_static", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("static_value", sa.Float, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("entity_id", "code", name="uq_entity_variables_entity_code"),
    )
    op.create_index("ix_entity_variables_entity_id", "entity_variables", ["entity_id"])

    op.create_table(
        "user_entity_assignments",
        sa.Column("id", sa.UUID, primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column(
            "entity_id",
            sa.UUID,
            sa.ForeignKey("entities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("can_edit_values", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "entity_id", name="uq_user_entity_assignments_user_entity"
        ),
    )
    op.create_index(
        "ix_user_entity_assignments_user_id", "user_entity_assignments", ["user_id"]
    )

    op.create_table(
        "entity_value_periods",
        sa.Column("id", sa.UUID, primary_key=True),
        sa.Column(
            "entity_id",
            sa.UUID,
            sa.ForeignKey("entities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("period_start", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("period_end", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("actual_value", sa.Float, nullable=True),
        sa.Column("calculated_value", sa.Float, nullable=True),
        sa.Column("final_value", sa.Float, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("entered_by", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="DRAFT"),
        sa.Column("submitted_by", sa.String(255), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(255), nullable=True),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("changes_requested_by", sa.String(255), nullable=True),
        sa.Column("changes_requested_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("changes_requested_message", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "entity_id",
            "period_start",
            "period_end",
            name="uq_entity_value_periods_entity_period",
        ),
    )
    op.create_index(
        "ix_entity_value_periods_entity_end",
        "entity_value_periods",
        ["entity_id", "period_end"],
    )
    op.create_index(
        "ix_entity_value_periods_status_submitted",
        "entity_value_periods",
        ["status", "submitted_at"],
    )

    op.create_table(
        "entity_variable_values",
        sa.Column("id", sa.UUID, primary_key=True),
        sa.Column(
            "value_period_id",
            sa.UUID,
            sa.ForeignKey("entity_value_periods.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "variable_id",
            sa.UUID,
            sa.ForeignKey("entity_variables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("value", sa.Float, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "value_period_id",
            "variable_id",
            name="uq_entity_variable_values_period_variable",
        ),
    )


def downgrade() -> None:
    """Revert the migration."""
    op.drop_table("entity_variable_values")
    op.drop_index("ix_entity_value_periods_status_submitted", table_name="entity_value_periods")
    op.drop_index("ix_entity_value_periods_entity_end", table_name="entity_value_periods")
    op.drop_table("entity_value_periods")
    op.drop_index("ix_user_entity_assignments_user_id", table_name="user_entity_assignments")
    op.drop_table("user_entity_assignments")
    op.drop_index("ix_entity_variables_entity_id", table_name="entity_variables")
    op.drop_table("entity_variables")
    op.drop_index("ix_entities_org_id", table_name="entities")
    op.drop_table("entities")
    op.drop_table("organizations")
