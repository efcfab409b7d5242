"""create_doctor_availability

Revision ID: 20241029_0006
Revises: 20241027_0005
Create Date: 2024-10-29 00:00:00.000000

Organization-scoped doctor schedule: one row per doctor and day.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op
from tenancy.config import settings
from tenancy.schema import StepReport
from tenancy.schema.operations import create_table_if_absent, drop_table_if_present, publish_report

# revision identifiers, used by Alembic
revision: str = "20241029_0006"
down_revision: str | None = "20241027_0005"
branch_labels: str | None = None
depends_on: str | None = None

TABLE = "doctor_availability"
STEP = "create_doctor_availability"


def upgrade() -> None:
    organizations = settings.tenant_table
    report = create_table_if_absent(
        op,
        TABLE,
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("doctor_id", sa.String(64), nullable=False),
        sa.Column(settings.tenant_column, sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(10), nullable=False),
        sa.Column("end_time", sa.String(10), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column(
            "status",
            sa.Enum("available", "on-leave", "holiday", "blocked", name="doctor_availability_status"),
            nullable=False,
            server_default="available",
        ),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["doctor_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint([settings.tenant_column], [f"{organizations}.id"], ondelete="CASCADE"),
        requires=("users", organizations),
        indexes=(
            ("ix_doctor_availability_doctor_date_org", ["doctor_id", "date", settings.tenant_column]),
            ("ix_doctor_availability_status", ["status"]),
            ("ix_doctor_availability_organization_id", [settings.tenant_column]),
        ),
        report=StepReport(STEP, "upgrade"),
    )
    publish_report(op, report)


def downgrade() -> None:
    report = drop_table_if_present(op, TABLE, StepReport(STEP, "downgrade"))
    sa.Enum(name="doctor_availability_status").drop(op.get_bind(), checkfirst=True)
    publish_report(op, report)
