"""create_appointment_feedback

Revision ID: 20241029_0007
Revises: 20241029_0006
Create Date: 2024-10-29 00:01:00.000000

Organization-scoped patient feedback on completed appointments.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op
from tenancy.config import settings
from tenancy.schema import StepReport
from tenancy.schema.operations import create_table_if_absent, drop_table_if_present, publish_report

# revision identifiers, used by Alembic
revision: str = "20241029_0007"
down_revision: str | None = "20241029_0006"
branch_labels: str | None = None
depends_on: str | None = None

TABLE = "appointment_feedback"
STEP = "create_appointment_feedback"


def upgrade() -> None:
    organizations = settings.tenant_table
    report = create_table_if_absent(
        op,
        TABLE,
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("appointment_id", sa.String(64), nullable=False),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("doctor_id", sa.String(64), nullable=False),
        sa.Column(settings.tenant_column, sa.String(64), nullable=False),
        sa.Column("doctor_rating", sa.SmallInteger(), nullable=False),
        sa.Column("facility_rating", sa.SmallInteger(), nullable=False),
        sa.Column("staff_rating", sa.SmallInteger(), nullable=False),
        sa.Column("overall_rating", sa.SmallInteger(), nullable=False),
        sa.Column("doctor_comment", sa.Text(), nullable=True),
        sa.Column("facility_comment", sa.Text(), nullable=True),
        sa.Column("overall_comment", sa.Text(), nullable=True),
        sa.Column("would_recommend", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("follow_up_needed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("follow_up_reason", sa.String(255), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint([settings.tenant_column], [f"{organizations}.id"], ondelete="CASCADE"),
        requires=("appointments", "users", organizations),
        indexes=(
            ("ix_appointment_feedback_appointment", ["appointment_id"]),
            ("ix_appointment_feedback_doctor_org", ["doctor_id", settings.tenant_column]),
            ("ix_appointment_feedback_patient", ["patient_id"]),
            ("ix_appointment_feedback_organization_id", [settings.tenant_column]),
        ),
        report=StepReport(STEP, "upgrade"),
    )
    publish_report(op, report)


def downgrade() -> None:
    report = drop_table_if_present(op, TABLE, StepReport(STEP, "downgrade"))
    publish_report(op, report)
