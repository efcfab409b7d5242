"""add_appointment_management_fields

Revision ID: 20241029_0008
Revises: 20241029_0007
Create Date: 2024-10-29 00:02:00.000000

Appointment mode/type, telemedicine link, cancellation and completion
details. Existing appointments get the column defaults and are otherwise
unchanged.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op
from tenancy.schema import StepReport
from tenancy.schema.operations import add_nullable_columns, drop_columns, publish_report

# revision identifiers, used by Alembic
revision: str = "20241029_0008"
down_revision: str | None = "20241029_0007"
branch_labels: str | None = None
depends_on: str | None = None

TABLE = "appointments"
STEP = "add_appointment_management_fields"

COLUMNS = (
    "mode",
    "appointment_type",
    "telemedicine_link",
    "cancellation_date",
    "cancellation_reason",
    "cancellation_charge",
    "completed_at",
    "consultation_notes",
)


def _mode_enum() -> sa.Enum:
    return sa.Enum("in-person", "telemedicine", "home-visit", name="appointments_mode")


def _type_enum() -> sa.Enum:
    return sa.Enum("standard", "emergency", name="appointments_appointment_type")


def upgrade() -> None:
    bind = op.get_bind()
    mode, appointment_type = _mode_enum(), _type_enum()
    # ALTER TABLE ADD COLUMN does not create native enum types
    mode.create(bind, checkfirst=True)
    appointment_type.create(bind, checkfirst=True)

    report = add_nullable_columns(
        op,
        TABLE,
        [
            sa.Column("mode", mode, nullable=False, server_default="in-person"),
            sa.Column("appointment_type", appointment_type, nullable=False, server_default="standard"),
            sa.Column("telemedicine_link", sa.String(1024), nullable=True),
            sa.Column("cancellation_date", sa.DateTime(), nullable=True),
            sa.Column("cancellation_reason", sa.Text(), nullable=True),
            sa.Column("cancellation_charge", sa.Numeric(10, 2), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("consultation_notes", sa.Text(), nullable=True),
        ],
        StepReport(STEP, "upgrade"),
    )
    publish_report(op, report)


def downgrade() -> None:
    report = drop_columns(op, TABLE, list(COLUMNS), StepReport(STEP, "downgrade"))
    bind = op.get_bind()
    _type_enum().drop(bind, checkfirst=True)
    _mode_enum().drop(bind, checkfirst=True)
    publish_report(op, report)
