"""add_google_auth_fields

Revision ID: 20241021_0004
Revises: 20241021_0003
Create Date: 2024-10-21 00:03:00.000000

Google sign-in on `users`:
  - Adds nullable `google_id` and `profile_picture`.
  - Makes `password` nullable for accounts created through Google.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op
from tenancy.schema import StepReport
from tenancy.schema.operations import add_nullable_columns, drop_columns, publish_report, set_nullable
from tenancy.schema.tables import USERS_TABLE

# revision identifiers, used by Alembic
revision: str = "20241021_0004"
down_revision: str | None = "20241021_0003"
branch_labels: str | None = None
depends_on: str | None = None

STEP = "add_google_auth_fields"


def upgrade() -> None:
    report = StepReport(STEP, "upgrade")
    add_nullable_columns(
        op,
        USERS_TABLE,
        [
            sa.Column("google_id", sa.String(255), nullable=True),
            sa.Column("profile_picture", sa.String(1024), nullable=True),
        ],
        report,
    )
    set_nullable(op, USERS_TABLE, "password", sa.String(255), True, report)
    publish_report(op, report)


def downgrade() -> None:
    report = StepReport(STEP, "downgrade")
    drop_columns(op, USERS_TABLE, ["google_id", "profile_picture"], report)
    # fails, and is reported, while Google-only accounts without a password exist
    set_nullable(op, USERS_TABLE, "password", sa.String(255), False, report)
    publish_report(op, report)
