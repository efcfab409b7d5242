"""add_organization_to_users

Revision ID: 20241021_0002
Revises: 20241021_0001
Create Date: 2024-10-21 00:01:00.000000

  - Adds the required `organization_id` to `users`, backfilled with the
    bootstrap organization.
  - Email uniqueness becomes per organization: (email, organization_id).
"""

from __future__ import annotations

from alembic import op
from tenancy.config import settings
from tenancy.schema import StepReport, TenantColumnSpec
from tenancy.schema.operations import (
    add_tenant_column,
    drop_tenant_column,
    publish_report,
    restore_unique_constraint,
    scope_unique_constraint,
)
from tenancy.schema.tables import USERS_TABLE

# revision identifiers, used by Alembic
revision: str = "20241021_0002"
down_revision: str | None = "20241021_0001"
branch_labels: str | None = None
depends_on: str | None = None

STEP = "add_organization_to_users"

SCOPED_EMAIL_CONSTRAINT = "uq_users_email_organization"
GLOBAL_EMAIL_CONSTRAINT = "uq_users_email"
# names the global constraint may carry in existing databases
LEGACY_EMAIL_CONSTRAINTS = ("UQ_users_email", "users_email_key", GLOBAL_EMAIL_CONSTRAINT)


def upgrade() -> None:
    spec = TenantColumnSpec.from_settings(settings)
    report = StepReport(STEP, "upgrade")
    add_tenant_column(op, [USERS_TABLE], spec, settings.bootstrap_organization_id, report)
    scope_unique_constraint(op, USERS_TABLE, "email", SCOPED_EMAIL_CONSTRAINT, LEGACY_EMAIL_CONSTRAINTS, spec, report)
    publish_report(op, report)


def downgrade() -> None:
    spec = TenantColumnSpec.from_settings(settings)
    report = StepReport(STEP, "downgrade")
    restore_unique_constraint(op, USERS_TABLE, "email", SCOPED_EMAIL_CONSTRAINT, GLOBAL_EMAIL_CONSTRAINT, report)
    drop_tenant_column(op, [USERS_TABLE], spec, report)
    publish_report(op, report)
