"""add_organization_to_remaining_tables

Revision ID: 20241027_0005
Revises: 20241021_0004
Create Date: 2024-10-27 00:00:00.000000

Adds the required `organization_id` to the tables the core step did not
cover (allergies, messaging, inventory, triage, telemedicine, ...).
"""

from __future__ import annotations

from alembic import op
from tenancy.config import settings
from tenancy.schema import StepReport, TenantColumnSpec
from tenancy.schema.operations import add_tenant_column, drop_tenant_column, publish_report
from tenancy.schema.tables import REMAINING_TABLES

# revision identifiers, used by Alembic
revision: str = "20241027_0005"
down_revision: str | None = "20241021_0004"
branch_labels: str | None = None
depends_on: str | None = None

STEP = "add_organization_to_remaining_tables"


def upgrade() -> None:
    spec = TenantColumnSpec.from_settings(settings)
    report = add_tenant_column(
        op, REMAINING_TABLES, spec, settings.bootstrap_organization_id, StepReport(STEP, "upgrade")
    )
    publish_report(op, report)


def downgrade() -> None:
    spec = TenantColumnSpec.from_settings(settings)
    report = drop_tenant_column(op, reversed(REMAINING_TABLES), spec, StepReport(STEP, "downgrade"))
    publish_report(op, report)
