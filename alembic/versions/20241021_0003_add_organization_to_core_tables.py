"""add_organization_to_core_tables

Revision ID: 20241021_0003
Revises: 20241021_0002
Create Date: 2024-10-21 00:02:00.000000

Adds the required `organization_id` to every core clinical, billing,
pharmacy, laboratory and inpatient table. Tables that do not exist in the
target database are skipped.
"""

from __future__ import annotations

from alembic import op
from tenancy.config import settings
from tenancy.schema import StepReport, TenantColumnSpec
from tenancy.schema.operations import add_tenant_column, drop_tenant_column, publish_report
from tenancy.schema.tables import CORE_TABLES

# revision identifiers, used by Alembic
revision: str = "20241021_0003"
down_revision: str | None = "20241021_0002"
branch_labels: str | None = None
depends_on: str | None = None

STEP = "add_organization_to_core_tables"


def upgrade() -> None:
    spec = TenantColumnSpec.from_settings(settings)
    report = add_tenant_column(op, CORE_TABLES, spec, settings.bootstrap_organization_id, StepReport(STEP, "upgrade"))
    publish_report(op, report)


def downgrade() -> None:
    spec = TenantColumnSpec.from_settings(settings)
    report = drop_tenant_column(op, reversed(CORE_TABLES), spec, StepReport(STEP, "downgrade"))
    publish_report(op, report)
