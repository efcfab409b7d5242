"""create_organizations

Revision ID: 20241021_0001
Revises:
Create Date: 2024-10-21 00:00:00.000000

Tenant root:
  - Creates the `organizations` table.
  - Inserts the bootstrap organization that owns every row existing
    before the retrofit. It must exist before any foreign key refers to it.
"""

from __future__ import annotations

from alembic import op
from tenancy.config import settings
from tenancy.schema import StepReport
from tenancy.schema.operations import (
    create_organizations_table,
    drop_organizations_table,
    insert_bootstrap_organization,
    publish_report,
)

# revision identifiers, used by Alembic
revision: str = "20241021_0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

STEP = "create_organizations"


def upgrade() -> None:
    report = StepReport(STEP, "upgrade")
    create_organizations_table(op, report, table=settings.tenant_table)
    insert_bootstrap_organization(
        op,
        settings.bootstrap_organization_id,
        settings.bootstrap_organization_name,
        settings.bootstrap_organization_subdomain,
        report,
        table=settings.tenant_table,
    )
    publish_report(op, report)


def downgrade() -> None:
    report = StepReport(STEP, "downgrade")
    drop_organizations_table(op, report, table=settings.tenant_table)
    publish_report(op, report)
