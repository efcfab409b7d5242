"""
Backfill Service — verify and repair organization ownership of rows.

Reports, for every table carrying the isolation column, how many rows have
no organization and, when applied, assigns them to the bootstrap
organization.
"""

import logging
from dataclasses import asdict, dataclass, field

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from tenancy.config import Settings
from tenancy.config import settings as default_settings
from tenancy.schema.inspection import SchemaInspector

logger = logging.getLogger(__name__)


@dataclass
class BackfillOutcome:
    table: str
    null_rows: int = 0
    updated_rows: int = 0
    error: str | None = None


@dataclass
class BackfillReport:
    applied: bool
    tables: list[BackfillOutcome] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(outcome.error for outcome in self.tables)

    @property
    def null_rows(self) -> int:
        return sum(outcome.null_rows for outcome in self.tables)

    def to_dict(self) -> dict:
        return {
            "applied": self.applied,
            "summary": {
                "tables": len(self.tables),
                "null_rows": self.null_rows,
                "updated_rows": sum(outcome.updated_rows for outcome in self.tables),
                "errors": sum(1 for outcome in self.tables if outcome.error),
            },
            "tables": [asdict(outcome) for outcome in self.tables],
        }


def tenant_scoped_tables(sync_connection, column: str, exclude: tuple[str, ...] = ()) -> list[str]:
    inspector = SchemaInspector(sync_connection)
    return [
        table
        for table in sorted(sa.inspect(sync_connection).get_table_names())
        if table not in exclude and inspector.has_column(table, column)
    ]


async def run_backfill(
    engine: AsyncEngine | None = None,
    apply: bool = False,
    settings: Settings = default_settings,
) -> BackfillReport:
    if engine is None:
        from tenancy.database import engine

    column = settings.tenant_column
    report = BackfillReport(applied=apply)

    async with engine.connect() as conn:
        tables = await conn.run_sync(tenant_scoped_tables, column, (settings.tenant_table,))

    for table in tables:
        outcome = BackfillOutcome(table=table)
        target = sa.table(table, sa.column(column))
        try:
            async with engine.begin() as conn:
                count = await conn.execute(
                    sa.select(sa.func.count()).select_from(target).where(target.c[column].is_(None))
                )
                outcome.null_rows = count.scalar_one()
                if apply and outcome.null_rows:
                    result = await conn.execute(
                        target.update()
                        .where(target.c[column].is_(None))
                        .values({column: settings.bootstrap_organization_id})
                    )
                    outcome.updated_rows = max(result.rowcount or 0, 0)
        except Exception as e:
            logger.error(f"Error checking {table}: {e}", extra={"table": table})
            outcome.error = f"{type(e).__name__}: {e}"
        else:
            level = logging.WARNING if outcome.null_rows and not apply else logging.INFO
            logger.log(
                level,
                f"{table}: {outcome.null_rows} rows without organization, {outcome.updated_rows} updated",
                extra={"table": table, "rows": outcome.null_rows},
            )
        report.tables.append(outcome)

    return report
