"""
Idempotent schema operations used by the tenancy revisions.

Every helper inspects the live schema before acting, so a revision can be
re-run against a partially migrated database. Loops over tables record one
outcome per table in a StepReport and keep going when a table fails; each
table is its own unit of work.

Helpers take the Alembic ``op`` proxy (or an ``Operations`` instance bound
to a ``MigrationContext``) as their first argument.
"""

import logging
from collections.abc import Iterable
from contextlib import contextmanager

import sqlalchemy as sa

from tenancy.schema.column_spec import TenantColumnSpec
from tenancy.schema.inspection import SchemaInspector
from tenancy.schema.reports import OutcomeStatus, StepReport

logger = logging.getLogger(__name__)

# Key of the list in the migration context options that receives reports.
REPORT_SINK_KEY = "tenancy_reports"

BOOTSTRAP_DESCRIPTION = "Default organization for existing data - created during multi-tenant migration"
BOOTSTRAP_SETTINGS = {"subscription": {"plan": "enterprise", "status": "active"}}

UNIQUE_NAMING_CONVENTION = {"uq": "uq_%(table_name)s_%(column_0_name)s"}


def publish_report(op, report: StepReport) -> StepReport:
    """Hand a finished report to the sink configured on the migration context, if any."""
    sink = op.get_context().opts.get(REPORT_SINK_KEY)
    if sink is not None:
        sink.append(report)
    logger.info(
        f"{report.step} ({report.direction}): {len(report.processed)} processed, "
        f"{len(report.skipped)} skipped, {len(report.failures)} failed",
        extra={"step": report.step, "rows": report.rows_backfilled},
    )
    return report


@contextmanager
def table_unit_of_work(bind):
    """Savepoint around one table's changes where the dialect supports it."""
    # pysqlite does not emit SAVEPOINT reliably around DDL
    if bind.dialect.name == "sqlite" or not bind.in_transaction():
        yield
    else:
        with bind.begin_nested():
            yield


def _record_failure(report: StepReport, target: str, error: Exception) -> None:
    logger.error(f"Error processing {target}: {error}", extra={"table": target, "step": report.step})
    report.record(target, OutcomeStatus.failed, message=f"{type(error).__name__}: {error}")


# ============================================================================
# Organizations
# ============================================================================


def create_organizations_table(op, report: StepReport | None = None, table: str = "organizations") -> StepReport:
    report = report or StepReport("create_organizations", "upgrade")
    inspector = SchemaInspector(op.get_bind())
    if inspector.has_table(table):
        logger.info(f"{table} table already exists", extra={"table": table})
        report.record(table, OutcomeStatus.skipped_existing)
        return report

    op.create_table(
        table,
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subdomain", sa.String(100), nullable=False),
        sa.Column("custom_domain", sa.String(253), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=f"pk_{table}"),
        sa.UniqueConstraint("name", name=f"uq_{table}_name"),
        sa.UniqueConstraint("subdomain", name=f"uq_{table}_subdomain"),
        sa.UniqueConstraint("custom_domain", name=f"uq_{table}_custom_domain"),
    )
    logger.info(f"Created {table} table", extra={"table": table})
    report.record(table, OutcomeStatus.applied)
    return report


def drop_organizations_table(op, report: StepReport | None = None, table: str = "organizations") -> StepReport:
    report = report or StepReport("create_organizations", "downgrade")
    if not SchemaInspector(op.get_bind()).has_table(table):
        report.record(table, OutcomeStatus.skipped_missing)
        return report
    op.drop_table(table)
    report.record(table, OutcomeStatus.reverted)
    return report


def insert_bootstrap_organization(
    op,
    organization_id: str,
    name: str,
    subdomain: str,
    report: StepReport | None = None,
    table: str = "organizations",
) -> StepReport:
    """Insert the organization that owns all pre-existing rows, once."""
    report = report or StepReport("bootstrap_organization", "upgrade")
    target = f"{table}:{organization_id}"
    bind = op.get_bind()
    organizations = sa.table(
        table,
        sa.column("id", sa.String),
        sa.column("name", sa.String),
        sa.column("subdomain", sa.String),
        sa.column("description", sa.Text),
        sa.column("settings", sa.JSON),
        sa.column("is_active", sa.Boolean),
    )

    existing = bind.execute(sa.select(organizations.c.id).where(organizations.c.id == organization_id)).first()
    if existing is not None:
        report.record(target, OutcomeStatus.skipped_existing)
        return report

    bind.execute(
        organizations.insert().values(
            id=organization_id,
            name=name,
            subdomain=subdomain,
            description=BOOTSTRAP_DESCRIPTION,
            settings=BOOTSTRAP_SETTINGS,
            is_active=True,
        )
    )
    logger.info(f"Inserted bootstrap organization {organization_id}", extra={"table": table})
    report.record(target, OutcomeStatus.applied)
    return report


# ============================================================================
# Isolation column
# ============================================================================


def add_tenant_column(
    op,
    tables: Iterable[str],
    spec: TenantColumnSpec,
    bootstrap_id: str,
    report: StepReport | None = None,
) -> StepReport:
    """
    Add a required, backfilled, indexed ``organization_id`` to each table.

    Per table: skip when the table is absent or already carries the finished
    column; otherwise add it nullable, assign every existing row to
    ``bootstrap_id``, make it NOT NULL, add the cascading foreign key and the
    index. A column left half-applied by an earlier failed run is finished.
    """
    report = report or StepReport("add_tenant_column", "upgrade")
    bind = op.get_bind()
    inspector = SchemaInspector(bind)

    for table in tables:
        try:
            if not inspector.has_table(table):
                logger.info(f"Skipping {table} (table doesn't exist)", extra={"table": table})
                report.record(table, OutcomeStatus.skipped_missing)
                continue
            if _tenant_column_complete(inspector, table, spec):
                logger.info(f"{table} already has {spec.name}", extra={"table": table})
                report.record(table, OutcomeStatus.skipped_existing)
                continue

            resumed = inspector.has_column(table, spec.name)
            with table_unit_of_work(bind):
                rows = _add_tenant_column_to(op, bind, inspector, table, spec, bootstrap_id)
            logger.info(f"Added {spec.name} to {table}", extra={"table": table, "rows": rows})
            report.record(
                table,
                OutcomeStatus.applied,
                rows_backfilled=rows,
                message=f"completed partially applied {spec.name}" if resumed else None,
            )
        except Exception as e:
            _record_failure(report, table, e)

    return report


def _tenant_column_complete(inspector: SchemaInspector, table: str, spec: TenantColumnSpec) -> bool:
    column = inspector.columns(table).get(spec.name)
    return (
        column is not None
        and not column.get("nullable", True)
        and bool(inspector.foreign_keys_on(table, spec.name))
        and inspector.has_index(table, spec.index_name(table))
    )


def _add_tenant_column_to(
    op, bind, inspector: SchemaInspector, table: str, spec: TenantColumnSpec, bootstrap_id: str
) -> int:
    if not inspector.has_column(table, spec.name):
        op.add_column(table, spec.column(nullable=True))

    target = sa.table(table, sa.column(spec.name, spec.column_type()))
    result = bind.execute(target.update().where(target.c[spec.name].is_(None)).values({spec.name: bootstrap_id}))
    # some drivers report -1 when the count is unknown
    rows = max(result.rowcount or 0, 0)

    nullable = inspector.columns(table)[spec.name].get("nullable", True)
    has_foreign_key = bool(inspector.foreign_keys_on(table, spec.name))
    if nullable or not has_foreign_key:
        with op.batch_alter_table(table) as batch_op:
            if nullable:
                batch_op.alter_column(spec.name, existing_type=spec.column_type(), nullable=False)
            if not has_foreign_key:
                batch_op.create_foreign_key(
                    spec.foreign_key_name(table),
                    spec.referent_table,
                    [spec.name],
                    [spec.referent_column],
                    ondelete=spec.ondelete,
                )

    if not inspector.has_index(table, spec.index_name(table)):
        op.create_index(spec.index_name(table), table, [spec.name])
    return rows


def drop_tenant_column(
    op,
    tables: Iterable[str],
    spec: TenantColumnSpec,
    report: StepReport | None = None,
) -> StepReport:
    """Reverse of add_tenant_column: drop index, foreign key and column per table."""
    report = report or StepReport("add_tenant_column", "downgrade")
    bind = op.get_bind()
    inspector = SchemaInspector(bind)

    for table in tables:
        try:
            if not inspector.has_table(table):
                report.record(table, OutcomeStatus.skipped_missing)
                continue
            if not inspector.has_column(table, spec.name):
                report.record(table, OutcomeStatus.skipped_existing, message=f"{spec.name} already absent")
                continue

            with table_unit_of_work(bind):
                if inspector.has_index(table, spec.index_name(table)):
                    op.drop_index(spec.index_name(table), table_name=table)
                foreign_keys = [name for name in inspector.foreign_keys_on(table, spec.name) if name]
                with op.batch_alter_table(table) as batch_op:
                    # SQLite batch recreation discards constraints bound to the dropped column
                    if bind.dialect.name != "sqlite":
                        for name in foreign_keys:
                            batch_op.drop_constraint(name, type_="foreignkey")
                    batch_op.drop_column(spec.name)
            logger.info(f"Removed {spec.name} from {table}", extra={"table": table})
            report.record(table, OutcomeStatus.reverted)
        except Exception as e:
            _record_failure(report, table, e)

    return report


# ============================================================================
# Uniqueness
# ============================================================================


def scope_unique_constraint(
    op,
    table: str,
    column: str,
    constraint_name: str,
    legacy_names: Iterable[str],
    spec: TenantColumnSpec,
    report: StepReport | None = None,
) -> StepReport:
    """Replace global uniqueness of ``column`` by uniqueness per organization."""
    report = report or StepReport("scope_unique_constraint", "upgrade")
    target = f"{table}.{constraint_name}"
    bind = op.get_bind()
    inspector = SchemaInspector(bind)

    try:
        if not inspector.has_table(table):
            report.record(target, OutcomeStatus.skipped_missing)
            return report
        if not inspector.has_column(table, spec.name):
            report.record(target, OutcomeStatus.failed, message=f"{table} has no {spec.name} column")
            return report
        if inspector.has_unique_constraint(table, constraint_name):
            report.record(target, OutcomeStatus.skipped_existing)
            return report

        current = inspector.unique_constraints_on(table, [column])
        old = [name for name in legacy_names if inspector.has_unique_constraint(table, name)]
        old += [name for name in current if name and name not in old]
        if None in current:
            # unnamed (SQLite inline) constraint, addressed through the batch naming convention
            convention_name = f"uq_{table}_{column}"
            if convention_name not in old:
                old.append(convention_name)

        batch = op.batch_alter_table(table, naming_convention=UNIQUE_NAMING_CONVENTION)
        with table_unit_of_work(bind), batch as batch_op:
            for name in old:
                batch_op.drop_constraint(name, type_="unique")
            batch_op.create_unique_constraint(constraint_name, [column, spec.name])

        message = f"replaced {', '.join(old)}" if old else None
        logger.info(f"Scoped uniqueness of {table}.{column} to {spec.name}", extra={"table": table})
        report.record(target, OutcomeStatus.applied, message=message)
    except Exception as e:
        _record_failure(report, target, e)
    return report


def restore_unique_constraint(
    op,
    table: str,
    column: str,
    constraint_name: str,
    restored_name: str,
    report: StepReport | None = None,
) -> StepReport:
    """Reverse of scope_unique_constraint: back to a single-column constraint."""
    report = report or StepReport("scope_unique_constraint", "downgrade")
    target = f"{table}.{constraint_name}"
    bind = op.get_bind()
    inspector = SchemaInspector(bind)

    try:
        if not inspector.has_table(table):
            report.record(target, OutcomeStatus.skipped_missing)
            return report

        drop_scoped = inspector.has_unique_constraint(table, constraint_name)
        create_global = not inspector.unique_constraints_on(table, [column])
        if not drop_scoped and not create_global:
            report.record(target, OutcomeStatus.skipped_existing)
            return report

        with table_unit_of_work(bind), op.batch_alter_table(table) as batch_op:
            if drop_scoped:
                batch_op.drop_constraint(constraint_name, type_="unique")
            if create_global:
                batch_op.create_unique_constraint(restored_name, [column])
        report.record(target, OutcomeStatus.reverted)
    except Exception as e:
        _record_failure(report, target, e)
    return report


# ============================================================================
# Additive columns
# ============================================================================


def add_nullable_columns(op, table: str, columns: list[sa.Column], report: StepReport | None = None) -> StepReport:
    """
    Add each column unless present.

    Columns must be fresh ``sa.Column`` objects not attached to any table.
    Existing rows receive the column default (NULL or ``server_default``)
    and are otherwise untouched.
    """
    report = report or StepReport("add_columns", "upgrade")
    bind = op.get_bind()
    inspector = SchemaInspector(bind)

    if not inspector.has_table(table):
        for column in columns:
            report.record(f"{table}.{column.name}", OutcomeStatus.skipped_missing)
        return report

    for column in columns:
        target = f"{table}.{column.name}"
        try:
            if inspector.has_column(table, column.name):
                report.record(target, OutcomeStatus.skipped_existing)
                continue
            with table_unit_of_work(bind):
                op.add_column(table, column)
            logger.info(f"Added column {target}", extra={"table": table})
            report.record(target, OutcomeStatus.applied)
        except Exception as e:
            _record_failure(report, target, e)
    return report


def drop_columns(op, table: str, names: list[str], report: StepReport | None = None) -> StepReport:
    report = report or StepReport("add_columns", "downgrade")
    bind = op.get_bind()
    inspector = SchemaInspector(bind)

    if not inspector.has_table(table):
        for name in names:
            report.record(f"{table}.{name}", OutcomeStatus.skipped_missing)
        return report

    present = [name for name in names if inspector.has_column(table, name)]
    for name in names:
        if name not in present:
            report.record(f"{table}.{name}", OutcomeStatus.skipped_existing, message="already absent")
    if not present:
        return report

    try:
        with table_unit_of_work(bind), op.batch_alter_table(table) as batch_op:
            for name in present:
                batch_op.drop_column(name)
    except Exception as e:
        for name in present:
            _record_failure(report, f"{table}.{name}", e)
        return report

    for name in present:
        report.record(f"{table}.{name}", OutcomeStatus.reverted)
    return report


def set_nullable(
    op,
    table: str,
    column: str,
    existing_type: sa.types.TypeEngine,
    nullable: bool,
    report: StepReport | None = None,
) -> StepReport:
    """Change a column's nullability when it differs from ``nullable``."""
    report = report or StepReport("set_nullable", "upgrade")
    target = f"{table}.{column}"
    bind = op.get_bind()
    inspector = SchemaInspector(bind)
    status = OutcomeStatus.applied if report.direction == "upgrade" else OutcomeStatus.reverted

    try:
        if not inspector.has_table(table) or not inspector.has_column(table, column):
            report.record(target, OutcomeStatus.skipped_missing)
            return report
        if bool(inspector.columns(table)[column].get("nullable")) == nullable:
            report.record(target, OutcomeStatus.skipped_existing)
            return report
        with table_unit_of_work(bind), op.batch_alter_table(table) as batch_op:
            batch_op.alter_column(column, existing_type=existing_type, nullable=nullable)
        report.record(target, status)
    except Exception as e:
        _record_failure(report, target, e)
    return report


# ============================================================================
# Organization-scoped tables
# ============================================================================


def create_table_if_absent(
    op,
    table: str,
    *elements,
    requires: Iterable[str] = (),
    indexes: Iterable[tuple[str, list[str]]] = (),
    report: StepReport | None = None,
) -> StepReport:
    """
    Create ``table`` from fresh columns/constraints unless it exists.

    ``requires`` lists the tables its foreign keys reference; when any is
    missing the table is not created.
    """
    report = report or StepReport(f"create_{table}", "upgrade")
    inspector = SchemaInspector(op.get_bind())

    if inspector.has_table(table):
        report.record(table, OutcomeStatus.skipped_existing)
        return report
    missing = [name for name in requires if not inspector.has_table(name)]
    if missing:
        logger.warning(f"Not creating {table}: missing {', '.join(missing)}", extra={"table": table})
        report.record(table, OutcomeStatus.skipped_missing, message=f"requires {', '.join(missing)}")
        return report

    try:
        op.create_table(table, *elements)
        for name, columns in indexes:
            op.create_index(name, table, columns)
    except Exception as e:
        _record_failure(report, table, e)
        return report

    logger.info(f"Created {table} table", extra={"table": table})
    report.record(table, OutcomeStatus.applied)
    return report


def drop_table_if_present(op, table: str, report: StepReport | None = None) -> StepReport:
    report = report or StepReport(f"create_{table}", "downgrade")
    if not SchemaInspector(op.get_bind()).has_table(table):
        report.record(table, OutcomeStatus.skipped_missing)
        return report
    op.drop_table(table)
    report.record(table, OutcomeStatus.reverted)
    return report
