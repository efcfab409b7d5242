from logging.config import fileConfig

from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context
from tenancy.config import settings
from tenancy.database import Base
from tenancy.models.organization import Organization  # noqa: F401
from tenancy.schema.operations import REPORT_SINK_KEY

# Alembic configuration
config = context.config

# Set up logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Link target metadata for autogenerate support
target_metadata = Base.metadata


# Retrieve database URL from the configuration
def get_url() -> str:
    return config.get_main_option("sqlalchemy.url") or settings.database_url


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=True,
        transaction_per_migration=True,
        # step reports are appended here for the caller
        **{REPORT_SINK_KEY: config.attributes.setdefault(REPORT_SINK_KEY, [])},
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online():
    """Run migrations in 'online' mode using AsyncEngine."""
    connectable = create_async_engine(get_url(), future=True)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    raise RuntimeError("The tenancy revisions inspect the live schema; offline mode is not supported")

connection = config.attributes.get("connection")
if connection is not None:
    # caller-provided synchronous connection
    do_run_migrations(connection)
else:
    import asyncio

    asyncio.run(run_migrations_online())
