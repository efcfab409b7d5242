"""
Migration Service — runs the tenancy revisions through Alembic's command API.

Each revision publishes a StepReport into a list carried by the Alembic
config; the service returns those reports to the caller.
"""

import logging
from dataclasses import dataclass, field

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy.exc import OperationalError

from tenancy.config import Settings
from tenancy.config import settings as default_settings
from tenancy.exceptions import DatabaseError
from tenancy.schema.operations import REPORT_SINK_KEY
from tenancy.schema.reports import StepReport

logger = logging.getLogger(__name__)


@dataclass
class MigrationRun:
    direction: str
    target: str
    steps: list[StepReport] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return any(not step.succeeded for step in self.steps)

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "target": self.target,
            "steps": [step.to_dict() for step in self.steps],
        }


def build_config(
    database_url: str | None = None,
    connection=None,
    settings: Settings = default_settings,
) -> Config:
    """
    Alembic config for the tenancy revisions, without an ini file.

    A synchronous ``connection`` is used as-is instead of opening an engine.
    """
    config = Config()
    config.set_main_option("script_location", settings.alembic_script_location)
    # configparser interpolation
    config.set_main_option("sqlalchemy.url", (database_url or settings.database_url).replace("%", "%%"))
    config.attributes[REPORT_SINK_KEY] = []
    if connection is not None:
        config.attributes["connection"] = connection
    return config


def revision_chain(settings: Settings = default_settings) -> list[str]:
    """Revision ids from base to head."""
    script = ScriptDirectory.from_config(build_config(settings=settings))
    return [rev.revision for rev in reversed(list(script.walk_revisions()))]


def _run(direction: str, target: str, config: Config) -> MigrationRun:
    logger.info(f"Running {direction} to {target}", extra={"revision": target})
    try:
        if direction == "upgrade":
            command.upgrade(config, target)
        else:
            command.downgrade(config, target)
    except OperationalError as e:
        raise DatabaseError(f"Database unavailable: {e.orig}", operation=direction) from e
    run = MigrationRun(direction=direction, target=target, steps=list(config.attributes[REPORT_SINK_KEY]))
    logger.info(f"{direction} to {target} finished: {len(run.steps)} steps", extra={"revision": target})
    return run


def upgrade(
    target: str = "head",
    database_url: str | None = None,
    connection=None,
    settings: Settings = default_settings,
) -> MigrationRun:
    return _run("upgrade", target, build_config(database_url, connection, settings))


def downgrade(
    target: str = "-1",
    database_url: str | None = None,
    connection=None,
    settings: Settings = default_settings,
) -> MigrationRun:
    return _run("downgrade", target, build_config(database_url, connection, settings))
