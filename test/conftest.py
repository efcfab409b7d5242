"""
Pytest configuration and fixtures for the tenancy retrofit tests
"""

import os
import sys

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Keep the module-level engine away from any real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from alembic.migration import MigrationContext  # noqa: E402
from alembic.operations import Operations  # noqa: E402

from tenancy.schema.operations import REPORT_SINK_KEY  # noqa: E402

PATIENTS_CONTROLLER = """\
import { Request, Response } from 'express';
import { AppDataSource } from '../config/database';
import { Patient } from '../models/Patient';

export const getPatients = async (req: Request, res: Response) => {
  try {
    const patientRepository = AppDataSource.getRepository(Patient);
    const patients = await patientRepository.find();
    return res.json(patients);
  } catch (error) {
    return res.status(500).json({ message: 'Error fetching patients' });
  }
};
"""


def create_legacy_schema(conn, users: int = 3, patients: int = 5) -> None:
    """Pre-retrofit schema: users with globally unique email, patients, no organizations."""
    metadata = sa.MetaData()
    users_table = sa.Table(
        "users",
        metadata,
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    patients_table = sa.Table(
        "patients",
        metadata,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
    )
    metadata.create_all(conn)
    if users:
        conn.execute(
            users_table.insert(),
            [{"id": f"user-{i}", "email": f"user{i}@hospital.test", "password": "x"} for i in range(users)],
        )
    if patients:
        conn.execute(patients_table.insert(), [{"id": i, "name": f"Patient {i}"} for i in range(patients)])


@pytest.fixture
def sync_engine(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'hospital.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def migration_ops():
    """Build an Operations proxy (and its report sink) bound to a connection."""

    def _build(conn):
        sink: list = []
        context = MigrationContext.configure(conn, opts={REPORT_SINK_KEY: sink})
        return Operations(context), sink

    return _build


@pytest.fixture
def controllers_root(tmp_path):
    """A src/controllers tree with one controller and the excluded ones."""
    root = tmp_path / "src" / "controllers"
    root.mkdir(parents=True)
    (root / "patient.controller.ts").write_text(PATIENTS_CONTROLLER, encoding="utf-8")
    (root / "auth.controller.ts").write_text(PATIENTS_CONTROLLER, encoding="utf-8")
    (root / "user.controller.ts").write_text(PATIENTS_CONTROLLER, encoding="utf-8")
    (root / "patient.service.ts").write_text(PATIENTS_CONTROLLER, encoding="utf-8")
    return root


@pytest.fixture
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
