"""
Backfill service tests against an in-memory SQLite database

Test classes:
    TestVerify  — counting rows without an organization
    TestApply   — assigning them to the bootstrap organization
"""

from __future__ import annotations

import sqlalchemy as sa

from tenancy.config import Settings
from tenancy.services.backfill_service import run_backfill

SETTINGS = Settings(_env_file=None, bootstrap_organization_id="org-default")


async def _seed(engine) -> None:
    metadata = sa.MetaData()
    sa.Table("organizations", metadata, sa.Column("id", sa.String(64), primary_key=True))
    patients = sa.Table(
        "patients",
        metadata,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=True),
    )
    beds = sa.Table(
        "beds",
        metadata,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=True),
    )
    sa.Table("audit_log", metadata, sa.Column("id", sa.Integer, primary_key=True))
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        await conn.execute(
            patients.insert(),
            [{"id": 1, "organization_id": "org-a"}, {"id": 2, "organization_id": None}, {"id": 3, "organization_id": None}],
        )
        await conn.execute(beds.insert(), [{"id": 1, "organization_id": "org-a"}])


class TestVerify:
    async def test_reports_null_counts_per_table(self, async_engine):
        await _seed(async_engine)
        report = await run_backfill(async_engine, settings=SETTINGS)
        counts = {outcome.table: outcome.null_rows for outcome in report.tables}
        assert counts == {"beds": 0, "patients": 2}
        assert report.null_rows == 2
        assert not report.applied

    async def test_verify_does_not_modify(self, async_engine):
        await _seed(async_engine)
        await run_backfill(async_engine, settings=SETTINGS)
        async with async_engine.connect() as conn:
            nulls = await conn.execute(sa.text("SELECT COUNT(*) FROM patients WHERE organization_id IS NULL"))
            assert nulls.scalar_one() == 2


class TestApply:
    async def test_assigns_bootstrap_organization(self, async_engine):
        await _seed(async_engine)
        report = await run_backfill(async_engine, apply=True, settings=SETTINGS)
        patients = [outcome for outcome in report.tables if outcome.table == "patients"][0]
        assert patients.updated_rows == 2
        assert report.to_dict()["summary"] == {"tables": 2, "null_rows": 2, "updated_rows": 2, "errors": 0}

        async with async_engine.connect() as conn:
            rows = await conn.execute(sa.text("SELECT id, organization_id FROM patients ORDER BY id"))
            assert [tuple(row) for row in rows] == [(1, "org-a"), (2, "org-default"), (3, "org-default")]

    async def test_second_apply_has_nothing_to_do(self, async_engine):
        await _seed(async_engine)
        await run_backfill(async_engine, apply=True, settings=SETTINGS)
        report = await run_backfill(async_engine, apply=True, settings=SETTINGS)
        assert report.null_rows == 0
        assert all(outcome.updated_rows == 0 for outcome in report.tables)
