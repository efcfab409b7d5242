"""
Tenant Repository

Wraps data access for one mapped model so that every read, update and
delete is constrained to a single organization and every write is stamped
with it. Rows can never be moved to another organization through it.

Usage:
    repo = create_tenant_repository(db, Patient, organization_id)
    patients = await repo.find({"status": "admitted"}, limit=20)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func, inspect, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.config import settings
from tenancy.exceptions import CrossTenantWriteError, MissingTenantContextError, TenancyValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class TenantRepository(Generic[ModelT]):
    def __init__(
        self,
        db: AsyncSession,
        model: type[ModelT],
        tenant_id: str,
        tenant_column: str = settings.tenant_column,
    ):
        if not tenant_id:
            raise MissingTenantContextError()
        if not hasattr(model, tenant_column):
            raise TenancyValidationError(f"{model.__name__} has no {tenant_column} column", field=tenant_column)
        self.db = db
        self.model = model
        self.tenant_id = tenant_id
        self.tenant_column = tenant_column

    @property
    def _column(self):
        return getattr(self.model, self.tenant_column)

    @property
    def _primary_key(self):
        return inspect(self.model).primary_key[0]

    def _criteria(self, where: dict[str, Any] | None) -> list:
        criteria = [self._column == self.tenant_id]
        for field, value in (where or {}).items():
            if field == self.tenant_column:
                # the tenant condition already applies
                continue
            if not hasattr(self.model, field):
                raise TenancyValidationError(f"{self.model.__name__} has no attribute {field}", field=field)
            criteria.append(getattr(self.model, field) == value)
        return criteria

    def _check_tenant_value(self, value: Any) -> None:
        if value is not None and value != self.tenant_id:
            raise CrossTenantWriteError(self.tenant_id, value)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(
        self,
        where: dict[str, Any] | None = None,
        order_by: Any | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[ModelT]:
        query = select(self.model).where(*self._criteria(where))
        if order_by is not None:
            query = query.order_by(order_by)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_one(self, where: dict[str, Any] | None = None) -> ModelT | None:
        result = await self.db.execute(select(self.model).where(*self._criteria(where)).limit(1))
        return result.scalars().first()

    async def find_by_id(self, entity_id: Any) -> ModelT | None:
        query = select(self.model).where(*self._criteria(None), self._primary_key == entity_id)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def count(self, where: dict[str, Any] | None = None) -> int:
        query = select(func.count()).select_from(self.model).where(*self._criteria(where))
        result = await self.db.execute(query)
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, **values: Any) -> ModelT:
        """Build (not persist) an entity stamped with the tenant."""
        self._check_tenant_value(values.pop(self.tenant_column, None))
        return self.model(**values, **{self.tenant_column: self.tenant_id})

    def create_many(self, rows: list[dict[str, Any]]) -> list[ModelT]:
        return [self.create(**row) for row in rows]

    def _stamp(self, entity: ModelT) -> ModelT:
        if not isinstance(entity, self.model):
            raise TenancyValidationError(f"Expected {self.model.__name__}, got {type(entity).__name__}")
        self._check_tenant_value(getattr(entity, self.tenant_column, None))
        setattr(entity, self.tenant_column, self.tenant_id)
        return entity

    async def save(self, entity: ModelT) -> ModelT:
        self.db.add(self._stamp(entity))
        await self.db.commit()
        await self.db.refresh(entity)
        return entity

    async def save_many(self, entities: list[ModelT]) -> list[ModelT]:
        self.db.add_all([self._stamp(entity) for entity in entities])
        await self.db.commit()
        for entity in entities:
            await self.db.refresh(entity)
        return entities

    async def update(self, where: dict[str, Any], values: dict[str, Any]) -> int:
        """Update matching rows of this tenant; returns the number of rows changed."""
        values = dict(values)
        if self.tenant_column in values:
            self._check_tenant_value(values.pop(self.tenant_column))
        if not values:
            return 0
        statement = update(self.model).where(*self._criteria(where)).values(**values)
        result = await self.db.execute(statement)
        await self.db.commit()
        return result.rowcount

    async def delete(self, where: dict[str, Any]) -> int:
        result = await self.db.execute(delete(self.model).where(*self._criteria(where)))
        await self.db.commit()
        return result.rowcount

    async def soft_delete(self, where: dict[str, Any], column: str = "deleted_at") -> int:
        if not hasattr(self.model, column):
            raise TenancyValidationError(f"{self.model.__name__} has no {column} column", field=column)
        return await self.update(where, {column: datetime.now(timezone.utc)})


def create_tenant_repository(db: AsyncSession, model: type[ModelT], tenant_id: str) -> TenantRepository[ModelT]:
    """Repository for ``model`` constrained to ``tenant_id``."""
    return TenantRepository(db, model, tenant_id)
