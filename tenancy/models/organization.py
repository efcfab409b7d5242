"""
Organization model — the tenant root.

Every tenant-scoped table carries an ``organization_id`` referencing this
table. The first migration bootstraps one row with a well-known id that
owns all data that existed before the retrofit.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text

from tenancy.database import Base


class SubscriptionStatus(str, enum.Enum):
    active = "active"
    trial = "trial"
    suspended = "suspended"
    cancelled = "cancelled"


class Organization(Base):
    __tablename__ = "organizations"

    # String key so the bootstrap id does not have to be a UUID
    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    subdomain = Column(String(100), nullable=False, unique=True)
    custom_domain = Column(String(253), nullable=True, unique=True)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    settings = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def subscription(self) -> dict:
        return (self.settings or {}).get("subscription") or {}

    @property
    def subscription_status(self) -> str | None:
        return self.subscription.get("status")

    def __repr__(self) -> str:
        return f"<Organization id={self.id!r} subdomain={self.subdomain!r}>"
