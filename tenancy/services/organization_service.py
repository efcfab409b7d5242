"""
Organization Service

Async CRUD operations for Organization entities (the tenant root).
All functions accept an injected AsyncSession.
"""

import logging
import re
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.exceptions import TenancyValidationError
from tenancy.models.organization import Organization, SubscriptionStatus

logger = logging.getLogger(__name__)

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

UPDATABLE_FIELDS = {"name", "custom_domain", "description", "address", "phone", "email", "settings"}


def extract_subdomain(host: str, app_domain: str | None = None) -> str | None:
    """
    Extract the organization subdomain from a request host.

    With ``app_domain`` the host must be a subdomain of it; without, any
    host of at least three labels yields its first label.

    Examples:
        host="apollo.localhost", app_domain="localhost"   → "apollo"
        host="localhost",        app_domain="localhost"   → None
        host="apollo.hospital.com"                        → "apollo"
        host="www.hospital.com"                           → None
    """
    # Strip port if present
    host = host.split(":")[0].lower()
    if app_domain:
        if host != app_domain and host.endswith("." + app_domain):
            subdomain = host[: -(len(app_domain) + 1)]
            return subdomain if subdomain != "www" else None
        return None
    parts = host.split(".")
    if len(parts) >= 3 and parts[0] != "www":
        return parts[0]
    return None


def validate_subdomain(subdomain: str) -> str:
    normalized = subdomain.strip().lower()
    if not SUBDOMAIN_PATTERN.match(normalized):
        raise TenancyValidationError(
            "Subdomain must be 1-63 lowercase letters, digits or hyphens, not starting or ending with a hyphen",
            field="subdomain",
        )
    return normalized


async def create_organization(
    name: str,
    subdomain: str,
    db: AsyncSession,
    custom_domain: str | None = None,
    description: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    plan: str = "trial",
) -> Organization:
    """Create a new organization with a subscription in trial (or active) state."""
    if not name or not name.strip():
        raise TenancyValidationError("Organization name is required", field="name")
    status = SubscriptionStatus.trial if plan == "trial" else SubscriptionStatus.active
    organization = Organization(
        id=str(uuid.uuid4()),
        name=name.strip(),
        subdomain=validate_subdomain(subdomain),
        custom_domain=custom_domain,
        description=description,
        email=email,
        phone=phone,
        address=address,
        settings={"subscription": {"plan": plan, "status": status.value}},
        is_active=True,
    )
    db.add(organization)
    await db.commit()
    await db.refresh(organization)
    logger.info(f"Organization created: id={organization.id} subdomain={organization.subdomain}")
    return organization


async def get_organization_by_id(organization_id: str, db: AsyncSession) -> Organization | None:
    """Return an Organization by primary key, or None if not found."""
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    return result.scalars().first()


async def get_organization_by_subdomain(subdomain: str, db: AsyncSession) -> Organization | None:
    """Return an Organization by subdomain, or None if not found."""
    result = await db.execute(select(Organization).where(Organization.subdomain == subdomain))
    return result.scalars().first()


async def get_organization_by_host(subdomain: str, host: str, db: AsyncSession) -> Organization | None:
    """Return the Organization owning ``subdomain`` or the custom domain ``host``."""
    host = host.split(":")[0].lower()
    result = await db.execute(
        select(Organization).where(or_(Organization.subdomain == subdomain, Organization.custom_domain == host))
    )
    return result.scalars().first()


async def list_organizations(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    active_only: bool = False,
) -> list[Organization]:
    """Return a paginated list of organizations."""
    query = select(Organization).order_by(Organization.name).offset(skip).limit(limit)
    if active_only:
        query = query.where(Organization.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_organization(
    organization_id: str,
    updates: dict,
    db: AsyncSession,
) -> Organization | None:
    """
    Apply a partial update to an Organization.

    Only keys present in `updates` are changed; the subdomain and id are
    immutable. Returns None if the organization does not exist.
    """
    organization = await get_organization_by_id(organization_id, db)
    if organization is None:
        return None
    for field, value in updates.items():
        if field in UPDATABLE_FIELDS:
            setattr(organization, field, value)
    await db.commit()
    await db.refresh(organization)
    return organization


async def deactivate_organization(organization_id: str, db: AsyncSession) -> Organization | None:
    """
    Mark an organization inactive; its data is kept.

    Returns None if the organization does not exist.
    """
    organization = await get_organization_by_id(organization_id, db)
    if organization is None:
        return None
    organization.is_active = False
    await db.commit()
    await db.refresh(organization)
    logger.info(f"Organization deactivated: id={organization.id} subdomain={organization.subdomain}")
    return organization
