"""
Tenant Context Middleware

Resolves the current organization, in priority order, from:
  0. the authenticated user's organization (request.state.user)
  1. the ?tenant= query parameter        (development/testing)
  2. the X-Tenant-Subdomain request header (development/testing)
  3. the subdomain of the request host, or a custom domain
  4. the default organization

Sets request.state.tenant and request.state.tenant_id for downstream
handlers. Inactive organizations and suspended or cancelled subscriptions
are rejected with 403, unknown organizations with 404 unless the middleware
is installed with ``optional=True``. When ENABLE_MULTITENANCY is False this
middleware is a no-op.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from tenancy.config import settings
from tenancy.exception_handlers import create_error_response
from tenancy.exceptions import (
    MissingTenantContextError,
    OrganizationInactiveError,
    OrganizationNotFoundError,
    SubscriptionInactiveError,
    TenancyException,
)
from tenancy.models.organization import Organization, SubscriptionStatus
from tenancy.services.organization_service import (
    extract_subdomain,
    get_organization_by_host,
    get_organization_by_id,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.responses import Response

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-Subdomain"
TENANT_QUERY_PARAM = "tenant"

BLOCKED_SUBSCRIPTION_STATUSES = (SubscriptionStatus.suspended.value, SubscriptionStatus.cancelled.value)


def _user_organization_id(user: Any) -> str | None:
    if user is None:
        return None
    if isinstance(user, dict):
        return user.get("organization_id") or user.get("organizationId")
    return getattr(user, "organization_id", None)


def ensure_organization_usable(organization: Organization) -> None:
    """Raise when the organization may not serve requests."""
    if not organization.is_active:
        raise OrganizationInactiveError(organization.name)
    status = organization.subscription_status
    if status in BLOCKED_SUBSCRIPTION_STATUSES:
        raise SubscriptionInactiveError(organization.name, status)


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Resolve the current organization and attach it to request.state.

    Attributes set on request.state:
        tenant      (Organization | None) — the active organization
        tenant_id   (str | None)          — its primary key
    """

    def __init__(self, app, optional: bool = False, session_factory: Callable | None = None):
        super().__init__(app)
        self.optional = optional
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Always initialise state so downstream code can safely read without AttributeError
        request.state.tenant = None
        request.state.tenant_id = None

        if not settings.enable_multitenancy:
            return await call_next(request)

        try:
            organization = await self.resolve(request)
        except OrganizationNotFoundError as exc:
            if not self.optional:
                return self._error(request, exc)
            logger.debug("TenantContextMiddleware: no organization found, continuing without tenant context")
            return await call_next(request)
        except TenancyException as exc:
            return self._error(request, exc)

        request.state.tenant = organization
        request.state.tenant_id = organization.id
        logger.debug(
            f"TenantContextMiddleware: resolved organization id={organization.id} subdomain={organization.subdomain}"
        )
        return await call_next(request)

    def _error(self, request: Request, exc: TenancyException) -> Response:
        logger.warning(f"Tenant resolution failed: {exc.message}", extra={"path": request.url.path})
        return create_error_response(
            status_code=exc.status_code,
            message=exc.message,
            error_code=exc.error_code,
            details=exc.details or None,
            path=request.url.path,
        )

    async def resolve(self, request: Request) -> Organization:
        session_factory = self.session_factory
        if session_factory is None:
            # Deferred import avoids creating the engine at module load time
            from tenancy.database import AsyncSessionLocal

            session_factory = AsyncSessionLocal

        async with session_factory() as db:
            user_organization_id = _user_organization_id(getattr(request.state, "user", None))
            if user_organization_id:
                organization = await get_organization_by_id(user_organization_id, db)
                if organization is not None:
                    if not organization.is_active:
                        raise OrganizationInactiveError(organization.name)
                    return organization

            host = request.headers.get("host", "")
            subdomain = (
                request.query_params.get(TENANT_QUERY_PARAM)
                or request.headers.get(TENANT_HEADER)
                or extract_subdomain(host, settings.app_domain)
                or settings.default_subdomain
            )
            organization = await get_organization_by_host(subdomain, host, db)

        if organization is None:
            raise OrganizationNotFoundError(subdomain)
        ensure_organization_usable(organization)
        return organization


def get_tenant_id(request: Request) -> str | None:
    """Organization id from the tenant context, falling back to the authenticated user."""
    tenant = getattr(request.state, "tenant", None)
    if tenant is not None:
        return tenant.id
    return _user_organization_id(getattr(request.state, "user", None))


def require_organization_id(request: Request) -> str:
    """
    FastAPI dependency: the current organization id.

    Raises:
        MissingTenantContextError: (400) if neither source provides one
    """
    organization_id = get_tenant_id(request)
    if not organization_id:
        raise MissingTenantContextError()
    return organization_id
