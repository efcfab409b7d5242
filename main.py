import logging

from fastapi import Depends, FastAPI, Request

from tenancy.cli import main as cli_main
from tenancy.config import settings
from tenancy.exception_handlers import register_exception_handlers
from tenancy.middleware.tenant import TenantContextMiddleware, require_organization_id

logger = logging.getLogger(__name__)


def create_app(optional_tenant: bool = False, session_factory=None) -> FastAPI:
    """Create the FastAPI application serving the tenant context."""
    app = FastAPI(
        title=settings.app_name,
        description="Organization context for the hospital backend",
        debug=settings.debug,
        version=settings.app_version,
    )

    app.add_middleware(TenantContextMiddleware, optional=optional_tenant, session_factory=session_factory)
    register_exception_handlers(app)

    @app.get("/", tags=["Root"])
    async def root():
        return {"message": f"Welcome to the {settings.app_name} API"}

    @app.get("/organization", tags=["Organization"])
    async def current_organization(request: Request, organization_id: str = Depends(require_organization_id)):
        tenant = request.state.tenant
        return {
            "id": organization_id,
            "name": tenant.name if tenant is not None else None,
            "subdomain": tenant.subdomain if tenant is not None else None,
        }

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    raise SystemExit(cli_main())
