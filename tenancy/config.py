from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Hospital Tenancy Retrofit"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./hospital.db"

    # Tenant resolution
    enable_multitenancy: bool = True
    app_domain: str = "localhost"
    default_subdomain: str = "default"

    # Bootstrap organization that owns all pre-existing rows
    bootstrap_organization_id: str = "default-org-00000000-0000-0000-0000-000000000001"
    bootstrap_organization_name: str = "Default Hospital"
    bootstrap_organization_subdomain: str = "default"

    # Isolation column
    tenant_column: str = "organization_id"
    tenant_table: str = "organizations"

    # Codemod
    controllers_root: str = "src/controllers"
    controller_suffixes: list[str] = [".controller.ts"]
    excluded_controller_markers: list[str] = ["auth.", "google-auth.", "organization.", "user."]
    tenant_repository_module: str = "repositories/TenantRepository"
    tenant_repository_function: str = "createTenantRepository"
    repository_factory: str = "AppDataSource.getRepository"
    tenant_variable: str = "orgId"
    tenant_property: str = "organizationId"
    guard_message: str = "Organization context required"
    guard_status_code: int = 400
    indent_unit: str = "  "

    # Migrations
    alembic_script_location: str = str(PROJECT_ROOT / "alembic")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
