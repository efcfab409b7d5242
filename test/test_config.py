"""
Settings tests
"""

from tenancy.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.tenant_column == "organization_id"
        assert settings.tenant_variable == "orgId"
        assert settings.guard_status_code == 400
        assert settings.controller_suffixes == [".controller.ts"]
        assert "auth." in settings.excluded_controller_markers
        assert settings.alembic_script_location.endswith("alembic")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BOOTSTRAP_ORGANIZATION_ID", "org-main")
        monkeypatch.setenv("GUARD_MESSAGE", "Tenant required")
        monkeypatch.setenv("CONTROLLER_SUFFIXES", '[".controller.ts", ".controller.js"]')
        settings = Settings(_env_file=None)
        assert settings.bootstrap_organization_id == "org-main"
        assert settings.guard_message == "Tenant required"
        assert settings.controller_suffixes == [".controller.ts", ".controller.js"]

    def test_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("enable_multitenancy", "false")
        assert Settings(_env_file=None).enable_multitenancy is False
