"""
Tests for custom exception classes and the HTTP error envelope

Tests exception initialization, messages, status codes, and details.
"""

import json

from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tenancy.exception_handlers import create_error_response, get_error_type, register_exception_handlers
from tenancy.exceptions import (
    CrossTenantWriteError,
    DatabaseError,
    EditConflictError,
    ErrorCode,
    MissingTenantContextError,
    OrganizationInactiveError,
    OrganizationNotFoundError,
    SourceRootNotFoundError,
    SubscriptionInactiveError,
    TenancyException,
    TenancyValidationError,
)


class TestTenancyException:
    """Test base TenancyException class"""

    def test_default(self):
        exc = TenancyException("Test error")
        assert str(exc) == "Test error"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.details == {}
        assert exc.error_code is ErrorCode.INTERNAL_ERROR

    def test_with_details(self):
        exc = TenancyException("Test error", status_code=status.HTTP_400_BAD_REQUEST, details={"key": "value"})
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.details == {"key": "value"}


class TestTenantContextExceptions:
    """Test organization resolution exceptions"""

    def test_missing_tenant_context(self):
        exc = MissingTenantContextError()
        assert str(exc) == "Organization context required"
        assert exc.status_code == status.HTTP_400_BAD_REQUEST

    def test_organization_not_found(self):
        exc = OrganizationNotFoundError("apollo")
        assert str(exc) == "Organization not found: apollo"
        assert exc.status_code == status.HTTP_404_NOT_FOUND
        assert exc.details == {"identifier": "apollo"}

    def test_organization_not_found_without_identifier(self):
        exc = OrganizationNotFoundError()
        assert str(exc) == "Organization not found"
        assert exc.details == {}

    def test_organization_inactive(self):
        exc = OrganizationInactiveError("Apollo")
        assert exc.status_code == status.HTTP_403_FORBIDDEN
        assert exc.error_code is ErrorCode.ORGANIZATION_INACTIVE

    def test_subscription_messages(self):
        assert "suspended" in SubscriptionInactiveError("Apollo", "suspended").message
        assert "renew" in SubscriptionInactiveError("Apollo", "cancelled").message


class TestOtherExceptions:
    """Test validation, codemod and database exceptions"""

    def test_validation_error_field(self):
        exc = TenancyValidationError("Bad subdomain", field="subdomain")
        assert exc.details == {"field": "subdomain"}
        assert exc.status_code == status.HTTP_400_BAD_REQUEST

    def test_cross_tenant_write(self):
        exc = CrossTenantWriteError("org-a", "org-b")
        assert exc.status_code == status.HTTP_403_FORBIDDEN
        assert exc.details == {"tenant_id": "org-a", "attempted": "org-b"}

    def test_edit_conflict(self):
        exc = EditConflictError((0, 5), (3, 6))
        assert str(exc) == "Overlapping edits at 0-5 and 3-6"

    def test_source_root_not_found(self):
        exc = SourceRootNotFoundError("src/controllers")
        assert exc.details == {"path": "src/controllers"}

    def test_database_error(self):
        exc = DatabaseError(operation="upgrade")
        assert str(exc) == "A database error occurred"
        assert exc.details == {"operation": "upgrade"}

    def test_all_derive_from_base(self):
        for exc_class in (MissingTenantContextError, OrganizationNotFoundError, DatabaseError, EditConflictError):
            assert issubclass(exc_class, TenancyException)


class TestErrorResponse:
    """Test the standardized error envelope"""

    def test_envelope(self):
        response = create_error_response(
            status_code=404,
            message="Organization not found: apollo",
            error_code=ErrorCode.ORGANIZATION_NOT_FOUND,
            details={"identifier": "apollo"},
            path="/patients",
        )
        assert response.status_code == 404
        assert json.loads(response.body) == {
            "error": {
                "status_code": 404,
                "message": "Organization not found: apollo",
                "type": "Not Found",
                "error_code": "ORGANIZATION_NOT_FOUND",
                "details": {"identifier": "apollo"},
                "path": "/patients",
            }
        }

    def test_minimal_envelope(self):
        response = create_error_response(status_code=400, message="Bad")
        assert json.loads(response.body) == {"error": {"status_code": 400, "message": "Bad", "type": "Bad Request"}}

    def test_unknown_status_type(self):
        assert get_error_type(418) == "Error"


class TestRegisteredHandlers:
    """Test the handlers installed by register_exception_handlers"""

    def _client(self) -> TestClient:
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/guarded")
        async def guarded():
            raise MissingTenantContextError()

        @app.get("/database")
        async def database():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        return TestClient(app)

    def test_tenancy_exception(self):
        response = self._client().get("/guarded")
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Organization context required"
        assert response.json()["error"]["path"] == "/guarded"

    def test_database_error(self):
        response = self._client().get("/database")
        assert response.status_code == 503
        error = response.json()["error"]
        assert error["error_code"] == "DATABASE_ERROR"
        assert error["type"] == "Service Unavailable"
        assert "connection refused" not in error["message"]
