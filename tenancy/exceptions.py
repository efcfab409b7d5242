"""
Custom Exception Classes for the tenancy retrofit

Every error raised by the codemod, the schema helpers, the tenant
repository or the tenant middleware derives from TenancyException so
callers (CLI, HTTP handlers) can report it consistently.
"""

import enum
from typing import Any

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes"""

    TENANT_CONTEXT_REQUIRED = "TENANT_CONTEXT_REQUIRED"
    ORGANIZATION_NOT_FOUND = "ORGANIZATION_NOT_FOUND"
    ORGANIZATION_INACTIVE = "ORGANIZATION_INACTIVE"
    SUBSCRIPTION_INACTIVE = "SUBSCRIPTION_INACTIVE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CROSS_TENANT_WRITE = "CROSS_TENANT_WRITE"
    EDIT_CONFLICT = "EDIT_CONFLICT"
    SOURCE_ROOT_NOT_FOUND = "SOURCE_ROOT_NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TenancyException(Exception):
    """Base exception class for all tenancy-related exceptions"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Tenant Context Exceptions
# ============================================================================


class MissingTenantContextError(TenancyException):
    """Raised when an operation needs an organization id and none is available"""

    error_code = ErrorCode.TENANT_CONTEXT_REQUIRED

    def __init__(self, message: str = "Organization context required"):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST)


class OrganizationNotFoundError(TenancyException):
    """Raised when no organization matches the resolved identifier"""

    error_code = ErrorCode.ORGANIZATION_NOT_FOUND

    def __init__(self, identifier: Any | None = None):
        message = "Organization not found"
        if identifier is not None:
            message = f"Organization not found: {identifier}"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"identifier": identifier} if identifier is not None else {},
        )


class OrganizationInactiveError(TenancyException):
    """Raised when the resolved organization is deactivated"""

    error_code = ErrorCode.ORGANIZATION_INACTIVE

    def __init__(self, name: str):
        super().__init__(
            message=f"Organization '{name}' is not active",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"organization": name},
        )


class SubscriptionInactiveError(TenancyException):
    """Raised when the organization's subscription is suspended or cancelled"""

    error_code = ErrorCode.SUBSCRIPTION_INACTIVE

    def __init__(self, name: str, subscription_status: str):
        if subscription_status == "suspended":
            message = f"Subscription suspended for '{name}'. Please contact support."
        else:
            message = f"Subscription cancelled for '{name}'. Please renew your subscription."
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details={"organization": name, "subscription_status": subscription_status},
        )


# ============================================================================
# Validation Exceptions
# ============================================================================


class TenancyValidationError(TenancyException):
    """Raised when input validation fails"""

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class CrossTenantWriteError(TenancyException):
    """Raised when a write would move a row to a different organization"""

    error_code = ErrorCode.CROSS_TENANT_WRITE

    def __init__(self, tenant_id: str, attempted: Any):
        super().__init__(
            message="Cannot reassign a row to another organization",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"tenant_id": tenant_id, "attempted": attempted},
        )


# ============================================================================
# Codemod Exceptions
# ============================================================================


class EditConflictError(TenancyException):
    """Raised when two source edits overlap"""

    error_code = ErrorCode.EDIT_CONFLICT

    def __init__(self, first: tuple[int, int], second: tuple[int, int]):
        super().__init__(
            message=f"Overlapping edits at {first[0]}-{first[1]} and {second[0]}-{second[1]}",
            details={"first": list(first), "second": list(second)},
        )


class SourceRootNotFoundError(TenancyException):
    """Raised when the controllers root cannot be enumerated"""

    error_code = ErrorCode.SOURCE_ROOT_NOT_FOUND

    def __init__(self, path: str):
        super().__init__(message=f"Controllers root not found: {path}", details={"path": path})


# ============================================================================
# Database Exceptions
# ============================================================================


class DatabaseError(TenancyException):
    """Raised when a database operation fails"""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)
