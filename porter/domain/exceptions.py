"""Domain exceptions for Porter.

Defines domain-level exceptions that represent role and tenant rule
violations. These exceptions are independent of infrastructure concerns.
Presentation layer maps them to HTTP responses in exception handlers.
"""

from typing import Any

from porter.domain.enums import TenantViolation


class PorterException(Exception):
    """Base exception for all Porter errors.

    All custom exceptions inherit from this class so callers can handle
    them uniformly. Presentation layer maps these to HTTP responses using
    message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. role, tenant keys).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class RoleNotFoundException(PorterException):
    """Raised when a role name or storage key does not resolve against the registry."""

    def __init__(self, role: str) -> None:
        """Initialize with the identifier that failed to resolve.

        Args:
            role: Role name or storage key as given by the caller.
        """
        super().__init__(
            f"Role '{role}' does not exist.",
            "ROLE_NOT_FOUND",
            {"role": role},
        )


class InvalidRoleKeyException(PorterException):
    """Raised when a stored role key cannot be decoded under the configured key storage.

    Distinct from RoleNotFoundException: it points at corrupt data or a
    changed key_storage / SECRET_KEY, not at a role that is legitimately absent.
    """

    def __init__(self, key_storage: str, reason: str) -> None:
        super().__init__(
            "Stored role key is invalid for the configured key storage",
            "INVALID_ROLE_KEY",
            {"key_storage": key_storage, "reason": reason},
        )


class TenantIntegrityException(PorterException):
    """Raised when an assignment would cross tenant boundaries.

    Always raised before any write; kind says which rule rejected it.
    """

    _MESSAGES = {
        TenantViolation.MISMATCH: (
            "Tenant integrity violation: assignable entity belongs to tenant '{a}' "
            "but roleable entity belongs to tenant '{r}'. Both entities must belong "
            "to the same tenant."
        ),
        TenantViolation.ASSIGNABLE_WITHOUT_TENANT: (
            "Tenant integrity violation: assignable entity does not have a tenant "
            "context, but multitenancy is enabled."
        ),
        TenantViolation.ROLEABLE_WITHOUT_TENANT: (
            "Tenant integrity violation: roleable entity does not have a tenant "
            "context, but multitenancy is enabled."
        ),
    }

    def __init__(
        self,
        kind: TenantViolation,
        assignable_tenant: str | None = None,
        roleable_tenant: str | None = None,
    ) -> None:
        """Initialize with the violation kind and the offending tenant keys.

        Args:
            kind: Which tenant rule rejected the assignment.
            assignable_tenant: Current tenant key of the assignable (or None).
            roleable_tenant: Tenant key of the roleable (or None).
        """
        self.kind = kind
        self.assignable_tenant = assignable_tenant
        self.roleable_tenant = roleable_tenant
        super().__init__(
            self._MESSAGES[kind].format(a=assignable_tenant, r=roleable_tenant),
            "TENANT_INTEGRITY_VIOLATION",
            {
                "kind": kind.value,
                "assignable_tenant": assignable_tenant,
                "roleable_tenant": roleable_tenant,
            },
        )


class ConcurrencyConflictException(PorterException):
    """Raised when a mutation still fails after the configured retry attempts."""

    def __init__(self, operation: str, attempts: int, reason: str) -> None:
        super().__init__(
            f"{operation} failed after {attempts} attempt(s); retry later.",
            "CONCURRENCY_CONFLICT",
            {"operation": operation, "attempts": attempts, "reason": reason},
        )


class RoleRegistryException(PorterException):
    """Raised when role definitions break registry invariants (duplicate name or level)."""

    def __init__(self, message: str, **details_extra: Any) -> None:
        super().__init__(message, "ROLE_REGISTRY_ERROR", dict(details_extra))


class ConfigurationException(PorterException):
    """Raised when settings are inconsistent at runtime (e.g. missing secret for a codec)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIGURATION_ERROR")


class SqlNotConfiguredException(PorterException):
    """Raised when an operation requires the database but no engine is configured."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )
