"""
Provisioning Errors

Every error carries a machine-readable error_code and the HTTP status the
router should answer with.
"""

from portal.core.exceptions import ServiceError


class ProvisioningError(ServiceError):
    """Base exception for account provisioning errors."""


class MissingRequiredFieldError(ProvisioningError):
    """A field required for the requested role is missing."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="MISSING_REQUIRED_FIELD",
            status_code=400,
        )


class IdentifierConflictError(ProvisioningError):
    """The requested identifier is already taken."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="IDENTIFIER_CONFLICT",
            status_code=400,
        )


class AllocationExhaustedError(ProvisioningError):
    """No unique identifier could be generated within the attempt bound."""

    def __init__(self, kind: str = "student ID"):
        super().__init__(
            message=f"Could not generate a unique {kind}. Please try again.",
            error_code="ALLOCATION_EXHAUSTED",
            status_code=400,
        )


class AccountCreateFailedError(ProvisioningError):
    """The auth provider rejected the account."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ACCOUNT_CREATE_FAILED",
            status_code=400,
        )


class RoleRecordFailedError(ProvisioningError):
    """Writing profile, role grant or role record failed; the account was removed."""

    def __init__(self, message: str = "Failed to create user records. The account was rolled back."):
        super().__init__(
            message=message,
            error_code="ROLE_RECORD_FAILED",
            status_code=500,
        )


class AccountActionFailedError(ProvisioningError):
    """A ban, unban or delete could not be applied."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ACCOUNT_ACTION_FAILED",
            status_code=400,
        )


class InvalidReferenceError(ProvisioningError):
    """A role-specific field points at a record that does not exist."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_REFERENCE",
            status_code=400,
        )
