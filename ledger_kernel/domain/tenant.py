"""Tenant id validation.

Every core entry point takes the tenant id explicitly and validates it here;
there is no ambient tenant state.
"""

from uuid import UUID

from ledger_kernel.exceptions import InvalidTenantError


def validate_tenant_id(value: UUID | str | None) -> UUID:
    """
    Return ``value`` as a UUID.

    Raises:
        InvalidTenantError: If value is missing, empty or not a valid UUID.
    """
    if value is None:
        raise InvalidTenantError(value)
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidTenantError(value)
    try:
        return UUID(value.strip())
    except ValueError:
        raise InvalidTenantError(value) from None
