"""Service layer modules."""

from archibill.services.errors import (
    ActionError,
    AuthenticationRequired,
    AuthorizationDenied,
    ConflictError,
    NotFoundError,
    OwnerInvariantViolation,
    ValidationError,
)
from archibill.services.identity_provider import (
    IdentityProvider,
    IdentityProviderError,
    IdentityUserAlreadyRegistered,
    IdentityUserNotFound,
    SupabaseIdentityProvider,
)

__all__ = [
    # Errors
    "ActionError",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "ConflictError",
    "NotFoundError",
    "OwnerInvariantViolation",
    "ValidationError",
    # Identity provider
    "IdentityProvider",
    "IdentityProviderError",
    "IdentityUserAlreadyRegistered",
    "IdentityUserNotFound",
    "SupabaseIdentityProvider",
]
