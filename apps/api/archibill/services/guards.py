"""Actor guards shared by the workflows."""

from archibill.schemas.auth import Actor
from archibill.services.errors import AuthenticationRequired, AuthorizationDenied


def require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise AuthenticationRequired()
    return actor


def require_site_admin(actor: Actor | None) -> Actor:
    actor = require_actor(actor)
    if not actor.is_site_admin:
        raise AuthorizationDenied("Admin access required")
    return actor
