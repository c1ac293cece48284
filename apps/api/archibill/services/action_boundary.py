"""Workflow entry-point boundary.

Every mutating workflow is wrapped with @action_boundary so callers always
get an ActionResult back, never an exception:

- ActionError subclasses and IdentityProviderError surface their message
- anything else is logged with its traceback and surfaces the workflow's
  generic message
- the session is rolled back on every error path
"""

import functools
import logging

from sqlalchemy.orm import Session

from archibill.schemas.actions import ActionResult
from archibill.services.errors import ActionError
from archibill.services.identity_provider import IdentityProviderError

logger = logging.getLogger(__name__)


def action_boundary(generic_message: str):
    """
    Convert a workflow's errors into ActionResult.error.

    The wrapped coroutine must take the Session as its first argument.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(db: Session, *args, **kwargs) -> ActionResult:
            try:
                return await func(db, *args, **kwargs)
            except ActionError as exc:
                db.rollback()
                logger.info("%s rejected: %s", func.__name__, exc.message)
                return ActionResult.error(exc.message)
            except IdentityProviderError as exc:
                db.rollback()
                logger.warning(
                    "%s failed at identity provider (status=%s, code=%s): %s",
                    func.__name__,
                    exc.status_code,
                    exc.code,
                    exc.message,
                )
                return ActionResult.error(exc.message)
            except Exception:
                db.rollback()
                logger.exception("%s failed unexpectedly", func.__name__)
                return ActionResult.error(generic_message)

        return wrapper

    return decorator
