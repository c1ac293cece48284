"""Log context for workflow events.

Workflow logs identify actors, practices and target users by id only; emails
and names stay out of log records and go to the audit log instead.
"""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    actor_id: UUID | str | None = None,
    practice_id: UUID | str | None = None,
    target_user_id: UUID | str | None = None,
    action: str | None = None,
) -> dict[str, Any]:
    """Build the `extra=` dict for a workflow log line, skipping unset fields."""
    ids = {"actor_id": actor_id, "practice_id": practice_id, "target_user_id": target_user_id}
    context: dict[str, Any] = {key: str(value) for key, value in ids.items() if value}
    if action:
        context["action"] = action
    return context
