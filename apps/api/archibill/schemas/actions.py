"""Structured workflow results."""

from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field


class ActionResult(BaseModel):
    """
    Result of every mutating workflow.

    Callers branch on `status` and display `message`. The token is fresh for
    each result so the UI can tell two identical messages apart.
    """
    status: Literal["success", "error"]
    message: str
    token: str = Field(default_factory=lambda: str(uuid4()))

    @classmethod
    def success(cls, message: str) -> "ActionResult":
        return cls(status="success", message=message)

    @classmethod
    def error(cls, message: str) -> "ActionResult":
        return cls(status="error", message=message)

    @property
    def ok(self) -> bool:
        return self.status == "success"
