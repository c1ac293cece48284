"""Saga runner - ordered steps across the identity provider and the store.

The provider and the database never share a transaction. Workflows that
touch both are written as a list of steps run in order:

- a step may tolerate specific exception types (e.g. "user already gone")
  and the saga carries on with that step's result set to None
- the step marked point_of_no_return is the provider mutation; once it has
  completed, later failures are logged as partial completions so operators
  can reconcile by hand
- nothing is compensated automatically

Each step receives the shared context dict and may return a value, which is
stored under the step name.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

StepFn = Callable[[dict[str, Any]], Any | Awaitable[Any]]


@dataclass(frozen=True)
class SagaStep:
    name: str
    run: StepFn
    tolerate: tuple[type[BaseException], ...] = ()
    point_of_no_return: bool = False


@dataclass
class SagaResult:
    """What ran: step name -> "ok" / "tolerated", plus shared context."""

    context: dict[str, Any]
    steps_executed: list[dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0

    def __getitem__(self, key: str) -> Any:
        return self.context[key]


class Saga:
    """
    Execute steps in order, stopping on the first untolerated error.

    Usage:
        saga = Saga("delete_user", [SagaStep("provider_delete", ...), ...])
        result = await saga.execute({"user_id": user_id})
    """

    def __init__(self, name: str, steps: list[SagaStep]) -> None:
        self.name = name
        self.steps = steps

    async def execute(self, context: dict[str, Any] | None = None) -> SagaResult:
        start_time = time.time()
        result = SagaResult(context=dict(context or {}))
        passed_point_of_no_return = False

        for step in self.steps:
            try:
                value = step.run(result.context)
                if inspect.isawaitable(value):
                    value = await value
            except step.tolerate as exc:
                logger.info(
                    "Saga %s step %s tolerated %s: %s",
                    self.name,
                    step.name,
                    type(exc).__name__,
                    exc,
                )
                result.context[step.name] = None
                result.steps_executed.append({"step": step.name, "status": "tolerated"})
            except Exception:
                if passed_point_of_no_return:
                    logger.error(
                        "Saga %s failed at %s after the point of no return; completed steps: %s",
                        self.name,
                        step.name,
                        [entry["step"] for entry in result.steps_executed],
                    )
                raise
            else:
                result.context[step.name] = value
                result.steps_executed.append({"step": step.name, "status": "ok"})

            if step.point_of_no_return:
                passed_point_of_no_return = True

        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.debug("Saga %s completed in %sms", self.name, result.duration_ms)
        return result
