"""Best-effort retry decorator built on tenacity.

The only automatic retry in the service is marking a message read: one more
attempt after a short fixed wait, and a logged give-up instead of an
exception if that fails too.  AI calls and sends are never retried.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _failed(result: Any) -> bool:
    return result is False


def best_effort_retry(
    operation: str, wait_seconds: float = 1.0, attempts: int = 2
) -> Callable[[F], F]:
    """Create a retry decorator for a best-effort ``bool``-returning call.

    The wrapped call is retried when it returns ``False`` or raises.  Once
    *attempts* are used up the failure is logged and ``False`` is returned;
    nothing is raised.

    Args:
        operation: Name used in log events.
        wait_seconds: Fixed pause before each retry.
        attempts: Total attempts, including the first.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "operation_retrying",
            operation=operation,
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    def give_up(retry_state: RetryCallState) -> bool:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            "operation_failed_after_retries",
            operation=operation,
            attempts=retry_state.attempt_number,
            exception=str(exception) if exception else None,
        )
        return False

    def decorator(func: F) -> F:
        wrapped = retry(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(wait_seconds),
            retry=retry_if_result(_failed) | retry_if_exception_type(Exception),
            before_sleep=before_sleep,
            retry_error_callback=give_up,
        )(func)
        return wrapped  # type: ignore[return-value]

    return decorator
