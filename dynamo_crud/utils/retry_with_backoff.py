"""
Bounded retry driven by a classifier verdict for DynamoDB calls.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from dynamo_crud.constants import (
    BACKOFF_DELAY_SECONDS,
    DEFAULT_ACTION_RETRIES,
    IMMEDIATE_RETRY_DELAY_SECONDS,
    MAX_ACTION_RETRIES,
    READ_TIMEOUT_WINDOW,
    WRITE_TIMEOUT_WINDOW,
    OperationClass,
    RetryAction,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ErrorVerdict:
    """
    Outcome of classifying one failed attempt.

    Attributes:
        action: Whether to give up, retry immediately or retry after backoff.
        suppress: Whether exhaustion of the retry budget is reported as
            success instead of raising ``error``.
        error: The typed exception to raise when the failure is surfaced.
    """

    action: RetryAction
    suppress: bool
    error: Exception

    @property
    def retryable(self) -> bool:
        return self.action is not RetryAction.FATAL


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and delays for a single call."""

    max_retries: int = DEFAULT_ACTION_RETRIES
    backoff_delay: float = BACKOFF_DELAY_SECONDS
    immediate_delay: float = IMMEDIATE_RETRY_DELAY_SECONDS
    suppress_exhausted: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_retries", clamp_retries(self.max_retries))

    def delay_for(self, action: RetryAction) -> float:
        if action is RetryAction.RETRY_WITH_BACKOFF:
            return self.backoff_delay
        return self.immediate_delay


def clamp_retries(max_retries: Optional[int]) -> int:
    """Clamp a retry count into ``[0, MAX_ACTION_RETRIES]``."""
    if max_retries is None:
        return DEFAULT_ACTION_RETRIES
    return max(0, min(int(max_retries), MAX_ACTION_RETRIES))


def clamp_timeout(
    timeout_seconds: Optional[float], operation_class: OperationClass
) -> float:
    """
    Clamp a requested timeout into the window of its operation class.

    Reads are bounded to ``READ_TIMEOUT_WINDOW`` and writes or transactions to
    ``WRITE_TIMEOUT_WINDOW`` whatever the caller asked for.
    """
    if operation_class is OperationClass.READ:
        low, high = READ_TIMEOUT_WINDOW
    else:
        low, high = WRITE_TIMEOUT_WINDOW

    if not timeout_seconds or timeout_seconds < low:
        return float(low)
    if timeout_seconds > high:
        return float(high)
    return float(timeout_seconds)


def call_with_retry(
    operation: str,
    func: Callable[[], T],
    classify: Callable[[Exception, str], ErrorVerdict],
    policy: Optional[RetryPolicy] = None,
) -> Optional[T]:
    """
    Run ``func`` until it succeeds, fails fatally or the budget is spent.

    Args:
        operation: Name used in log lines and error messages.
        func: Zero-argument callable performing exactly one attempt.
        classify: Maps the raised exception to an ``ErrorVerdict``.
        policy: Retry budget and delays. Defaults to ``RetryPolicy()``.

    Returns:
        The value returned by ``func``, or ``None`` when the final failure
        was classified as suppressible and the policy allows suppression.

    Raises:
        Exception: The verdict's typed error for fatal failures and for
            reportable failures once the budget is exhausted.
    """
    policy = policy or RetryPolicy()
    retries_left = policy.max_retries

    while True:
        try:
            return func()
        except Exception as e:  # pylint: disable=broad-exception-caught
            verdict = classify(e, operation)

            if not verdict.retryable:
                raise verdict.error from e

            if retries_left <= 0:
                if verdict.suppress and policy.suppress_exhausted:
                    logger.warning(
                        f"{operation} error suppressed after "
                        f"{policy.max_retries} retries: {verdict.error}"
                    )
                    return None
                raise verdict.error from e

            retries_left -= 1
            logger.warning(
                f"{operation} attempt failed, retrying "
                f"({policy.max_retries - retries_left}/{policy.max_retries}): "
                f"{verdict.error}"
            )
            time.sleep(policy.delay_for(verdict.action))
