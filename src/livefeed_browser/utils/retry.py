"""Bounded linear-backoff retry for in-page installation steps."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..constants import MAX_HOOK_ATTEMPTS, RETRY_UNIT_SECS

import logging
logger = logging.getLogger(__name__)

PENDING = "pending"
SUCCEEDED = "succeeded"
ABANDONED = "abandoned"


@dataclass
class RetryState:
    """
    Attempt-count state machine.

    pending(n) -> succeeded      on success
    pending(n) -> pending(n + 1) on failure while n < max_attempts
    pending(n) -> abandoned      on failure at n == max_attempts
    """

    max_attempts: int = MAX_HOOK_ATTEMPTS
    attempt: int = 1
    status: str = PENDING

    @property
    def pending(self) -> bool:
        return self.status == PENDING

    def delay(self, unit: float) -> float:
        """Delay before the current attempt: n time units before attempt n."""
        return self.attempt * unit

    def record_success(self) -> None:
        if self.pending:
            self.status = SUCCEEDED

    def record_failure(self) -> None:
        if not self.pending:
            return
        if self.attempt >= self.max_attempts:
            self.status = ABANDONED
        else:
            self.attempt += 1


async def retry_until(
    check: Callable[[], Awaitable[bool]],
    *,
    name: str,
    max_attempts: int = MAX_HOOK_ATTEMPTS,
    unit: float = RETRY_UNIT_SECS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryState:
    """
    Run `check` until it returns True or the attempts run out.

    An exception from `check` counts as a failed attempt. Exhaustion is logged
    once as an error and reported through the returned state, never raised.
    """
    state = RetryState(max_attempts=max_attempts)
    while state.pending:
        await sleep(state.delay(unit))
        try:
            ok = await check()
        except Exception as e:
            logger.debug(f"{name}: attempt {state.attempt} raised {e!r}")
            ok = False

        if ok:
            state.record_success()
            logger.debug(f"{name}: succeeded on attempt {state.attempt}")
        else:
            state.record_failure()

    if state.status == ABANDONED:
        logger.error(f"{name}: giving up after {state.max_attempts} attempts")
    return state


__all__ = [
    "PENDING",
    "SUCCEEDED",
    "ABANDONED",
    "RetryState",
    "retry_until",
]
