"""Bounded convergence polling against live cluster state."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from appctl.logging import StructuredLogger

logger = StructuredLogger("polling")


DEFAULT_POLL_INTERVAL = 1.0


class PollStatus(Enum):
    """Result of a single convergence check."""
    PENDING = "pending"
    CONVERGED = "converged"
    FATAL = "fatal"


@dataclass(frozen=True)
class PollOutcome:
    """Result of one convergence wait.

    A fatal outcome is also converged: polling stopped early, but the
    desired state will never be reached.
    """
    converged: bool
    fatal: bool = False

    @property
    def succeeded(self) -> bool:
        return self.converged and not self.fatal

    @property
    def timed_out(self) -> bool:
        return not self.converged


class Clock(ABC):
    """Time source used by the poller."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time in seconds."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for `seconds` seconds."""


class SystemClock(Clock):
    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


def _as_status(result: Union[bool, PollStatus]) -> PollStatus:
    if isinstance(result, PollStatus):
        return result
    return PollStatus.CONVERGED if result else PollStatus.PENDING


def poll_until(
    check: Callable[[], Union[bool, PollStatus]],
    clock: Clock,
    timeout: float,
    interval: float = DEFAULT_POLL_INTERVAL,
    on_progress: Optional[Callable[[], None]] = None
) -> PollOutcome:
    """Call `check` once per interval until it converges or `timeout` elapses.

    The first call happens immediately. A check that never converges is
    called floor(timeout / interval) + 1 times and never after the deadline.

    Args:
        check: Zero-argument callable returning a PollStatus (or a bool,
            True meaning converged)
        clock: Time source supplying now() and sleep()
        timeout: Overall time budget, in the clock's units
        interval: Time to sleep between attempts
        on_progress: Called after each unsuccessful attempt

    Returns:
        PollOutcome describing how polling ended
    """
    deadline = clock.now() + timeout
    attempts = 0

    while clock.now() <= deadline:
        attempts += 1
        status = _as_status(check())

        if status is PollStatus.FATAL:
            logger.debug("Poll ended with fatal condition", fields={"attempts": attempts})
            return PollOutcome(converged=True, fatal=True)
        if status is PollStatus.CONVERGED:
            logger.debug("Poll converged", fields={"attempts": attempts})
            return PollOutcome(converged=True)

        if on_progress is not None:
            on_progress()
        clock.sleep(interval)

    logger.debug("Poll timed out", fields={"attempts": attempts, "timeout": timeout})
    return PollOutcome(converged=False)
