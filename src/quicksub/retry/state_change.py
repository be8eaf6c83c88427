"""
Poll a remote object until it reaches one of a set of target states.

The remote control plane is eventually consistent: a freshly created object
may not be visible for a while, and a status can flip back and forth before it
settles. ``StateChangeConf`` encodes both concerns (not-found tolerance and
continuous target occurrence) on top of a simple exponential-backoff loop.

Example:
    conf = StateChangeConf(
        pending=["CREATING"],
        target=["READY"],
        source=MyStatusSource(client, resource_id),
        timeout=600,
        not_found_checks=20,
        continuous_target_occurence=2,
    )
    obj = conf.wait_for_state(ctx)
"""

from __future__ import annotations

import time
from typing import Any, Optional, Protocol, Sequence, Tuple

from quicksub.config.logging_config import get_logger
from quicksub.retry.cancellation import OperationContext

log = get_logger(__name__)

INITIAL_WAIT = 0.1
MAX_WAIT = 10.0


class StatusSource(Protocol):
    """Fetches the current status of one remote object."""

    def fetch_status(self) -> Tuple[Any, str]:
        """Return the remote object and its status string."""
        ...

    def is_not_found(self, err: Exception) -> bool:
        """Whether ``err`` raised by fetch_status means the object is not visible (yet)."""
        ...


class StateChangeError(Exception):
    """Base class for errors raised while waiting for a state change."""


class WaitTimeoutError(StateChangeError):
    def __init__(
        self,
        timeout: float,
        last_state: str,
        expected_state: Sequence[str],
        last_error: Optional[Exception] = None,
    ):
        self.timeout = timeout
        self.last_state = last_state
        self.expected_state = list(expected_state)
        self.last_error = last_error

        message = (
            f"timeout while waiting for state to become '{', '.join(self.expected_state)}' "
            f"(last state: '{last_state}', timeout: {timeout:g}s)"
        )
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class UnexpectedStateError(StateChangeError):
    def __init__(
        self,
        state: str,
        expected_state: Sequence[str],
        last_error: Optional[Exception] = None,
    ):
        self.state = state
        self.expected_state = list(expected_state)
        self.last_error = last_error
        super().__init__(f"unexpected state '{state}', wanted target '{', '.join(self.expected_state)}'")


class WaitNotFoundError(StateChangeError):
    def __init__(self, retries: int, last_error: Optional[Exception] = None):
        self.retries = retries
        self.last_error = last_error

        message = f"couldn't find resource ({retries} retries)"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class StateChangeConf:
    """
    Configuration for a poll-until-state wait.

    Args:
        pending: States that mean "keep waiting". Any state outside pending and
            target is an error, unless pending is empty.
        target: States that end the wait.
        source: Status source polled on every iteration.
        timeout: Overall time limit in seconds.
        delay: Seconds to sleep before the first fetch.
        min_timeout: Lower bound for the backoff between fetches.
        poll_interval: Fixed interval between fetches, overriding the backoff.
        not_found_checks: Consecutive not-found fetches tolerated before failing.
        continuous_target_occurence: Consecutive target observations required.
    """

    def __init__(
        self,
        pending: Sequence[str],
        target: Sequence[str],
        source: StatusSource,
        timeout: float,
        delay: float = 0,
        min_timeout: float = 0,
        poll_interval: float = 0,
        not_found_checks: int = 0,
        continuous_target_occurence: int = 1,
    ):
        if continuous_target_occurence < 1:
            raise ValueError("continuous_target_occurence must be >= 1")
        if not_found_checks < 0:
            raise ValueError("not_found_checks must be >= 0")

        self.pending = list(pending)
        self.target = list(target)
        self.source = source
        self.timeout = timeout
        self.delay = delay
        self.min_timeout = min_timeout
        self.poll_interval = poll_interval
        self.not_found_checks = not_found_checks
        self.continuous_target_occurence = continuous_target_occurence

    def _next_wait(self, wait: float) -> float:
        if self.poll_interval > 0:
            return self.poll_interval
        return min(max(wait, self.min_timeout), MAX_WAIT)

    def wait_for_state(self, ctx: Optional[OperationContext] = None) -> Any:
        """
        Poll the source until a target state is observed often enough.

        Returns:
            The object returned by the last successful fetch.

        Raises:
            WaitTimeoutError: The timeout elapsed first.
            WaitNotFoundError: More than ``not_found_checks`` consecutive not-found fetches.
            UnexpectedStateError: A state outside pending and target was observed.
            CancellationError: ``ctx`` was cancelled.
            Exception: Any fetch error the source does not classify as not-found.
        """
        ctx = ctx or OperationContext()
        deadline = time.monotonic() + self.timeout

        log.debug(f"Waiting for state to become: {self.target}")

        if self.delay > 0:
            ctx.sleep(self.delay)

        wait = INITIAL_WAIT
        not_found_tick = 0
        target_occurence = 0
        last_state = ""
        last_error: Optional[Exception] = None

        while True:
            ctx.raise_if_cancelled()

            try:
                result, state = self.source.fetch_status()
            except Exception as err:
                if not self.source.is_not_found(err):
                    raise
                last_error = err
                not_found_tick += 1
                target_occurence = 0
                if not_found_tick > self.not_found_checks:
                    raise WaitNotFoundError(not_found_tick, err) from err
                log.debug(f"Resource not found yet ({not_found_tick}/{self.not_found_checks})")
            else:
                not_found_tick = 0
                last_state = state

                if state in self.target:
                    target_occurence += 1
                    if target_occurence >= self.continuous_target_occurence:
                        return result
                    log.debug(
                        f"Target state {state!r} observed "
                        f"{target_occurence}/{self.continuous_target_occurence} times"
                    )
                elif state in self.pending:
                    target_occurence = 0
                elif self.pending:
                    raise UnexpectedStateError(state, self.target, last_error)

            # Back off only while the target has not been seen
            if target_occurence == 0:
                wait *= 2

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(self.timeout, last_state, self.target, last_error)
            ctx.sleep(min(self._next_wait(wait), remaining))


__all__ = [
    "StateChangeConf",
    "StateChangeError",
    "StatusSource",
    "UnexpectedStateError",
    "WaitNotFoundError",
    "WaitTimeoutError",
]
