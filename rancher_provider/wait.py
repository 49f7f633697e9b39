"""State-convergence polling for remote resources.

A remote object keeps transitioning after the API call that started the
transition returns. StateChangeConf polls it through a refresh function until
it reaches one of the target states, failing fast on states outside the
declared pending/target sets and on transport errors.

Example:
    conf = StateChangeConf(
        pending={"active", "deactivating"},
        target={"inactive", "detached"},
        refresh=volume_state_refresh(client, volume_id),
        resource_id=volume_id,
    )
    volume, state = conf.wait_for_state()
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    wait_exponential,
)

from rancher_provider.errors import (
    ResourceNotFoundError,
    UnexpectedStateError,
    WaitTimeoutError,
)

type StateRefreshFunc = Callable[[], tuple[Any | None, str]]
"""Performs one read. Returns (snapshot, state), or (None, "") when absent."""


class StateClass(Enum):
    """Classification of an observed state for one convergence call."""

    TARGET = "target"
    PENDING = "pending"
    UNEXPECTED = "unexpected"


class _StillPendingError(Exception):
    """Resource observed in a pending state - retry."""


@dataclass(frozen=True, slots=True)
class StateChangeConf:
    """One convergence request. Immutable for the duration of the wait.

    A state listed in both ``pending`` and ``target`` counts as target, so the
    effective pending set is always disjoint from the target set.

    Args:
        pending: Transient states in which polling continues.
        target: States that satisfy the caller.
        refresh: Function performing a single read of the resource.
        resource_id: Identifier used in log lines and error messages.
        timeout: Wall-clock budget of the whole wait, initial delay
            included, in seconds. No poll starts after it elapses.
        delay: Wait before the first poll, in seconds.
        min_timeout: Smallest interval between two polls, in seconds.
        max_interval: Cap for the exponential backoff between polls.
        not_found_state: State assumed when the resource is absent. None
            makes absence an error.
        sleep: Sleep function; injectable for tests.
        clock: Monotonic clock the deadline is measured with.
    """

    pending: frozenset[str]
    target: frozenset[str]
    refresh: StateRefreshFunc
    resource_id: str = "resource"
    timeout: float = 600.0
    delay: float = 1.0
    min_timeout: float = 3.0
    max_interval: float = 10.0
    not_found_state: str | None = None
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    def __post_init__(self) -> None:
        object.__setattr__(self, "pending", frozenset(self.pending))
        object.__setattr__(self, "target", frozenset(self.target))
        if not self.target:
            raise ValueError("target states must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.delay < 0 or self.min_timeout < 0:
            raise ValueError("delay and min_timeout must not be negative")

    def classify(self, state: str) -> StateClass:
        if state in self.target:
            return StateClass.TARGET
        if state in self.pending:
            return StateClass.PENDING
        return StateClass.UNEXPECTED

    def wait_for_state(self) -> tuple[Any, str]:
        """Poll until a target state is observed.

        Returns:
            The last snapshot returned by ``refresh`` (None when absence
            counted as the target) and the state it was observed in.

        Raises:
            UnexpectedStateError: State outside pending and target.
            ResourceNotFoundError: Resource absent and absence not allowed.
            WaitTimeoutError: Still pending when the timeout elapsed.
            Exception: Anything raised by ``refresh`` propagates unchanged.
        """
        log = logger.bind(component="wait", resource_id=self.resource_id)
        log.debug(
            "Waiting for {resource_id} to reach {target} (pending: {pending})",
            resource_id=self.resource_id,
            target=sorted(self.target),
            pending=sorted(self.pending - self.target),
        )

        deadline = self.clock() + self.timeout

        def remaining() -> float:
            return deadline - self.clock()

        if self.delay:
            self.sleep(min(self.delay, self.timeout))

        last_state = ""

        def _poll() -> tuple[Any, str]:
            nonlocal last_state
            if remaining() <= 0:
                raise WaitTimeoutError(self.resource_id, last_state, self.timeout)
            snapshot, state = self.refresh()
            if snapshot is None:
                if self.not_found_state is None:
                    raise ResourceNotFoundError(self.resource_id)
                state = self.not_found_state
            last_state = state

            match self.classify(state):
                case StateClass.TARGET:
                    log.debug("{resource_id} reached {state}", resource_id=self.resource_id, state=state)
                    return snapshot, state
                case StateClass.PENDING:
                    log.trace("{resource_id} still {state}", resource_id=self.resource_id, state=state)
                    raise _StillPendingError(state)
                case StateClass.UNEXPECTED:
                    raise UnexpectedStateError(self.resource_id, state, self.target)

        backoff = wait_exponential(
            multiplier=self.min_timeout,
            min=self.min_timeout,
            max=max(self.min_timeout, self.max_interval),
        )

        # The last sleep is cut short at the deadline; the poll after it times out.
        def _wait(retry_state: RetryCallState) -> float:
            return max(0.0, min(backoff(retry_state), remaining()))

        def _stop(retry_state: RetryCallState) -> bool:
            return remaining() <= 0

        retrying = Retrying(
            stop=_stop,
            wait=_wait,
            retry=retry_if_exception_type(_StillPendingError),
            sleep=self.sleep,
        )

        try:
            return retrying(_poll)
        except RetryError as e:
            raise WaitTimeoutError(self.resource_id, last_state, self.timeout) from e


__all__ = ["StateChangeConf", "StateClass", "StateRefreshFunc"]
