"""Exception hierarchy for the Rancher provider.

Every failure surfaced to the host runtime derives from ProviderError.
Convergence failures (WaitError subclasses) carry the resource id and the
state the resource was last seen in, so stuck remote transitions can be
diagnosed from the message alone.
"""

from __future__ import annotations

from collections.abc import Iterable


class ProviderError(Exception):
    """Base class for all provider errors."""


class ConfigError(ProviderError):
    """Provider configuration is missing or invalid."""


class TransportError(ProviderError):
    """Network or API failure talking to Rancher."""

    def __init__(self, message: str, status: int = 0, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


# =============================================================================
# Convergence
# =============================================================================


class WaitError(ProviderError):
    """Base class for state-convergence failures."""

    def __init__(self, message: str, resource_id: str) -> None:
        super().__init__(message)
        self.resource_id = resource_id


class UnexpectedStateError(WaitError):
    """Observed state is neither pending nor target. Not retryable."""

    def __init__(self, resource_id: str, state: str, expected: Iterable[str]) -> None:
        self.state = state
        self.expected = tuple(sorted(expected))
        super().__init__(
            f"unexpected state '{state}' for {resource_id}, wanted one of: "
            f"{', '.join(self.expected)}",
            resource_id,
        )


class WaitTimeoutError(WaitError):
    """Wall-clock budget exhausted while the resource was still pending."""

    def __init__(self, resource_id: str, last_state: str, timeout: float) -> None:
        self.last_state = last_state
        self.timeout = timeout
        super().__init__(
            f"timeout while waiting for {resource_id} after {timeout:.1f}s "
            f"(last state: '{last_state}')",
            resource_id,
        )


class ResourceNotFoundError(WaitError):
    """Resource is absent where it is required to exist."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"resource {resource_id} not found", resource_id)


# =============================================================================
# Lifecycle
# =============================================================================


class ResourceOperationError(ProviderError):
    """A lifecycle callback failed; names the phase that failed.

    Always raised from the underlying cause, which stays reachable through
    ``__cause__``.
    """

    def __init__(self, phase: str, resource_id: str, message: str) -> None:
        super().__init__(message)
        self.phase = phase
        self.resource_id = resource_id


__all__ = [
    "ConfigError",
    "ProviderError",
    "ResourceNotFoundError",
    "ResourceOperationError",
    "TransportError",
    "UnexpectedStateError",
    "WaitError",
    "WaitTimeoutError",
]
