"""
Retrieval workflow errors.

Every fatal error carries the workflow phase it came from so callers can tell
which remote step failed. Teardown failures are advisory and are attached to
the workflow result rather than replacing the primary error.
"""

from typing import Optional


class RetrievalError(Exception):
    """Base class for all retrieval workflow failures."""

    phase = "unknown"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.phase}] {self.message}"


class ProvisioningError(RetrievalError):
    """Creating or wiring the ephemeral topic/queue pair failed."""

    phase = "provisioning"

    def __init__(self, message: str, step: str) -> None:
        super().__init__(message)
        self.step = step


class InitiationError(RetrievalError):
    """Submitting the archive-retrieval job failed."""

    phase = "initiating"


class PollingExhaustedError(RetrievalError):
    """Consecutive queue fetch errors exceeded the retry budget."""

    phase = "polling"

    def __init__(self, message: str, last_error: Optional[BaseException], attempts: int) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class DispatchError(RetrievalError):
    """The retrieval executor failed for a correlated job."""

    phase = "dispatching"


class TeardownError(RetrievalError):
    """Deleting one or more ephemeral resources failed."""

    phase = "tearing_down"

    def __init__(self, message: str, errors: list[BaseException]) -> None:
        super().__init__(message)
        self.errors = errors
