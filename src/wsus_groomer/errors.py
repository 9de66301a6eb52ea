"""Exception taxonomy for wsus-groomer.

Queries against the server raise; individual mutations return an
ActionResult instead (see models.ActionResult) so a run can continue past
a single failed update.
"""

from __future__ import annotations


class GroomerError(Exception):
    """Base class for all wsus-groomer errors."""


class ConfigError(GroomerError):
    """Invalid run configuration."""


class ServerConnectionError(GroomerError):
    """The WSUS server could not be reached or refused the session."""


class WsusServerError(GroomerError):
    """A read-only query against the WSUS server failed."""


class SyncTimeoutError(GroomerError):
    """The server did not report an idle synchronization within the max wait."""

    def __init__(self, waited_seconds: float):
        super().__init__(f"Synchronization still running after {waited_seconds:.0f} seconds")
        self.waited_seconds = waited_seconds


class SyncCancelledError(GroomerError):
    """The synchronization wait was cancelled before the server went idle."""


class MutationError(GroomerError):
    """A mutating call failed while stop-on-error was in effect."""

    def __init__(self, update_id: str, action: str, reason: str):
        super().__init__(f"{action} failed for update {update_id}: {reason}")
        self.update_id = update_id
        self.action = action
        self.reason = reason
