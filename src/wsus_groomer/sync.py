"""Synchronization gate run before the catalog is read.

The gate always waits for the server to go idle, even when this run did not
start a synchronization: a sync started by someone else must not race with
catalog mutation.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from rich.console import Console

from wsus_groomer.errors import SyncCancelledError, SyncTimeoutError
from wsus_groomer.models import SyncStatus
from wsus_groomer.server.base import WsusServer

console = Console()

# Poll step while waiting for a just-started sync to leave the idle state.
_START_POLL_SECONDS = 1.0


class SyncGate:
    """Bounded, cancellable wait for the server's synchronization to finish.

    Args:
        server: Server to poll.
        poll_interval: Seconds between status polls.
        max_wait: Give up after this many seconds. 0 means a single check.
        sleep: Injected sleep function (time.sleep by default).
        clock: Injected monotonic clock (time.monotonic by default).
        cancel: Optional callable polled before each sleep; returning True
            aborts the wait with SyncCancelledError.
    """

    def __init__(
        self,
        server: WsusServer,
        poll_interval: float = 10.0,
        max_wait: float = 7200.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        cancel: Callable[[], bool] | None = None,
    ):
        self.server = server
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock
        self._cancel = cancel
        self.polls = 0

    def run(self, trigger: bool = True) -> bool:
        """Optionally start a sync, then block until the server is idle.

        Returns:
            True if this call started a synchronization.
        """
        started = False
        start = self._clock()
        if trigger and self.server.get_sync_status() == SyncStatus.IDLE:
            console.print("Starting synchronization...")
            self.server.start_sync()
            started = True
            self._await_start(start)
        self.wait_until_idle(start)
        return started

    def _await_start(self, start: float) -> None:
        """Give a just-started sync up to one poll interval to report RUNNING.

        StartSynchronization returns before the server changes state, so an
        immediate IDLE reading does not mean the sync has finished.
        """
        deadline = start + min(self.poll_interval, self.max_wait)
        while self.server.get_sync_status() == SyncStatus.IDLE:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            self._sleep(min(_START_POLL_SECONDS, remaining))

    def wait_until_idle(self, start: float | None = None) -> None:
        """Poll until the server reports IDLE.

        Args:
            start: Clock reading the max_wait budget counts from; now if omitted.

        Raises:
            SyncTimeoutError: still running after max_wait seconds.
            SyncCancelledError: the cancel hook returned True.
        """
        if start is None:
            start = self._clock()
        while True:
            self.polls += 1
            if self.server.get_sync_status() == SyncStatus.IDLE:
                return

            waited = self._clock() - start
            if waited >= self.max_wait:
                raise SyncTimeoutError(waited)
            if self._cancel is not None and self._cancel():
                raise SyncCancelledError("Synchronization wait cancelled")

            if self.polls == 1:
                console.print("Waiting for synchronization to finish...")
            self._sleep(min(self.poll_interval, max(self.max_wait - waited, 0.0)))
