"""Run orchestration: sync gate, prune, decide, resolve, report assembly."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from wsus_groomer.action_log import ActionLog
from wsus_groomer.config import GroomerConfig
from wsus_groomer.decision import decide, decide_pass_two
from wsus_groomer.errors import GroomerError, WsusServerError
from wsus_groomer.executor import ActionExecutor
from wsus_groomer.models import (
    ComputerGroup,
    Decision,
    DecisionKind,
    Phase,
    RunReport,
    UpdateRecord,
)
from wsus_groomer.selection import is_selected
from wsus_groomer.server.base import WsusServer
from wsus_groomer.sync import SyncGate

console = Console()

DELETE = Decision(kind=DecisionKind.DELETE)

INTERRUPTED = "Interrupted by user"


class Groomer:
    """Applies the decision table to a WSUS catalog in two passes.

    Phases:
        0. Sync gate: optionally start a sync, always wait for idle.
        1. Prune: delete updates the subscription no longer selects.
        2. Refetch: all updates with reset, otherwise non-declined ones.
        3. Decide and act: decline, approve, or defer each update.
        4. Resolve: decline whatever is still superseded or expired.
    """

    def __init__(
        self,
        config: GroomerConfig,
        server: WsusServer,
        action_log: ActionLog,
        sync_gate: SyncGate | None = None,
        show_progress: bool = True,
    ):
        self.config = config
        self.server = server
        self.action_log = action_log
        self.sync_gate = sync_gate or SyncGate(
            server,
            poll_interval=config.sync_poll_interval,
            max_wait=config.sync_max_wait,
        )
        self.show_progress = show_progress
        self.executor = ActionExecutor(
            server,
            action_log,
            dry_run=config.dry_run,
            stop_on_error=config.stop_on_error,
        )
        # Only populated under dry-run: updates a real run would already
        # have removed from later phases.
        self._deleted: set[str] = set()
        self._declined: set[str] = set()
        self.report: RunReport | None = None

    def run(self) -> RunReport:
        """Execute all phases and assemble the report.

        Fatal errors and interrupts are logged, recorded on the report and
        re-raised.
        """
        report = RunReport(
            server=self.config.endpoint,
            dry_run=self.config.dry_run,
            run_start=datetime.now(timezone.utc),
        )
        self.report = report
        self.action_log.note(
            f"Run started against {self.config.endpoint}"
            + (" (dry-run)" if self.config.dry_run else "")
        )

        try:
            self.server.connect()
            self.executor.group = self._resolve_group()

            self.sync()
            self.prune()
            self.decide_and_act()
            self.resolve_deferred()
        except GroomerError as exc:
            self._abort(report, str(exc))
            raise
        except KeyboardInterrupt:
            self._abort(report, INTERRUPTED)
            raise
        finally:
            report.actions = list(self.executor.records)
            report.run_end = datetime.now(timezone.utc)
            report.compute_summary()
            self.action_log.note(
                "Run finished: "
                + ", ".join(f"{k}={v}" for k, v in report.summary.items() if v)
            )

        return report

    def _abort(self, report: RunReport, message: str) -> None:
        report.aborted = True
        report.error_message = message
        self.action_log.fatal(message)

    def _resolve_group(self) -> ComputerGroup | None:
        if self.config.decline_only:
            return None
        group = self.server.find_group(self.config.target_group)
        if group is None:
            raise WsusServerError(f"Computer group not found: {self.config.target_group!r}")
        return group

    def sync(self) -> None:
        """Phase 0."""
        started = self.sync_gate.run(trigger=not self.config.no_sync)
        self.action_log.note(
            "Synchronization completed" if started else "Server synchronization idle"
        )

    def prune(self) -> None:
        """Phase 1: delete updates the subscription no longer selects."""
        classifications = self.server.get_subscribed_classifications()
        categories = self.server.get_subscribed_categories()
        updates = self.server.get_all_updates()

        for update in self._track(updates, "Pruning deselected updates"):
            if is_selected(update, classifications, categories):
                continue
            record = self.executor.execute(Phase.PRUNE, update, DELETE)
            if record is not None and record.success and self.config.dry_run:
                self._deleted.add(update.update_id)

    def candidates(self) -> list[UpdateRecord]:
        """Phase 2: the updates the decision table runs over."""
        updates = [u for u in self.server.get_all_updates() if u.update_id not in self._deleted]
        if self.config.reset:
            return updates
        return [u for u in updates if not u.is_declined]

    def decide_and_act(self) -> None:
        """Phase 3."""
        for update in self._track(self.candidates(), "Applying decision rules"):
            decision = decide(update, self.config)
            record = self.executor.execute(Phase.DECIDE, update, decision)
            if record is not None and record.success and self.config.dry_run and decision.is_decline:
                self._declined.add(update.update_id)

    def resolve_deferred(self) -> None:
        """Phase 4: decline updates still superseded or expired after approvals."""
        excluded = self._deleted | self._declined
        updates = [
            u for u in self.server.get_all_updates()
            if not u.is_declined and u.update_id not in excluded
        ]
        for update in self._track(updates, "Declining superseded and expired updates"):
            self.executor.execute(Phase.RESOLVE, update, decide_pass_two(update))

    def _track(self, updates: list[UpdateRecord], description: str) -> Iterator[UpdateRecord]:
        if not self.show_progress:
            yield from updates
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task(description, total=len(updates))
            for update in updates:
                yield update
                progress.advance(task)

