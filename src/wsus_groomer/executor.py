"""Turns a Decision into the matching server call.

Dry-run short-circuits every mutating call but still produces and logs the
same ActionRecord a real run would, so the log of a dry run is the plan of
a real one.
"""

from __future__ import annotations

from wsus_groomer.action_log import ActionLog
from wsus_groomer.errors import MutationError
from wsus_groomer.models import (
    ActionRecord,
    ActionResult,
    ComputerGroup,
    Decision,
    DecisionKind,
    Phase,
    UpdateRecord,
)
from wsus_groomer.server.base import WsusServer


class ActionExecutor:
    """Executes decisions against a server and records the outcome."""

    def __init__(
        self,
        server: WsusServer,
        action_log: ActionLog,
        group: ComputerGroup | None = None,
        dry_run: bool = False,
        stop_on_error: bool = False,
    ):
        self.server = server
        self.action_log = action_log
        self.group = group
        self.dry_run = dry_run
        self.stop_on_error = stop_on_error
        self.records: list[ActionRecord] = []

    def execute(self, phase: Phase, update: UpdateRecord, decision: Decision) -> ActionRecord | None:
        """Carry out one decision.

        SKIP and DEFER perform no call and produce no record; they are only
        written to the action log.

        Raises:
            MutationError: the call failed and stop_on_error is set.
        """
        if not decision.is_mutating:
            self.action_log.decision(phase, update, decision)
            return None

        if self.dry_run:
            result = ActionResult.ok(dry_run=True)
        else:
            result = self._call(update, decision)

        record = ActionRecord(
            phase=phase,
            update_id=update.update_id,
            title=update.title,
            decision=decision,
            success=result.success,
            error=result.error,
            dry_run=result.dry_run,
        )
        self.records.append(record)
        self.action_log.action(record)

        if not result.success and self.stop_on_error:
            raise MutationError(update.update_id, decision.label(), result.error or "unknown error")
        return record

    def _call(self, update: UpdateRecord, decision: Decision) -> ActionResult:
        if decision.kind == DecisionKind.DELETE:
            return self.server.delete_update(update)
        if decision.is_decline:
            return self.server.decline(update)
        if decision.is_approve:
            if self.group is None:
                return ActionResult.failed("No target group resolved for approval")
            if decision.kind == DecisionKind.APPROVE_WITH_LICENSE:
                accepted = self.server.accept_license_agreement(update)
                if not accepted.success:
                    return ActionResult.failed(f"License acceptance failed: {accepted.error}")
            return self.server.approve(update, self.group)
        return ActionResult.failed(f"No server call for decision {decision.label()}")
