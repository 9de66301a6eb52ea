"""Tests for the decision executor."""

from __future__ import annotations

import pytest

from wsus_groomer.action_log import ActionLog, setup_action_logger
from wsus_groomer.errors import MutationError
from wsus_groomer.executor import ActionExecutor
from wsus_groomer.models import Decision, DecisionKind, Phase

from tests.conftest import ALL_COMPUTERS, FakeWsusServer, make_update


def decision(kind: DecisionKind, reason: str | None = None) -> Decision:
    return Decision(kind=kind, reason=reason)


class TestActionExecutor:
    def test_skip_and_defer_make_no_call(self, action_log):
        update = make_update()
        server = FakeWsusServer([update])
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS)
        assert executor.execute(Phase.DECIDE, update, decision(DecisionKind.SKIP)) is None
        assert executor.execute(Phase.DECIDE, update, decision(DecisionKind.DEFER)) is None
        assert server.calls == []
        assert executor.records == []

    @pytest.mark.parametrize("kind,call", [
        (DecisionKind.DELETE, "delete"),
        (DecisionKind.DECLINE_ARCH, "decline"),
        (DecisionKind.DECLINE_LANGUAGE, "decline"),
        (DecisionKind.DECLINE_EXPIRED, "decline"),
        (DecisionKind.APPROVE, "approve"),
    ])
    def test_single_call_per_decision(self, action_log, kind, call):
        update = make_update()
        server = FakeWsusServer([update])
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS)
        record = executor.execute(Phase.DECIDE, update, decision(kind))
        assert server.calls == [(call, update.update_id)]
        assert record.success

    def test_approve_with_license(self, action_log):
        update = make_update(requires_license_agreement=True)
        server = FakeWsusServer([update])
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS)
        executor.execute(Phase.DECIDE, update, decision(DecisionKind.APPROVE_WITH_LICENSE))
        assert server.calls == [("accept_license", update.update_id), ("approve", update.update_id)]

    def test_license_failure_skips_approval(self, action_log):
        update = make_update(requires_license_agreement=True)
        server = FakeWsusServer([update], fail_on={update.update_id})
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS)
        record = executor.execute(Phase.DECIDE, update, decision(DecisionKind.APPROVE_WITH_LICENSE))
        assert server.calls == [("accept_license", update.update_id)]
        assert not record.success
        assert "License acceptance failed" in record.error

    def test_approval_without_group_fails(self, action_log):
        update = make_update()
        server = FakeWsusServer([update])
        executor = ActionExecutor(server, action_log, group=None)
        record = executor.execute(Phase.DECIDE, update, decision(DecisionKind.APPROVE))
        assert not record.success
        assert server.calls == []

    def test_dry_run(self, action_log):
        update = make_update()
        server = FakeWsusServer([update])
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS, dry_run=True)
        record = executor.execute(Phase.PRUNE, update, decision(DecisionKind.DELETE))
        assert server.calls == []
        assert record.success and record.dry_run
        assert update.update_id in server.catalog

    def test_failure_recorded_and_continues(self, action_log):
        update = make_update()
        server = FakeWsusServer([update], fail_on={update.update_id})
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS)
        record = executor.execute(Phase.DECIDE, update, decision(DecisionKind.DECLINE_BETA))
        assert not record.success
        assert record.error == "simulated server failure"
        assert executor.records == [record]

    def test_stop_on_error_raises(self, action_log):
        update = make_update()
        server = FakeWsusServer([update], fail_on={update.update_id})
        executor = ActionExecutor(server, action_log, group=ALL_COMPUTERS, stop_on_error=True)
        with pytest.raises(MutationError) as exc_info:
            executor.execute(Phase.DECIDE, update, decision(DecisionKind.DECLINE_ARCH, "x86"))
        assert exc_info.value.update_id == update.update_id
        assert exc_info.value.action == "decline-arch(x86)"
        assert len(executor.records) == 1

    def test_defer_written_to_action_log(self, tmp_path):
        path = tmp_path / "actions.log"
        log = ActionLog(setup_action_logger(path, name="wsus_groomer.tests.executor"))
        update = make_update(is_superseded=True)
        executor = ActionExecutor(FakeWsusServer([update]), log, group=ALL_COMPUTERS)

        assert executor.execute(Phase.DECIDE, update, decision(DecisionKind.DEFER)) is None
        log.close()
        assert f"[decide] DEFER {update.update_id}" in path.read_text(encoding="utf-8")
        assert executor.records == []
