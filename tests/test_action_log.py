"""Tests for the append-only action log."""

from __future__ import annotations

from wsus_groomer.action_log import ActionLog, format_action, format_decision, setup_action_logger
from wsus_groomer.models import ActionRecord, Decision, DecisionKind, Phase

from tests.conftest import make_update


def _record(**kwargs) -> ActionRecord:
    values = {
        "phase": Phase.DECIDE,
        "update_id": "3c1b6a2e-0f7c-4a0e-9f38-1c2d3e4f5a6b",
        "title": "Security Update (KB5001)",
        "decision": Decision(kind=DecisionKind.DECLINE_ARCH, reason="arm64"),
    }
    values.update(kwargs)
    return ActionRecord(**values)


class TestFormatAction:
    def test_success_line(self):
        line = format_action(_record())
        assert line == "[decide] DECLINE-ARCH(ARM64) 3c1b6a2e-0f7c-4a0e-9f38-1c2d3e4f5a6b 'Security Update (KB5001)'"

    def test_dry_run_tag(self):
        assert "[dry-run]" in format_action(_record(dry_run=True))

    def test_failure(self):
        line = format_action(_record(success=False, error="access denied"))
        assert line.endswith("FAILED: access denied")


class TestActionLog:
    def test_appends_across_runs(self, tmp_path):
        path = tmp_path / "logs" / "actions.log"

        first = ActionLog(setup_action_logger(path, name="wsus_groomer.tests.append"))
        first.note("first run")
        first.close()

        second = ActionLog(setup_action_logger(path, name="wsus_groomer.tests.append"))
        second.action(_record())
        second.fatal("server went away")
        second.close()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert lines[0].endswith("INFO first run")
        assert "DECLINE-ARCH(ARM64)" in lines[1]
        assert lines[2].endswith("ERROR ABORTED: server went away")
        # timestamped
        assert lines[0][:4].isdigit()

    def test_failed_action_logged_as_error(self, tmp_path):
        path = tmp_path / "actions.log"
        log = ActionLog(setup_action_logger(path, name="wsus_groomer.tests.error"))
        log.action(_record(success=False, error="timeout"))
        log.close()
        assert " ERROR " in path.read_text(encoding="utf-8")

    def test_no_file(self, tmp_path):
        log = ActionLog(setup_action_logger(None, name="wsus_groomer.tests.nofile"))
        log.action(_record())
        log.close()
        assert list(tmp_path.iterdir()) == []

    def test_defer_logged_skip_only_when_verbose(self, tmp_path):
        deferred = make_update("Security Update (KB4999)", is_superseded=True)
        skipped = make_update("Security Update (KB5005)", is_approved=True)

        quiet_path = tmp_path / "quiet.log"
        quiet = ActionLog(setup_action_logger(quiet_path, name="wsus_groomer.tests.quiet"))
        quiet.decision(Phase.DECIDE, deferred, Decision(kind=DecisionKind.DEFER))
        quiet.decision(Phase.DECIDE, skipped, Decision(kind=DecisionKind.SKIP))
        quiet.close()
        text = quiet_path.read_text(encoding="utf-8")
        assert f"DEFER {deferred.update_id}" in text
        assert "SKIP" not in text

        verbose_path = tmp_path / "verbose.log"
        verbose = ActionLog(setup_action_logger(verbose_path, name="wsus_groomer.tests.verbose", verbose=True))
        verbose.decision(Phase.DECIDE, skipped, Decision(kind=DecisionKind.SKIP))
        verbose.close()
        assert f"DEBUG [decide] SKIP {skipped.update_id}" in verbose_path.read_text(encoding="utf-8")


class TestFormatDecision:
    def test_line(self):
        update = make_update("Cumulative Update (KB5010)", update_id="id-1")
        line = format_decision(Phase.DECIDE, update, Decision(kind=DecisionKind.DEFER))
        assert line == "[decide] DEFER id-1 'Cumulative Update (KB5010)'"
