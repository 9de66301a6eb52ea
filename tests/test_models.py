"""Tests for Pydantic models -- validation, decisions, report summaries."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from wsus_groomer.models import (
    ActionRecord,
    ActionResult,
    Decision,
    DecisionKind,
    Phase,
    PublicationState,
    RunReport,
    UpdateRecord,
)

from tests.conftest import make_update


class TestPublicationState:
    @pytest.mark.parametrize("raw,expected", [
        ("Published", PublicationState.ACTIVE),
        ("Active", PublicationState.ACTIVE),
        ("Expired", PublicationState.EXPIRED),
        ("expired", PublicationState.EXPIRED),
        ("Revised", PublicationState.OTHER),
        (None, PublicationState.OTHER),
    ])
    def test_parse(self, raw, expected):
        assert PublicationState.parse(raw) == expected


class TestUpdateRecord:
    def test_defaults(self):
        update = UpdateRecord(update_id="x", title="t")
        assert update.legacy_name == ""
        assert update.product_titles == frozenset()
        assert update.publication_state == PublicationState.ACTIVE
        assert update.locale is None
        assert not update.is_approved

    def test_frozen(self):
        update = make_update()
        with pytest.raises(ValidationError):
            update.is_approved = True

    def test_json_roundtrip(self):
        update = make_update(product_titles=frozenset({"Windows 11", "Windows 10"}), locale="en-us")
        restored = UpdateRecord.model_validate(json.loads(update.model_dump_json()))
        assert restored == update


class TestDecision:
    def test_label(self):
        assert Decision(kind=DecisionKind.DECLINE_ARCH, reason="x86").label() == "decline-arch(x86)"
        assert Decision(kind=DecisionKind.APPROVE).label() == "approve"

    @pytest.mark.parametrize("kind,decline,approve,mutating", [
        (DecisionKind.DELETE, False, False, True),
        (DecisionKind.DECLINE_BETA, True, False, True),
        (DecisionKind.DECLINE_SUPERSEDED, True, False, True),
        (DecisionKind.APPROVE_WITH_LICENSE, False, True, True),
        (DecisionKind.DEFER, False, False, False),
        (DecisionKind.SKIP, False, False, False),
    ])
    def test_predicates(self, kind, decline, approve, mutating):
        decision = Decision(kind=kind)
        assert decision.is_decline is decline
        assert decision.is_approve is approve
        assert decision.is_mutating is mutating


class TestActionResult:
    def test_ok(self):
        assert ActionResult.ok().success
        assert ActionResult.ok(dry_run=True).dry_run

    def test_failed(self):
        result = ActionResult.failed("boom")
        assert not result.success
        assert result.error == "boom"


class TestRunReport:
    def _record(self, kind: DecisionKind, success: bool = True) -> ActionRecord:
        return ActionRecord(
            phase=Phase.DECIDE,
            update_id="id",
            title="title",
            decision=Decision(kind=kind),
            success=success,
            error=None if success else "failed",
        )

    def test_compute_summary(self):
        report = RunReport(
            server="http://wsus:8530",
            run_start=datetime.now(timezone.utc),
            actions=[
                self._record(DecisionKind.APPROVE),
                self._record(DecisionKind.APPROVE),
                self._record(DecisionKind.DECLINE_BETA, success=False),
            ],
        )
        summary = report.compute_summary()
        assert summary["approve"] == 2
        assert summary["decline-beta"] == 1
        assert summary["delete"] == 0
        assert summary["failed"] == 1
        assert report.has_failures()
        assert len(report.failures) == 1

    def test_empty_report(self):
        report = RunReport(server="s", run_start=datetime.now(timezone.utc))
        report.compute_summary()
        assert not report.has_failures()
        assert report.summary["failed"] == 0
