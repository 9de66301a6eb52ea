"""Core Pydantic models for wsus-groomer."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PublicationState(str, Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: object) -> PublicationState:
        """Map the server's PublicationState string onto the three states we care about.

        The administration API reports "Published" for live updates; older
        tooling reports "Active". Both count as ACTIVE.
        """
        value = str(raw or "").strip().lower()
        if value in ("published", "active", "0"):
            return cls.ACTIVE
        if value in ("expired", "1"):
            return cls.EXPIRED
        return cls.OTHER


class SyncStatus(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"


class Phase(str, Enum):
    SYNC = "sync"
    PRUNE = "prune"
    DECIDE = "decide"
    RESOLVE = "resolve"


class UpdateRecord(BaseModel):
    """Read-only mirror of one update as reported by the server."""

    model_config = ConfigDict(frozen=True)

    update_id: str
    revision_number: int = 0
    title: str
    legacy_name: str = ""
    classification_title: str = ""
    product_titles: frozenset[str] = Field(default_factory=frozenset)
    is_approved: bool = False
    is_declined: bool = False
    is_beta: bool = False
    is_superseded: bool = False
    is_wsus_infrastructure_update: bool = False
    requires_license_agreement: bool = False
    publication_state: PublicationState = PublicationState.ACTIVE
    locale: str | None = None


class ComputerGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    group_id: str
    name: str


class DecisionKind(str, Enum):
    DELETE = "delete"
    DECLINE_ARCH = "decline-arch"
    DECLINE_PREVIEW = "decline-preview"
    DECLINE_BETA = "decline-beta"
    DECLINE_LANGUAGE = "decline-language"
    DECLINE_SUPERSEDED = "decline-superseded"
    DECLINE_EXPIRED = "decline-expired"
    DEFER = "defer"
    APPROVE = "approve"
    APPROVE_WITH_LICENSE = "approve-with-license"
    SKIP = "skip"


DECLINE_KINDS = frozenset({
    DecisionKind.DECLINE_ARCH,
    DecisionKind.DECLINE_PREVIEW,
    DecisionKind.DECLINE_BETA,
    DecisionKind.DECLINE_LANGUAGE,
    DecisionKind.DECLINE_SUPERSEDED,
    DecisionKind.DECLINE_EXPIRED,
})

APPROVE_KINDS = frozenset({DecisionKind.APPROVE, DecisionKind.APPROVE_WITH_LICENSE})


class Decision(BaseModel):
    """Outcome of evaluating one update. Drives at most one mutating call."""

    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    reason: str | None = None

    @property
    def is_decline(self) -> bool:
        return self.kind in DECLINE_KINDS

    @property
    def is_approve(self) -> bool:
        return self.kind in APPROVE_KINDS

    @property
    def is_mutating(self) -> bool:
        return self.kind not in (DecisionKind.SKIP, DecisionKind.DEFER)

    def label(self) -> str:
        """Short human-readable form, e.g. ``decline-arch(ia64)``."""
        if self.reason:
            return f"{self.kind.value}({self.reason})"
        return self.kind.value


class ActionResult(BaseModel):
    """Result of a single mutating call against the server."""

    success: bool
    error: str | None = None
    dry_run: bool = False

    @classmethod
    def ok(cls, dry_run: bool = False) -> ActionResult:
        return cls(success=True, dry_run=dry_run)

    @classmethod
    def failed(cls, error: str) -> ActionResult:
        return cls(success=False, error=error)


class ActionRecord(BaseModel):
    phase: Phase
    update_id: str
    title: str
    decision: Decision
    success: bool = True
    error: str | None = None
    dry_run: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RunReport(BaseModel):
    server: str
    dry_run: bool = False
    run_start: datetime
    run_end: datetime | None = None
    actions: list[ActionRecord] = Field(default_factory=list)
    summary: dict = Field(default_factory=dict)
    aborted: bool = False
    error_message: str | None = None

    def compute_summary(self) -> dict:
        """Count actions by decision kind, plus failures."""
        counts: dict[str, int] = {kind.value: 0 for kind in DecisionKind}
        failures = 0
        for action in self.actions:
            counts[action.decision.kind.value] += 1
            if not action.success:
                failures += 1
        counts["failed"] = failures
        self.summary = counts
        return counts

    @property
    def failures(self) -> list[ActionRecord]:
        return [a for a in self.actions if not a.success]

    def has_failures(self) -> bool:
        return any(not a.success for a in self.actions)
