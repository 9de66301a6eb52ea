"""Ordered decision table applied to every retained update.

Rules are evaluated top to bottom and the first match wins. Ordering is part
of the contract: "x86-64 Driver" matches the x86 rule before the x64 rule is
ever consulted, and an Itanium update that also mentions x86 is declined as
ia64.

Superseded and expired updates are deferred rather than declined here,
because approvals made in the same pass can change which updates end up
superseded. decide_pass_two() settles them after approvals have landed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from wsus_groomer.config import GroomerConfig
from wsus_groomer.locales import matches_disallowed_locale
from wsus_groomer.models import Decision, DecisionKind, PublicationState, UpdateRecord

_IA64 = re.compile(r"ia64|itanium", re.IGNORECASE)
_ARM64 = re.compile(r"arm64", re.IGNORECASE)
_X86 = re.compile(r"x86", re.IGNORECASE)
_X64 = re.compile(r"x64", re.IGNORECASE)
_PREVIEW = re.compile(r"preview", re.IGNORECASE)
_BETA = re.compile(r"beta", re.IGNORECASE)

SKIP = Decision(kind=DecisionKind.SKIP)
DEFER = Decision(kind=DecisionKind.DEFER)


@dataclass(frozen=True)
class Rule:
    """One row of the decision table."""

    name: str
    applies: Callable[[UpdateRecord, GroomerConfig], bool]
    outcome: Callable[[UpdateRecord], Decision]


def _constant(decision: Decision) -> Callable[[UpdateRecord], Decision]:
    return lambda _update: decision


def _is_ia64(update: UpdateRecord, config: GroomerConfig) -> bool:
    if not config.decline_ia64:
        return False
    return bool(_IA64.search(update.title) or _IA64.search(update.legacy_name or ""))


def _is_language_restricted(update: UpdateRecord, config: GroomerConfig) -> bool:
    if not config.allowed_locales:
        return False
    return matches_disallowed_locale(update.title, config.known_locales, config.allowed_locales)


def is_superseded_or_expired(update: UpdateRecord) -> bool:
    return update.is_superseded or update.publication_state == PublicationState.EXPIRED


def _is_approvable(update: UpdateRecord, config: GroomerConfig) -> bool:
    if update.is_approved or config.decline_only:
        return False
    return (
        update.is_wsus_infrastructure_update
        or update.classification_title in config.approve_classifications
    )


def _approval(update: UpdateRecord) -> Decision:
    if update.requires_license_agreement:
        return Decision(kind=DecisionKind.APPROVE_WITH_LICENSE)
    return Decision(kind=DecisionKind.APPROVE)


RULES: tuple[Rule, ...] = (
    Rule(
        "ia64",
        _is_ia64,
        _constant(Decision(kind=DecisionKind.DECLINE_ARCH, reason="ia64")),
    ),
    Rule(
        "arm64",
        lambda u, c: c.decline_arm64 and bool(_ARM64.search(u.title)),
        _constant(Decision(kind=DecisionKind.DECLINE_ARCH, reason="arm64")),
    ),
    Rule(
        "x86",
        lambda u, c: c.decline_x86 and bool(_X86.search(u.title)),
        _constant(Decision(kind=DecisionKind.DECLINE_ARCH, reason="x86")),
    ),
    Rule(
        "x64",
        lambda u, c: c.decline_x64 and bool(_X64.search(u.title)),
        _constant(Decision(kind=DecisionKind.DECLINE_ARCH, reason="x64")),
    ),
    Rule(
        "preview",
        lambda u, c: c.decline_preview and bool(_PREVIEW.search(u.title)),
        _constant(Decision(kind=DecisionKind.DECLINE_PREVIEW)),
    ),
    Rule(
        "beta",
        lambda u, c: c.decline_beta and (u.is_beta or bool(_BETA.search(u.title))),
        _constant(Decision(kind=DecisionKind.DECLINE_BETA)),
    ),
    Rule(
        "language",
        _is_language_restricted,
        _constant(Decision(kind=DecisionKind.DECLINE_LANGUAGE)),
    ),
    Rule(
        "superseded-or-expired",
        lambda u, _c: is_superseded_or_expired(u),
        _constant(DEFER),
    ),
    Rule("approve", _is_approvable, _approval),
)


def decide(update: UpdateRecord, config: GroomerConfig) -> Decision:
    """Return the decision of the first matching rule, or SKIP."""
    for rule in RULES:
        if rule.applies(update, config):
            return rule.outcome(update)
    return SKIP


def decide_pass_two(update: UpdateRecord) -> Decision:
    """Second-pass decision: decline anything still superseded or expired."""
    if update.is_superseded:
        return Decision(kind=DecisionKind.DECLINE_SUPERSEDED)
    if update.publication_state == PublicationState.EXPIRED:
        return Decision(kind=DecisionKind.DECLINE_EXPIRED)
    return SKIP
