"""Shared test fixtures and an in-memory WSUS server."""

from __future__ import annotations

import sys
import uuid

import pytest

from wsus_groomer.action_log import ActionLog, setup_action_logger
from wsus_groomer.config import GroomerConfig
from wsus_groomer.models import (
    ActionResult,
    ComputerGroup,
    PublicationState,
    SyncStatus,
    UpdateRecord,
)
from wsus_groomer.server.base import DEFAULT_APPROVAL_ACTION, WsusServer

# Platform skip markers
windows_only = pytest.mark.skipif(
    sys.platform != "win32",
    reason="Test requires Windows",
)

ALL_COMPUTERS = ComputerGroup(group_id="a0a08746-4dbe-4a37-9adf-9e7652c0b421", name="All Computers")


def make_update(title: str = "Security Update for Windows Server 2019 (KB5000001)", **kwargs) -> UpdateRecord:
    """Build an UpdateRecord with sensible defaults for tests."""
    values = {
        "update_id": str(uuid.uuid4()),
        "revision_number": 200,
        "title": title,
        "classification_title": "Security Updates",
        "product_titles": frozenset({"Windows Server 2019"}),
    }
    values.update(kwargs)
    return UpdateRecord(**values)


class FakeWsusServer(WsusServer):
    """In-memory WsusServer that records every call.

    Args:
        updates: Initial catalog.
        classifications: Subscribed classification titles.
        categories: Subscribed product titles.
        sync_statuses: Statuses returned by successive get_sync_status()
            calls; the last one repeats.
        supersedes: Map of update_id -> update_ids that become superseded
            once the key update is approved.
        fail_on: update_ids whose mutations fail.
    """

    def __init__(
        self,
        updates: list[UpdateRecord] | None = None,
        classifications: set[str] | None = None,
        categories: set[str] | None = None,
        sync_statuses: list[SyncStatus] | None = None,
        supersedes: dict[str, list[str]] | None = None,
        fail_on: set[str] | None = None,
        groups: list[ComputerGroup] | None = None,
        connect_error: Exception | None = None,
    ):
        self.catalog: dict[str, UpdateRecord] = {u.update_id: u for u in (updates or [])}
        self.classifications = classifications if classifications is not None else {
            "Security Updates", "Critical Updates", "Updates", "Definition Updates", "Upgrades",
        }
        self.categories = categories if categories is not None else {"Windows Server 2019"}
        self.sync_statuses = list(sync_statuses or [SyncStatus.IDLE])
        self.supersedes = supersedes or {}
        self.fail_on = fail_on or set()
        self.groups = groups if groups is not None else [ALL_COMPUTERS]
        self.connect_error = connect_error
        self.calls: list[tuple[str, str]] = []
        self.sync_started = 0

    # queries

    def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    def get_computer_groups(self) -> list[ComputerGroup]:
        return list(self.groups)

    def get_subscribed_classifications(self) -> set[str]:
        return set(self.classifications)

    def get_subscribed_categories(self) -> set[str]:
        return set(self.categories)

    def get_sync_status(self) -> SyncStatus:
        if len(self.sync_statuses) > 1:
            return self.sync_statuses.pop(0)
        return self.sync_statuses[0]

    def start_sync(self) -> None:
        self.sync_started += 1
        self.calls.append(("start_sync", ""))

    def get_all_updates(self) -> list[UpdateRecord]:
        return list(self.catalog.values())

    # mutations

    def _fail(self, update: UpdateRecord) -> ActionResult | None:
        if update.update_id in self.fail_on:
            return ActionResult.failed("simulated server failure")
        return None

    def _replace(self, update_id: str, **changes) -> None:
        self.catalog[update_id] = self.catalog[update_id].model_copy(update=changes)

    def delete_update(self, update: UpdateRecord) -> ActionResult:
        self.calls.append(("delete", update.update_id))
        failure = self._fail(update)
        if failure:
            return failure
        self.catalog.pop(update.update_id, None)
        return ActionResult.ok()

    def decline(self, update: UpdateRecord) -> ActionResult:
        self.calls.append(("decline", update.update_id))
        failure = self._fail(update)
        if failure:
            return failure
        self._replace(update.update_id, is_declined=True, is_approved=False)
        return ActionResult.ok()

    def approve(
        self,
        update: UpdateRecord,
        group: ComputerGroup,
        action: str = DEFAULT_APPROVAL_ACTION,
    ) -> ActionResult:
        self.calls.append(("approve", update.update_id))
        failure = self._fail(update)
        if failure:
            return failure
        self._replace(update.update_id, is_approved=True, is_declined=False)
        for superseded_id in self.supersedes.get(update.update_id, []):
            if superseded_id in self.catalog:
                self._replace(superseded_id, is_superseded=True)
        return ActionResult.ok()

    def accept_license_agreement(self, update: UpdateRecord) -> ActionResult:
        self.calls.append(("accept_license", update.update_id))
        failure = self._fail(update)
        if failure:
            return failure
        return ActionResult.ok()

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "start_sync"]


@pytest.fixture
def default_config() -> GroomerConfig:
    """Return a default config with no log file and a short sync wait."""
    return GroomerConfig(log_file="", sync_poll_interval=1.0, sync_max_wait=5.0)


@pytest.fixture
def action_log() -> ActionLog:
    return ActionLog(setup_action_logger(None, name="wsus_groomer.tests"))


@pytest.fixture
def expired_update() -> UpdateRecord:
    return make_update(
        "Update for Windows Server 2019 (KB4000001)",
        publication_state=PublicationState.EXPIRED,
    )
