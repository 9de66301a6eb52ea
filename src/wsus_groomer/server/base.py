"""WsusServer abstract base class -- the administrative API boundary.

Read-only queries raise WsusServerError when the server cannot answer.
Mutating calls never raise for a server-side failure; they return an
ActionResult so the caller can decide whether to continue.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from wsus_groomer.models import ActionResult, ComputerGroup, SyncStatus, UpdateRecord

DEFAULT_APPROVAL_ACTION = "Install"


class WsusServer(ABC):
    """Abstract WSUS server session."""

    @abstractmethod
    def connect(self) -> None:
        """Open (or verify) the session.

        Raises:
            ServerConnectionError: the server is unreachable or refused us.
        """
        ...

    @abstractmethod
    def get_computer_groups(self) -> list[ComputerGroup]:
        ...

    @abstractmethod
    def get_subscribed_classifications(self) -> set[str]:
        """Titles of the classifications in the server subscription."""
        ...

    @abstractmethod
    def get_subscribed_categories(self) -> set[str]:
        """Titles of the product categories in the server subscription."""
        ...

    @abstractmethod
    def get_sync_status(self) -> SyncStatus:
        ...

    @abstractmethod
    def start_sync(self) -> None:
        ...

    @abstractmethod
    def get_all_updates(self) -> list[UpdateRecord]:
        ...

    @abstractmethod
    def delete_update(self, update: UpdateRecord) -> ActionResult:
        ...

    @abstractmethod
    def decline(self, update: UpdateRecord) -> ActionResult:
        ...

    @abstractmethod
    def approve(
        self,
        update: UpdateRecord,
        group: ComputerGroup,
        action: str = DEFAULT_APPROVAL_ACTION,
    ) -> ActionResult:
        ...

    @abstractmethod
    def accept_license_agreement(self, update: UpdateRecord) -> ActionResult:
        ...

    def find_group(self, name: str) -> ComputerGroup | None:
        """Look up a computer group by exact name."""
        for group in self.get_computer_groups():
            if group.name == name:
                return group
        return None
