"""WsusServer backed by the UpdateServices .NET API through PowerShell.

Each call runs one PowerShell process that loads
Microsoft.UpdateServices.Administration, opens the server with
AdminProxy::GetUpdateServer and performs a single operation. Results are
returned as JSON and mapped onto the pydantic models here.
"""

from __future__ import annotations

import re

from wsus_groomer.errors import ServerConnectionError, WsusServerError
from wsus_groomer.models import (
    ActionResult,
    ComputerGroup,
    PublicationState,
    SyncStatus,
    UpdateRecord,
)
from wsus_groomer.server.base import DEFAULT_APPROVAL_ACTION, WsusServer
from wsus_groomer.server.powershell import PowerShellResult, ps_quote, run_ps

_GUID = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")

_APPROVAL_ACTIONS = ("Install", "Uninstall", "NotApproved")

# Flattens IUpdate into the fields UpdateRecord mirrors.
_UPDATE_PROJECTION = (
    "$wsus.GetUpdates() | ForEach-Object {"
    "  [pscustomobject]@{"
    "    UpdateId = $_.Id.UpdateId.ToString();"
    "    RevisionNumber = $_.Id.RevisionNumber;"
    "    Title = $_.Title;"
    "    LegacyName = $_.LegacyName;"
    "    UpdateClassificationTitle = $_.UpdateClassificationTitle;"
    "    ProductTitles = @($_.ProductTitles);"
    "    IsApproved = $_.IsApproved;"
    "    IsDeclined = $_.IsDeclined;"
    "    IsBeta = $_.IsBeta;"
    "    IsSuperseded = $_.IsSuperseded;"
    "    IsWsusInfrastructureUpdate = $_.IsWsusInfrastructureUpdate;"
    "    RequiresLicenseAgreementAcceptance = $_.RequiresLicenseAgreementAcceptance;"
    "    PublicationState = $_.PublicationState.ToString();"
    "    Locale = $(if ($_.PSObject.Properties['Locale']) { [string]$_.Locale } else { $null })"
    "  }"
    "}"
)


def parse_update(raw: dict) -> UpdateRecord:
    """Map one projected IUpdate object onto an UpdateRecord."""
    products = raw.get("ProductTitles") or []
    if isinstance(products, str):
        products = [products]
    locale = raw.get("Locale")
    return UpdateRecord(
        update_id=str(raw.get("UpdateId", "")),
        revision_number=int(raw.get("RevisionNumber") or 0),
        title=str(raw.get("Title") or ""),
        legacy_name=str(raw.get("LegacyName") or ""),
        classification_title=str(raw.get("UpdateClassificationTitle") or ""),
        product_titles=frozenset(str(p) for p in products),
        is_approved=bool(raw.get("IsApproved")),
        is_declined=bool(raw.get("IsDeclined")),
        is_beta=bool(raw.get("IsBeta")),
        is_superseded=bool(raw.get("IsSuperseded")),
        is_wsus_infrastructure_update=bool(raw.get("IsWsusInfrastructureUpdate")),
        requires_license_agreement=bool(raw.get("RequiresLicenseAgreementAcceptance")),
        publication_state=PublicationState.parse(raw.get("PublicationState")),
        locale=str(locale) if locale else None,
    )


def parse_sync_status(raw: object) -> SyncStatus:
    """SynchronizationStatus.NotProcessing (0) is idle; Running and Stopping are not."""
    value = str(raw or "").strip().lower()
    if value in ("notprocessing", "0"):
        return SyncStatus.IDLE
    return SyncStatus.RUNNING


class PowerShellWsusServer(WsusServer):
    """WSUS session driven through Windows PowerShell."""

    def __init__(self, address: str, port: int = 8530, use_tls: bool = False, timeout: int = 600):
        self.address = address
        self.port = port
        self.use_tls = use_tls
        self.timeout = timeout

    def _prelude(self) -> str:
        tls = "$true" if self.use_tls else "$false"
        return (
            "[void][Reflection.Assembly]::LoadWithPartialName('Microsoft.UpdateServices.Administration');"
            "$wsus = [Microsoft.UpdateServices.Administration.AdminProxy]::GetUpdateServer("
            f"{ps_quote(self.address)}, {tls}, {int(self.port)});"
        )

    def _update_lookup(self, update: UpdateRecord) -> str:
        if not _GUID.match(update.update_id):
            raise ValueError(f"Not an update GUID: {update.update_id!r}")
        return (
            "$rid = New-Object Microsoft.UpdateServices.Administration.UpdateRevisionId("
            f"[guid]{ps_quote(update.update_id)}, {int(update.revision_number)});"
            "$update = $wsus.GetUpdate($rid);"
        )

    def _query(self, body: str, what: str) -> PowerShellResult:
        result = run_ps(self._prelude() + body, timeout=self.timeout, as_json=True)
        if not result.success:
            raise WsusServerError(f"Failed to {what}: {result.error or 'unknown error'}")
        return result

    def _mutate(self, body: str) -> ActionResult:
        result = run_ps(self._prelude() + body, timeout=self.timeout, as_json=False)
        if not result.success:
            return ActionResult.failed(result.error or "unknown error")
        return ActionResult.ok()

    def connect(self) -> None:
        result = run_ps(
            self._prelude() + "[pscustomobject]@{ Name = $wsus.Name; Version = $wsus.Version.ToString() }",
            timeout=min(self.timeout, 120),
            as_json=True,
        )
        if not result.success:
            raise ServerConnectionError(
                f"Cannot connect to WSUS at {self.address}:{self.port}: {result.error or 'unknown error'}"
            )

    def get_computer_groups(self) -> list[ComputerGroup]:
        result = self._query(
            "$wsus.GetComputerTargetGroups() | ForEach-Object {"
            " [pscustomobject]@{ Id = $_.Id.ToString(); Name = $_.Name } }",
            "list computer groups",
        )
        return [
            ComputerGroup(group_id=str(item.get("Id", "")), name=str(item.get("Name", "")))
            for item in result.as_list()
        ]

    def _subscription_titles(self, method: str, what: str) -> set[str]:
        result = self._query(
            f"$wsus.GetSubscription().{method}() | ForEach-Object {{ [pscustomobject]@{{ Title = $_.Title }} }}",
            what,
        )
        return {str(item.get("Title", "")) for item in result.as_list() if item.get("Title")}

    def get_subscribed_classifications(self) -> set[str]:
        return self._subscription_titles("GetUpdateClassifications", "read subscribed classifications")

    def get_subscribed_categories(self) -> set[str]:
        return self._subscription_titles("GetUpdateCategories", "read subscribed categories")

    def get_sync_status(self) -> SyncStatus:
        result = self._query(
            "[pscustomobject]@{ Status = $wsus.GetSubscription().GetSynchronizationStatus().ToString() }",
            "read synchronization status",
        )
        rows = result.as_list()
        return parse_sync_status(rows[0].get("Status") if rows else None)

    def start_sync(self) -> None:
        result = run_ps(
            self._prelude() + "$wsus.GetSubscription().StartSynchronization()",
            timeout=self.timeout,
            as_json=False,
        )
        if not result.success:
            raise WsusServerError(f"Failed to start synchronization: {result.error or 'unknown error'}")

    def get_all_updates(self) -> list[UpdateRecord]:
        result = self._query(_UPDATE_PROJECTION, "enumerate updates")
        return [parse_update(item) for item in result.as_list() if isinstance(item, dict)]

    def delete_update(self, update: UpdateRecord) -> ActionResult:
        if not _GUID.match(update.update_id):
            return ActionResult.failed(f"Not an update GUID: {update.update_id!r}")
        return self._mutate(f"$wsus.DeleteUpdate([guid]{ps_quote(update.update_id)})")

    def decline(self, update: UpdateRecord) -> ActionResult:
        try:
            lookup = self._update_lookup(update)
        except ValueError as exc:
            return ActionResult.failed(str(exc))
        return self._mutate(lookup + "$update.Decline()")

    def approve(
        self,
        update: UpdateRecord,
        group: ComputerGroup,
        action: str = DEFAULT_APPROVAL_ACTION,
    ) -> ActionResult:
        if action not in _APPROVAL_ACTIONS:
            return ActionResult.failed(f"Unsupported approval action: {action}")
        try:
            lookup = self._update_lookup(update)
        except ValueError as exc:
            return ActionResult.failed(str(exc))
        return self._mutate(
            lookup
            + f"$group = $wsus.GetComputerTargetGroup([guid]{ps_quote(group.group_id)});"
            + f"[void]$update.Approve([Microsoft.UpdateServices.Administration.UpdateApprovalAction]::{action}, $group)"
        )

    def accept_license_agreement(self, update: UpdateRecord) -> ActionResult:
        try:
            lookup = self._update_lookup(update)
        except ValueError as exc:
            return ActionResult.failed(str(exc))
        return self._mutate(lookup + "$update.AcceptLicenseAgreement()")
