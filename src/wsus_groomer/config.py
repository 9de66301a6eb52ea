"""YAML configuration loader with defaults.

Configuration is layered: the packaged default YAML, an optional user YAML
file, then CLI overrides. Each layer produces a new frozen GroomerConfig;
nothing mutates a config after it is built.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from wsus_groomer.errors import ConfigError
from wsus_groomer.locales import DEFAULT_ALLOWED_LOCALES, KNOWN_LOCALES, normalize_locales

_DEFAULT_CONFIG_RESOURCE = "wsus_groomer.data"
_DEFAULT_CONFIG_FILE = "default_config.yaml"

# Classifications approved by rule 9. "Upgrades" is added by include_upgrades.
APPROVE_CLASSIFICATIONS: tuple[str, ...] = (
    "Critical Updates",
    "Definition Updates",
    "Feature Packs",
    "Security Updates",
    "Service Packs",
    "Update Rollups",
    "Updates",
)
UPGRADES_CLASSIFICATION = "Upgrades"

# Scalar fields checked before range validation. bool is excluded from the
# numeric fields because it is an int subclass.
_STR_FIELDS = ("server", "target_group", "log_file", "report_directory")
_INT_FIELDS = ("port", "command_timeout")
_NUMBER_FIELDS = ("sync_poll_interval", "sync_max_wait")
_BOOL_FIELDS = (
    "use_tls", "no_sync", "reset", "dry_run", "decline_only", "include_upgrades",
    "stop_on_error", "decline_ia64", "decline_arm64", "decline_x86", "decline_x64",
    "decline_preview", "decline_beta", "verbose",
)


@dataclass(frozen=True)
class GroomerConfig:
    """Immutable configuration for one run."""

    server: str = "localhost"
    port: int = 8530
    use_tls: bool = False
    target_group: str = "All Computers"

    no_sync: bool = False
    reset: bool = False
    dry_run: bool = False
    decline_only: bool = False
    include_upgrades: bool = False
    stop_on_error: bool = False

    decline_ia64: bool = True
    decline_arm64: bool = True
    decline_x86: bool = False
    decline_x64: bool = False
    decline_preview: bool = True
    decline_beta: bool = True

    allowed_locales: tuple[str, ...] = DEFAULT_ALLOWED_LOCALES
    known_locales: tuple[str, ...] = KNOWN_LOCALES

    sync_poll_interval: float = 10.0
    sync_max_wait: float = 7200.0
    command_timeout: int = 600

    log_file: str = "wsus-groomer.log"
    report_directory: str = "./reports"
    output_formats: tuple[str, ...] = ("console",)
    verbose: bool = False

    def __post_init__(self) -> None:
        self._check_types()
        if not self.server or not self.server.strip():
            raise ConfigError("Server address must not be empty")
        if not 0 < self.port < 65536:
            raise ConfigError(f"Port out of range: {self.port}")
        if self.sync_poll_interval <= 0:
            raise ConfigError("sync_poll_interval must be positive")
        if self.sync_max_wait < 0:
            raise ConfigError("sync_max_wait must not be negative")
        if self.command_timeout <= 0:
            raise ConfigError("command_timeout must be positive")
        if not self.decline_only and not self.target_group.strip():
            raise ConfigError("A target group is required unless decline-only is set")
        object.__setattr__(self, "allowed_locales", normalize_locales(self.allowed_locales))
        object.__setattr__(self, "known_locales", normalize_locales(self.known_locales))
        object.__setattr__(self, "output_formats", tuple(f.strip().lower() for f in self.output_formats if f.strip()))

    def _check_types(self) -> None:
        for name in _STR_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ConfigError(f"{name} must be a string, got {value!r}")
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        for name in _NUMBER_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{name} must be a number, got {value!r}")
        for name in _BOOL_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigError(f"{name} must be true or false, got {value!r}")

    @property
    def approve_classifications(self) -> frozenset[str]:
        if self.include_upgrades:
            return frozenset(APPROVE_CLASSIFICATIONS + (UPGRADES_CLASSIFICATION,))
        return frozenset(APPROVE_CLASSIFICATIONS)

    @property
    def endpoint(self) -> str:
        scheme = "https" if self.use_tls else "http"
        return f"{scheme}://{self.server}:{self.port}"

    @classmethod
    def from_yaml(cls, path: str | Path) -> GroomerConfig:
        """Load configuration from a YAML file on top of the built-in defaults."""
        with open(path, encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        base = cls.from_defaults()
        return replace(base, **_flatten(raw))

    @classmethod
    def from_defaults(cls) -> GroomerConfig:
        """Load built-in default configuration."""
        try:
            ref = resources.files(_DEFAULT_CONFIG_RESOURCE).joinpath(_DEFAULT_CONFIG_FILE)
            raw = yaml.safe_load(ref.read_text(encoding="utf-8")) or {}
        except (FileNotFoundError, ModuleNotFoundError, TypeError):
            return cls()
        return cls(**_flatten(raw))

    def with_overrides(self, **overrides: Any) -> GroomerConfig:
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return replace(self, **changes)


# YAML section/key -> GroomerConfig field
_YAML_KEYS: dict[tuple[str, str], str] = {
    ("server", "address"): "server",
    ("server", "port"): "port",
    ("server", "use_tls"): "use_tls",
    ("server", "target_group"): "target_group",
    ("sync", "enabled"): "no_sync",
    ("sync", "poll_interval"): "sync_poll_interval",
    ("sync", "max_wait"): "sync_max_wait",
    ("run", "reset"): "reset",
    ("run", "dry_run"): "dry_run",
    ("run", "decline_only"): "decline_only",
    ("run", "include_upgrades"): "include_upgrades",
    ("run", "stop_on_error"): "stop_on_error",
    ("run", "command_timeout"): "command_timeout",
    ("decline", "ia64"): "decline_ia64",
    ("decline", "arm64"): "decline_arm64",
    ("decline", "x86"): "decline_x86",
    ("decline", "x64"): "decline_x64",
    ("decline", "preview"): "decline_preview",
    ("decline", "beta"): "decline_beta",
    ("languages", "allowed"): "allowed_locales",
    ("languages", "known"): "known_locales",
    ("output", "log_file"): "log_file",
    ("output", "report_directory"): "report_directory",
    ("output", "formats"): "output_formats",
}


def _flatten(raw: dict) -> dict[str, Any]:
    """Translate the sectioned YAML layout into GroomerConfig keyword arguments."""
    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping")

    result: dict[str, Any] = {}
    for (section, key), field_name in _YAML_KEYS.items():
        section_data = raw.get(section)
        if not isinstance(section_data, dict) or key not in section_data:
            continue
        value = section_data[key]
        if field_name == "no_sync":
            if not isinstance(value, bool):
                raise ConfigError(f"{section}.{key} must be true or false, got {value!r}")
            value = not value
        elif field_name in ("allowed_locales", "known_locales", "output_formats"):
            if isinstance(value, str):
                value = value.split(",")
            elif value is not None and not isinstance(value, (list, tuple)):
                raise ConfigError(f"{section}.{key} must be a list, got {value!r}")
            value = tuple(str(v) for v in value or ())
        result[field_name] = value
    return result
