"""Configuration management for Copilot Usage Export.

Handles Graph credentials, report selection, export location, retention,
and SharePoint upload targets. Configuration is loaded from a TOML file
(~/.copilot-usage-export/config.toml) with environment variable overrides
and passed explicitly to every component that needs it.

Typical usage::

    from copilot_usage_export.config import load_config

    config = load_config()
    problems = config.validate()
    export_dir = config.export_dir
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

APP_DIR = Path.home() / ".copilot-usage-export"
CONFIG_PATH = APP_DIR / "config.toml"
DEFAULT_EXPORT_DIR = APP_DIR / "exports"
DEFAULT_LOG_DIR = APP_DIR / "logs"

GRAPH_BASE_URL = "https://graph.microsoft.com"

DEFAULT_REPORT_TYPES = ["UserDetail", "UserCountSummary", "UserCountTrend"]
VALID_PERIODS = (7, 30, 90, 180)
DEFAULT_PERIOD_DAYS = 30
DEFAULT_RETENTION_DAYS = 30
DEFAULT_SHAREPOINT_LIBRARY = "Documents"

# Env var name -> Config attribute.
_ENV_VAR_MAP: dict[str, str] = {
    "COPILOT_EXPORT_TENANT_ID": "tenant_id",
    "COPILOT_EXPORT_CLIENT_ID": "client_id",
    "COPILOT_EXPORT_CLIENT_SECRET": "client_secret",
    "COPILOT_EXPORT_DIR": "export_dir",
    "COPILOT_EXPORT_SITE_ID": "site_id",
}


@dataclass
class Config:
    """Application configuration.

    Attributes:
        tenant_id: Entra ID tenant (directory) ID.
        client_id: App registration client ID with Reports.Read.All.
        client_secret: Client secret for the app registration.
        graph_base_url: Microsoft Graph root URL.
        report_types: Report type names to export, in processing order.
        period_days: Lookback period in days (7, 30, 90, or 180).
        export_dir: Local directory for CSV output.
        retention_days: Delete local exports older than this many days.
            0 disables the sweep.
        site_id: SharePoint site ID for uploads. Empty disables upload.
        library: Document library (drive) name on the site.
        folder: Folder path inside the library. Empty means the root.
        log_dir: Directory for the daily log file.
        log_level: Minimum level name for log output.
    """

    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    graph_base_url: str = GRAPH_BASE_URL
    report_types: list[str] = field(default_factory=lambda: list(DEFAULT_REPORT_TYPES))
    period_days: int = DEFAULT_PERIOD_DAYS
    export_dir: Path = DEFAULT_EXPORT_DIR
    retention_days: int = DEFAULT_RETENTION_DAYS
    site_id: str = ""
    library: str = DEFAULT_SHAREPOINT_LIBRARY
    folder: str = ""
    log_dir: Path = DEFAULT_LOG_DIR
    log_level: str = "INFO"

    @property
    def upload_enabled(self) -> bool:
        """True when a SharePoint site and library are configured."""
        return bool(self.site_id and self.library)

    def validate(self) -> list[str]:
        """Check the configuration for problems that would fail a run.

        Returns:
            Human-readable problem descriptions. Empty when valid.
        """
        problems: list[str] = []
        missing = [
            name
            for name, value in (
                ("tenant_id", self.tenant_id),
                ("client_id", self.client_id),
                ("client_secret", self.client_secret),
            )
            if not value
        ]
        if missing:
            problems.append(f"Missing Graph credentials: {', '.join(missing)}.")
        if self.period_days not in VALID_PERIODS:
            problems.append(
                f"Unsupported period_days {self.period_days}. "
                f"Use one of: {', '.join(str(p) for p in VALID_PERIODS)}."
            )
        if self.retention_days < 0:
            problems.append("retention_days must be 0 (disabled) or a positive number of days.")
        if not self.report_types:
            problems.append("No report types configured.")
        return problems


def _apply_toml(config: Config, data: dict[str, Any]) -> None:
    """Apply parsed TOML data to a Config instance.

    Args:
        config: Config instance to populate.
        data: Parsed TOML dictionary.
    """
    # --- Graph ---
    graph: dict[str, Any] = data.get("graph", {})
    if "tenant_id" in graph:
        config.tenant_id = str(graph["tenant_id"])
    if "client_id" in graph:
        config.client_id = str(graph["client_id"])
    if "client_secret" in graph:
        config.client_secret = str(graph["client_secret"])
    if "base_url" in graph:
        config.graph_base_url = str(graph["base_url"]).rstrip("/")

    # --- Export ---
    export: dict[str, Any] = data.get("export", {})
    if "report_types" in export:
        config.report_types = [str(r) for r in export["report_types"]]
    if "period_days" in export:
        config.period_days = int(export["period_days"])
    if "export_dir" in export:
        config.export_dir = Path(export["export_dir"]).expanduser()
    if "retention_days" in export:
        config.retention_days = int(export["retention_days"])

    # --- SharePoint ---
    sharepoint: dict[str, Any] = data.get("sharepoint", {})
    if "site_id" in sharepoint:
        config.site_id = str(sharepoint["site_id"])
    if "library" in sharepoint:
        config.library = str(sharepoint["library"])
    if "folder" in sharepoint:
        config.folder = str(sharepoint["folder"]).strip("/")

    # --- Logging ---
    logging_table: dict[str, Any] = data.get("logging", {})
    if "log_dir" in logging_table:
        config.log_dir = Path(logging_table["log_dir"]).expanduser()
    if "level" in logging_table:
        config.log_level = str(logging_table["level"]).upper()


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides.

    Args:
        config: Config instance to update.
    """
    for env_var, attr in _ENV_VAR_MAP.items():
        env_val = os.environ.get(env_var, "")
        if not env_val:
            continue
        if attr == "export_dir":
            config.export_dir = Path(env_val).expanduser()
        else:
            setattr(config, attr, env_val)


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file and environment.

    Resolution order for each setting:
        1. Environment variable (credentials, export dir, site ID)
        2. Value in config.toml
        3. Built-in default

    Args:
        path: Config file to read. Defaults to CONFIG_PATH.

    Returns:
        Populated Config instance.
    """
    config = Config()
    source = path or CONFIG_PATH

    if source.exists():
        with open(source, "rb") as f:
            _apply_toml(config, tomllib.load(f))

    _apply_env_overrides(config)

    return config


def write_config(
    config: Config,
    path: Path | None = None,
    *,
    include_secret: bool = False,
) -> None:
    """Serialize a Config to TOML and write to disk.

    The client secret is left out unless ``include_secret`` is set, so
    starter files can be committed or shared and the secret supplied via
    ``COPILOT_EXPORT_CLIENT_SECRET``.

    If the file already exists, its permissions are preserved after write.

    Args:
        config: Config instance to serialize.
        path: File path to write. Defaults to CONFIG_PATH.
        include_secret: Write ``client_secret`` into the file.
    """
    import tomlkit

    target = path or CONFIG_PATH

    # Capture existing permissions before overwriting.
    existing_mode: int | None = None
    if target.exists():
        existing_mode = target.stat().st_mode & 0o777

    doc = tomlkit.document()

    # --- Graph ---
    graph_table = tomlkit.table()
    graph_table.add("tenant_id", config.tenant_id)
    graph_table.add("client_id", config.client_id)
    if include_secret and config.client_secret:
        graph_table.add("client_secret", config.client_secret)
    if config.graph_base_url != GRAPH_BASE_URL:
        graph_table.add("base_url", config.graph_base_url)
    doc.add("graph", graph_table)

    # --- Export ---
    export_table = tomlkit.table()
    export_table.add("report_types", list(config.report_types))
    export_table.add("period_days", config.period_days)
    export_table.add("export_dir", str(config.export_dir))
    export_table.add("retention_days", config.retention_days)
    doc.add("export", export_table)

    # --- SharePoint ---
    sharepoint_table = tomlkit.table()
    sharepoint_table.add("site_id", config.site_id)
    sharepoint_table.add("library", config.library)
    sharepoint_table.add("folder", config.folder)
    doc.add("sharepoint", sharepoint_table)

    # --- Logging ---
    logging_table = tomlkit.table()
    logging_table.add("log_dir", str(config.log_dir))
    logging_table.add("level", config.log_level)
    doc.add("logging", logging_table)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(tomlkit.dumps(doc), encoding="utf-8")

    if existing_mode is not None:
        target.chmod(existing_mode)

