# ABOUTME: Application settings persisted as JSON values in the app_settings table.
# ABOUTME: Covers file persistence switches, provider enablement, match weights, and refresh options.

import json
import logging
import sqlite3
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from shelfkeeper.metadata.options import RefreshOptions
from shelfkeeper.metadata.scoring import MatchWeights
from shelfkeeper.metadata.types import MetadataProvider

logger = logging.getLogger(__name__)

DEFAULT_COVERS_DIR = Path.home() / ".shelfkeeper" / "covers"
DEFAULT_FILE_PATTERN = "{authors}/{title}"

# Settings editable as plain values from the command line.
SIMPLE_KEYS: dict[str, type] = {
    "save_to_original_file": bool,
    "move_files_to_library_pattern": bool,
    "file_pattern": str,
    "provider_timeout": float,
    "covers_dir": str,
}


def _default_enabled_providers() -> frozenset[MetadataProvider]:
    return frozenset({MetadataProvider.OPEN_LIBRARY})


@dataclass(frozen=True)
class AppSettings:
    """Global settings for metadata persistence and refresh behavior."""

    save_to_original_file: bool = False
    move_files_to_library_pattern: bool = False
    file_pattern: str = DEFAULT_FILE_PATTERN
    provider_timeout: float = 30.0
    covers_dir: str = str(DEFAULT_COVERS_DIR)
    enabled_providers: frozenset[MetadataProvider] = field(
        default_factory=_default_enabled_providers
    )
    match_weights: MatchWeights = field(default_factory=MatchWeights)
    default_refresh_options: RefreshOptions = field(default_factory=RefreshOptions)
    library_refresh_options: dict[int, RefreshOptions] = field(default_factory=dict)

    def options_for_library(self, library_id: int | None) -> RefreshOptions:
        """Refresh options of a library, falling back to the global default."""
        if library_id is not None and library_id in self.library_refresh_options:
            return self.library_refresh_options[library_id]
        return self.default_refresh_options

    def to_rows(self) -> dict[str, Any]:
        """JSON-compatible value per settings key."""
        rows: dict[str, Any] = {key: getattr(self, key) for key in SIMPLE_KEYS}
        rows["enabled_providers"] = sorted(p.value for p in self.enabled_providers)
        rows["match_weights"] = self.match_weights.to_dict()
        rows["default_refresh_options"] = self.default_refresh_options.to_dict()
        rows["library_refresh_options"] = {
            str(library_id): options.to_dict()
            for library_id, options in self.library_refresh_options.items()
        }
        return rows

    @classmethod
    def from_rows(cls, rows: dict[str, Any]) -> "AppSettings":
        """Build settings from stored values; absent keys keep their defaults."""
        kwargs: dict[str, Any] = {key: rows[key] for key in SIMPLE_KEYS if key in rows}
        if "enabled_providers" in rows:
            kwargs["enabled_providers"] = frozenset(
                MetadataProvider.parse(p) for p in rows["enabled_providers"]
            )
        if "match_weights" in rows:
            kwargs["match_weights"] = MatchWeights.from_dict(rows["match_weights"])
        if "default_refresh_options" in rows:
            kwargs["default_refresh_options"] = RefreshOptions.from_dict(
                rows["default_refresh_options"]
            )
        if "library_refresh_options" in rows:
            kwargs["library_refresh_options"] = {
                int(library_id): RefreshOptions.from_dict(data)
                for library_id, data in rows["library_refresh_options"].items()
            }
        return cls(**kwargs)


def coerce_setting(key: str, raw: str) -> Any:
    """Convert a command-line string to the type of a simple setting.

    Raises:
        ValueError: On unknown keys or unconvertible values.
    """
    if key not in SIMPLE_KEYS:
        raise ValueError(f"Unknown setting: {key}")
    kind = SIMPLE_KEYS[key]
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Expected a boolean for {key}, got '{raw}'")
    return kind(raw)


class SettingsStore:
    """Reads and writes AppSettings in the app_settings table.

    Writes do not commit; wrap them in CatalogStore.transaction().
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def load(self) -> AppSettings:
        cursor = self._conn.execute("SELECT key, value FROM app_settings")
        rows: dict[str, Any] = {}
        for key, value in cursor.fetchall():
            try:
                rows[key] = json.loads(value)
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable setting %s", key)
        return AppSettings.from_rows(rows)

    def save(self, settings: AppSettings) -> None:
        for key, value in settings.to_rows().items():
            self._conn.execute(
                "INSERT OR REPLACE INTO app_settings (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )

    def set_value(self, key: str, raw: str) -> AppSettings:
        """Update one simple setting from its string form and persist it."""
        settings = replace(self.load(), **{key: coerce_setting(key, raw)})
        self.save(settings)
        return settings

    def set_enabled_providers(self, providers: list[str]) -> AppSettings:
        enabled = frozenset(MetadataProvider.parse(p) for p in providers)
        settings = replace(self.load(), enabled_providers=enabled)
        self.save(settings)
        return settings

    def set_refresh_options(
        self, options: RefreshOptions, library_id: int | None = None
    ) -> AppSettings:
        """Store refresh options globally or for one library."""
        current = self.load()
        if library_id is None:
            settings = replace(current, default_refresh_options=options)
        else:
            per_library = dict(current.library_refresh_options)
            per_library[library_id] = replace(options, library_id=library_id)
            settings = replace(current, library_refresh_options=per_library)
        self.save(settings)
        return settings
