# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Persistent application settings for Retroshelf.

Settings are stored as a JSON file in the OS-appropriate config directory
(``~/.config/Retroshelf`` on Linux).  Loading never raises: a missing or
corrupt file yields defaults and unknown keys are ignored, so older and
newer builds can share one file.

Wrapper chains are three-state.  On disk ``null`` means inherit, ``[]``
means explicitly none and a non-empty list is an override; in memory they
are :class:`~retroshelf.launch.tristate.Override` values.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from PySide6.QtCore import QStandardPaths

from retroshelf.launch.models import EmulatorConfig, LaunchWrapper
from retroshelf.launch.tristate import Override

log = logging.getLogger(__name__)


# -- Defaults --------------------------------------------------------------

_APP_DIR_NAME = "Retroshelf"
_CONFIG_FILE  = "settings.json"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _config_dir() -> Path:
    """Return (and create) the per-user config directory."""
    base = QStandardPaths.writableLocation(
        QStandardPaths.StandardLocation.GenericConfigLocation,
    )
    path = Path(base) / _APP_DIR_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


# -- Wrapper chains --------------------------------------------------------

def wrappers_to_json(value: Override[LaunchWrapper]) -> list[dict[str, str]] | None:
    items = value.to_optional()
    if items is None:
        return None
    return [{"path": w.path, "args": w.args} for w in items]


def wrappers_from_json(raw: Any) -> Override[LaunchWrapper]:
    """Parse the ``null`` / ``[]`` / list encoding; junk entries are skipped."""
    if raw is None or not isinstance(raw, list):
        return Override.inherit()
    wrappers = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        path = str(entry.get("path") or "").strip()
        args = entry.get("args")
        wrappers.append(LaunchWrapper(path=path, args=str(args) if args else "{file}"))
    if raw and not wrappers:
        log.warning("Ignoring wrapper list without valid entries: %r", raw)
        return Override.inherit()
    return Override.from_optional(wrappers)


# -- Emulator profiles -----------------------------------------------------

# Older files store the emulator wrapper setting as a mode + list pair.
_MODE_INHERIT = "Inherit"
_MODE_NONE = "None"
_MODE_OVERRIDE = "Override"


def emulator_to_json(emulator: EmulatorConfig) -> dict[str, Any]:
    return {
        "id": emulator.id,
        "name": emulator.name,
        "path": emulator.path,
        "arguments": emulator.arguments,
        "native_wrappers": wrappers_to_json(emulator.native_wrappers),
        "environment_overrides": dict(emulator.environment_overrides),
        "use_playlist_for_multi_disc": emulator.use_playlist_for_multi_disc,
        "uses_wine_prefix": emulator.uses_wine_prefix,
    }


def emulator_from_json(raw: dict[str, Any]) -> EmulatorConfig:
    data = dict(raw)
    mode = data.pop("native_wrapper_mode", None)
    legacy_list = data.pop("native_wrappers_override", None)
    if mode is not None:
        if mode == _MODE_NONE:
            wrappers = Override.empty()
        elif mode == _MODE_OVERRIDE:
            wrappers = wrappers_from_json(legacy_list or [])
        else:
            wrappers = Override.inherit()
    else:
        wrappers = wrappers_from_json(data.pop("native_wrappers", None))
    data.pop("native_wrappers", None)

    env = data.pop("environment_overrides", None)
    emulator = _safe_dataclass_from_dict(EmulatorConfig, data)
    emulator.native_wrappers = wrappers
    emulator.environment_overrides = _string_map(env)
    return emulator


def _string_map(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in raw.items()}


# -- Settings --------------------------------------------------------------

@dataclass
class AppSettings:
    """All user-facing settings.  Serialises to / from JSON."""

    # Launching
    default_native_wrappers: Override[LaunchWrapper] = field(default_factory=Override.inherit)
    emulators: list[EmulatorConfig] = field(default_factory=list)
    prefer_portable_launch_paths: bool = False
    min_play_seconds: int = 5          # shorter sessions are not counted

    # Storage
    data_root_override: str = ""       # empty = AppImage dir / project root

    # Debug
    debug_logging: bool = False
    debug_log_level: str = "WARNING"   # DEBUG / INFO / WARNING / ERROR

    @classmethod
    def load(cls) -> AppSettings:
        """Load settings from disk, falling back to defaults for any
        missing or invalid keys.  Unknown keys are silently ignored so that
        adding/removing fields between versions never causes a crash.
        """
        path = _config_dir() / _CONFIG_FILE
        if not path.exists():
            return cls()
        try:
            return cls.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except Exception:
            log.warning("Ignoring unreadable settings file %s", path, exc_info=True)
            return cls()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AppSettings:
        raw = dict(raw)
        emulators = [
            emulator_from_json(e) for e in raw.pop("emulators", []) or []
            if isinstance(e, dict)
        ]
        wrappers = wrappers_from_json(raw.pop("default_native_wrappers", None))
        settings = _safe_dataclass_from_dict(cls, raw)
        settings.emulators = emulators
        settings.default_native_wrappers = wrappers
        if settings.debug_log_level not in _LOG_LEVELS:
            settings.debug_log_level = "WARNING"
        return settings

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_native_wrappers": wrappers_to_json(self.default_native_wrappers),
            "emulators": [emulator_to_json(e) for e in self.emulators],
            "prefer_portable_launch_paths": self.prefer_portable_launch_paths,
            "min_play_seconds": self.min_play_seconds,
            "data_root_override": self.data_root_override,
            "debug_logging": self.debug_logging,
            "debug_log_level": self.debug_log_level,
        }

    def save(self) -> None:
        """Write current settings to disk."""
        path = _config_dir() / _CONFIG_FILE
        path.write_text(
            json.dumps(self.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def add_emulator(self, entry: EmulatorConfig) -> None:
        self.emulators.append(entry)

    def remove_emulator(self, index: int) -> None:
        if 0 <= index < len(self.emulators):
            self.emulators.pop(index)

    def emulator_by_id(self, emulator_id: str | None) -> EmulatorConfig | None:
        if not emulator_id:
            return None
        return next((e for e in self.emulators if e.id == emulator_id), None)

    def emulator_names(self) -> list[str]:
        """Return a list of all configured emulator display names."""
        return [e.display_name() for e in self.emulators]


def _safe_dataclass_from_dict(dataclass_type: type, value: dict[str, Any]):
    """Build dataclass instance while ignoring unknown serialized keys."""
    known = {f.name for f in fields(dataclass_type)}
    filtered = {k: v for k, v in value.items() if k in known}
    return dataclass_type(**filtered)
