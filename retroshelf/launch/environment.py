# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Effective environment variables for a launch.

Levels are applied emulator -> node -> item, later levels overwriting
earlier keys.  Only the nearest node that defines any variable takes
part; ancestors above it are not merged in.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Sequence

from .models import EmulatorConfig, MediaItem, MediaNode
from .node_chain import nearest_first

# Values for these keys may be stored relative to the data root.
DATA_ROOT_PATH_KEYS = frozenset({"PROTONPATH", "STEAM_COMPAT_DATA_PATH"})


def resolve_environment(
    item: MediaItem,
    chain: Sequence[MediaNode],
    emulator: EmulatorConfig | None,
) -> dict[str, str]:
    """Merge the three levels into a fresh dict.  Inputs are not touched."""
    env: dict[str, str] = {}

    if emulator is not None:
        _merge_into(env, emulator.environment_overrides)

    for node in nearest_first(chain):
        if node.environment_overrides:
            _merge_into(env, node.environment_overrides)
            break

    _merge_into(env, item.environment_overrides)
    return env


def _merge_into(env: dict[str, str], overrides: Mapping[str, str] | None) -> None:
    if not overrides:
        return
    for key, value in overrides.items():
        key = (key or "").strip()
        if not key:
            continue
        env[key] = (value or "").strip()


def normalize_data_root_paths(env: Mapping[str, str], data_root: str | os.PathLike) -> dict[str, str]:
    """Anchor relative ``PROTONPATH`` / ``STEAM_COMPAT_DATA_PATH`` values at *data_root*."""
    result = dict(env)
    for key, value in env.items():
        if key.upper() not in DATA_ROOT_PATH_KEYS or not value:
            continue
        if os.path.isabs(value):
            continue
        result[key] = os.path.normpath(os.path.join(os.fspath(data_root), value))
    return result


def apply_proton_wine_fallback(
    env: dict[str, str],
    proton_path: str,
    base_environ: Mapping[str, str],
) -> None:
    """Point plain Wine tooling at the binaries bundled inside a Proton build.

    Used when a Proton runtime is configured without ``umu-run`` in front
    of it.  Only files and directories that exist are exported.
    """
    if not proton_path or not proton_path.strip():
        return

    files = Path(proton_path) / "files"
    bin_dir = files / "bin"
    for key, name in (("WINE", "wine"), ("WINESERVER", "wineserver"), ("WINE64", "wine64")):
        candidate = bin_dir / name
        if candidate.is_file():
            env[key] = str(candidate)

    if bin_dir.is_dir():
        env["PATH"] = _prepend_paths([str(bin_dir)], env.get("PATH", base_environ.get("PATH", "")))

    lib64 = files / "lib64"
    lib32 = files / "lib"
    ld_parts = [str(p) for p in (lib64, lib32) if p.is_dir()]
    if ld_parts:
        env["LD_LIBRARY_PATH"] = _prepend_paths(
            ld_parts, env.get("LD_LIBRARY_PATH", base_environ.get("LD_LIBRARY_PATH", "")),
        )

    dll_parts = [str(p) for p in (lib64 / "wine", lib32 / "wine") if p.is_dir()]
    if dll_parts:
        env["WINEDLLPATH"] = os.pathsep.join(dll_parts)


def _prepend_paths(parts: list[str], existing: str) -> str:
    if existing and existing.strip():
        return os.pathsep.join(parts + [existing])
    return os.pathsep.join(parts)


def format_environment_prefix(env: Mapping[str, str]) -> str:
    """Shell-style ``KEY=value`` list; values with whitespace are double-quoted."""
    parts = []
    for key, value in env.items():
        if any(ch.isspace() for ch in value):
            parts.append(f'{key}="{value}"')
        else:
            parts.append(f"{key}={value}")
    return " ".join(parts)
