# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Compatibility-data root and Wine prefix locations.

Three on-disk layouts are recognised and never migrated:

* ``<root>/pfx/drive_c`` -- Proton style, compat data in ``<root>``
* ``<root>/drive_c``     -- plain Wine prefix (legacy layout)
* ``<root>``             -- UMU keeps the prefix flat in the compat root

Classification only stats the filesystem.  Directory creation happens
separately in :func:`ensure_prefix_dirs`, right before a process starts.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from .runtime import RuntimeKind

log = logging.getLogger(__name__)

PREFIXES_DIR = "Prefixes"
_MAX_FOLDER_NAME = 80
_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


@dataclass(frozen=True)
class PrefixPaths:
    compat_root: str
    wine_prefix: str


def is_pfx_leaf(path: str) -> bool:
    if not path or not path.strip():
        return False
    trimmed = path.rstrip("/\\")
    return os.path.basename(trimmed).lower() == "pfx"


def is_prefix_initialized(path: str) -> bool:
    """A prefix counts as initialised once Wine wrote ``system.reg`` or ``drive_c``."""
    if not path or not path.strip():
        return False
    root = Path(path)
    if not root.is_dir():
        return False
    return (root / "system.reg").is_file() or (root / "drive_c").is_dir()


def _parent_or_self(path: str) -> str:
    trimmed = path.rstrip("/\\") or path
    parent = os.path.dirname(trimmed)
    return parent or path


def resolve_prefix_paths(root: str, kind: RuntimeKind) -> PrefixPaths:
    """Work out ``(compat_root, wine_prefix)`` for *root* under runtime *kind*."""
    if kind is RuntimeKind.UMU:
        if is_pfx_leaf(root):
            compat = _parent_or_self(root)
            return PrefixPaths(compat, compat)
        return PrefixPaths(root, root)

    if is_pfx_leaf(root):
        return PrefixPaths(_parent_or_self(root), root)

    pfx = os.path.join(root, "pfx")

    if kind is RuntimeKind.PROTON:
        if is_prefix_initialized(root) and not is_prefix_initialized(pfx):
            return PrefixPaths(root, root)
        return PrefixPaths(root, pfx)

    # Plain Wine: keep the legacy <root>/drive_c layout unless a pfx/ child exists.
    if not os.path.isdir(os.path.join(root, "drive_c")):
        if os.path.isdir(os.path.join(pfx, "drive_c")) or os.path.isdir(pfx):
            return PrefixPaths(root, pfx)
    return PrefixPaths(root, root)


def ensure_prefix_dirs(paths: PrefixPaths) -> bool:
    """``mkdir -p`` both directories.  Failures are logged, never raised."""
    ok = True
    for directory in dict.fromkeys((paths.compat_root, paths.wine_prefix)):
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
        except OSError:
            ok = False
            log.warning("Could not create prefix directory %s", directory, exc_info=True)
    return ok


# -- Prefix folder naming --------------------------------------------------

def sanitize_prefix_folder_name(title: str) -> str:
    """Turn a title into a readable, filesystem-safe folder name."""
    if not title or not title.strip():
        return "Unknown"

    safe = title.replace(" ", "_")
    safe = _INVALID_NAME_CHARS.sub("", safe)
    while "__" in safe:
        safe = safe.replace("__", "_")
    safe = safe[:_MAX_FOLDER_NAME]
    return safe or "Unknown"


def generate_prefix_path(item_id: str, title: str) -> str:
    """Library-relative prefix location, e.g. ``Prefixes/42_Half-Life``."""
    return os.path.join(PREFIXES_DIR, f"{item_id}_{sanitize_prefix_folder_name(title)}")


def resolve_prefix_root(prefix_path: str | None, library_root: str) -> str:
    """Absolute prefix root; relative values live under *library_root*."""
    if not prefix_path or not prefix_path.strip():
        return ""
    if os.path.isabs(prefix_path):
        return prefix_path
    return os.path.normpath(os.path.join(library_root, prefix_path))
