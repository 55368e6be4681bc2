# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Portable data locations.

The data root holds the library, prefixes and playlists so the whole
bundle can be moved next to an AppImage.  Lookup order:

1. ``RETROSHELF_DATA_ROOT`` environment variable
2. the directory containing ``$APPIMAGE``
3. the project root (source checkout)
"""

from __future__ import annotations

import os
from pathlib import Path

_DATA_ROOT_ENV = "RETROSHELF_DATA_ROOT"
_LIBRARY_DIR = "Library"


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def data_root(override: str = "") -> Path:
    if override and override.strip():
        return Path(override).expanduser().resolve()
    explicit = os.environ.get(_DATA_ROOT_ENV, "")
    if explicit.strip():
        return Path(explicit).expanduser().resolve()
    appimage = os.environ.get("APPIMAGE", "")
    if appimage.strip():
        parent = Path(appimage).parent
        if str(parent):
            return parent.resolve()
    return project_root()


def library_root(override: str = "") -> Path:
    return data_root(override) / _LIBRARY_DIR


def resolve_data_path(path: str, root: str | os.PathLike | None = None) -> str:
    """Absolute form of a stored path; relative paths live under the data root."""
    base = Path(root) if root is not None else data_root()
    if not path or not path.strip():
        return str(base)
    if os.path.isabs(path):
        return path
    return os.path.normpath(str(base / path))


def make_data_relative(path: str, root: str | os.PathLike | None = None) -> str:
    """Data-root relative form of *path*.  Relative input is returned as-is."""
    if not path or not path.strip():
        return ""
    if not os.path.isabs(path):
        return path
    base = Path(root) if root is not None else data_root()
    return os.path.relpath(path, str(base))


def try_make_data_relative(path: str, root: str | os.PathLike | None = None) -> str | None:
    """Relative path when *path* lies inside the data root, else ``None``."""
    if not path or not os.path.isabs(path):
        return None
    base = os.path.abspath(str(Path(root) if root is not None else data_root()))
    full = os.path.abspath(path)
    if full == base or full.startswith(base.rstrip(os.sep) + os.sep):
        return os.path.relpath(full, base)
    return None
