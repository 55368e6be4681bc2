# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""JSON snapshot of the media library tree.

This is the exchange format used by the command line front end; the
library itself may be persisted elsewhere.  Reading is lenient in the
same way as :mod:`retroshelf.core.config`: unknown keys are dropped and
malformed entries skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Iterator

from retroshelf.core.config import (
    _safe_dataclass_from_dict,
    _string_map,
    wrappers_from_json,
    wrappers_to_json,
)
from retroshelf.core.paths import try_make_data_relative
from retroshelf.launch.models import MediaFileKind, MediaFileRef, MediaItem, MediaNode, MediaType

log = logging.getLogger(__name__)


# -- Reading ---------------------------------------------------------------

def load_library(path: Path) -> list[MediaNode]:
    """Read root nodes from *path*.  Raises ``OSError`` / ``ValueError`` on bad files."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("nodes", [])
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a list of nodes")
    return [node_from_json(n) for n in raw if isinstance(n, dict)]


def node_from_json(raw: dict[str, Any]) -> MediaNode:
    data = dict(raw)
    children = [node_from_json(c) for c in data.pop("children", None) or [] if isinstance(c, dict)]
    items = [item_from_json(i) for i in data.pop("items", None) or [] if isinstance(i, dict)]
    wrappers = wrappers_from_json(data.pop("native_wrappers_override", None))
    env = data.pop("environment_overrides", None)
    node = _safe_dataclass_from_dict(MediaNode, data)
    node.children = children
    node.items = items
    node.native_wrappers_override = wrappers
    node.environment_overrides = _string_map(env)
    return node


def item_from_json(raw: dict[str, Any]) -> MediaItem:
    data = dict(raw)
    files = [_file_from_json(f) for f in data.pop("files", None) or [] if isinstance(f, dict)]
    legacy_path = data.pop("file_path", None)
    if not files and legacy_path:
        files = [MediaFileRef(path=str(legacy_path), index=1)]
    wrappers = wrappers_from_json(data.pop("native_wrappers_override", None))
    env = data.pop("environment_overrides", None)
    media_type = data.pop("media_type", MediaType.NATIVE.value)

    item = _safe_dataclass_from_dict(MediaItem, data)
    item.files = files
    item.native_wrappers_override = wrappers
    item.environment_overrides = _string_map(env)
    try:
        item.media_type = MediaType(media_type)
    except ValueError:
        log.warning("Unknown media type %r on item %r, treating as native", media_type, item.id)
        item.media_type = MediaType.NATIVE
    return item


def _file_from_json(raw: dict[str, Any]) -> MediaFileRef:
    data = dict(raw)
    kind = data.pop("kind", MediaFileKind.ABSOLUTE.value)
    ref = _safe_dataclass_from_dict(MediaFileRef, data)
    try:
        ref.kind = MediaFileKind(kind)
    except ValueError:
        ref.kind = MediaFileKind.ABSOLUTE
    return ref


# -- Writing ---------------------------------------------------------------

def save_library(roots: list[MediaNode], path: Path) -> None:
    Path(path).write_text(
        json.dumps({"nodes": [node_to_json(n) for n in roots]}, indent=2, ensure_ascii=False),
        encoding="utf-8",
    )


def node_to_json(node: MediaNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "default_emulator_id": node.default_emulator_id,
        "native_wrappers_override": wrappers_to_json(node.native_wrappers_override),
        "environment_overrides": dict(node.environment_overrides),
        "items": [item_to_json(i) for i in node.items],
        "children": [node_to_json(c) for c in node.children],
    }


def item_to_json(item: MediaItem) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for f in fields(MediaItem):
        data[f.name] = getattr(item, f.name)
    data["media_type"] = item.media_type.value
    data["files"] = [
        {"path": ref.path, "kind": ref.kind.value, "label": ref.label, "index": ref.index}
        for ref in item.files
    ]
    data["native_wrappers_override"] = wrappers_to_json(item.native_wrappers_override)
    data["environment_overrides"] = dict(item.environment_overrides)
    return data


# -- Lookup ----------------------------------------------------------------

def iter_items(roots: list[MediaNode]) -> Iterator[MediaItem]:
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        yield from node.items
        stack.extend(reversed(node.children))


def find_item(roots: list[MediaNode], key: str) -> MediaItem | None:
    """Find an item by id, falling back to a case-insensitive title match."""
    items = list(iter_items(roots))
    for item in items:
        if item.id == key:
            return item
    lowered = key.strip().lower()
    return next((i for i in items if i.title.strip().lower() == lowered), None)


# -- Launch file -----------------------------------------------------------

def store_launch_file(item: MediaItem, path: str, prefer_portable: bool, data_root: str) -> MediaFileRef:
    """Point the item's primary file at *path*.

    With portable launch paths enabled, files inside the data root are
    stored relative to it so the library and games can move together.
    """
    stored_path = path
    kind = MediaFileKind.ABSOLUTE
    if prefer_portable:
        relative = try_make_data_relative(path, data_root)
        if relative is not None:
            stored_path = relative
            kind = MediaFileKind.LIBRARY_RELATIVE

    primary = item.primary_file()
    if primary is None:
        primary = MediaFileRef(path=stored_path, kind=kind, index=1)
        item.files.append(primary)
    else:
        primary.path = stored_path
        primary.kind = kind
    return primary
