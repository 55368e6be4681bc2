# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Effective wrapper chain for a launch."""

from __future__ import annotations

from typing import Sequence

from .models import EmulatorConfig, LaunchWrapper, MediaItem, MediaNode
from .node_chain import nearest_first
from .tristate import Override, resolve_first


def resolve_wrappers(
    item: MediaItem,
    chain: Sequence[MediaNode],
    emulator: EmulatorConfig | None,
    global_defaults: Override[LaunchWrapper],
) -> list[LaunchWrapper]:
    """Resolve the wrappers to run, outermost first.

    An item-level decision is final.  Otherwise the emulator (or the
    global default when there is no emulator) provides the base chain,
    and the nearest node that decides either clears it or puts its own
    wrappers in front of it.
    """
    item_level = item.native_wrappers_override
    if not item_level.is_inherit:
        return list(item_level.items)

    emulator_level = emulator.native_wrappers if emulator is not None else Override.inherit()
    base = resolve_first([emulator_level, global_defaults])

    for node in nearest_first(chain):
        node_level = node.native_wrappers_override
        if node_level.is_inherit:
            continue
        if node_level.is_empty:
            return []
        return list(node_level.items) + base

    return base
