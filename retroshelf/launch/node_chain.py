# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Ancestor lookups inside the library tree.

Nodes are matched by identity, never by name or id, so two nodes that
happen to share a name are still told apart.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .models import MediaItem, MediaNode


def node_chain(target: MediaNode, roots: Iterable[MediaNode]) -> list[MediaNode]:
    """Return ``[root, ..., target]`` or ``[]`` when *target* is not in the forest."""
    for root in roots:
        stack: list[tuple[MediaNode, list[MediaNode]]] = [(root, [root])]
        while stack:
            node, path = stack.pop()
            if node is target:
                return path
            for child in reversed(node.children):
                stack.append((child, path + [child]))
    return []


def find_parent_node(roots: Iterable[MediaNode], item: MediaItem) -> MediaNode | None:
    """Return the node whose ``items`` hold *item*, searching depth-first."""
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        if node.owns(item):
            return node
        stack.extend(reversed(node.children))
    return None


def item_chain(item: MediaItem, roots: Sequence[MediaNode]) -> list[MediaNode]:
    """Chain from the root down to the node that owns *item*."""
    parent = find_parent_node(roots, item)
    if parent is None:
        return []
    return node_chain(parent, roots)


def nearest_first(chain: Sequence[MediaNode]) -> list[MediaNode]:
    return list(reversed(chain))
