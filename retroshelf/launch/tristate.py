# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Three-state override values.

Every configuration level (item, node, emulator, global) can leave a
collection setting alone, switch it off, or replace it.  Persisted data
encodes this as ``null`` / ``[]`` / non-empty list; in memory it is an
:class:`Override` whose state is one of :class:`OverrideState`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


class OverrideState(enum.Enum):
    INHERIT = "inherit"
    EMPTY = "empty"
    VALUE = "value"


@dataclass(frozen=True)
class Override(Generic[T]):
    """Inherit, explicitly empty, or an explicit non-empty payload."""

    state: OverrideState = OverrideState.INHERIT
    items: tuple[T, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.state, OverrideState):
            raise ValueError(f"Unknown override state: {self.state!r}")
        object.__setattr__(self, "items", tuple(self.items))
        if self.state is OverrideState.VALUE and not self.items:
            raise ValueError("An explicit override needs at least one entry")
        if self.state is not OverrideState.VALUE and self.items:
            raise ValueError(f"{self.state.name} override cannot carry entries")

    # -- Constructors --------------------------------------------------

    @classmethod
    def inherit(cls) -> Override[T]:
        return cls(OverrideState.INHERIT)

    @classmethod
    def empty(cls) -> Override[T]:
        return cls(OverrideState.EMPTY)

    @classmethod
    def value(cls, items: Iterable[T]) -> Override[T]:
        return cls(OverrideState.VALUE, tuple(items))

    @classmethod
    def from_optional(cls, items: Iterable[T] | None) -> Override[T]:
        """Map the persisted ``None`` / ``[]`` / list encoding."""
        if items is None:
            return cls.inherit()
        items = tuple(items)
        if not items:
            return cls.empty()
        return cls.value(items)

    def to_optional(self) -> list[T] | None:
        if self.state is OverrideState.INHERIT:
            return None
        return list(self.items)

    # -- Queries -------------------------------------------------------

    @property
    def is_inherit(self) -> bool:
        return self.state is OverrideState.INHERIT

    @property
    def is_empty(self) -> bool:
        return self.state is OverrideState.EMPTY

    @property
    def is_value(self) -> bool:
        return self.state is OverrideState.VALUE


def resolve_first(levels: Iterable[Override[T]]) -> list[T]:
    """Return the payload of the first level that does not inherit.

    *levels* are ordered most specific first.  An explicitly empty level
    yields ``[]``; when every level inherits the result is ``[]`` too.
    """
    for level in levels:
        if level.is_inherit:
            continue
        return list(level.items)
    return []
