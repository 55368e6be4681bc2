# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Library and launch-profile data models used by the launch resolvers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .tristate import Override


FILE_PLACEHOLDER = "{file}"


class MediaType(str, enum.Enum):
    NATIVE = "Native"        # directly executable (binary, script, .exe via a runner)
    EMULATOR = "Emulator"    # ROM handed to an emulator
    COMMAND = "Command"      # URL or protocol handler (steam://, heroic://)


class MediaFileKind(str, enum.Enum):
    ABSOLUTE = "Absolute"
    MOUNT_RELATIVE = "MountRelative"
    LIBRARY_RELATIVE = "LibraryRelative"


@dataclass(frozen=True)
class LaunchWrapper:
    """One wrapper step (gamemoderun, mangohud, prime-run, env ...).

    ``{file}`` in *args* marks where the wrapped command goes.
    """
    path: str = ""
    args: str = FILE_PLACEHOLDER

    def effective_args(self) -> str:
        return self.args if self.args and self.args.strip() else FILE_PLACEHOLDER


@dataclass
class MediaFileRef:
    path: str = ""
    kind: MediaFileKind = MediaFileKind.ABSOLUTE
    label: str = ""            # "Disc 1", "Side B"
    index: int | None = None   # 1..n, launch order


@dataclass
class EmulatorConfig:
    """One emulator / runner profile."""
    id: str = ""
    name: str = ""
    path: str = ""
    arguments: str = FILE_PLACEHOLDER
    native_wrappers: Override[LaunchWrapper] = field(default_factory=Override.inherit)
    environment_overrides: dict[str, str] = field(default_factory=dict)
    use_playlist_for_multi_disc: bool = False
    uses_wine_prefix: bool = False

    def display_name(self) -> str:
        return self.name or "(unnamed)"


@dataclass
class MediaItem:
    id: str = ""
    title: str = ""
    files: list[MediaFileRef] = field(default_factory=list)
    media_type: MediaType = MediaType.NATIVE

    # Launch configuration
    emulator_id: str | None = None
    launcher_path: str | None = None
    launcher_args: str | None = None
    prefix_path: str | None = None
    wine_arch_override: str | None = None          # win32 / win64
    environment_overrides: dict[str, str] = field(default_factory=dict)
    native_wrappers_override: Override[LaunchWrapper] = field(default_factory=Override.inherit)
    override_watch_process: str | None = None

    # Statistics
    last_played: str | None = None                 # ISO-8601 local time
    play_count: int = 0
    total_play_time: float = 0.0                   # seconds

    def ordered_files(self) -> list[MediaFileRef]:
        """Files in launch order; unindexed entries keep their position."""
        decorated = [
            (ref.index if ref.index is not None else pos + 1, pos, ref)
            for pos, ref in enumerate(self.files)
            if ref.path and ref.path.strip()
        ]
        decorated.sort(key=lambda entry: (entry[0], entry[1]))
        return [ref for _, _, ref in decorated]

    def primary_file(self) -> MediaFileRef | None:
        ordered = self.ordered_files()
        return ordered[0] if ordered else None


@dataclass
class MediaNode:
    id: str = ""
    name: str = ""
    children: list[MediaNode] = field(default_factory=list)
    items: list[MediaItem] = field(default_factory=list)
    native_wrappers_override: Override[LaunchWrapper] = field(default_factory=Override.inherit)
    environment_overrides: dict[str, str] = field(default_factory=dict)
    default_emulator_id: str | None = None

    def owns(self, item: MediaItem) -> bool:
        return any(candidate is item for candidate in self.items)
