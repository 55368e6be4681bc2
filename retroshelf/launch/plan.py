# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""The single launch-resolution pipeline.

:func:`recompute` turns a :class:`LaunchSnapshot` into a
:class:`ResolvedLaunchPlan`.  The edit dialog preview and the real
launcher both call it, so what the user sees is exactly what runs.
Nothing here writes to disk or mutates the snapshot; the filesystem is
only stat'ed (prefix layout, executable location, Proton build contents).
"""

from __future__ import annotations

import copy
import dataclasses
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from .composer import compose, compose_argv, render_preview
from .environment import apply_proton_wine_fallback, normalize_data_root_paths, resolve_environment
from .models import (
    EmulatorConfig,
    LaunchWrapper,
    MediaFileKind,
    MediaFileRef,
    MediaItem,
    MediaNode,
    MediaType,
)
from .node_chain import item_chain, nearest_first
from .prefix import (
    PrefixPaths,
    generate_prefix_path,
    is_prefix_initialized,
    resolve_prefix_paths,
    resolve_prefix_root,
    sanitize_prefix_folder_name,
)
from .runtime import RuntimeKind, detect_runtime
from .templates import (
    combine,
    expand,
    expand_argv,
    is_trivial_args,
    native_args,
    normalize_whitespace,
    quote_if_needed,
    split_args,
)
from .tristate import Override
from .wrappers import resolve_wrappers

PLAYLISTS_DIR = "Playlists"
URL_OPENER = "xdg-open"
WINE_ARCHES = ("win32", "win64")


# -- Snapshot --------------------------------------------------------------

@dataclass(frozen=True)
class LaunchSnapshot:
    """Frozen copy of everything a launch depends on."""
    item: MediaItem
    chain: tuple[MediaNode, ...] = ()
    emulator: EmulatorConfig | None = None
    default_wrappers: Override[LaunchWrapper] = field(default_factory=Override.inherit)
    library_root: str = ""
    data_root: str = ""
    base_environ: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        item: MediaItem,
        roots: Sequence[MediaNode],
        settings: Any,
        library_root: str = "",
        data_root: str = "",
        base_environ: Mapping[str, str] | None = None,
    ) -> LaunchSnapshot:
        """Copy *item*, its node chain and the effective emulator out of live state.

        *settings* needs ``emulators`` and ``default_native_wrappers``.
        Later edits to the live objects do not leak into the snapshot.
        """
        chain = item_chain(item, roots)
        emulator = find_effective_emulator(item, chain, settings.emulators)
        environ = os.environ if base_environ is None else base_environ
        return cls(
            item=copy.deepcopy(item),
            chain=tuple(_detach_node(node) for node in chain),
            emulator=copy.deepcopy(emulator),
            default_wrappers=settings.default_native_wrappers,
            library_root=library_root,
            data_root=data_root,
            base_environ=MappingProxyType(dict(environ)),
        )


def _detach_node(node: MediaNode) -> MediaNode:
    # Only the node's own settings matter for resolution, not its subtree.
    return dataclasses.replace(
        node,
        children=[],
        items=[],
        environment_overrides=dict(node.environment_overrides),
    )


def find_effective_emulator(
    item: MediaItem,
    chain: Sequence[MediaNode],
    emulators: Iterable[EmulatorConfig],
) -> EmulatorConfig | None:
    """Item's own emulator, else the nearest node default that exists.

    An id that matches no profile simply yields ``None``.
    """
    by_id = {emu.id: emu for emu in emulators if emu.id}
    if item.emulator_id and item.emulator_id.strip():
        return by_id.get(item.emulator_id)
    for node in nearest_first(chain):
        if node.default_emulator_id and node.default_emulator_id in by_id:
            return by_id[node.default_emulator_id]
    return None


# -- Plan ------------------------------------------------------------------

@dataclass(frozen=True)
class Playlist:
    path: str
    entries: tuple[str, ...]

    def render(self) -> str:
        return "".join(f"{entry}\n" for entry in self.entries)


@dataclass(frozen=True)
class ResolvedLaunchPlan:
    media_type: MediaType
    runtime: RuntimeKind = RuntimeKind.NATIVE
    executable: str = ""
    argv: tuple[str, ...] = ()
    command_line: str = ""
    environment: Mapping[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    primary_file: str = ""
    wrappers: tuple[LaunchWrapper, ...] = ()
    prefix: PrefixPaths | None = None
    prefix_initialized: bool = False
    wine_arch: str | None = None
    generated_prefix_path: str | None = None
    playlist: Playlist | None = None

    @property
    def launchable(self) -> bool:
        return bool(self.argv) and bool(self.argv[0])

    @property
    def preview(self) -> str:
        primary_dir = os.path.dirname(self.primary_file) if self.primary_file else None
        return render_preview(self.command_line, self.environment, self.working_dir, primary_dir)


def recompute(snapshot: LaunchSnapshot) -> ResolvedLaunchPlan:
    """Resolve *snapshot* into a concrete plan.  Same input, same output."""
    item = snapshot.item
    env = resolve_environment(item, snapshot.chain, snapshot.emulator)
    if snapshot.data_root:
        env = normalize_data_root_paths(env, snapshot.data_root)

    if item.media_type is MediaType.COMMAND:
        return _command_plan(snapshot, env)

    wrappers = resolve_wrappers(item, snapshot.chain, snapshot.emulator, snapshot.default_wrappers)
    primary_ref = item.primary_file()
    primary = resolve_file_ref(primary_ref, snapshot.data_root) if primary_ref else ""

    profile = snapshot.emulator if item.media_type is MediaType.EMULATOR else None
    playlist = _playlist_for(item, profile, snapshot)
    launch_file = playlist.path if playlist else primary

    executable, inner_display, inner_argv, runner = _resolve_target(item, profile, launch_file)

    generated = None
    prefix_value = item.prefix_path
    if not (prefix_value and prefix_value.strip()) and snapshot.emulator and snapshot.emulator.uses_wine_prefix:
        generated = generate_prefix_path(item.id, item.title)
        prefix_value = generated
    prefix_root = resolve_prefix_root(prefix_value, snapshot.library_root)

    runner_paths = [runner] + [w.path for w in wrappers]
    if snapshot.emulator is not None:
        runner_paths.append(snapshot.emulator.path)
    kind = detect_runtime(env, runner_paths, has_prefix=bool(prefix_root))

    # Compatibility runtimes always get a prefix, generated under the library when unset.
    if kind.uses_prefix and not prefix_root:
        generated = generate_prefix_path(item.id, item.title)
        prefix_root = resolve_prefix_root(generated, snapshot.library_root)

    overlay = dict(env)
    prefix = None
    initialized = False
    wine_arch = None
    if kind.uses_prefix:
        if prefix_root:
            prefix = resolve_prefix_paths(prefix_root, kind)
            overlay["WINEPREFIX"] = prefix.wine_prefix
            if kind.uses_compat_data:
                overlay["STEAM_COMPAT_DATA_PATH"] = prefix.compat_root
        initialized = is_prefix_initialized(overlay.get("WINEPREFIX", ""))

        # WINEARCH is only honoured by Wine while creating a prefix.
        requested = parse_wine_arch(item.wine_arch_override) or parse_wine_arch(env.get("WINEARCH"))
        overlay.pop("WINEARCH", None)
        if requested and not initialized:
            wine_arch = requested
            overlay["WINEARCH"] = requested

        if kind is RuntimeKind.PROTON and overlay.get("PROTONPATH"):
            apply_proton_wine_fallback(overlay, overlay["PROTONPATH"], snapshot.base_environ)

    if prefix is None:
        generated = None

    command_line = compose(inner_display, wrappers) if inner_display else ""
    argv = compose_argv(inner_argv, wrappers) if inner_argv else []

    return ResolvedLaunchPlan(
        media_type=item.media_type,
        runtime=kind,
        executable=executable,
        argv=tuple(argv),
        command_line=command_line,
        environment=overlay,
        working_dir=_working_dir(executable, primary),
        primary_file=primary,
        wrappers=tuple(wrappers),
        prefix=prefix,
        prefix_initialized=initialized,
        wine_arch=wine_arch,
        generated_prefix_path=generated,
        playlist=playlist,
    )


def _resolve_target(
    item: MediaItem,
    profile: EmulatorConfig | None,
    launch_file: str,
) -> tuple[str, str, list[str], str]:
    """Return ``(executable, display command, argv, runner path)`` before wrapping."""
    if item.media_type is MediaType.EMULATOR and profile is not None:
        exe = (profile.path or "").strip()
        # "{file}" or nothing on the item leaves the profile template alone
        item_args = None if is_trivial_args(item.launcher_args) else item.launcher_args
        template = combine(profile.arguments, item_args)
        display, argv = _with_file_args(exe, template, launch_file)
        return exe, display, argv, exe

    if item.media_type is MediaType.EMULATOR:
        exe = (item.launcher_path or "").strip()
        template = item.launcher_args or ""
        if not exe:
            # No launcher: the arguments are the whole command.
            display = expand(template, launch_file)
            argv = expand_argv(template, launch_file)
            runner = argv[0] if argv else ""
            return runner, display, argv, runner
        display, argv = _with_file_args(exe, template, launch_file)
        return exe, display, argv, exe

    # Native: the launch file is the executable.
    if not launch_file:
        return ("", "", [], "")
    args = native_args(item.launcher_args)
    display = normalize_whitespace(f"{quote_if_needed(launch_file)} {expand(args, launch_file)}")
    argv = [launch_file] + expand_argv(args, launch_file)
    return (launch_file, display, argv, "")


def _with_file_args(exe: str, template: str, launch_file: str) -> tuple[str, list[str]]:
    if not exe:
        return ("", [])
    display_args = expand(template, launch_file)
    argv_args = expand_argv(template, launch_file)
    if not display_args:
        display_args = quote_if_needed(launch_file)
        argv_args = [launch_file] if launch_file else []
    display = normalize_whitespace(f"{quote_if_needed(exe)} {display_args}")
    return (display, [exe] + argv_args)


def _command_plan(snapshot: LaunchSnapshot, env: dict[str, str]) -> ResolvedLaunchPlan:
    item = snapshot.item
    primary_ref = item.primary_file()
    opener = primary_ref.path.strip() if primary_ref else URL_OPENER
    args = item.launcher_args or ""
    argv: list[str] = []
    command_line = ""
    if args.strip():
        argv = [opener] + split_args(args)
        command_line = normalize_whitespace(f"{quote_if_needed(opener)} {args}")
    return ResolvedLaunchPlan(
        media_type=MediaType.COMMAND,
        executable=opener if argv else "",
        argv=tuple(argv),
        command_line=command_line,
        environment=env,
    )


def _playlist_for(
    item: MediaItem,
    profile: EmulatorConfig | None,
    snapshot: LaunchSnapshot,
) -> Playlist | None:
    if profile is None or not profile.use_playlist_for_multi_disc:
        return None
    discs = item.ordered_files()
    if len(discs) < 2:
        return None
    name = f"{item.id}_{sanitize_prefix_folder_name(item.title)}.m3u"
    path = os.path.join(snapshot.library_root, PLAYLISTS_DIR, name)
    entries = tuple(resolve_file_ref(ref, snapshot.data_root) for ref in discs)
    return Playlist(path=path, entries=entries)


def _working_dir(executable: str, primary: str) -> str | None:
    if executable and os.path.isfile(executable):
        return os.path.dirname(os.path.abspath(executable))
    if primary:
        primary_dir = os.path.dirname(primary)
        if primary_dir and os.path.isdir(primary_dir):
            return primary_dir
    return None


# -- Helpers ---------------------------------------------------------------

def resolve_file_ref(ref: MediaFileRef, data_root: str) -> str:
    """Absolute path for a stored file reference.

    Portable references are stored relative to the data root so the
    library and its games can be moved together.
    """
    path = (ref.path or "").strip()
    if not path or ref.kind is MediaFileKind.ABSOLUTE or os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(data_root, path)) if data_root else path


def parse_wine_arch(value: str | None) -> str | None:
    if not value:
        return None
    normalized = value.strip().lower()
    return normalized if normalized in WINE_ARCHES else None
