"""Launch configuration resolution and command composition.

Pure functions that turn a media item, the node chain above it, an
optional emulator profile and the global defaults into the environment,
wrapper chain, prefix layout and command line used to run the item.

Quick start::

    from retroshelf.launch import LaunchSnapshot, recompute

    snapshot = LaunchSnapshot.capture(item, roots, settings,
                                      library_root=lib, data_root=data)
    plan = recompute(snapshot)
    print(plan.preview)        # > cd /emu && WINEPREFIX=... wrapper emu "rom"
    plan.argv, plan.environment
"""

from __future__ import annotations

from .composer import compose, compose_argv, render_preview
from .environment import (
    apply_proton_wine_fallback,
    format_environment_prefix,
    normalize_data_root_paths,
    resolve_environment,
)
from .models import (
    EmulatorConfig,
    LaunchWrapper,
    MediaFileKind,
    MediaFileRef,
    MediaItem,
    MediaNode,
    MediaType,
)
from .node_chain import find_parent_node, item_chain, nearest_first, node_chain
from .plan import (
    LaunchSnapshot,
    Playlist,
    ResolvedLaunchPlan,
    find_effective_emulator,
    parse_wine_arch,
    recompute,
    resolve_file_ref,
)
from .prefix import (
    PrefixPaths,
    ensure_prefix_dirs,
    generate_prefix_path,
    is_pfx_leaf,
    is_prefix_initialized,
    resolve_prefix_paths,
    resolve_prefix_root,
    sanitize_prefix_folder_name,
)
from .runtime import RuntimeKind, detect_runtime
from .templates import Placeholder, combine, expand, expand_argv, native_args, normalize_whitespace
from .tristate import Override, OverrideState, resolve_first
from .wrappers import resolve_wrappers

__all__ = [
    # Models
    "EmulatorConfig",
    "LaunchWrapper",
    "MediaFileKind",
    "MediaFileRef",
    "MediaItem",
    "MediaNode",
    "MediaType",
    "Override",
    "OverrideState",
    "PrefixPaths",
    "Placeholder",
    "RuntimeKind",
    # Resolvers
    "resolve_first",
    "node_chain",
    "find_parent_node",
    "item_chain",
    "nearest_first",
    "resolve_environment",
    "normalize_data_root_paths",
    "apply_proton_wine_fallback",
    "format_environment_prefix",
    "resolve_wrappers",
    "detect_runtime",
    "resolve_prefix_paths",
    "resolve_prefix_root",
    "is_pfx_leaf",
    "is_prefix_initialized",
    "ensure_prefix_dirs",
    "sanitize_prefix_folder_name",
    "generate_prefix_path",
    # Templates and composition
    "expand",
    "expand_argv",
    "combine",
    "native_args",
    "normalize_whitespace",
    "compose",
    "compose_argv",
    "render_preview",
    # Plan
    "LaunchSnapshot",
    "Playlist",
    "ResolvedLaunchPlan",
    "find_effective_emulator",
    "parse_wine_arch",
    "recompute",
    "resolve_file_ref",
]
