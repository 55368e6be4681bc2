# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Heuristic classification of the compatibility runtime."""

from __future__ import annotations

import enum
from typing import Iterable, Mapping

_PROTON_KEYS = frozenset({"PROTONPATH", "STEAM_COMPAT_DATA_PATH"})


class RuntimeKind(str, enum.Enum):
    NATIVE = "native"
    WINE = "wine"
    PROTON = "proton"
    UMU = "umu"

    @property
    def uses_prefix(self) -> bool:
        return self is not RuntimeKind.NATIVE

    @property
    def uses_compat_data(self) -> bool:
        return self in (RuntimeKind.PROTON, RuntimeKind.UMU)


def is_umu(env: Mapping[str, str], runner_paths: Iterable[str] = ()) -> bool:
    if any(key.upper().startswith("UMU_") for key in env):
        return True
    return _any_contains(runner_paths, "umu")


def is_proton(env: Mapping[str, str], runner_paths: Iterable[str] = ()) -> bool:
    if any(key.upper() in _PROTON_KEYS for key in env):
        return True
    return _any_contains(runner_paths, "proton")


def detect_runtime(
    env: Mapping[str, str],
    runner_paths: Iterable[str] = (),
    has_prefix: bool = False,
) -> RuntimeKind:
    """Classify a launch as UMU, Proton, Wine or native.

    *runner_paths* are the executables that could be the runner (emulator
    profile, manual launcher, wrapper paths).  UMU implies Proton.  Wine is
    picked when a prefix is configured or the environment or a runner path
    points at Wine.
    """
    runner_paths = [p for p in runner_paths if p]
    if is_umu(env, runner_paths):
        return RuntimeKind.UMU
    if is_proton(env, runner_paths):
        return RuntimeKind.PROTON
    if has_prefix or any(key.upper() == "WINEPREFIX" for key in env):
        return RuntimeKind.WINE
    if _any_contains(runner_paths, "wine"):
        return RuntimeKind.WINE
    return RuntimeKind.NATIVE


def _any_contains(paths: Iterable[str], token: str) -> bool:
    return any(token in (path or "").lower() for path in paths)
