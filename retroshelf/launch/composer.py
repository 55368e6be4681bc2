# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Wrapper nesting for display strings and argv lists.

Wrappers are applied last-to-first so that the first wrapper in the list
ends up outermost: ``[W1, W2]`` around ``C`` gives ``W1(W2(C))``.
"""

from __future__ import annotations

import os
import shlex
from typing import Mapping, Sequence

from .environment import format_environment_prefix
from .models import LaunchWrapper
from .templates import Placeholder, contains_file, normalize_whitespace, quote_if_needed, split_args


def _active(wrappers: Sequence[LaunchWrapper]) -> list[LaunchWrapper]:
    return [w for w in wrappers if w.path and w.path.strip()]


def compose(inner: str, wrappers: Sequence[LaunchWrapper]) -> str:
    """Nest *inner* inside *wrappers* as a single display command line."""
    current = normalize_whitespace(inner)
    for wrapper in reversed(_active(wrappers)):
        args = wrapper.effective_args()
        if contains_file(args):
            expanded = args.replace(Placeholder.FILE.value, current)
        else:
            expanded = f"{args} {current}"
        current = normalize_whitespace(f"{wrapper.path.strip()} {expanded}")
    return current


def compose_argv(inner: Sequence[str], wrappers: Sequence[LaunchWrapper]) -> list[str]:
    """Same nesting as :func:`compose`, producing an argument vector.

    A bare ``{file}`` argument is replaced by the wrapped argv; ``{file}``
    embedded in a larger argument receives the wrapped command shell-joined.
    """
    current = list(inner)
    for wrapper in reversed(_active(wrappers)):
        argv = [wrapper.path.strip()]
        spliced = False
        for token in split_args(wrapper.effective_args()):
            if token == Placeholder.FILE.value:
                argv.extend(current)
                spliced = True
            elif Placeholder.FILE.value in token:
                argv.append(token.replace(Placeholder.FILE.value, shlex.join(current)))
                spliced = True
            else:
                argv.append(token)
        if not spliced:
            argv.extend(current)
        current = argv
    return current


def render_preview(
    command: str,
    env: Mapping[str, str],
    working_dir: str | None,
    primary_dir: str | None,
) -> str:
    """``> [cd <dir> &&] [ENV=val ...] <command>``"""
    if not command:
        return ""
    parts = [">"]
    if working_dir and not _same_dir(working_dir, primary_dir):
        parts.append(f"cd {quote_if_needed(working_dir)} &&")
    env_text = format_environment_prefix(env)
    if env_text:
        parts.append(env_text)
    parts.append(command)
    return " ".join(parts)


def _same_dir(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return not a and not b
    return os.path.normpath(a) == os.path.normpath(b)
