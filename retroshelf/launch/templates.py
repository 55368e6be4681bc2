# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""Argument templates with file placeholders.

Supported placeholders::

    {file}      full path of the launch file
    {fileDir}   directory of the launch file
    {fileName}  file name with extension
    {fileBase}  file name without extension (MAME short names)

Anything else in braces is left as typed.
"""

from __future__ import annotations

import enum
import logging
import os
import re
import shlex

log = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class Placeholder(str, enum.Enum):
    FILE_DIR = "{fileDir}"
    FILE_NAME = "{fileName}"
    FILE_BASE = "{fileBase}"
    FILE = "{file}"

    def value_for(self, path: str) -> str:
        if not path:
            return ""
        if self is Placeholder.FILE:
            return path
        if self is Placeholder.FILE_DIR:
            return os.path.dirname(path)
        name = os.path.basename(path)
        if self is Placeholder.FILE_NAME:
            return name
        return os.path.splitext(name)[0]


# {file} is substituted after the path parts.
_PATH_PARTS = (Placeholder.FILE_DIR, Placeholder.FILE_NAME, Placeholder.FILE_BASE)
_QUOTED_FILE = f'"{Placeholder.FILE.value}"'


def normalize_whitespace(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def contains_file(template: str | None) -> bool:
    return bool(template) and Placeholder.FILE.value in template


def is_trivial_args(value: str | None) -> bool:
    """True for empty args or a bare ``{file}`` / ``"{file}"``."""
    if not value or not value.strip():
        return True
    return value.strip() in (Placeholder.FILE.value, _QUOTED_FILE)


def quote_if_needed(path: str) -> str:
    if path and any(ch.isspace() for ch in path):
        return f'"{path}"'
    return path


def expand(template: str | None, primary_file: str) -> str:
    """Expand placeholders for a display command line.

    ``{file}`` is double-quoted when the path contains whitespace, unless
    the template already wraps it in quotes.
    """
    if not template or not template.strip():
        return ""

    result = template
    for placeholder in _PATH_PARTS:
        result = result.replace(placeholder.value, placeholder.value_for(primary_file))

    if _QUOTED_FILE in result:
        return result.replace(Placeholder.FILE.value, primary_file).strip()
    return result.replace(Placeholder.FILE.value, quote_if_needed(primary_file)).strip()


def combine(base: str | None, item: str | None) -> str:
    """Merge profile arguments with per-item arguments.

    When both carry ``{file}`` the item template is nested into the
    profile's ``{file}`` slot; otherwise the item part is appended.
    """
    base = base or ""
    item = item or ""
    if not item.strip():
        return base
    if contains_file(base) and contains_file(item):
        return base.replace(Placeholder.FILE.value, item)
    return f"{base} {item}".strip()


def native_args(template: str | None) -> str:
    """Strip a leftover ``{file}`` (and what precedes it) from native arguments.

    Native launches run the file itself, so ``prefix {file} --arg`` keeps
    only ``--arg``.
    """
    if not template or not template.strip():
        return ""
    args = template
    idx = args.find(_QUOTED_FILE)
    if idx >= 0:
        args = args[idx + len(_QUOTED_FILE):]
    else:
        idx = args.find(Placeholder.FILE.value)
        if idx >= 0:
            args = args[idx + len(Placeholder.FILE.value):]
    return normalize_whitespace(args)


# -- argv ------------------------------------------------------------------

def split_args(text: str | None) -> list[str]:
    """Shell-like split; unbalanced quotes fall back to whitespace splitting."""
    if not text or not text.strip():
        return []
    try:
        return shlex.split(text)
    except ValueError:
        log.debug("Unbalanced quotes in %r, splitting on whitespace", text)
        return text.split()


def expand_token(token: str, primary_file: str) -> str:
    for placeholder in _PATH_PARTS:
        token = token.replace(placeholder.value, placeholder.value_for(primary_file))
    return token.replace(Placeholder.FILE.value, primary_file)


def expand_argv(template: str | None, primary_file: str) -> list[str]:
    """Tokenise *template* and expand placeholders inside each argument.

    Paths are substituted verbatim, one argument each, so no quoting is
    needed on this side.
    """
    argv = []
    for token in split_args(template):
        expanded = expand_token(token, primary_file)
        # a placeholder that expanded to nothing is dropped, not passed as ""
        if expanded or expanded == token:
            argv.append(expanded)
    return argv
