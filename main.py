# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

import argparse
import json
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path

_ROOT = Path(__file__).resolve().parent
_CACHE_DIR = _ROOT / "cache"
_CRASH_LOG = _CACHE_DIR / "latest.log"


def _install_crash_logger() -> None:
    """Replace the default exception hook so unhandled errors are written
    to ``cache/latest.log`` before the process terminates."""
    _original_hook = sys.excepthook

    def _crash_hook(exc_type, exc_value, exc_tb):
        try:
            _CACHE_DIR.mkdir(parents=True, exist_ok=True)
            tb_text = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
            header = (
                f"Retroshelf crash log\n"
                f"====================\n"
                f"Timestamp : {timestamp}\n"
                f"Python    : {sys.version}\n"
                f"Platform  : {sys.platform}\n"
                f"Exception : {exc_type.__name__}: {exc_value}\n"
                f"\n"
            )
            _CRASH_LOG.write_text(header + tb_text, encoding="utf-8")
        except Exception:
            pass
        _original_hook(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_hook


def _apply_debug_logging(settings) -> None:
    """Configure Python logging based on the user's debug settings."""
    import logging
    if settings.debug_logging:
        level = getattr(logging, settings.debug_log_level, logging.WARNING)
        log_file = _CACHE_DIR / "retroshelf_debug.log"
        _CACHE_DIR.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            handlers=[
                logging.FileHandler(str(log_file), encoding="utf-8"),
                logging.StreamHandler(sys.stderr),
            ],
            force=True,
        )
    else:
        logging.basicConfig(level=logging.WARNING, force=True)


def _load_settings(path: str | None):
    from retroshelf.core.config import AppSettings
    if not path:
        return AppSettings.load()
    return AppSettings.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retroshelf",
        description="Resolve and run launch commands for library items.",
    )
    parser.add_argument("--settings", help="settings JSON (default: user config)")
    parser.add_argument("--data-root", help="portable data root override")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("preview", "print the command line that would run"),
        ("plan", "print the resolved launch plan as JSON"),
        ("launch", "run the item and record the session"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("library", help="library JSON file")
        cmd.add_argument("item", help="item id or title")
        if name == "launch":
            cmd.add_argument("--no-save", action="store_true",
                             help="do not write play statistics back to the library file")
    return parser


def _plan_to_json(plan) -> dict:
    return {
        "media_type": plan.media_type.value,
        "runtime": plan.runtime.value,
        "executable": plan.executable,
        "argv": list(plan.argv),
        "environment": dict(plan.environment),
        "working_dir": plan.working_dir,
        "prefix": (
            {"compat_root": plan.prefix.compat_root, "wine_prefix": plan.prefix.wine_prefix}
            if plan.prefix else None
        ),
        "wine_arch": plan.wine_arch,
        "playlist": plan.playlist.path if plan.playlist else None,
        "preview": plan.preview,
    }


def main(argv: list[str] | None = None) -> int:
    _install_crash_logger()
    args = _build_parser().parse_args(argv)

    import logging
    settings = _load_settings(args.settings)
    if args.data_root:
        settings.data_root_override = args.data_root
    if args.verbose:
        settings.debug_logging = True
        settings.debug_log_level = "DEBUG"
    _apply_debug_logging(settings)

    from retroshelf.core.launcher import Launcher
    from retroshelf.core.library import find_item, load_library, save_library

    library_path = Path(args.library)
    roots = load_library(library_path)
    item = find_item(roots, args.item)
    if item is None:
        print(f"No item matching {args.item!r}", file=sys.stderr)
        return 2

    launcher = Launcher(settings, roots)

    if args.command == "preview":
        print(launcher.preview(item))
        return 0
    if args.command == "plan":
        print(json.dumps(_plan_to_json(launcher.plan(item)), indent=2, ensure_ascii=False))
        return 0

    handle = launcher.launch(item)
    if handle is None:
        return 1
    try:
        result = handle.wait()
    except KeyboardInterrupt:
        handle.cancel()
        result = handle.wait()
    if result is None:
        return 1
    if not result.ok:
        print(result.message, file=sys.stderr)
        return 1
    if not args.no_save:
        save_library(roots, library_path)
    logging.getLogger(__name__).info(
        "%s (%.0fs, counted=%s)", result.message, result.session_seconds, result.counted,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
