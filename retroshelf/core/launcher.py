# Copyright (C) 2025-2026 Retroshelf Contributors
# SPDX-License-Identifier: AGPL-3.0-or-later
# See LICENSE for the full text.

"""
Runs media items and tracks play sessions.

The :class:`Launcher` resolves an item with the same pipeline the edit
dialog uses for its preview, prepares the filesystem (Wine prefix
directories, multi-disc playlists) and spawns the process on a
background thread.  Only one launch runs at a time; requests arriving
while one is in flight are ignored.

A launch can be cancelled through its :class:`LaunchHandle`.  Before the
process starts this aborts cleanly and the item can be launched again;
afterwards it only stops the session tracking, the game keeps running.
"""

from __future__ import annotations

import enum
import errno
import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

import psutil

from retroshelf.core import paths
from retroshelf.core.config import AppSettings
from retroshelf.launch.models import MediaItem, MediaNode, MediaType
from retroshelf.launch.plan import LaunchSnapshot, ResolvedLaunchPlan, recompute
from retroshelf.launch.prefix import ensure_prefix_dirs

log = logging.getLogger(__name__)

_WATCH_STARTUP_TIMEOUT_S = 180.0
_WATCH_APPEAR_POLL_S = 1.0
_WATCH_EXIT_POLL_S = 2.0
_WAIT_POLL_S = 0.5


# -- Results ---------------------------------------------------------------

class StartFailureKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    OTHER = "other"


@dataclass(frozen=True)
class StartFailure:
    kind: StartFailureKind
    message: str


@dataclass
class LaunchResult:
    ok: bool
    message: str
    plan: ResolvedLaunchPlan | None = None
    failure: StartFailure | None = None
    cancelled: bool = False
    session_seconds: float = 0.0
    counted: bool = False


def classify_start_failure(exc: BaseException, executable: str = "") -> StartFailure:
    """Map a process start error onto NotFound / PermissionDenied / Other."""
    code = getattr(exc, "errno", None)
    if isinstance(exc, FileNotFoundError) or code == errno.ENOENT:
        return StartFailure(StartFailureKind.NOT_FOUND, f"Executable not found: {executable}")
    if isinstance(exc, PermissionError) or code in (errno.EACCES, errno.EPERM):
        return StartFailure(
            StartFailureKind.PERMISSION_DENIED,
            f"Permission denied when launching: {executable}",
        )
    return StartFailure(StartFailureKind.OTHER, str(exc) or exc.__class__.__name__)


# -- Session statistics ----------------------------------------------------

def evaluate_session(item: MediaItem, elapsed: float, min_seconds: float) -> bool:
    """Record a finished session on *item*.  Returns True if it was counted.

    Sessions shorter than *min_seconds* are treated as crashes or
    misclicks, except untracked commands (Steam URLs and the like) where
    the start itself is all we can observe.
    """
    log.debug("Session for %r ended after %.2fs", item.title, elapsed)
    if elapsed > min_seconds:
        _update_stats(item, elapsed)
        return True
    if item.media_type is MediaType.COMMAND and not item.override_watch_process:
        _update_stats(item, 0.0)
        return True
    log.debug("Session too short, not counted")
    return False


def _update_stats(item: MediaItem, seconds: float) -> None:
    item.last_played = datetime.now().isoformat(timespec="seconds")
    item.play_count += 1
    item.total_play_time += seconds


def write_playlist(path: str, entries: Sequence[str]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("".join(f"{entry}\n" for entry in entries), encoding="utf-8")


def process_running(name: str) -> bool:
    """True if a process whose executable stem matches *name* is alive."""
    wanted = Path(name).stem.lower()
    for proc in psutil.process_iter(["name"]):
        pname = proc.info.get("name") or ""
        if Path(pname).stem.lower() == wanted:
            return True
    return False


# -- Launch handle ---------------------------------------------------------

class LaunchHandle:
    """Tracks one in-flight launch."""

    def __init__(self, item: MediaItem) -> None:
        self.item = item
        self._cancel = threading.Event()
        self._done = threading.Event()
        self._result: Optional[LaunchResult] = None
        self._thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def result(self) -> Optional[LaunchResult]:
        return self._result

    def wait(self, timeout: float | None = None) -> Optional[LaunchResult]:
        self._done.wait(timeout)
        return self._result

    def _finish(self, result: LaunchResult) -> None:
        self._result = result
        self._done.set()


# -- Launcher --------------------------------------------------------------

class Launcher:
    """Single-flight launcher for library items."""

    def __init__(
        self,
        settings: AppSettings,
        roots: list[MediaNode],
        *,
        library_root: str | None = None,
        data_root: str | None = None,
        spawn: Callable[..., subprocess.Popen] = subprocess.Popen,
        clock: Callable[[], float] = time.monotonic,
        is_running: Callable[[str], bool] = process_running,
    ) -> None:
        self.settings = settings
        self.roots = roots
        self.data_root = data_root or str(paths.data_root(settings.data_root_override))
        self.library_root = library_root or str(Path(self.data_root) / "Library")
        self._spawn = spawn
        self._clock = clock
        self._is_running = is_running
        self._lock = threading.Lock()
        self._active: Optional[LaunchHandle] = None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def snapshot(self, item: MediaItem) -> LaunchSnapshot:
        return LaunchSnapshot.capture(
            item,
            self.roots,
            self.settings,
            library_root=self.library_root,
            data_root=self.data_root,
        )

    def plan(self, item: MediaItem) -> ResolvedLaunchPlan:
        return recompute(self.snapshot(item))

    def preview(self, item: MediaItem) -> str:
        return self.plan(item).preview

    # ------------------------------------------------------------------
    # Launching
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._active is not None

    def launch(
        self,
        item: MediaItem,
        on_finished: Callable[[LaunchResult], None] | None = None,
    ) -> Optional[LaunchHandle]:
        """Start *item* in the background.  Returns None if a launch is running."""
        with self._lock:
            if self._active is not None:
                log.debug("Launch already in progress, ignoring %r", item.title)
                return None
            handle = LaunchHandle(item)
            self._active = handle

        try:
            snapshot = self.snapshot(item)
        except Exception:
            with self._lock:
                self._active = None
            raise

        thread = threading.Thread(
            target=self._bg_launch,
            args=(handle, snapshot, on_finished),
            name="retroshelf-launch",
            daemon=True,
        )
        handle._thread = thread
        thread.start()
        return handle

    def _bg_launch(
        self,
        handle: LaunchHandle,
        snapshot: LaunchSnapshot,
        on_finished: Callable[[LaunchResult], None] | None,
    ) -> None:
        result = LaunchResult(False, "Launch aborted")
        try:
            result = self._run(handle, snapshot)
        except Exception as exc:
            log.exception("Launch of %r failed", handle.item.title)
            result = LaunchResult(False, str(exc))
        finally:
            with self._lock:
                self._active = None
            handle._finish(result)
        if on_finished is not None:
            try:
                on_finished(result)
            except Exception:
                log.exception("Launch completion callback failed")

    def _run(self, handle: LaunchHandle, snapshot: LaunchSnapshot) -> LaunchResult:
        item = handle.item
        plan = recompute(snapshot)

        if handle.cancelled:
            return LaunchResult(False, "Launch cancelled", plan, cancelled=True)
        if not plan.launchable:
            log.warning("Nothing to launch for %r", item.title)
            return LaunchResult(False, "Nothing to launch", plan)

        self._prepare(item, plan)

        if handle.cancelled:
            return LaunchResult(False, "Launch cancelled", plan, cancelled=True)

        env = dict(snapshot.base_environ)
        env.update(plan.environment)
        log.info("Launching %r: %s", item.title, plan.preview)

        started = self._clock()
        try:
            process = self._spawn(list(plan.argv), cwd=plan.working_dir, env=env)
        except Exception as exc:
            failure = classify_start_failure(exc, plan.executable)
            log.warning("Could not start %r: %s", item.title, failure.message)
            return LaunchResult(False, failure.message, plan, failure=failure)

        if item.override_watch_process:
            self._watch_process(item.override_watch_process, handle)
        else:
            self._wait_for_exit(process, handle)

        elapsed = self._clock() - started
        counted = evaluate_session(item, elapsed, self.settings.min_play_seconds)
        return LaunchResult(
            True,
            f"Played {item.title}",
            plan,
            cancelled=handle.cancelled,
            session_seconds=elapsed,
            counted=counted,
        )

    def _prepare(self, item: MediaItem, plan: ResolvedLaunchPlan) -> None:
        """Filesystem side effects that must happen before the process starts."""
        if plan.generated_prefix_path and not (item.prefix_path and item.prefix_path.strip()):
            item.prefix_path = plan.generated_prefix_path
            log.debug("Assigned prefix %s to %r", item.prefix_path, item.title)

        if plan.prefix is not None:
            ensure_prefix_dirs(plan.prefix)

        if plan.playlist is not None:
            try:
                write_playlist(plan.playlist.path, plan.playlist.entries)
            except OSError:
                log.warning("Could not write playlist %s", plan.playlist.path, exc_info=True)

    def _wait_for_exit(self, process, handle: LaunchHandle) -> None:
        poll = getattr(process, "poll", None)
        if poll is None:
            return
        while poll() is None:
            if handle._cancel.wait(_WAIT_POLL_S):
                log.debug("Stopped tracking %r", handle.item.title)
                return

    def _watch_process(self, name: str, handle: LaunchHandle) -> None:
        """Wait for *name* to appear, then for it to exit."""
        log.debug("Watching for process %s", name)
        deadline = self._clock() + _WATCH_STARTUP_TIMEOUT_S
        while not self._is_running(name):
            if self._clock() >= deadline:
                log.debug("Process %s never appeared", name)
                return
            if handle._cancel.wait(_WATCH_APPEAR_POLL_S):
                return

        while self._is_running(name):
            if handle._cancel.wait(_WATCH_EXIT_POLL_S):
                return
        log.debug("Process %s exited", name)
