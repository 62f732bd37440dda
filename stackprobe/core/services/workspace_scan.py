"""
Workspace scanning — bounded filesystem access for indicator evaluation.

Everything an indicator may do to the filesystem goes through here:
stat a path, read a bounded prefix of a file, list the workspace. The
listing is built once per detection call by a single walk and shared by
every pattern indicator, so the file budget is charged exactly once per
file regardless of how many stacks look at it.

Pure logic over a read-only tree — nothing here writes to disk.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from fnmatch import fnmatchcase
from pathlib import Path

logger = logging.getLogger(__name__)

# Build output and VCS internals never carry stack evidence
SKIP_DIRS = frozenset({"node_modules", ".git", "dist", "build"})


class DetectionTimeout(Exception):
    """Raised inside an evaluation once the run's wall-clock budget is spent."""


class ScanBudget:
    """Resource caps shared by every evaluation in one detection call.

    Thread-safe: the file counter is guarded by a lock, the deadline is
    read-only after construction.
    """

    def __init__(
        self,
        max_files: int,
        timeout_ms: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_files = max_files
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._started = clock()
        self._deadline = self._started + timeout_ms / 1000.0
        self._lock = threading.Lock()
        self._files = 0
        self._exhausted = False

    # ── Time ─────────────────────────────────────────────────────

    @property
    def expired(self) -> bool:
        return self._clock() >= self._deadline

    def check_deadline(self) -> None:
        """Raise DetectionTimeout if the deadline has passed."""
        if self.expired:
            raise DetectionTimeout(f"detection exceeded {self.timeout_ms} ms")

    @property
    def elapsed_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    # ── Files ────────────────────────────────────────────────────

    def consume_file(self) -> bool:
        """Charge one file against the cap. False once the cap is reached."""
        with self._lock:
            if self._files >= self.max_files:
                self._exhausted = True
                return False
            self._files += 1
            return True

    @property
    def files_scanned(self) -> int:
        with self._lock:
            return self._files

    @property
    def exhausted(self) -> bool:
        with self._lock:
            return self._exhausted


def glob_match(rel_path: str, pattern: str) -> bool:
    """Match a workspace-relative POSIX path against a glob.

    A pattern without ``/`` matches the file name at any depth
    (``*.rs``, ``Dockerfile``). A pattern with ``/`` matches the whole
    path; each ``**/`` may also stand for zero directories. ``*`` follows
    fnmatch rules and may cross directory separators.
    """
    if "/" not in pattern:
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], pattern)
    if fnmatchcase(rel_path, pattern):
        return True

    idx = pattern.find("**/")
    while idx != -1:
        if idx == 0 or pattern[idx - 1] == "/":
            if glob_match(rel_path, pattern[:idx] + pattern[idx + 3:]):
                return True
        idx = pattern.find("**/", idx + 1)
    return False


def join_relative(base: str, relative: str) -> str:
    """Join two workspace-relative POSIX fragments, dropping ``.``."""
    base = base.strip("/")
    if base in ("", "."):
        return relative
    return f"{base}/{relative}"


class WorkspaceScanner:
    """Bounded, read-only view of one workspace for one detection call."""

    def __init__(
        self,
        root: Path,
        budget: ScanBudget,
        max_depth: int | None = None,
        max_bytes_per_file: int = 1024 * 1024,
    ) -> None:
        self.root = root.resolve()
        self.budget = budget
        self.max_depth = max_depth
        self.max_bytes_per_file = max_bytes_per_file
        self._listing: list[str] | None = None
        self._truncated = False
        self._listing_lock = threading.Lock()

    # ── Paths ────────────────────────────────────────────────────

    def resolve(self, relative: str, base: str = ".") -> Path | None:
        """Resolve a workspace-relative path.

        None if it escapes the workspace or cannot be resolved at all
        (Python < 3.13 raises RuntimeError on a symlink loop).
        """
        try:
            candidate = (self.root / join_relative(base, relative)).resolve()
        except (OSError, RuntimeError) as e:
            logger.debug("Cannot resolve %s under %s: %s", relative, base, e)
            return None
        if candidate != self.root and not candidate.is_relative_to(self.root):
            logger.debug("Refusing path outside workspace: %s", candidate)
            return None
        return candidate

    def is_file(self, path: Path | None) -> bool:
        if path is None:
            return False
        try:
            return path.is_file()
        except OSError:
            return False

    def is_dir(self, path: Path | None) -> bool:
        if path is None:
            return False
        try:
            return path.is_dir()
        except OSError:
            return False

    def read_text(self, path: Path) -> str:
        """Read at most ``max_bytes_per_file`` bytes, decoded as UTF-8.

        Raises:
            OSError: If the file cannot be opened or read.
        """
        with open(path, "rb") as f:
            data = f.read(self.max_bytes_per_file)
        return data.decode("utf-8", errors="replace")

    # ── Listing ──────────────────────────────────────────────────

    @property
    def truncated(self) -> bool:
        """True if the listing stopped early because the file cap was hit."""
        return self._truncated

    def files(self) -> list[str]:
        """All workspace files as sorted relative POSIX paths.

        Built lazily by one walk per scanner; concurrent callers wait for
        the first walk to finish and share its result.
        """
        with self._listing_lock:
            if self._listing is None:
                self._listing = sorted(self._walk())
            return self._listing

    def files_under(self, base: str) -> list[str]:
        """Files below ``base``, relative to ``base``."""
        listing = self.files()
        base = base.strip("/")
        if base in ("", "."):
            return listing
        prefix = base + "/"
        return [p[len(prefix):] for p in listing if p.startswith(prefix)]

    def _walk(self) -> list[str]:
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            self.budget.check_deadline()

            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            depth = 0 if rel_dir == "." else rel_dir.count("/") + 1

            if self.max_depth is not None and depth >= self.max_depth:
                dirnames[:] = []
            else:
                dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)

            for name in sorted(filenames):
                if not self.budget.consume_file():
                    self._truncated = True
                    logger.warning(
                        "File limit of %d reached while listing %s; listing truncated",
                        self.budget.max_files, self.root,
                    )
                    return found
                found.append(name if rel_dir == "." else f"{rel_dir}/{name}")

        logger.debug("Listed %d files under %s", len(found), self.root)
        return found
