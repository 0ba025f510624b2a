"""Git LFS lock cache and lockable file types.

Example ``git lfs locks`` output::

    Content/ThirdPersonBP/Blueprints/ThirdPersonCharacter.uasset	SRombauts	ID:891
    Content/ThirdPersonBP/Blueprints/ThirdPersonCharacter.uasset		ID:891
    Content/ThirdPersonBP/Blueprints/ThirdPersonCharacter.uasset	ID:891

A missing owner, or an owner column holding only the lock ID, means the
lock belongs to the current user.
"""

import os
import stat
from datetime import datetime, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from ..core.constants import LOCK_CACHE_TTL_SECONDS, LOCK_ID_PREFIX
from ..logging import get_logger
from .command import GitCommandRunner
from .models import CommandResult
from .paths import absolute_path, normalize_path


logger = get_logger(__name__)


class LockRefreshResult(NamedTuple):
    success: bool
    locks: Dict[str, str]
    errors: List[str]


def parse_lock_line(
    line: str,
    repository_root: str,
    lock_user: str,
    absolute_paths: bool = True,
) -> Optional[Tuple[str, str]]:
    """Parse one lock listing line into ``(path, owner)``."""
    fields = [field.strip() for field in line.split("\t") if field.strip()]
    if not fields:
        return None

    filename = fields[0]
    if absolute_paths:
        filename = absolute_path(repository_root, filename)
    else:
        filename = normalize_path(filename)

    if len(fields) < 2 or fields[1].startswith(LOCK_ID_PREFIX):
        owner = lock_user
    else:
        owner = fields[1]
    return filename, owner


def set_read_only(path: str, read_only: bool) -> bool:
    """Toggle the write permission bits of a file; False if it does not exist."""
    try:
        mode = os.stat(path).st_mode
    except OSError:
        return False
    write_bits = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH
    if read_only:
        new_mode = mode & ~write_bits
    else:
        new_mode = mode | stat.S_IWUSR
    if new_mode != mode:
        os.chmod(path, new_mode)
    return True


class LockableTypes:
    """File extensions handled through the exclusive lock workflow."""

    def __init__(self, types: Optional[Sequence[str]] = None):
        self.types: List[str] = list(types or [])

    def reset(self) -> None:
        self.types = []

    def is_lockable(self, path: str) -> bool:
        return any(path.endswith(file_type) for file_type in self.types)

    def check_lfs_lockable(self, runner: GitCommandRunner, patterns: Sequence[str]) -> CommandResult:
        """Query the ``lockable`` attribute for each wildcard pattern.

        Example output of ``git check-attr lockable *.uasset *.ini``::

            *.uasset: lockable: set
            *.ini: lockable: unspecified
        """
        self.reset()
        result = runner.run("check-attr", ["lockable"], list(patterns))
        if not result.success:
            return result

        for pattern, line in zip(patterns, result.info_messages):
            if line.endswith("set") and not line.endswith("unset"):
                self.types.append(pattern[1:] if pattern.startswith("*") else pattern)
        logger.info("Lockable file types", types=self.types)
        return result


class LockCache:
    """Path to lock owner cache with a single cache-wide refresh time.

    A successful remote query replaces the whole cache; ``add_locked_file``
    and ``remove_locked_file`` only follow lock/unlock actions done here.
    """

    def __init__(
        self,
        runner: GitCommandRunner,
        lock_user: str,
        ttl_seconds: int = LOCK_CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.runner = runner
        self.lock_user = lock_user
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self.last_updated: Optional[datetime] = None
        self._locked_files: Dict[str, str] = {}

    @property
    def locked_files(self) -> Dict[str, str]:
        return dict(self._locked_files)

    def reset(self) -> None:
        """Forget every lock and force the next refresh to query the server."""
        self._locked_files = {}
        self.last_updated = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.last_updated is None:
            return True
        now = now or self.clock()
        return now - self.last_updated > self.ttl

    def set_locked_files(self, new_locks: Dict[str, str]) -> None:
        for path, user in self._locked_files.items():
            if path not in new_locks:
                self._on_file_lock_changed(path, user, False)
        for path, user in new_locks.items():
            if path not in self._locked_files:
                self._on_file_lock_changed(path, user, True)
        self._locked_files = dict(new_locks)

    def add_locked_file(self, path: str, lock_user: str) -> None:
        self._locked_files[path] = lock_user
        self._on_file_lock_changed(path, lock_user, True)

    def remove_locked_file(self, path: str) -> None:
        lock_user = self._locked_files.pop(path, "")
        self._on_file_lock_changed(path, lock_user, False)

    def _on_file_lock_changed(self, path: str, lock_user: str, locked: bool) -> None:
        # Only our own locks drive the read-only bit
        if lock_user == self.lock_user:
            set_read_only(path, not locked)

    def _parse_locks(self, lines: List[str]) -> List[Tuple[str, str]]:
        locks = []
        for line in lines:
            parsed = parse_lock_line(line, self.runner.repository_root, self.lock_user)
            if parsed is not None:
                locks.append(parsed)
        return locks

    def refresh(self, force_invalidate: bool = False) -> LockRefreshResult:
        """Return all known locks, querying the server only when the cache expired.

        When the server cannot be reached, the last known remote locks of
        other users are combined with the local view of our own locks. If
        that fails too, the in-memory cache is returned and still reported
        as a success.
        """
        now = self.clock()
        if not force_invalidate and not self.is_expired(now):
            return LockRefreshResult(True, self.locked_files, [])

        errors: List[str] = []
        result = self.runner.run_lfs("locks")
        errors.extend(result.error_messages)
        if result.success:
            locks = dict(self._parse_locks(result.info_messages))
            self.last_updated = now
            self.set_locked_files(locks)
            logger.debug("Lock cache refreshed", locks=len(locks))
            return LockRefreshResult(True, locks, errors)

        logger.warning("Querying remote locks failed, using LFS cached and local locks")
        locks: Dict[str, str] = {}
        cached = self.runner.run_lfs("locks", ["--cached"])
        errors.extend(cached.error_messages)
        for path, user in self._parse_locks(cached.info_messages):
            if user != self.lock_user:
                locks[path] = user

        local = self.runner.run_lfs("locks", ["--local"])
        errors.extend(local.error_messages)
        for path, user in self._parse_locks(local.info_messages):
            if user == self.lock_user:
                locks[path] = user

        if cached.success and local.success:
            return LockRefreshResult(True, locks, errors)

        logger.warning("LFS lock cache unavailable, using in-memory lock cache")
        return LockRefreshResult(True, self.locked_files, errors)
