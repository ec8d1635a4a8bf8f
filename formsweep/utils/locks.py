"""Process lock for the scheduler runner.

A PID-stamped lock file keeps a second scheduler process from firing the
same triggers. Locks left by a dead process are reclaimed.
"""

from __future__ import annotations

import os
import time
from pathlib import Path

from loguru import logger


class JobLock:
    """Context manager for a file-based single-instance lock."""

    def __init__(self, lock_file: str | Path, timeout: float = 0.0):
        """
        Initialize the lock.

        Args:
            lock_file: Path to lock file
            timeout: Time to wait for the lock (0 = no wait)
        """
        self.lock_file = Path(lock_file)
        self.timeout = timeout
        self._acquired = False

    def __enter__(self) -> bool:
        """Attempt to acquire the lock; evaluates to whether it was acquired."""
        start_time = time.time()

        while True:
            if self._try_acquire():
                self._acquired = True
                return True

            if self.timeout <= 0 or time.time() - start_time >= self.timeout:
                return False

            time.sleep(0.1)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._acquired:
            try:
                self.lock_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to release lock {self.lock_file}: {e}")
            self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    def _try_acquire(self) -> bool:
        if self.lock_file.exists():
            if not self._is_stale():
                return False
            logger.info(f"Cleaning stale lock: {self.lock_file}")
            self.lock_file.unlink(missing_ok=True)

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            # O_EXCL: only one process can create the file
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return True

    def _is_stale(self) -> bool:
        """A lock is stale when its PID is unreadable or no longer running."""
        try:
            pid = int(self.lock_file.read_text().strip())
        except (ValueError, FileNotFoundError):
            return True

        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        except PermissionError:
            # Process exists but belongs to another user
            return False
        return False
