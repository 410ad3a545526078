"""
Advisory lock around registry mutations.

Install and uninstall hold `{root}/.registry.lock` for their
validate -> mutate -> persist sequence. The lock file is created with
O_CREAT | O_EXCL so exactly one holder wins; waiters poll until the
timeout. A lock older than `stale_after` seconds is assumed abandoned and
broken.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Optional

from aiwg.lib.typed_errors import RegistryLockError

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".registry.lock"
POLL_INTERVAL = 0.05


class RegistryLock:
    """Context manager holding the advisory registry lock."""

    def __init__(self, root: Path, timeout: float = 10.0, stale_after: float = 300.0):
        self.path = Path(root) / LOCK_FILENAME
        self.timeout = timeout
        self.stale_after = stale_after
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        deadline = time.monotonic() + self.timeout
        self.path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self._break_if_stale():
                    continue
                if time.monotonic() >= deadline:
                    raise RegistryLockError(str(self.path), self.timeout)
                time.sleep(POLL_INTERVAL)
                continue
            try:
                os.write(fd, json.dumps({"pid": os.getpid(), "acquiredAt": time.time()}).encode("utf-8"))
            finally:
                os.close(fd)
            self._held = True
            logger.debug(f"Acquired registry lock: {self.path}")
            return

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Registry lock vanished before release: {self.path}")
        logger.debug(f"Released registry lock: {self.path}")

    def _break_if_stale(self) -> bool:
        age = self._age()
        if age is None or age < self.stale_after:
            return False
        logger.warning(f"Breaking stale registry lock ({age:.0f}s old): {self.path}")
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        return True

    def _age(self) -> Optional[float]:
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def __enter__(self) -> "RegistryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
