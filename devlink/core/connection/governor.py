"""
Instance Governor - Elects one leader among cooperating devlink processes.

Several processes may run on the same host, but only one may claim the
shared USB device. Leadership is an exclusive file lock: whoever holds it
is the leader until it releases or exits.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from filelock import FileLock, Timeout

from devlink.core.logging_utils import get_module_logger
from devlink.core.paths import LEADER_LOCK_FILE

logger = get_module_logger("InstanceGovernor")


class InstanceGovernor:
    """
    Tracks whether the election ran (``checked``) and its outcome.

    Usage:
        governor = InstanceGovernor()
        await governor.elect()
        if governor.is_leader:
            ...
        governor.release()
    """

    def __init__(self, lock_path: Path = LEADER_LOCK_FILE):
        self._lock_path = Path(lock_path)
        # Acquired in a worker thread, released from the event loop thread
        self._lock = FileLock(str(self._lock_path), thread_local=False)
        self._checked = False
        self._is_leader = False

    @property
    def checked(self) -> bool:
        return self._checked

    @property
    def is_leader(self) -> bool:
        return self._is_leader

    def _try_acquire(self) -> bool:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire(timeout=0)
        except Timeout:
            return False
        return True

    async def elect(self) -> bool:
        """Try to become leader without blocking. Re-running keeps a held lock."""
        if not self._is_leader:
            self._is_leader = await asyncio.to_thread(self._try_acquire)
        self._checked = True

        if self._is_leader:
            logger.info("This instance is the leader (%s)", self._lock_path)
        else:
            logger.info("Another instance holds %s; not claiming devices", self._lock_path)
        return self._is_leader

    def release(self) -> None:
        if not self._is_leader:
            return
        self._lock.release()
        self._is_leader = False
        logger.debug("Released leadership")


__all__ = ["InstanceGovernor"]
