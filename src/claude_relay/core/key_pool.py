"""Round-robin upstream key pool with temporary quarantine."""

import threading
import time
from typing import Callable

from claude_relay.errors import NoCredentialsError
from claude_relay.utils import get_logger, mask_key

logger = get_logger(__name__)


class KeyPool:
    """Pool of upstream API keys.

    Keys are handed out round-robin. A key marked as failed is skipped
    until its recovery window passes; expiry is evaluated lazily on each
    selection. When every key is quarantined the failure records are
    cleared and selection falls back to plain round-robin over all keys.
    """

    def __init__(
        self,
        keys: list[str],
        recovery_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize pool.

        Args:
            keys: Upstream API keys, fixed for the pool's lifetime
            recovery_seconds: Quarantine duration after a failure
            clock: Monotonic time source
        """
        self._keys = tuple(keys)
        self._recovery_seconds = recovery_seconds
        self._clock = clock
        self._failed: dict[str, float] = {}
        self._cursor = 0
        self._lock = threading.Lock()
        logger.info("pool.initialized", keys=len(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def select(self) -> str:
        """Pick the next key.

        Returns:
            An upstream API key

        Raises:
            NoCredentialsError: If the pool holds no keys
        """
        with self._lock:
            if not self._keys:
                raise NoCredentialsError("No upstream API keys configured")

            self._purge_expired()
            available = [key for key in self._keys if key not in self._failed]

            if not available:
                logger.warning("pool.all_keys_failed", total=len(self._keys))
                self._failed.clear()
                available = list(self._keys)

            key = available[self._cursor % len(available)]
            self._cursor += 1

        logger.debug(
            "pool.key_selected",
            key=mask_key(key),
            available=len(available),
            total=len(self._keys),
        )
        return key

    def mark_failed(self, key: str, reason: str | None = None) -> None:
        """Quarantine a key, refreshing the timestamp if already failed.

        Args:
            key: Key that failed
            reason: Failure description for logging
        """
        if key not in self._keys:
            logger.warning("pool.unknown_key", key=mask_key(key))
            return

        with self._lock:
            self._failed[key] = self._clock()

        logger.error("pool.key_failed", key=mask_key(key), reason=reason or "Unknown")

    def stats(self) -> dict[str, int]:
        """Pool health counters."""
        with self._lock:
            self._purge_expired()
            failed = len(self._failed)
        return {
            "total": len(self._keys),
            "available": len(self._keys) - failed,
            "failed": failed,
        }

    def _purge_expired(self) -> None:
        """Drop failure records older than the recovery window. Lock held."""
        now = self._clock()
        for key, failed_at in list(self._failed.items()):
            if now - failed_at > self._recovery_seconds:
                del self._failed[key]
                logger.info("pool.key_restored", key=mask_key(key))
