"""Session watchdog: expires the session after inactivity or key lifetime."""
import logging
import time
from typing import Optional

from .keys import KeyManager

logger = logging.getLogger("finance.vault")


class SessionTimeout:
    """Tracks user activity and clears the session key once it expires.

    ``check()`` is meant to be polled periodically (once a minute is enough).
    """

    def __init__(self, key_manager: KeyManager, inactivity_timeout: int = 1800):
        self._keys = key_manager
        self._timeout = inactivity_timeout
        self._last_activity = time.time()
        self._expired = False

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def last_activity(self) -> float:
        return self._last_activity

    def touch(self, now: Optional[float] = None) -> None:
        """Record user activity; resets a previously expired flag."""
        self._last_activity = now if now is not None else time.time()
        self._expired = False

    def check(self, now: Optional[float] = None) -> bool:
        """Return True when the session expired, clearing the session key."""
        now = now if now is not None else time.time()
        idle = now - self._last_activity
        if idle > self._timeout or self._keys.is_expired():
            if not self._expired:
                logger.info("Session expired (idle=%.0fs)", idle)
            self._expired = True
            self._keys.clear_session()
        return self._expired
