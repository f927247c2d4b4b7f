"""
Key Manager: one symmetric key per session, regenerated after its lifetime.

The exportable key material and its creation timestamp are kept in
session-scoped storage as ``{"key": [byte, ...], "timestamp": <ms>}``.
A key older than the configured lifetime is never reused.

Security Note:
    Never log key material. Only log creation timestamps and lifetimes.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import orjson

from ..conf import ENCRYPTION_KEY_STORAGE
from ..storage import Storage
from .config import VaultConfig
from .crypto import KEY_LENGTH, generate_key_material, now_ms

logger = logging.getLogger("finance.vault")


@dataclass(frozen=True)
class SessionKey:
    """Opaque handle over the active session key."""

    material: bytes = field(repr=False)
    created: int

    def age(self, now: Optional[int] = None) -> int:
        """Age of the key in milliseconds."""
        return (now if now is not None else now_ms()) - self.created

    def is_expired(self, lifetime_ms: int, now: Optional[int] = None) -> bool:
        return self.age(now) > lifetime_ms

    def export(self) -> str:
        """Serialize to the session key record."""
        return orjson.dumps(
            {"key": list(self.material), "timestamp": self.created}
        ).decode("utf-8")


def _load_record(raw: str) -> SessionKey:
    """Parse a stored session key record.

    Raises:
        ValueError: If the record is malformed or the key is not 32 bytes.
    """
    record = orjson.loads(raw)
    if not isinstance(record, dict):
        raise ValueError("Session key record is not an object")
    key = record.get("key")
    timestamp = record.get("timestamp")
    # browsers may export the byte array as an index-keyed object
    if isinstance(key, dict):
        key = list(key.values())
    if not isinstance(key, list) or not isinstance(timestamp, (int, float)):
        raise ValueError("Session key record is missing key or timestamp")
    material = bytes(key)
    if len(material) != KEY_LENGTH:
        raise ValueError(
            f"Session key must be exactly {KEY_LENGTH} bytes, got {len(material)}"
        )
    return SessionKey(material=material, created=int(timestamp))


class KeyManager:
    """Creates, reuses and expires the session key.

    The session storage handle is injected; it is the only place the key
    material is kept.
    """

    def __init__(
        self,
        session_storage: Storage,
        config: Optional[VaultConfig] = None,
    ) -> None:
        self._storage = session_storage
        self._config = config or VaultConfig()

    @property
    def lifetime_ms(self) -> int:
        return self._config.session_lifetime_ms

    def _stored_key(self) -> Optional[SessionKey]:
        raw = self._storage.get_item(ENCRYPTION_KEY_STORAGE)
        if raw is None:
            return None
        try:
            return _load_record(raw)
        except (ValueError, TypeError) as err:
            logger.warning("Discarding unreadable session key record: %s", err)
            return None

    def _generate(self) -> SessionKey:
        key = SessionKey(material=generate_key_material(), created=now_ms())
        self._storage.set_item(ENCRYPTION_KEY_STORAGE, key.export())
        logger.info("Generated new session key (created=%d)", key.created)
        return key

    async def get_or_create_key(self) -> SessionKey:
        """Return the active key, generating a fresh one if needed.

        Returns:
            The unexpired session key.

        Raises:
            Exception: Key generation or storage failures propagate.
        """
        key = self._stored_key()
        if key is not None:
            if not key.is_expired(self.lifetime_ms):
                return key
            logger.info(
                "Session key expired (age=%dms), regenerating", key.age()
            )
            self._storage.remove_item(ENCRYPTION_KEY_STORAGE)
        return self._generate()

    def is_expired(self) -> bool:
        """True if no usable key is stored or its lifetime has elapsed.

        Never creates a key.
        """
        key = self._stored_key()
        if key is None:
            return True
        return key.is_expired(self.lifetime_ms)

    def clear_session(self) -> None:
        """Forget the session key; data encrypted under it becomes unreadable."""
        self._storage.remove_item(ENCRYPTION_KEY_STORAGE)
        logger.info("Session key cleared")
