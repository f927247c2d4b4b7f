"""
Vault Key Rotation: re-encrypt the persisted state under a fresh session key.

Clearing the session key alone leaves the persisted blob undecryptable.
``rotate_session_key`` decrypts the blob under the current key first, then
clears the key and re-encrypts, so the data survives the rotation. The
operation is idempotent: running it twice simply rotates twice.

Security Note:
    Plaintext exists in memory only while the blob is re-encrypted.
    Never log plaintext or ciphertext values.
"""
import logging

from ..conf import APP_STORE_KEY
from ..exceptions import KeyRotationError
from ..storage import Storage
from .codec import Codec
from .crypto import decrypt_envelope, parse_envelope

logger = logging.getLogger("finance.vault")


async def rotate_session_key(
    storage: Storage,
    codec: Codec,
    storage_key: str = APP_STORE_KEY,
) -> dict:
    """Re-encrypt the blob stored under ``storage_key`` with a new key.

    Args:
        storage: Durable storage holding the blob.
        codec: Codec bound to the session key manager.
        storage_key: Storage slot of the blob.

    Returns:
        Stats dict with keys: rotated, skipped, legacy.

    Raises:
        KeyRotationError: If the blob cannot be decrypted under the current
            key. The session key is left untouched in that case.
    """
    stats = {"rotated": 0, "skipped": 0, "legacy": 0}
    key_manager = codec.key_manager
    raw = storage.get_item(storage_key)
    if raw is None:
        logger.info("Nothing stored under %s, clearing session key only", storage_key)
        key_manager.clear_session()
        stats["skipped"] += 1
        return stats

    envelope = parse_envelope(raw)
    if envelope is None:
        plaintext = raw
        stats["legacy"] += 1
    else:
        if key_manager.is_expired():
            raise KeyRotationError(
                "Session key is missing or expired; stored data cannot be decrypted"
            )
        key = await key_manager.get_or_create_key()
        try:
            plaintext = decrypt_envelope(
                envelope, key.material, codec.backend
            ).decode("utf-8")
        except Exception as err:
            logger.error("Error decrypting %s for rotation: %s", storage_key, err)
            raise KeyRotationError(
                f"Cannot decrypt {storage_key} under the current session key"
            ) from err

    key_manager.clear_session()
    storage.set_item(storage_key, await codec.encrypt(plaintext))
    stats["rotated"] += 1
    logger.info("Key rotation complete: %s", stats)
    return stats
