"""
Codec: encrypts and decrypts the serialized application state.

Security Note (fail-open):
    ``encrypt`` returns the plaintext unchanged when encryption fails, so a
    local crypto fault never blocks saving. This trades confidentiality for
    availability: the blob is then stored unencrypted until the next
    successful persist. Deployments that prefer a hard failure should set
    ``fail_open=False``.

    ``decrypt`` never raises. Legacy unencrypted blobs are returned as-is,
    undecryptable envelopes degrade to the raw JSON or ``"{}"``.
"""
import logging

import orjson

from .crypto import decrypt_envelope, encrypt_envelope, parse_envelope
from .keys import KeyManager

logger = logging.getLogger("finance.vault")

EMPTY_OBJECT = "{}"


class Codec:
    """Envelope encryption of string blobs under the session key."""

    def __init__(
        self,
        key_manager: KeyManager,
        backend: str = "aesgcm",
        fail_open: bool = True,
    ) -> None:
        self._keys = key_manager
        self._backend = backend
        self._fail_open = fail_open

    @property
    def key_manager(self) -> KeyManager:
        return self._keys

    @property
    def backend(self) -> str:
        return self._backend

    async def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` into a serialized envelope.

        Returns:
            Envelope JSON, or ``plaintext`` itself if encryption failed
            and the codec is fail-open.
        """
        try:
            key = await self._keys.get_or_create_key()
            envelope = encrypt_envelope(
                plaintext.encode("utf-8"), key.material, self._backend
            )
            return envelope.dumps()
        except Exception as err:
            if not self._fail_open:
                raise
            logger.error(
                "Encryption failed, storing unencrypted data: %s", err
            )
            return plaintext

    async def decrypt(self, serialized: str) -> str:
        """Decrypt a serialized envelope.

        Returns:
            The plaintext; ``serialized`` unchanged if it is not an envelope
            or if it is JSON that cannot be decrypted; ``"{}"`` otherwise.
        """
        envelope = parse_envelope(serialized)
        if envelope is None:
            # legacy or fail-open write
            return serialized
        try:
            key = await self._keys.get_or_create_key()
            plaintext = decrypt_envelope(envelope, key.material, self._backend)
            return plaintext.decode("utf-8")
        except Exception as err:
            logger.error("Decryption failed: %s", type(err).__name__)
        try:
            orjson.loads(serialized)
            return serialized
        except (orjson.JSONDecodeError, TypeError):
            return EMPTY_OBJECT
