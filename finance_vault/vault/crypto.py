"""
Vault Crypto Core: key generation, AEAD encryption and envelope serialization.

Envelope format (persisted under ``app-store``):
    {"data": <hex ciphertext + tag>, "iv": <hex 96-bit nonce>, "timestamp": <ms>}

Security Note:
    Never log plaintext, ciphertext or key material.
    Nonces are random 96-bit, drawn per encryption call; collision probability
    is negligible under normal usage.
"""
import os
import time
import logging
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

logger = logging.getLogger("finance.vault")

NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # 256-bit key
TAG_SIZE = 16


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def get_cipher_cls(backend: str = "aesgcm") -> type:
    """Return the AEAD cipher class for a configured backend name."""
    if backend.lower() == "chacha20":
        return ChaCha20Poly1305
    return AESGCM


def generate_key_material() -> bytes:
    """Generate fresh 256-bit symmetric key material."""
    return AESGCM.generate_key(bit_length=KEY_LENGTH * 8)


class EncryptedEnvelope(BaseModel):
    """Persisted-at-rest container for one encrypted state blob."""

    model_config = ConfigDict(strict=True, frozen=True)

    data: str = Field(min_length=1)
    iv: str = Field(min_length=1)
    timestamp: int = Field(gt=0)

    def dumps(self) -> str:
        return orjson.dumps(self.model_dump()).decode("utf-8")


def parse_envelope(serialized: Any) -> Optional[EncryptedEnvelope]:
    """Parse ``serialized`` as an envelope.

    Returns None when the input is not JSON, not an object, or lacks any of
    the non-empty ``data``/``iv``/``timestamp`` fields. Such input is treated
    as plaintext by callers.
    """
    if not isinstance(serialized, (str, bytes)):
        return None
    try:
        raw = orjson.loads(serialized)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return EncryptedEnvelope.model_validate(raw)
    except ValidationError:
        return None


def encrypt_envelope(
    plaintext: bytes, key: bytes, backend: str = "aesgcm"
) -> EncryptedEnvelope:
    """Encrypt plaintext into a new envelope with a fresh nonce.

    Args:
        plaintext: Data to encrypt.
        key: Raw 32-byte key.
        backend: AEAD backend name.

    Returns:
        EncryptedEnvelope holding hex ciphertext and nonce.
    """
    cipher = get_cipher_cls(backend)(key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext, None)
    return EncryptedEnvelope(data=ct.hex(), iv=nonce.hex(), timestamp=now_ms())


def decrypt_envelope(
    envelope: EncryptedEnvelope, key: bytes, backend: str = "aesgcm"
) -> bytes:
    """Decrypt an envelope.

    Raises:
        ValueError: If the hex fields are malformed or too short.
        cryptography.exceptions.InvalidTag: If authentication fails.
    """
    nonce = bytes.fromhex(envelope.iv)
    ct = bytes.fromhex(envelope.data)
    if len(nonce) != NONCE_SIZE:
        raise ValueError(
            f"iv must be {NONCE_SIZE} bytes, got {len(nonce)}"
        )
    if len(ct) < TAG_SIZE:
        raise ValueError(
            f"ciphertext too short: {len(ct)} bytes (minimum {TAG_SIZE})"
        )
    cipher = get_cipher_cls(backend)(key)
    return cipher.decrypt(nonce, ct, None)
