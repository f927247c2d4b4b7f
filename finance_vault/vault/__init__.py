"""Finance Vault: encryption at rest bound to a session key.

Security Note (Threat Model):
    The session key lives in session-scoped storage next to the process.
    Anyone able to read that storage, or a memory dump of the process, can
    decrypt the persisted state. Encryption at rest defends against
    inspection of durable local storage only, not against a compromised
    runtime.
"""

from .codec import Codec
from .config import VaultConfig
from .key_rotation import rotate_session_key
from .keys import KeyManager, SessionKey
from .timeout import SessionTimeout

__all__ = [
    "Codec",
    "VaultConfig",
    "KeyManager",
    "SessionKey",
    "SessionTimeout",
    "rotate_session_key",
]
