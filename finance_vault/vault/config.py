"""
Vault Configuration: validated settings for key lifetime, cipher and storage.

Reads optional overrides from environment variables:
    FINANCE_VAULT_SESSION_LIFETIME = <seconds a session key may be reused>
    FINANCE_VAULT_INACTIVITY_TIMEOUT = <seconds of inactivity before expiry>
    FINANCE_VAULT_CIPHER_BACKEND = aesgcm | chacha20
    FINANCE_VAULT_STORAGE_PATH = <path of the durable storage file>
    FINANCE_VAULT_MAX_LOG_ENTRIES = <security log capacity>

Security Note:
    Never log key material. Only log lifetimes, paths and backend names.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..conf import (
    SESSION_LIFETIME,
    INACTIVITY_TIMEOUT,
    SUMMARY_WINDOW,
    MAX_LOG_ENTRIES,
    MAX_STRUCTURE_SIZE,
    MAX_NESTING_DEPTH,
    NESTING_SCAN_LIMIT,
)

logger = logging.getLogger("finance.vault")

_ENV_PREFIX = "FINANCE_VAULT_"

SUPPORTED_BACKENDS = ("aesgcm", "chacha20")


def default_storage_path() -> Path:
    """Location of the durable storage file when none is configured."""
    return Path.home() / ".finance_vault" / "local-storage.json"


def _env_int(name: str) -> int | None:
    raw = os.environ.get(f"{_ENV_PREFIX}{name}")
    if raw is None or not raw.strip():
        return None
    return int(raw)


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    session_lifetime: int = Field(default=SESSION_LIFETIME, ge=60)
    inactivity_timeout: int = Field(default=INACTIVITY_TIMEOUT, ge=60)
    cipher_backend: str = Field(default="aesgcm")
    storage_path: Path = Field(default_factory=default_storage_path)
    max_log_entries: int = Field(default=MAX_LOG_ENTRIES, ge=1, le=10000)
    summary_window: int = Field(default=SUMMARY_WINDOW, ge=60)
    max_structure_size: int = Field(default=MAX_STRUCTURE_SIZE, ge=1)
    max_nesting_depth: int = Field(default=MAX_NESTING_DEPTH, ge=1)
    nesting_scan_limit: int = Field(default=NESTING_SCAN_LIMIT, ge=1)

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @property
    def session_lifetime_ms(self) -> int:
        return self.session_lifetime * 1000

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading overrides from environment.

        Variables that are not set keep their defaults.

        Returns:
            Populated VaultConfig instance.
        """
        values: dict = {}
        for field, name in (
            ("session_lifetime", "SESSION_LIFETIME"),
            ("inactivity_timeout", "INACTIVITY_TIMEOUT"),
            ("max_log_entries", "MAX_LOG_ENTRIES"),
        ):
            value = _env_int(name)
            if value is not None:
                values[field] = value
        backend = os.environ.get(f"{_ENV_PREFIX}CIPHER_BACKEND")
        if backend:
            values["cipher_backend"] = backend
        path = os.environ.get(f"{_ENV_PREFIX}STORAGE_PATH")
        if path:
            values["storage_path"] = Path(path).expanduser()
        config = cls(**values)
        logger.debug(
            "Vault config: backend=%s lifetime=%ss storage=%s",
            config.cipher_backend, config.session_lifetime, config.storage_path,
        )
        return config
