"""Finance Vault.

Client-local data protection for a personal finance tracker: session-bound
encryption at rest, strict validation with safe fallback and a bounded
security event log.
"""
from .version import __version__
from .exceptions import FinanceVaultError, KeyRotationError, StoreNotReady
from .models import (
    ApplicationState,
    Bank,
    Expense,
    FixedExpense,
    Salary,
    SecurityEvent,
    SecurityEventType,
)
from .monitor import SecurityMonitor, install_log_monitor
from .storage import FileStorage, MemoryStorage, Storage
from .store import AppStore
from .handlers import setup_security_routes
from .validation import StateValidator
from .vault import Codec, KeyManager, VaultConfig

__all__ = [
    "__version__",
    "AppStore",
    "ApplicationState",
    "Bank",
    "Codec",
    "Expense",
    "FileStorage",
    "FinanceVaultError",
    "FixedExpense",
    "KeyManager",
    "KeyRotationError",
    "MemoryStorage",
    "Salary",
    "SecurityEvent",
    "SecurityEventType",
    "SecurityMonitor",
    "StateValidator",
    "Storage",
    "StoreNotReady",
    "VaultConfig",
    "install_log_monitor",
    "setup_security_routes",
]
