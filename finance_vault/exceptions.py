"""Finance Vault exceptions."""


class FinanceVaultError(Exception):
    """Base class for Finance Vault errors."""


class StoreNotReady(FinanceVaultError):
    """A mutation was attempted before the store finished hydrating."""


class KeyRotationError(FinanceVaultError):
    """The persisted blob could not be re-encrypted under a fresh key."""
