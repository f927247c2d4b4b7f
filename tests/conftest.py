import pytest

from finance_vault.monitor import SecurityMonitor
from finance_vault.storage import MemoryStorage
from finance_vault.validation import StateValidator
from finance_vault.vault.codec import Codec
from finance_vault.vault.config import VaultConfig
from finance_vault.vault.keys import KeyManager


@pytest.fixture
def config(tmp_path):
    """Vault config pointing at a throwaway storage path."""
    return VaultConfig(storage_path=tmp_path / "local-storage.json")


@pytest.fixture
def local_storage():
    """Durable storage stand-in."""
    return MemoryStorage()


@pytest.fixture
def session_storage():
    """Session-scoped storage holding the key."""
    return MemoryStorage()


@pytest.fixture
def key_manager(session_storage, config):
    return KeyManager(session_storage, config)


@pytest.fixture
def codec(key_manager):
    return Codec(key_manager)


@pytest.fixture
def validator():
    return StateValidator()


@pytest.fixture
def monitor(local_storage, config):
    return SecurityMonitor(local_storage, config, agent="pytest")


BANK_A = "0b8f5a52-6d1c-4a53-9a52-1f1b7c0e2a01"
BANK_B = "7c2e9a10-3b4d-4f5e-8a6b-2c3d4e5f6a02"


def expense_record(
    expense_id: str,
    bank_id: str = BANK_A,
    day: str = "2025-06-03",
    amount: float = 1000,
    description: str = "Supermercado",
    **flags,
) -> dict:
    """Wire-format expense record."""
    record = {
        "id": expense_id,
        "amount": amount,
        "description": description,
        "date": day,
        "bankId": bank_id,
        "card": "Visa",
        "cuotas": False,
        "isSubscription": False,
    }
    record.update(flags)
    return record


@pytest.fixture
def wire_state():
    """A valid ApplicationState in wire format."""
    return {
        "banks": [
            {"id": BANK_A, "name": "Banco X"},
            {"id": BANK_B, "name": "Banco Y"},
        ],
        "expenses": [
            expense_record("d1b6c9a0-1f2e-4c3d-9b8a-7f6e5d4c3b01"),
            expense_record(
                "d1b6c9a0-1f2e-4c3d-9b8a-7f6e5d4c3b02",
                bank_id=BANK_B,
                amount=250.5,
                description="Netflix",
                isSubscription=True,
            ),
            expense_record(
                "d1b6c9a0-1f2e-4c3d-9b8a-7f6e5d4c3b03",
                description="Heladera",
                cuotas=True,
                cuotasCount=12,
            ),
        ],
        "salary": {"amountUSD": 2000, "rate": 1200, "amountARS": 2400000},
        "fixedExpenses": {
            "alquiler": 350000,
            "expensas": 60000,
            "internet": 15000,
            "luz": 12000,
        },
    }
