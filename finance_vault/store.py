"""
AppStore: hydration, mutation and persistence of the application state.

Load:    storage → Codec.decrypt → StateValidator.check → state (or fallback)
Change:  command → reduce() → scan_structure → orjson → Codec.encrypt → storage

The store refuses mutations until ``hydrate()`` has completed. Each mutating
call sanitizes its input, scans free text for injection indicators, validates
the candidate record and only then dispatches a command; the new state is
persisted before the call returns. Candidates that fail validation are
recorded as INVALID_INPUT and not committed.
"""
import logging
from datetime import date
from typing import Any, Optional

import orjson

from .actions import (
    Action,
    AddBank,
    AddExpense,
    CleanMonthlyExpenses,
    EditBank,
    EditExpense,
    Hydrate,
    RemoveBank,
    RemoveExpense,
    Reset,
    SetFixedExpenses,
    SetSalary,
    reduce,
)
from .conf import APP_STORE_KEY
from .exceptions import StoreNotReady
from .models import (
    CARD_BRANDS,
    ApplicationState,
    Bank,
    Expense,
    FixedExpense,
    Salary,
    SecurityEvent,
    SecuritySummary,
    new_id,
)
from .monitor import SecurityMonitor
from .sanitize import (
    sanitize_bank_name,
    sanitize_card_brand,
    sanitize_date,
    sanitize_expense_description,
    sanitize_installments,
    sanitize_number,
)
from .storage import FileStorage, MemoryStorage, Storage
from .validation import StateValidator, ValidationResult
from .vault.codec import Codec
from .vault.config import VaultConfig
from .vault.key_rotation import rotate_session_key
from .vault.keys import KeyManager
from .vault.timeout import SessionTimeout

logger = logging.getLogger("finance.store")

_UNSET: Any = object()


class AppStore:
    """Single writer of the persisted application state."""

    def __init__(
        self,
        storage: Storage,
        codec: Codec,
        validator: StateValidator,
        monitor: SecurityMonitor,
        timeout: Optional[SessionTimeout] = None,
    ) -> None:
        self._storage = storage
        self._codec = codec
        self._validator = validator
        self._monitor = monitor
        self._timeout = timeout or SessionTimeout(codec.key_manager)
        self._state = ApplicationState.empty()
        self._hydrated = False

    @classmethod
    async def open(
        cls,
        config: Optional[VaultConfig] = None,
        storage: Optional[Storage] = None,
        session_storage: Optional[Storage] = None,
    ) -> "AppStore":
        """Wire the components and hydrate from storage.

        This is the primary constructor used at process start.

        Args:
            config: Vault configuration; read from environment when omitted.
            storage: Durable storage; a FileStorage at ``config.storage_path``
                when omitted.
            session_storage: Session-scoped storage for the key; a fresh
                MemoryStorage when omitted.

        Returns:
            A hydrated AppStore.
        """
        config = config or VaultConfig.from_env()
        if storage is None:
            storage = FileStorage(config.storage_path)
        if session_storage is None:
            session_storage = MemoryStorage()
        keys = KeyManager(session_storage, config)
        store = cls(
            storage=storage,
            codec=Codec(keys, backend=config.cipher_backend),
            validator=StateValidator(),
            monitor=SecurityMonitor(storage, config),
            timeout=SessionTimeout(keys, config.inactivity_timeout),
        )
        await store.hydrate()
        return store

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._hydrated

    @property
    def monitor(self) -> SecurityMonitor:
        return self._monitor

    @property
    def key_manager(self) -> KeyManager:
        return self._codec.key_manager

    def dispatch(self, action: Action) -> ApplicationState:
        """Apply a command to the in-memory state (no persistence)."""
        if not self._hydrated and not isinstance(action, Hydrate):
            raise StoreNotReady(
                f"{type(action).__name__} dispatched before hydration completed"
            )
        self._state = reduce(action, self._state)
        return self._state

    async def _commit(self, action: Action) -> ApplicationState:
        state = self.dispatch(action)
        self._timeout.touch()
        await self.persist()
        return state

    async def hydrate(self) -> ApplicationState:
        """Load, decrypt and validate the persisted state.

        A blob that fails validation is replaced by the empty state; a
        warning is logged but nothing is raised.
        """
        raw = self._storage.get_item(APP_STORE_KEY)
        if raw is None:
            self.dispatch(Hydrate(ApplicationState.empty()))
            self._hydrated = True
            logger.info("No stored state, starting empty")
            return self._state
        plaintext = await self._codec.decrypt(raw)
        result = self._validator.check(plaintext)
        if result.valid:
            state = result.state
        else:
            logger.warning("Stored state rejected, using safe fallback")
            state = self._validator.safe_fallback()
        self.dispatch(Hydrate(state))
        self._hydrated = True
        # re-encrypts legacy plaintext and replaces rejected blobs
        await self.persist()
        logger.info(
            "State hydrated: %d bank(s), %d expense(s)",
            len(state.banks), len(state.expenses),
        )
        return self._state

    async def persist(self) -> None:
        """Encrypt and write the current state.

        Storage failures propagate.
        """
        wire = self._state.to_wire()
        self._monitor.scan_structure(wire, APP_STORE_KEY)
        payload = orjson.dumps(wire).decode("utf-8")
        blob = await self._codec.encrypt(payload)
        self._storage.set_item(APP_STORE_KEY, blob)

    async def reset(self) -> ApplicationState:
        """Explicitly replace the state with the empty state."""
        return await self._commit(Reset())

    # ------------------------------------------------------------------
    # Input helpers
    # ------------------------------------------------------------------

    def _text(self, value: Any, context: str) -> Optional[str]:
        if not isinstance(value, str):
            self._monitor.record_invalid_input(value, "string", context)
            return None
        self._monitor.scan_input(value)
        return value

    def _accept(self, result: ValidationResult, candidate: dict, context: str):
        if result.valid:
            return result.state
        logger.info("Rejected %s: %s", context, "; ".join(result.errors))
        self._monitor.record_invalid_input(candidate, f"valid {context}", context)
        return None

    # ------------------------------------------------------------------
    # Banks
    # ------------------------------------------------------------------

    async def add_bank(self, name: Any) -> Optional[Bank]:
        text = self._text(name, "bank name")
        if text is None:
            return None
        clean = sanitize_bank_name(text)
        if not clean:
            return None
        candidate = {"id": new_id(), "name": clean}
        bank = self._accept(self._validator.validate_bank(candidate), candidate, "bank")
        if bank is None:
            return None
        await self._commit(AddBank(bank))
        return bank

    async def edit_bank(self, bank_id: str, name: Any) -> Optional[Bank]:
        if self._state.bank(bank_id) is None:
            return None
        text = self._text(name, "bank name")
        if text is None:
            return None
        clean = sanitize_bank_name(text)
        if not clean:
            return None
        await self._commit(EditBank(bank_id, clean))
        return self._state.bank(bank_id)

    async def remove_bank(self, bank_id: str) -> bool:
        """Remove a bank and every expense charged to it."""
        if self._state.bank(bank_id) is None:
            return False
        await self._commit(RemoveBank(bank_id))
        return True

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def _expense_candidate(
        self,
        expense_id: str,
        amount: Any,
        description: Any,
        bank_id: Any,
        card: Any,
        cuotas: Any,
        cuotas_count: Any,
        is_subscription: Any,
        day: Any,
    ) -> Optional[Expense]:
        text = self._text(description, "expense description")
        if text is None:
            return None
        value = sanitize_number(amount)
        if value <= 0:
            self._monitor.record_invalid_input(amount, "positive number", "expense amount")
            return None
        if self._state.bank(bank_id) is None:
            self._monitor.record_invalid_input(bank_id, "bank id", "expense bank")
            return None
        if card not in CARD_BRANDS:
            self._monitor.record_invalid_input(card, "card brand", "expense card")
        installments = bool(cuotas)
        candidate = {
            "id": expense_id,
            "amount": value,
            "description": sanitize_expense_description(text),
            "date": sanitize_date(day),
            "bankId": bank_id,
            "card": sanitize_card_brand(card),
            "cuotas": installments,
            "cuotasCount": sanitize_installments(cuotas_count) if installments else None,
            "isSubscription": bool(is_subscription),
        }
        return self._accept(
            self._validator.validate_expense(candidate), candidate, "expense"
        )

    async def add_expense(
        self,
        amount: Any,
        description: Any,
        bank_id: str,
        card: Any = "Visa",
        cuotas: bool = False,
        is_subscription: bool = False,
        cuotas_count: Optional[int] = None,
        date: Any = None,
    ) -> Optional[Expense]:
        """Add an expense charged to an existing bank.

        ``date`` defaults to today; the description is scanned, tag-stripped
        and capped at 200 characters.
        """
        expense = self._expense_candidate(
            new_id(), amount, description, bank_id, card,
            cuotas, cuotas_count, is_subscription, date,
        )
        if expense is None:
            return None
        await self._commit(AddExpense(expense))
        return expense

    async def edit_expense(
        self,
        expense_id: str,
        amount: Any = _UNSET,
        description: Any = _UNSET,
        bank_id: Any = _UNSET,
        card: Any = _UNSET,
        cuotas: Any = _UNSET,
        is_subscription: Any = _UNSET,
        cuotas_count: Any = _UNSET,
        date: Any = _UNSET,
    ) -> Optional[Expense]:
        """Change the given fields of an expense; omitted fields are kept."""
        current = self._state.expense(expense_id)
        if current is None:
            return None

        def pick(value: Any, existing: Any) -> Any:
            return existing if value is _UNSET else value

        expense = self._expense_candidate(
            expense_id,
            pick(amount, current.amount),
            pick(description, current.description),
            pick(bank_id, current.bank_id),
            pick(card, current.card),
            pick(cuotas, current.cuotas),
            pick(cuotas_count, current.cuotas_count),
            pick(is_subscription, current.is_subscription),
            pick(date, current.date),
        )
        if expense is None:
            return None
        await self._commit(EditExpense(expense))
        return expense

    async def remove_expense(self, expense_id: str) -> bool:
        if self._state.expense(expense_id) is None:
            return False
        await self._commit(RemoveExpense(expense_id))
        return True

    async def clean_monthly_expenses(self, today: Optional[date] = None) -> int:
        """Drop past, non-recurring expenses.

        Keeps every expense dated in the current month plus any installment
        or subscription expense regardless of its month.

        Returns:
            Number of expenses removed.
        """
        before = len(self._state.expenses)
        await self._commit(CleanMonthlyExpenses(today or date.today()))
        removed = before - len(self._state.expenses)
        logger.info("Monthly cleanup removed %d expense(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Salary and fixed expenses
    # ------------------------------------------------------------------

    async def set_salary(self, amount_usd: Any, rate: Any) -> Optional[Salary]:
        """Set the USD salary and exchange rate; the ARS amount is derived."""
        usd = sanitize_number(amount_usd)
        fx = sanitize_number(rate)
        candidate = {"amountUSD": usd, "rate": fx, "amountARS": usd * fx}
        salary = self._accept(
            self._validator.validate_salary(candidate), candidate, "salary"
        )
        if salary is None:
            return None
        await self._commit(SetSalary(salary))
        return salary

    async def set_fixed_expenses(
        self,
        alquiler: Any = 0,
        expensas: Any = 0,
        internet: Any = 0,
        luz: Any = 0,
    ) -> Optional[FixedExpense]:
        candidate = {
            "alquiler": sanitize_number(alquiler),
            "expensas": sanitize_number(expensas),
            "internet": sanitize_number(internet),
            "luz": sanitize_number(luz),
        }
        fixed = self._accept(
            self._validator.validate_fixed_expenses(candidate),
            candidate,
            "fixed expenses",
        )
        if fixed is None:
            return None
        await self._commit(SetFixedExpenses(fixed))
        return fixed

    # ------------------------------------------------------------------
    # Derived figures
    # ------------------------------------------------------------------

    def monthly_total(self, today: Optional[date] = None) -> float:
        """Sum of the expenses dated in the current month."""
        today = today or date.today()
        return sum(e.amount for e in self._state.expenses if e.in_month(today))

    def salary_ars(self) -> float:
        salary = self._state.salary
        if salary is None:
            return 0.0
        return salary.amount_usd * salary.rate

    # ------------------------------------------------------------------
    # Monitoring surface
    # ------------------------------------------------------------------

    def security_log(self) -> list[SecurityEvent]:
        return self._monitor.log()

    def clear_security_log(self) -> None:
        self._monitor.clear_log()

    def security_summary(self) -> SecuritySummary:
        return self._monitor.summary()

    def session_expired(self) -> bool:
        return self.key_manager.is_expired()

    def check_timeout(self) -> bool:
        """Poll the inactivity watchdog; clears the key once expired."""
        return self._timeout.check()

    def clear_session(self) -> None:
        """Forget the session key; stored data stays encrypted under it."""
        self.key_manager.clear_session()

    async def rotate_key(self) -> dict:
        """Re-encrypt the stored state under a fresh session key."""
        return await rotate_session_key(self._storage, self._codec)
