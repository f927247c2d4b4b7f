"""
State validation with safe fallback.

Decrypted data is untrusted: it is parsed and checked against the strict
record models before it may become application state. A single bad field
rejects the whole state; the caller then substitutes ``safe_fallback()``.
Nothing is repaired field by field, so no financial figure is ever
fabricated from corrupted data.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

import orjson
from pydantic import BaseModel, ValidationError

from .models import ApplicationState, Bank, Expense, FixedExpense, Salary

logger = logging.getLogger("finance.validation")

M = TypeVar("M", bound=BaseModel)


@dataclass
class ValidationResult(Generic[M]):
    valid: bool
    state: Optional[M] = None
    errors: list[str] = field(default_factory=list)


def _format_errors(err: ValidationError) -> list[str]:
    messages = []
    for issue in err.errors(include_url=False):
        location = ".".join(str(part) for part in issue["loc"])
        if location:
            messages.append(f"{location}: {issue['msg']}")
        else:
            messages.append(issue["msg"])
    return messages


def _validate(model: type[M], data: Any) -> ValidationResult[M]:
    if isinstance(data, (str, bytes)):
        try:
            data = orjson.loads(data)
        except orjson.JSONDecodeError as err:
            return ValidationResult(valid=False, errors=[f"invalid JSON: {err}"])
    try:
        return ValidationResult(valid=True, state=model.model_validate(data))
    except ValidationError as err:
        return ValidationResult(valid=False, errors=_format_errors(err))
    except (TypeError, ValueError, RecursionError) as err:
        return ValidationResult(valid=False, errors=[str(err)])


class StateValidator:
    """Schema gate between decrypted storage and application state."""

    def check(self, data: Any) -> ValidationResult[ApplicationState]:
        """Validate a decoded blob (or its JSON text) as ApplicationState.

        Never raises: every failure is reported as ``valid=False``.
        """
        result = _validate(ApplicationState, data)
        if not result.valid:
            logger.warning(
                "App state validation failed (%d issue(s)): %s",
                len(result.errors), "; ".join(result.errors[:5]),
            )
        return result

    def safe_fallback(self) -> ApplicationState:
        """Canonical empty state used whenever validation fails."""
        return ApplicationState.empty()

    def validate_bank(self, data: Any) -> ValidationResult[Bank]:
        return _validate(Bank, data)

    def validate_expense(self, data: Any) -> ValidationResult[Expense]:
        return _validate(Expense, data)

    def validate_salary(self, data: Any) -> ValidationResult[Salary]:
        return _validate(Salary, data)

    def validate_fixed_expenses(self, data: Any) -> ValidationResult[FixedExpense]:
        return _validate(FixedExpense, data)
