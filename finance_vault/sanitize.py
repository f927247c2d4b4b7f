"""
Input sanitization for user-supplied fields.

Free text is tag-stripped (script and style contents dropped entirely),
trimmed and length-capped; numbers, dates and card brands are coerced to a
safe value instead of being rejected.
"""
import math
from datetime import date
from typing import Any, Optional

import nh3

from .models import CARD_BRANDS

# Maximum lengths for different input types
INPUT_LIMITS = {
    "bank_name": 50,
    "expense_description": 200,
    "fixed_expense_name": 100,
    "general_text": 500,
}


def sanitize_input(text: Any, max_length: int = INPUT_LIMITS["general_text"]) -> str:
    """Strip every HTML tag from ``text``, trim it and cap its length.

    Non-string input sanitizes to the empty string.
    """
    if not isinstance(text, str):
        return ""
    cleaned = nh3.clean(text, tags=set()).strip()
    return cleaned[:max_length]


def sanitize_bank_name(name: Any) -> str:
    return sanitize_input(name, INPUT_LIMITS["bank_name"])


def sanitize_expense_description(description: Any) -> str:
    return sanitize_input(description, INPUT_LIMITS["expense_description"])


def sanitize_number(value: Any) -> float:
    """Coerce to a finite, non-negative float; anything else becomes 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(num):
        return 0.0
    return max(0.0, num)


def sanitize_date(value: Any, today: Optional[date] = None) -> str:
    """Return ``value`` if it is a ``YYYY-MM-DD`` calendar date, else today."""
    fallback = (today or date.today()).isoformat()
    if not isinstance(value, str):
        return fallback
    try:
        parsed = date.fromisoformat(value.strip())
    except ValueError:
        return fallback
    return parsed.isoformat()


def sanitize_card_brand(brand: Any) -> str:
    """Only known card brands pass; anything else defaults to Visa."""
    return brand if brand in CARD_BRANDS else "Visa"


def sanitize_installments(count: Any) -> Optional[int]:
    """Installment count clamped to 1..60, or None when absent/invalid."""
    if count is None or isinstance(count, bool):
        return None
    try:
        num = int(count)
    except (TypeError, ValueError, OverflowError):
        return None
    return min(max(num, 1), 60)
