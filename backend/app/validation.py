from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


# Maximum price: $9,999,999.99
# Matches the Numeric(12, 2) column and keeps Stripe unit amounts sane
MAX_PRICE = Decimal("9999999.99")

# Maximum extra trainees / kits on a single proposal
MAX_EXTRA_UNITS = 10_000

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MARKUP_RE = re.compile(r"[<>]")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"error": str(self)}
        if self.fields:
            payload["fields"] = self.fields
        return payload


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., proposal already signed)."""


class NotFoundError(ValueError):
    """404-level unknown proposal id."""


class PreconditionFailedError(ValueError):
    """412-level lifecycle precondition (e.g., payment requested before signing)."""


def strip_markup(value: Any) -> Any:
    """Drop angle brackets so user text cannot inject markup into emails."""
    if not isinstance(value, str):
        return value
    return MARKUP_RE.sub("", value).strip()


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


def coerce_int(key: str, value: Any, *, minimum: int = 0, maximum: int = MAX_EXTRA_UNITS) -> int:
    """
    Strict integer coercion - rejects floats, bools and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", {key: "must be an integer"})
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or not re.fullmatch(r"-?\d+", stripped):
            raise ValidationError(f"{key} must be a plain integer", {key: "must be a plain integer"})
        result = int(stripped)
    else:
        raise ValidationError(f"{key} must be an integer", {key: "must be an integer"})

    if result < minimum:
        raise ValidationError(f"{key} must be >= {minimum}", {key: f"must be >= {minimum}"})
    if result > maximum:
        raise ValidationError(f"{key} cannot exceed {maximum}", {key: f"cannot exceed {maximum}"})
    return result


def coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
        raise ValidationError(f"{key} must be a boolean", {key: "must be a boolean"})
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(f"{key} must be a boolean", {key: "must be a boolean"})


def coerce_price(key: str, value: Any) -> Decimal:
    """
    Parse a currency amount into a 2-place Decimal, rounding half up.

    Floats are routed through str() so 1999.99 stays 1999.99.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number", {key: "must be a number"})
    try:
        if isinstance(value, float):
            amount = Decimal(str(value))
        elif isinstance(value, (int, Decimal)):
            amount = Decimal(value)
        elif isinstance(value, str):
            amount = Decimal(value.strip().replace(",", "").lstrip("$"))
        else:
            raise InvalidOperation
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number", {key: "must be a number"})

    if not amount.is_finite():
        raise ValidationError(f"{key} must be a number", {key: "must be a number"})
    if amount < 0:
        raise ValidationError(f"{key} must be >= 0", {key: "must be >= 0"})
    if amount > MAX_PRICE:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE}", {key: f"cannot exceed {MAX_PRICE}"})
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
