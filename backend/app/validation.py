from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .services.errors import InvalidArgument


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Keeps quantity * price_cents well inside a 64-bit integer
MAX_QUANTITY = 1_000_000

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def coerce_int(name: str, value: Any) -> int:
    """
    Strict integer coercion.

    Accepts ints (not bools) and plain digit strings. Rejects floats,
    decimals and scientific notation so "2.5" units never become 2.
    """
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidArgument(f"{name} must be an integer")
        if 'e' in stripped.lower():
            raise InvalidArgument(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise InvalidArgument(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidArgument(f"{name} must be an integer")
    if isinstance(value, float):
        raise InvalidArgument(f"{name} must be an integer, not a decimal")
    raise InvalidArgument(f"{name} must be an integer")


def require_id(name: str, value: Any) -> int:
    if value is None:
        raise InvalidArgument(f"{name} is required")
    parsed = coerce_int(name, value)
    if parsed <= 0:
        raise InvalidArgument(f"{name} must be a positive integer")
    return parsed


def require_quantity(value: Any, name: str = "quantity") -> int:
    if value is None:
        raise InvalidArgument(f"{name} is required")
    parsed = coerce_int(name, value)
    if parsed <= 0:
        raise InvalidArgument(f"{name} must be a positive integer")
    if parsed > MAX_QUANTITY:
        raise InvalidArgument(f"{name} cannot exceed {MAX_QUANTITY}")
    return parsed


def require_amount_cents(name: str, value: Any) -> int:
    if value is None:
        raise InvalidArgument(f"{name} is required")
    parsed = coerce_int(name, value)
    if parsed < 0:
        raise InvalidArgument(f"{name} must be >= 0")
    if parsed > MAX_PRICE_CENTS:
        raise InvalidArgument(f"{name} cannot exceed {MAX_PRICE_CENTS}")
    return parsed


def require_text(name: str, value: Any, max_length: int, *, required: bool = True) -> str | None:
    """Trimmed non-blank string, or None when optional and absent."""
    if value is None and not required:
        return None
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{name} must be a non-empty string")
    value = value.strip()
    if len(value) > max_length:
        raise InvalidArgument(f"{name} exceeds max length {max_length}")
    return value


def apply_paging(query, limit: Any = None, offset: Any = 0, *, max_limit: int = MAX_PAGE_SIZE):
    """
    Apply limit/offset to a list query.

    Both accept ints or digit strings (query-string values). limit must be
    positive and is capped at max_limit; offset must be >= 0.
    """
    if offset not in (None, "", 0):
        offset = coerce_int("offset", offset)
        if offset < 0:
            raise InvalidArgument("offset must be >= 0")
        query = query.offset(offset)
    if limit not in (None, ""):
        limit = coerce_int("limit", limit)
        if limit <= 0:
            raise InvalidArgument("limit must be a positive integer")
        query = query.limit(min(limit, max_limit))
    return query


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise InvalidArgument(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidArgument("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise InvalidArgument(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise InvalidArgument(f"Field not allowed: {k}")
        if k not in cols:
            raise InvalidArgument(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise InvalidArgument(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise InvalidArgument(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise InvalidArgument(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    if "price_cents" in patch and patch["price_cents"] is not None:
        require_amount_cents("price_cents", patch["price_cents"])
