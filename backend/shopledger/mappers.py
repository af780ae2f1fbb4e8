# Overview: Pure conversions between stored rows (snake_case, 0/1 flags, JSON text)
# and API entities (camelCase, booleans, structured values).

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Iterable, Optional

from .time_utils import to_utc_z

# Columns stored as INTEGER 0/1 in the row shape
BOOLEAN_FIELDS = frozenset({
    "track_stock",
    "available_for_sale",
    "is_uncategorized",
    "is_cash_equivalent",
    "is_credit",
    "is_active",
    "is_posted",
    "is_default",
})

# Columns stored as JSON text in the row shape
JSON_FIELDS = frozenset({
    "stock_by_store",
    "items",
})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def bool_to_int(value: Optional[bool]) -> Optional[int]:
    if value is None:
        return None
    return 1 if value else 0


def int_to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def load_json(text: Optional[str], default: Any = None) -> Any:
    """Parse JSON text; already-decoded values pass through unchanged."""
    if text is None or text == "":
        return default
    if not isinstance(text, (str, bytes)):
        return text
    return json.loads(text)


def stock_map_total(stock_by_store: Optional[dict]) -> int:
    if not stock_by_store:
        return 0
    return sum(int(v) for v in stock_by_store.values())


def entity_to_row(entity: dict, *, fields: Optional[Iterable[str]] = None) -> dict:
    """
    camelCase entity -> snake_case row.

    Booleans become 0/1, structured JSON fields become text. If `fields`
    is given, only those (snake_case) keys are kept.
    """
    allowed = set(fields) if fields is not None else None
    row: dict = {}
    for key, value in (entity or {}).items():
        column = camel_to_snake(key)
        if allowed is not None and column not in allowed:
            continue
        if column in BOOLEAN_FIELDS:
            value = bool_to_int(value)
        elif column in JSON_FIELDS and not isinstance(value, str):
            value = dump_json(value)
        row[column] = value
    return row


def row_to_entity(row: dict) -> dict:
    """snake_case row -> camelCase entity (reverse of entity_to_row)."""
    entity: dict = {}
    for column, value in row.items():
        if column in BOOLEAN_FIELDS:
            value = int_to_bool(value)
        elif column in JSON_FIELDS:
            value = load_json(value)
        elif isinstance(value, datetime):
            value = to_utc_z(value)
        entity[snake_to_camel(column)] = value
    return entity


def payload_to_fields(payload: Optional[dict]) -> dict:
    """
    camelCase request body -> snake_case service input.

    Values keep their JSON types (booleans stay booleans, maps stay maps).
    """
    if payload is None:
        return {}
    return {camel_to_snake(k): v for k, v in payload.items()}


def items_to_fields(items: Optional[list]) -> list[dict]:
    """Normalize a list of camelCase line items to snake_case dicts."""
    return [payload_to_fields(item) if isinstance(item, dict) else item for item in (items or [])]


def fields_to_items(items: Optional[list]) -> list[dict]:
    return [{snake_to_camel(k): v for k, v in item.items()} for item in (items or [])]


def document_to_fields(payload: Optional[dict]) -> dict:
    """Request body of a document (PO, GRN, transfer, sale...) -> snake_case, items included."""
    fields = payload_to_fields(payload)
    if isinstance(fields.get("items"), list):
        fields["items"] = items_to_fields(fields["items"])
    return fields
