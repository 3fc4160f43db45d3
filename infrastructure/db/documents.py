from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any

from domain.repositories import Document


def encode_document(fields: Document) -> Document:
    """
    Prepare a document for JSON storage.

    Decimals are stored as strings so that balances round-trip exactly.
    """

    return {
        key: str(value) if isinstance(value, Decimal) else value
        for key, value in fields.items()
    }


def dumps(fields: Document) -> str:
    return json.dumps(encode_document(fields), sort_keys=True)


def loads(raw: str) -> Document:
    return json.loads(raw)


def to_decimal(value: Any) -> Decimal:
    """Read a stored number; missing or malformed values count as zero."""

    if value is None:
        return Decimal("0")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")
