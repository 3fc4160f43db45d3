from __future__ import annotations

from decimal import Decimal, InvalidOperation

OUTCOME_PREFIX = "outcome"


def encode_outcome(is_win: bool, multiplier: int, amount: Decimal) -> str:
    """
    Encode a "record this hand" button.

    Format: outcome:{win|lose}:{multiplier}:{amount}
    """

    result = "win" if is_win else "lose"
    return f"{OUTCOME_PREFIX}:{result}:{multiplier}:{amount}"


def parse_outcome(data: str) -> tuple[bool, int, Decimal]:
    parts = data.split(":")
    if len(parts) != 4 or parts[0] != OUTCOME_PREFIX or parts[1] not in ("win", "lose"):
        raise ValueError(f"Invalid outcome callback data: {data}")

    is_win = parts[1] == "win"
    try:
        multiplier = int(parts[2])
        amount = Decimal(parts[3])
    except (ValueError, InvalidOperation) as exc:
        raise ValueError(f"Invalid outcome callback data: {data}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid outcome callback data: {data}")
    return is_win, multiplier, amount
