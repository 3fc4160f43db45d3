from __future__ import annotations

from decimal import Decimal
from typing import Iterable


def outcome_delta(bet_amount: Decimal, multiplier: int, is_win: bool) -> Decimal:
    """Signed balance change for one recorded hand."""

    stake = bet_amount * multiplier
    return stake if is_win else -stake


def apply_outcome(
    current_balance: Decimal,
    bet_amount: Decimal,
    multiplier: int,
    is_win: bool,
) -> Decimal:
    """
    Return the balance after a won or lost hand.

    Bet bounds and the multiplier are validated by the caller; this
    function only does the arithmetic and has no side effects.
    """

    return current_balance + outcome_delta(bet_amount, multiplier, is_win)


def apply_admin_adjustment(current_balance: Decimal, change_amount: Decimal) -> Decimal:
    """
    Return the balance after an admin correction.

    `change_amount` is a one-shot delta, not an absolute value.
    """

    return current_balance + change_amount


def recompute_house_total(balances: Iterable[Decimal]) -> Decimal:
    """The house's net position: the negated sum of all player balances."""

    # Subtract from zero rather than negate so an empty table gives 0, not -0.
    return Decimal("0") - sum(balances, Decimal("0"))
