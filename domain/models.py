from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .errors import InvalidConfiguration

# Payout multipliers a player may pick when recording a hand.
MULTIPLIERS = (1, 2)

# Max bet assumed by player sessions until an admin saves one.
DEFAULT_MAX_BET = Decimal("2")


def player_id_from_email(email: str) -> str:
    """Players are keyed by the local part of their login email."""

    return email.split("@", 1)[0]


@dataclass
class Player:
    """
    A player's ledger entry.

    `balance` is the player's net winnings against the house: positive
    when the player is ahead, negative when the house is.
    """

    id: str
    balance: Decimal = Decimal("0")


@dataclass
class HouseConfig:
    """
    House-wide settings shared by every player session.

    Services receive this object explicitly; nothing reads it from
    module state.
    """

    max_bet: Decimal = DEFAULT_MAX_BET

    def set_max_bet(self, value: Decimal) -> None:
        if value < 0:
            raise InvalidConfiguration(f"Max bet must not be negative (got {value}).")
        self.max_bet = value

    def clamp_bet(self, amount: Decimal) -> Decimal:
        return min(amount, self.max_bet)


@dataclass
class Account:
    """
    Login identity (email + password hash) for a player.

    The player ledger entry is derived from the email, see
    `player_id_from_email`.
    """

    email: str
    password_hash: str

    @property
    def player_id(self) -> str:
        return player_id_from_email(self.email)


@dataclass
class Session:
    """A chat identity that is currently signed in to an account."""

    provider: str
    provider_user_id: str
    email: str
    is_admin: bool = False

    @property
    def player_id(self) -> str:
        return player_id_from_email(self.email)
