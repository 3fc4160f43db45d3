from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from domain.errors import (
    AuthenticationFailed,
    LedgerError,
    NotFound,
    StoreUnavailable,
)
from domain.ledger import (
    apply_admin_adjustment,
    apply_outcome,
    outcome_delta,
    recompute_house_total,
)
from domain.models import MULTIPLIERS, Account, HouseConfig, Player, Session
from domain.passwords import hash_secret, verify_secret
from domain.repositories import (
    AccountRepository,
    CredentialPolicy,
    HouseConfigRepository,
    PlayerRepository,
    SessionRepository,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class ExternalContext:
    """
    Information about the caller from a particular channel (Telegram, Discord).

    The application layer never depends on concrete SDK types; it only sees
    this small context object.
    """

    provider: str
    provider_user_id: str
    display_name: str = ""


@dataclass
class Repositories:
    """The repositories and policies a channel front end is wired with."""

    players: PlayerRepository
    config: HouseConfigRepository
    accounts: AccountRepository
    sessions: SessionRepository
    admin_policy: CredentialPolicy


@dataclass
class OperationResult:
    """Generic result type for simple operations."""

    success: bool
    error_message: Optional[str] = None
    message: Optional[str] = None


@dataclass
class PlayerResult:
    """The signed-in player's ledger entry and the bet bounds that apply."""

    success: bool
    error_message: Optional[str] = None
    player: Optional[Player] = None
    config: Optional[HouseConfig] = None


@dataclass
class OutcomeResult:
    """Result of recording a won or lost hand."""

    success: bool
    error_message: Optional[str] = None
    balance: Optional[Decimal] = None
    bet_amount: Optional[Decimal] = None
    clamped: bool = False
    message: Optional[str] = None


@dataclass
class AdminDashboardResult:
    success: bool
    error_message: Optional[str] = None
    players: List[Player] = field(default_factory=list)
    max_bet: Optional[Decimal] = None
    house_total: Optional[Decimal] = None


@dataclass
class AdjustmentResult:
    """Result of an admin edit to one player's winnings."""

    success: bool
    error_message: Optional[str] = None
    player: Optional[Player] = None
    house_total: Optional[Decimal] = None


def format_money(amount: Decimal) -> str:
    return f"{amount:.2f}"


def parse_amount(text: str) -> Optional[Decimal]:
    """Parse a user-typed amount such as `5`, `2.50` or `$3`."""

    cleaned = (text or "").strip().lstrip("$").replace(",", "")
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _failure_message(action: str, exc: LedgerError) -> str:
    if isinstance(exc, StoreUnavailable):
        return f"Error {action}: {exc}"
    return str(exc)


def _require_session(ctx: ExternalContext, session_repo: SessionRepository) -> Session:
    session = session_repo.get_session(ctx.provider, ctx.provider_user_id)
    if session is None:
        raise AuthenticationFailed("Please log in first.")
    return session


def _require_admin(ctx: ExternalContext, session_repo: SessionRepository) -> Session:
    session = _require_session(ctx, session_repo)
    if not session.is_admin:
        raise AuthenticationFailed("Admin access required. Use the admin command first.")
    return session


def register_account(
    ctx: ExternalContext,
    email: str,
    password: str,
    account_repo: AccountRepository,
    session_repo: SessionRepository,
) -> OperationResult:
    """
    Create a login account and sign the calling chat identity in to it.
    """

    email = _normalize_email(email)
    if not _EMAIL_RE.match(email):
        return OperationResult(success=False, error_message="Please enter a valid email address.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        return OperationResult(
            success=False,
            error_message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
        )

    try:
        if account_repo.get_by_email(email) is not None:
            logger.info("Registration refused for %s: email already in use", email)
            return OperationResult(
                success=False,
                error_message="Failed to register. Email may already be in use.",
            )

        account = Account(email=email, password_hash=hash_secret(password))
        account_repo.create_account(account)
        session_repo.save_session(
            Session(provider=ctx.provider, provider_user_id=ctx.provider_user_id, email=email)
        )
    except LedgerError as exc:
        logger.warning("Registration failed for %s: %s", email, exc)
        return OperationResult(success=False, error_message=_failure_message("registering", exc))

    logger.info("Registered account for player %s", account.player_id)
    return OperationResult(success=True, message="Registration Successful")


def sign_in(
    ctx: ExternalContext,
    email: str,
    password: str,
    account_repo: AccountRepository,
    session_repo: SessionRepository,
) -> OperationResult:
    email = _normalize_email(email)

    try:
        account = account_repo.get_by_email(email)
        if account is None or not verify_secret(password or "", account.password_hash):
            raise AuthenticationFailed("Invalid credentials")

        # A fresh login always starts without admin rights.
        session_repo.save_session(
            Session(provider=ctx.provider, provider_user_id=ctx.provider_user_id, email=email)
        )
    except LedgerError as exc:
        logger.warning("Login failed for %s via %s: %s", email, ctx.provider, exc)
        return OperationResult(success=False, error_message=_failure_message("logging in", exc))

    logger.info("Player %s logged in via %s", account.player_id, ctx.provider)
    return OperationResult(success=True, message=f"Login Success. Welcome, {account.player_id}!")


def sign_out(ctx: ExternalContext, session_repo: SessionRepository) -> OperationResult:
    try:
        session_repo.clear_session(ctx.provider, ctx.provider_user_id)
    except LedgerError as exc:
        logger.warning("Logout failed for %s:%s: %s", ctx.provider, ctx.provider_user_id, exc)
        return OperationResult(success=False, error_message=_failure_message("logging out", exc))
    return OperationResult(success=True, message="Logged out.")


def load_player(
    ctx: ExternalContext,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    config_repo: HouseConfigRepository,
) -> PlayerResult:
    """
    Return the signed-in player's winnings and the current max bet.

    A player with no stored winnings yet is initialised to zero.
    """

    try:
        session = _require_session(ctx, session_repo)
        player = player_repo.get_or_initialize(session.player_id)
        config = config_repo.get_config()
    except LedgerError as exc:
        logger.warning("Could not load player for %s:%s: %s", ctx.provider, ctx.provider_user_id, exc)
        return PlayerResult(success=False, error_message=_failure_message("fetching winnings", exc))

    return PlayerResult(success=True, player=player, config=config)


def record_outcome(
    ctx: ExternalContext,
    bet_amount: Decimal,
    multiplier: int,
    is_win: bool,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    config_repo: HouseConfigRepository,
) -> OutcomeResult:
    """
    Record a won or lost hand for the signed-in player.

    - The bet must be non-negative and is clamped to the house max bet.
    - The multiplier must be one of the offered options.
    - The balance is updated with an atomic increment; the stored result
      is returned for display.
    """

    if multiplier not in MULTIPLIERS:
        options = ", ".join(f"{m}x" for m in MULTIPLIERS)
        return OutcomeResult(success=False, error_message=f"Multiplier must be one of {options}.")
    if bet_amount < 0:
        return OutcomeResult(success=False, error_message="Bet amount must not be negative.")

    try:
        session = _require_session(ctx, session_repo)
        config = config_repo.get_config()
        applied_bet = config.clamp_bet(bet_amount)

        player = player_repo.get_or_initialize(session.player_id)
        expected = apply_outcome(player.balance, applied_bet, multiplier, is_win)
        balance = player_repo.increment_balance(
            player.id, outcome_delta(applied_bet, multiplier, is_win)
        )
    except LedgerError as exc:
        logger.warning("Could not record outcome for %s:%s: %s", ctx.provider, ctx.provider_user_id, exc)
        return OutcomeResult(success=False, error_message=_failure_message("updating winnings", exc))

    if balance != expected:
        logger.info(
            "Balance for %s changed concurrently (expected %s, stored %s)",
            player.id,
            expected,
            balance,
        )

    stake = format_money(applied_bet * multiplier)
    message = f"Congratulations! You won ${stake}" if is_win else f"Oh no! You lost ${stake}"
    clamped = applied_bet != bet_amount
    if clamped:
        message += f" (bet capped at max bet ${format_money(config.max_bet)})"

    logger.info(
        "Recorded %s for %s: bet=%s multiplier=%s balance=%s",
        "win" if is_win else "loss",
        player.id,
        applied_bet,
        multiplier,
        balance,
    )
    return OutcomeResult(
        success=True,
        balance=balance,
        bet_amount=applied_bet,
        clamped=clamped,
        message=message,
    )


def authenticate_admin(
    ctx: ExternalContext,
    secret: str,
    policy: CredentialPolicy,
    session_repo: SessionRepository,
) -> OperationResult:
    """
    Grant admin rights to the caller's session if `secret` is accepted.

    A rejected secret leaves the session exactly as it was.
    """

    try:
        session = _require_session(ctx, session_repo)
        if not policy.verify(secret or ""):
            raise AuthenticationFailed("Incorrect admin password.")

        session.is_admin = True
        session_repo.save_session(session)
    except LedgerError as exc:
        logger.warning("Admin authentication failed for %s:%s: %s", ctx.provider, ctx.provider_user_id, exc)
        return OperationResult(success=False, error_message=_failure_message("authenticating", exc))

    logger.info("Admin access granted to %s", session.player_id)
    return OperationResult(success=True, message="Admin access granted.")


def load_admin_dashboard(
    ctx: ExternalContext,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    config_repo: HouseConfigRepository,
) -> AdminDashboardResult:
    try:
        _require_admin(ctx, session_repo)
        config = config_repo.get_config()
        players = player_repo.get_all_players()
    except LedgerError as exc:
        logger.warning("Could not load admin dashboard: %s", exc)
        return AdminDashboardResult(success=False, error_message=_failure_message("fetching players", exc))

    return AdminDashboardResult(
        success=True,
        players=players,
        max_bet=config.max_bet,
        house_total=recompute_house_total(p.balance for p in players),
    )


def set_max_bet(
    ctx: ExternalContext,
    new_max: Decimal,
    session_repo: SessionRepository,
    config_repo: HouseConfigRepository,
) -> OperationResult:
    """
    Overwrite the house max bet.

    Negative values are rejected and the stored value is left untouched.
    Balances already recorded are not affected.
    """

    try:
        _require_admin(ctx, session_repo)
        config = config_repo.get_config()
        config.set_max_bet(new_max)
        config_repo.save_config(config)
    except LedgerError as exc:
        logger.warning("Could not set max bet to %s: %s", new_max, exc)
        return OperationResult(success=False, error_message=_failure_message("updating max bet", exc))

    logger.info("Max bet set to %s", new_max)
    return OperationResult(success=True, message="Max bet updated successfully!")


def adjust_player_winnings(
    ctx: ExternalContext,
    player_id: str,
    change_amount: Decimal,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
) -> AdjustmentResult:
    """
    Apply an admin correction to one player's winnings.

    `change_amount` is a one-shot delta: it is applied once and not
    remembered, so the next adjustment starts again from zero.
    """

    try:
        _require_admin(ctx, session_repo)
        player = player_repo.get_player(player_id)
        if player is None:
            raise NotFound(f"Player {player_id} not found.")

        expected = apply_admin_adjustment(player.balance, change_amount)
        player.balance = player_repo.increment_balance(player.id, change_amount)
        players = player_repo.get_all_players()
    except LedgerError as exc:
        logger.warning("Could not adjust winnings for %s: %s", player_id, exc)
        return AdjustmentResult(success=False, error_message=_failure_message("updating winnings", exc))

    if player.balance != expected:
        logger.info(
            "Balance for %s changed concurrently (expected %s, stored %s)",
            player.id,
            expected,
            player.balance,
        )

    logger.info("Admin adjusted %s by %s, balance=%s", player.id, change_amount, player.balance)
    return AdjustmentResult(
        success=True,
        player=player,
        house_total=recompute_house_total(p.balance for p in players),
    )
