from __future__ import annotations

import logging

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.services import (
    ExternalContext,
    Repositories,
    adjust_player_winnings,
    authenticate_admin,
    format_money,
    load_admin_dashboard,
    load_player,
    parse_amount,
    record_outcome,
    register_account,
    set_max_bet,
    sign_in,
    sign_out,
)
from domain.models import MULTIPLIERS
from interfaces.telegram.callback_data import (
    OUTCOME_PREFIX,
    encode_outcome,
    parse_outcome,
)

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "/register <email> <password>   - create an account\n"
    "/login <email> <password>      - log in\n"
    "/logout                        - log out\n"
    "/balance                       - show your winnings and the max bet\n"
    "/bet <amount>                  - pick win/lose and multiplier with buttons\n"
    "/win <amount> [1|2]            - record a won hand\n"
    "/lose <amount> [1|2]           - record a lost hand\n"
    "/admin <password>              - unlock admin commands\n"
    "/players                       - admin: list winnings and house total\n"
    "/maxbet <amount>               - admin: set the maximum bet\n"
    "/adjust <player> <change>      - admin: add <change> to a player's winnings\n"
)


def _build_external_context(from_user) -> ExternalContext:
    """Extract a channel-agnostic context object from a Telegram user."""

    name = " ".join(part for part in (from_user.first_name, from_user.last_name) if part)
    return ExternalContext(
        provider="telegram",
        provider_user_id=str(from_user.id),
        display_name=name,
    )


def _args(message) -> list[str]:
    return message.text.split()[1:]


class _LoggingExceptionHandler(telebot.ExceptionHandler):
    """Log handler failures and keep polling."""

    def handle(self, exception) -> bool:
        logger.error("Telegram handler failed", exc_info=exception)
        return True


def create_telegram_bot(bot_token: str, repos: Repositories) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application services.
    """

    bot = telebot.TeleBot(bot_token, exception_handler=_LoggingExceptionHandler())

    def reply(message, text: str) -> None:
        bot.send_message(message.chat.id, text)

    def send_outcome(chat_id, ctx: ExternalContext, amount, multiplier: int, is_win: bool) -> None:
        try:
            result = record_outcome(
                ctx,
                amount,
                multiplier,
                is_win,
                repos.sessions,
                repos.players,
                repos.config,
            )
        except Exception as exc:  # Report anything unexpected back to the chat.
            logger.exception("Recording outcome failed")
            bot.send_message(chat_id, str(exc))
            return

        if not result.success:
            bot.send_message(chat_id, result.error_message)
            return
        bot.send_message(
            chat_id,
            f"{result.message}\nYour Winnings: ${format_money(result.balance)}",
        )

    @bot.message_handler(commands=["start", "hello"])
    def handle_start(message):
        reply(
            message,
            "Welcome to the winnings tracker!\n"
            "Use /register or /login to get started.\n"
            "Type /help to see available commands.",
        )

    @bot.message_handler(commands=["help"])
    def handle_help(message):
        reply(message, HELP_TEXT)

    @bot.message_handler(commands=["register", "login"])
    def handle_credentials(message):
        args = _args(message)
        if len(args) < 2:
            reply(message, "Please enter your email and password.")
            return

        ctx = _build_external_context(message.from_user)
        if message.text.startswith("/register"):
            result = register_account(ctx, args[0], args[1], repos.accounts, repos.sessions)
        else:
            result = sign_in(ctx, args[0], args[1], repos.accounts, repos.sessions)

        # Keep passwords out of the chat history where the bot is allowed to.
        try:
            bot.delete_message(message.chat.id, message.message_id)
        except telebot.apihelper.ApiException as exc:
            logger.debug("Could not delete credentials message: %s", exc)

        reply(message, result.message if result.success else result.error_message)

    @bot.message_handler(commands=["logout"])
    def handle_logout(message):
        result = sign_out(_build_external_context(message.from_user), repos.sessions)
        reply(message, result.message if result.success else result.error_message)

    @bot.message_handler(commands=["balance"])
    def handle_balance(message):
        result = load_player(
            _build_external_context(message.from_user),
            repos.sessions,
            repos.players,
            repos.config,
        )
        if not result.success:
            reply(message, result.error_message)
            return

        reply(
            message,
            f"Welcome, {result.player.id}!\n"
            f"Your Winnings: ${format_money(result.player.balance)}\n"
            f"Max bet: ${format_money(result.config.max_bet)}",
        )

    @bot.message_handler(commands=["bet"])
    def handle_bet(message):
        args = _args(message)
        amount = parse_amount(args[0]) if args else None
        if amount is None:
            reply(message, "Please enter a bet amount.")
            return

        markup = InlineKeyboardMarkup(row_width=len(MULTIPLIERS))
        for is_win in (True, False):
            label = "Win" if is_win else "Lose"
            markup.row(
                *[
                    InlineKeyboardButton(
                        f"{label} {m}x",
                        callback_data=encode_outcome(is_win, m, amount),
                    )
                    for m in MULTIPLIERS
                ]
            )

        bot.send_message(
            message.chat.id,
            f"Bet ${format_money(amount)}: how did the hand go?",
            reply_markup=markup,
        )

    @bot.message_handler(commands=["win", "lose"])
    def handle_outcome(message):
        args = _args(message)
        if not args:
            reply(message, "Please enter a bet amount.")
            return

        amount = parse_amount(args[0])
        if amount is None:
            reply(message, "Amount must be a number.")
            return

        try:
            multiplier = int(args[1]) if len(args) > 1 else 1
        except ValueError:
            reply(message, "Multiplier must be a whole number.")
            return

        is_win = message.text.startswith("/win")
        send_outcome(
            message.chat.id,
            _build_external_context(message.from_user),
            amount,
            multiplier,
            is_win,
        )

    @bot.callback_query_handler(func=lambda call: call.data.startswith(f"{OUTCOME_PREFIX}:"))
    def handle_outcome_choice(call):
        """
        Handle a Win/Lose button pressed under a /bet message.
        """

        try:
            is_win, multiplier, amount = parse_outcome(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        try:
            send_outcome(
                call.message.chat.id,
                _build_external_context(call.from_user),
                amount,
                multiplier,
                is_win,
            )
        finally:
            bot.answer_callback_query(call.id)
            bot.delete_message(call.message.chat.id, call.message.id)

    @bot.message_handler(commands=["admin"])
    def handle_admin(message):
        args = _args(message)
        result = authenticate_admin(
            _build_external_context(message.from_user),
            args[0] if args else "",
            repos.admin_policy,
            repos.sessions,
        )
        reply(message, result.message if result.success else result.error_message)

    @bot.message_handler(commands=["players"])
    def handle_players(message):
        result = load_admin_dashboard(
            _build_external_context(message.from_user),
            repos.sessions,
            repos.players,
            repos.config,
        )
        if not result.success:
            reply(message, result.error_message)
            return

        lines = [f"Current Maximum Bet: ${format_money(result.max_bet)}"]
        if not result.players:
            lines.append("No players yet.")
        lines.extend(f"{p.id}: {format_money(p.balance)}" for p in result.players)
        lines.append(f"Admin's Total Earnings: {format_money(result.house_total)}")
        reply(message, "\n".join(lines))

    @bot.message_handler(commands=["maxbet"])
    def handle_maxbet(message):
        args = _args(message)
        new_max = parse_amount(args[0]) if args else None
        if new_max is None:
            reply(message, "Please enter the new maximum bet.")
            return

        result = set_max_bet(
            _build_external_context(message.from_user),
            new_max,
            repos.sessions,
            repos.config,
        )
        reply(message, result.message if result.success else result.error_message)

    @bot.message_handler(commands=["adjust"])
    def handle_adjust(message):
        args = _args(message)
        if len(args) < 2:
            reply(message, "Usage: /adjust <player> <change>")
            return

        change_amount = parse_amount(args[1])
        if change_amount is None:
            reply(message, "Change must be a number.")
            return

        result = adjust_player_winnings(
            _build_external_context(message.from_user),
            args[0],
            change_amount,
            repos.sessions,
            repos.players,
        )
        if not result.success:
            reply(message, result.error_message)
            return

        reply(
            message,
            f"{result.player.id}: {format_money(result.player.balance)}\n"
            f"Admin's Total Earnings: {format_money(result.house_total)}",
        )

    return bot
