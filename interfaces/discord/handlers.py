from __future__ import annotations

import logging

import discord
from discord.ext import commands

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

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "!register <email> <password>   - create an account (use a DM)\n"
    "!login <email> <password>      - log in (use a DM)\n"
    "!logout                        - log out\n"
    "!balance                       - show your winnings and the max bet\n"
    "!win <amount> [1|2]            - record a won hand (optional multiplier)\n"
    "!lose <amount> [1|2]           - record a lost hand (optional multiplier)\n"
    "!admin <password>              - unlock admin commands\n"
    "!players                       - admin: list winnings and house total\n"
    "!maxbet <amount>               - admin: set the maximum bet\n"
    "!adjust <player> <change>      - admin: add <change> to a player's winnings\n"
)


def _build_external_context(user: discord.abc.User) -> ExternalContext:
    """Create an `ExternalContext` from a Discord user."""

    return ExternalContext(
        provider="discord",
        provider_user_id=str(user.id),
        display_name=user.display_name or user.name,
    )


def create_discord_bot(repos: Repositories) -> commands.Bot:
    """
    Configure and return a Discord bot with behaviour analogous to
    the Telegram interface: accounts, win/lose recording and admin tools.
    """

    intents = discord.Intents.default()
    intents.message_content = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.UserInputError):
            await ctx.send(f"{error}\nType !help to see available commands.")
            return
        logger.error("Discord command %s failed", ctx.command, exc_info=error)
        await ctx.send(str(error))

    @bot.command(name="start")
    async def start_cmd(ctx: commands.Context):
        await ctx.send(
            "Welcome to the winnings tracker!\n"
            "Use !register or !login to get started.\n"
            "Type !help to see available commands."
        )

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(HELP_TEXT)

    @bot.command(name="register")
    async def register_cmd(ctx: commands.Context, email: str, password: str):
        result = register_account(
            _build_external_context(ctx.author),
            email,
            password,
            repos.accounts,
            repos.sessions,
        )
        await ctx.send(result.message if result.success else result.error_message)

    @bot.command(name="login")
    async def login_cmd(ctx: commands.Context, email: str, password: str):
        result = sign_in(
            _build_external_context(ctx.author),
            email,
            password,
            repos.accounts,
            repos.sessions,
        )
        await ctx.send(result.message if result.success else result.error_message)

    @bot.command(name="logout")
    async def logout_cmd(ctx: commands.Context):
        result = sign_out(_build_external_context(ctx.author), repos.sessions)
        await ctx.send(result.message if result.success else result.error_message)

    @bot.command(name="balance")
    async def balance_cmd(ctx: commands.Context):
        result = load_player(
            _build_external_context(ctx.author),
            repos.sessions,
            repos.players,
            repos.config,
        )
        if not result.success:
            await ctx.send(result.error_message)
            return

        await ctx.send(
            f"Welcome, {result.player.id}!\n"
            f"Your Winnings: ${format_money(result.player.balance)}\n"
            f"Max bet: ${format_money(result.config.max_bet)}"
        )

    async def _record(ctx: commands.Context, amount_text: str, multiplier: int, is_win: bool):
        amount = parse_amount(amount_text)
        if amount is None:
            await ctx.send("Amount must be a number.")
            return

        result = record_outcome(
            _build_external_context(ctx.author),
            amount,
            multiplier,
            is_win,
            repos.sessions,
            repos.players,
            repos.config,
        )
        if not result.success:
            await ctx.send(result.error_message)
            return

        await ctx.send(f"{result.message}\nYour Winnings: ${format_money(result.balance)}")

    @bot.command(name="win")
    async def win_cmd(ctx: commands.Context, amount: str, multiplier: int = 1):
        await _record(ctx, amount, multiplier, is_win=True)

    @bot.command(name="lose")
    async def lose_cmd(ctx: commands.Context, amount: str, multiplier: int = 1):
        await _record(ctx, amount, multiplier, is_win=False)

    @bot.command(name="admin")
    async def admin_cmd(ctx: commands.Context, password: str):
        result = authenticate_admin(
            _build_external_context(ctx.author),
            password,
            repos.admin_policy,
            repos.sessions,
        )
        await ctx.send(result.message if result.success else result.error_message)

    @bot.command(name="players")
    async def players_cmd(ctx: commands.Context):
        result = load_admin_dashboard(
            _build_external_context(ctx.author),
            repos.sessions,
            repos.players,
            repos.config,
        )
        if not result.success:
            await ctx.send(result.error_message)
            return

        lines = [f"Current Maximum Bet: ${format_money(result.max_bet)}"]
        if not result.players:
            lines.append("No players yet.")
        lines.extend(f"{p.id}: {format_money(p.balance)}" for p in result.players)
        lines.append(f"Admin's Total Earnings: {format_money(result.house_total)}")
        await ctx.send("\n".join(lines))

    @bot.command(name="maxbet")
    async def maxbet_cmd(ctx: commands.Context, amount: str):
        new_max = parse_amount(amount)
        if new_max is None:
            await ctx.send("Amount must be a number.")
            return

        result = set_max_bet(
            _build_external_context(ctx.author),
            new_max,
            repos.sessions,
            repos.config,
        )
        await ctx.send(result.message if result.success else result.error_message)

    @bot.command(name="adjust")
    async def adjust_cmd(ctx: commands.Context, player_id: str, change: str):
        change_amount = parse_amount(change)
        if change_amount is None:
            await ctx.send("Change must be a number.")
            return

        result = adjust_player_winnings(
            _build_external_context(ctx.author),
            player_id,
            change_amount,
            repos.sessions,
            repos.players,
        )
        if not result.success:
            await ctx.send(result.error_message)
            return

        await ctx.send(
            f"{result.player.id}: {format_money(result.player.balance)}\n"
            f"Admin's Total Earnings: {format_money(result.house_total)}"
        )

    return bot
