import logging
import os

from dotenv import load_dotenv

from bootstrap import build_repositories, configure_logging
from interfaces.discord.handlers import create_discord_bot


load_dotenv()

DISCORD_TOKEN = os.environ.get("DISCORD_TOKEN")


def main() -> None:
    configure_logging()
    if not DISCORD_TOKEN:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    repos = build_repositories()

    bot = create_discord_bot(repos)
    logging.getLogger(__name__).info("Starting Discord bot")
    # discord.py installs its own log handler unless told not to.
    bot.run(DISCORD_TOKEN, log_handler=None)


if __name__ == "__main__":
    main()
