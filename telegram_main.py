import logging
import os

from dotenv import load_dotenv

from bootstrap import build_repositories, configure_logging
from interfaces.telegram.handlers import create_telegram_bot


load_dotenv()

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")


def main() -> None:
    configure_logging()
    if not TELEGRAM_TOKEN:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    repos = build_repositories()

    bot = create_telegram_bot(TELEGRAM_TOKEN, repos)
    logging.getLogger(__name__).info("Starting Telegram bot")
    bot.infinity_polling()


if __name__ == "__main__":
    main()
