import asyncio
import logging
import os

import requests
from dotenv import load_dotenv
from telegram import BotCommand, MenuButtonCommands, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    PrefixHandler,
    filters,
)

from btc import API_URL, BalanceError, extract_btc_address, fetch_balance_btc, format_btc_balance

# ---------- базовая настройка ----------
load_dotenv()
TOKEN = os.getenv("TELEGRAM_TOKEN")
EXPLORER_URL = os.getenv("EXPLORER_URL", API_URL)
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))
INCLUDE_MEMPOOL = os.getenv("INCLUDE_MEMPOOL", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)

BOT_NAME = "Bitac Bot"
ABOUT = "I'm a bot that answers how much bitcoin a given address has."
INTRO_MESSAGE = "Send me a bitcoin address, and I'll tell you how much it has."
HELP_MESSAGE = "Send me a bitcoin address and I'll tell you how much bitcoin it has."
NO_ADDRESS_MESSAGE = "Please send me a valid bitcoin address."
ERROR_MESSAGE = "Error getting balance."

COMMANDS = [
    BotCommand("start", "Start the bot"),
    BotCommand("help", "Show this help message."),
]


# ---------- обработчики команд ----------
async def setup_profile(application: Application) -> None:
    """Однократно публикуем меню и профиль бота."""
    bot = application.bot
    try:
        await bot.set_my_commands(COMMANDS)
        await bot.set_chat_menu_button(menu_button=MenuButtonCommands())
        await bot.set_my_name(BOT_NAME)
        await bot.set_my_description(ABOUT)
        await bot.set_my_short_description(INTRO_MESSAGE)
    except TelegramError as e:
        logging.warning(f"Could not publish bot profile: {e}")


async def reply(update: Update, text: str) -> None:
    await update.effective_message.reply_text(text, do_quote=True)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await reply(update, INTRO_MESSAGE)


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await reply(update, HELP_MESSAGE)


async def balance_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Ищем адрес в любом тексте и отвечаем его балансом."""
    text = update.effective_message.text or ""
    address = extract_btc_address(text)
    if address is None:
        await reply(update, NO_ADDRESS_MESSAGE)
        return

    logging.info(f"Getting balance for address: {address}")
    try:
        satoshis = await asyncio.to_thread(
            fetch_balance_btc, address, EXPLORER_URL, HTTP_TIMEOUT, INCLUDE_MEMPOOL
        )
    except requests.RequestException as e:
        logging.warning(f"Explorer request failed for {address}: {e}")
        await reply(update, ERROR_MESSAGE)
        return
    except BalanceError as e:
        logging.warning(f"Bad explorer data for {address}: {e}")
        await reply(update, ERROR_MESSAGE)
        return

    logging.info(f"Balance: {satoshis} for address: {address}")
    await reply(update, format_btc_balance(satoshis))


def build_application(token: str) -> Application:
    application = Application.builder().token(token).post_init(setup_profile).build()

    # !help раньше общего обработчика: в одной группе срабатывает первый подходящий
    application.add_handler(PrefixHandler("!", "help", help_cmd))
    application.add_handler(CommandHandler("help", help_cmd))
    application.add_handler(CommandHandler("start", start))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, balance_cmd))
    return application


# ---------- точка входа ----------
def main() -> None:
    if not TOKEN:
        raise RuntimeError("TELEGRAM_TOKEN is not set")

    application = build_application(TOKEN)
    logging.info("Bot is polling…")
    application.run_polling()


if __name__ == "__main__":
    main()
