import asyncio
import sys
import traceback
import warnings

from loguru import logger

from config import DEBUG_LOGS_FILE, DEFAULT_LOGS_FILE, JITO_BLOCK_ENGINE_URL, LOG_LEVEL, LOGS_SIZE, SOFT_NAME
from core.key_manager import KeyManager
from core.trading_bot import TradingBot

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
warnings.filterwarnings("ignore", message="Curlm alread closed")

LOG_FORMAT = "{time:HH:mm:ss} | [{extra[name]}] | {level: <8} | {message}"

logger.remove()
logger.configure(extra={"name": SOFT_NAME})
logger.add(
    sys.stdout,
    level=LOG_LEVEL,
    format="<green>{time:HH:mm:ss}</green> | [{extra[name]}] | <level>{level: <8}</level> | <level>{message}</level>",
    colorize=True
)
logger.add(DEBUG_LOGS_FILE, level="TRACE", format=LOG_FORMAT, rotation=LOGS_SIZE)
logger.add(DEFAULT_LOGS_FILE, level="INFO", format=LOG_FORMAT, rotation=LOGS_SIZE)


async def main():
    key_manager = KeyManager(use_jito=bool(JITO_BLOCK_ENGINE_URL))
    keypair, jito_auth_keypair = key_manager.initialize_keys()

    bot = TradingBot(keypair=keypair, jito_auth_keypair=jito_auth_keypair)
    try:
        await bot.start()
    except Exception:
        logger.error(f"Bot error {traceback.format_exc()}")
    finally:
        await bot.stop()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped")
