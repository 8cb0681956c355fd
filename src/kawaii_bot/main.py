"""
Main entry point for Kawaii Bot.

This module provides the main function for starting the Discord bot.
It handles configuration loading, logging setup, and graceful shutdown
handling.
"""

import asyncio
import signal
import sys
from typing import Optional

from kawaii_bot import __version__
from kawaii_bot.config import load_config, AppConfig
from kawaii_bot.utils.logging import setup_logging, get_logger
from kawaii_bot.utils.exceptions import ConfigurationError
from kawaii_bot.bot.client import KawaiiBot


async def create_bot(config: AppConfig, shutdown_event: asyncio.Event) -> KawaiiBot:
    """
    Create and configure the Discord bot instance.

    Args:
        config: Application configuration
        shutdown_event: Process-wide shutdown signal

    Returns:
        Configured KawaiiBot instance

    Raises:
        ConfigurationError: If bot cannot be configured
    """
    logger = get_logger(__name__)

    try:
        logger.info(
            "Creating Discord bot instance",
            trigger_hour=config.daily.trigger_hour,
            daily_providers=config.daily.providers,
            webhook_configured=bool(config.daily.webhook_url),
        )

        bot = KawaiiBot(config, shutdown_event)
        await bot.setup()

        logger.info("Bot instance created successfully")
        return bot

    except Exception as e:
        logger.error("Failed to create bot instance", error=str(e))
        raise ConfigurationError(
            "Failed to create bot instance",
            context={"error": str(e)},
            original_error=e
        )


def _install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    logger = get_logger(__name__)
    loop = asyncio.get_running_loop()

    def handle_signal(signum: int) -> None:
        logger.info("Received shutdown signal", signal=signum)
        shutdown_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, handle_signal, signum)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signum, lambda s, frame: loop.call_soon_threadsafe(handle_signal, s))


async def run_bot(config: AppConfig) -> None:
    """
    Run the Discord bot with proper error handling and shutdown.

    Args:
        config: Application configuration

    Raises:
        ConfigurationError: If bot cannot be started
    """
    logger = get_logger(__name__)
    bot: Optional[KawaiiBot] = None

    shutdown_event = asyncio.Event()

    try:
        bot = await create_bot(config, shutdown_event)

        _install_signal_handlers(shutdown_event)

        logger.info("Starting Discord bot")

        bot_task = asyncio.create_task(bot.start(config.discord.bot_token))
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, pending = await asyncio.wait(
            [bot_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED
        )

        # Wakes the scheduler loop if the bot task ended on its own
        shutdown_event.set()

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if bot_task in done and bot_task.exception() is not None:
            raise bot_task.exception()

    except KeyboardInterrupt:
        logger.info("Bot shutdown requested by user")
    except Exception as e:
        logger.error("Bot encountered fatal error", error=str(e))
        raise
    finally:
        if bot:
            logger.info("Cleaning up bot resources")
            try:
                await asyncio.wait_for(bot.close(), timeout=5.0)
                logger.info("Bot shutdown completed successfully")
            except asyncio.TimeoutError:
                logger.warning("Bot shutdown timed out after 5 seconds, forcing close")
            except Exception as e:
                logger.error("Error during bot shutdown", error=str(e))


async def main_async() -> None:
    """
    Async main function that handles the complete bot lifecycle.

    This function:
    1. Loads configuration
    2. Sets up logging
    3. Creates and runs the bot
    4. Handles shutdown gracefully
    """
    try:
        config = load_config()

        setup_logging(config.logging)
        logger = get_logger(__name__)

        logger.info("Kawaii Bot starting up",
                   version=__version__,
                   debug_mode=config.debug)

        await run_bot(config)

    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        logger = get_logger(__name__)
        logger.info("Kawaii Bot shutdown complete")


def main() -> None:
    """
    Main entry point for Kawaii Bot.

    Example:
        Command line usage:
        ```bash
        kawaii-bot
        ```
    """
    try:
        if sys.version_info < (3, 10):
            print("Error: Python 3.10 or higher is required", file=sys.stderr)
            sys.exit(1)

        asyncio.run(main_async())

    except KeyboardInterrupt:
        print("\nBot shutdown requested", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"Fatal error during startup: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
