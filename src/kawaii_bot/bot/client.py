"""
Discord bot client implementation.

This module contains the main Discord bot client. It owns the image
provider clients, the persisted settings and the daily delivery
scheduler, and wires them into the command cogs.
"""

import asyncio
from typing import Optional

import discord
from discord.ext import commands

from kawaii_bot.config import AppConfig
from kawaii_bot.daily import DailyDelivery, DailyScheduler, ScheduleState
from kawaii_bot.providers import NekosClient, WaifuClient
from kawaii_bot.storage import SettingsStore
from kawaii_bot.utils.exceptions import SchedulerStateError
from kawaii_bot.utils.logging import get_logger, log_discord_event


class KawaiiBot(commands.Bot):
    """
    Main Discord bot client.

    Attributes:
        config: Application configuration
        shutdown_event: Process-wide shutdown signal, shared with the scheduler
        settings_store: Persisted bot settings
        nekos_client: nekos.moe API client
        waifu_client: waifu.im API client
        daily_delivery: Sends the daily pictures to the webhook
        scheduler: Fires the daily delivery
    """

    def __init__(self, config: AppConfig, shutdown_event: Optional[asyncio.Event] = None) -> None:
        """
        Initialize the bot.

        Args:
            config: Application configuration containing all settings
            shutdown_event: Event set when the process is shutting down
        """
        intents = discord.Intents.default()
        # Prefix commands need the message text
        intents.message_content = True
        intents.guilds = True
        intents.guild_messages = True

        super().__init__(
            command_prefix=config.discord.command_prefix,
            intents=intents,
            help_command=None,
        )

        self.config = config
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.logger = get_logger(__name__)

        # These will be initialized in setup()
        self.settings_store: Optional[SettingsStore] = None
        self.nekos_client: Optional[NekosClient] = None
        self.waifu_client: Optional[WaifuClient] = None
        self.daily_delivery: Optional[DailyDelivery] = None
        self.scheduler: Optional[DailyScheduler] = None

        self._setup_complete = False

    async def setup(self) -> None:
        """
        Set up all bot components.

        Loads the persisted settings, creates the provider clients and the
        daily delivery, registers commands and starts the daily scheduler.
        It must be called before starting the bot.

        Raises:
            StorageError: If the settings file cannot be read or created
        """
        if self._setup_complete:
            return

        self.logger.info("Setting up Kawaii Bot components")

        try:
            self.settings_store = SettingsStore(self.config.storage.settings_path)
            state = ScheduleState(enabled=self.settings_store.daily_webhook_enabled)

            self.nekos_client = NekosClient(self.config.providers)
            self.waifu_client = WaifuClient(self.config.providers)

            self.daily_delivery = DailyDelivery(
                config=self.config.daily,
                state=state,
                nekos_client=self.nekos_client,
                waifu_client=self.waifu_client,
                provider_config=self.config.providers,
            )
            self.scheduler = DailyScheduler(self.daily_delivery, state, self.config.daily)

            await self._load_commands()
            await self._load_events()

            try:
                self.scheduler.start(self.shutdown_event)
            except SchedulerStateError:
                self.logger.warning("Daily scheduler was already running")

            self._setup_complete = True
            self.logger.info(
                "Bot setup completed successfully",
                daily_webhook_enabled=state.enabled,
                scheduler_running=self.scheduler.is_running(),
            )

        except Exception as e:
            self.logger.error("Failed to set up bot components", error=str(e))
            raise

    async def _load_commands(self) -> None:
        """Load slash commands and text commands."""
        self.logger.debug("Loading bot commands")

        from kawaii_bot.bot.commands import setup_commands
        await setup_commands(self)

    async def _load_events(self) -> None:
        """Load event handlers."""
        self.logger.debug("Loading event handlers")

        from kawaii_bot.bot.events import setup_events
        await setup_events(self)

    async def on_ready(self) -> None:
        """Called when the bot is ready and connected to Discord."""
        log_discord_event(
            "bot_ready",
            bot_user=str(self.user),
            bot_id=self.user.id if self.user else None,
            guild_count=len(self.guilds),
        )

        try:
            await self.change_presence(
                status=discord.Status.online,
                activity=discord.Activity(
                    type=discord.ActivityType.listening,
                    name=self.config.discord.status_text,
                ),
            )
        except discord.HTTPException as e:
            self.logger.warning("Failed to set bot status", error=str(e))

        try:
            synced = await self.tree.sync()
            log_discord_event("commands_synced_global", command_count=len(synced))
            self.logger.info(f"Synced {len(synced)} commands globally")
        except discord.HTTPException as e:
            self.logger.error("Failed to sync commands globally", error=str(e))

    async def close(self) -> None:
        """Stop the scheduler, close HTTP clients and disconnect."""
        self.logger.info("Shutting down Kawaii Bot")

        try:
            if self.scheduler:
                await self.scheduler.aclose()

            if self.daily_delivery:
                await self.daily_delivery.close()

            if self.nekos_client:
                await self.nekos_client.close()

            if self.waifu_client:
                await self.waifu_client.close()

            await super().close()

        except Exception as e:
            self.logger.error("Error during bot shutdown", error=str(e))
            raise
        finally:
            self.logger.info("Bot shutdown complete")
