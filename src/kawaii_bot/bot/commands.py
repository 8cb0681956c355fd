"""
Discord slash commands and text commands for Kawaii Bot.

This module implements the picture commands, the daily webhook controls
and the help command. Every user-facing feature is available both as a
slash command and as a prefix command.
"""

from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from kawaii_bot.bot.pictures import (
    MAX_COUNT,
    MIN_COUNT,
    PictureOptions,
    fetch_catgirls,
    fetch_waifus,
    parse_catgirl_args,
    parse_waifu_args,
    yes_no,
)
from kawaii_bot.utils.exceptions import (
    DeliveryDisabledError,
    ImageAPIError,
    SchedulerStateError,
    StorageError,
)
from kawaii_bot.utils.logging import get_logger, log_function_call, mask_webhook_url


YES_NO_CHOICES = [
    app_commands.Choice(name="Yes", value="y"),
    app_commands.Choice(name="No", value="n"),
]


async def _delete_invocation(ctx: commands.Context) -> None:
    """Delete the user's command message; missing permissions are expected."""
    try:
        await ctx.message.delete()
    except discord.HTTPException:
        pass


class PictureCommands(commands.Cog):
    """Catgirl and waifu picture commands."""

    def __init__(self, bot) -> None:
        self.bot = bot
        self.logger = get_logger(__name__)

    async def _send_to_channel(self, ctx: commands.Context, files: List[discord.File], urls: List[str]) -> None:
        if files:
            try:
                await ctx.send(files=files)
                return
            except discord.HTTPException as e:
                self.logger.warning("Failed to upload pictures, sending URLs", error=str(e))
        await ctx.send("\n".join(urls))

    async def _send_followup(self, interaction: discord.Interaction, files: List[discord.File], urls: List[str]) -> None:
        if files:
            try:
                await interaction.followup.send(files=files)
                return
            except discord.HTTPException as e:
                self.logger.warning("Failed to upload pictures, sending URLs", error=str(e))
        await interaction.followup.send("\n".join(urls))

    @app_commands.command(name="catgirl", description="Get adorable catgirl pictures 🐱")
    @app_commands.describe(count="Number of pictures (1-10)", nsfw="Include NSFW content? (defaults to no)")
    @app_commands.choices(nsfw=YES_NO_CHOICES)
    async def catgirl_slash(
        self,
        interaction: discord.Interaction,
        count: app_commands.Range[int, MIN_COUNT, MAX_COUNT] = 1,
        nsfw: str = "n",
    ) -> None:
        """Send catgirl pictures in response to /catgirl."""
        options = PictureOptions(count=count, nsfw=yes_no(nsfw))
        log_function_call("catgirl_command", user_id=interaction.user.id, count=options.count, nsfw=options.nsfw)

        await interaction.response.defer(thinking=True)

        try:
            files, urls = await fetch_catgirls(self.bot.nekos_client, options)
        except ImageAPIError as e:
            self.logger.error("Error in catgirl command", error=str(e), user_id=interaction.user.id)
            await interaction.followup.send(f"Sorry, I couldn't fetch catgirl images: {e.message}")
            return

        if not urls:
            await interaction.followup.send("Sorry, no catgirl images found!")
            return

        await self._send_followup(interaction, files, urls)

    @app_commands.command(name="waifu", description="Get beautiful waifu pictures 💜")
    @app_commands.describe(
        count="Number of pictures (1-10)",
        nsfw="Include NSFW content? (defaults to no)",
        gif="Include GIFs? (defaults to no)",
    )
    @app_commands.choices(nsfw=YES_NO_CHOICES, gif=YES_NO_CHOICES)
    async def waifu_slash(
        self,
        interaction: discord.Interaction,
        count: app_commands.Range[int, MIN_COUNT, MAX_COUNT] = 1,
        nsfw: str = "n",
        gif: str = "n",
    ) -> None:
        """Send waifu pictures in response to /waifu."""
        options = PictureOptions(count=count, nsfw=yes_no(nsfw), gif=yes_no(gif))
        log_function_call("waifu_command", user_id=interaction.user.id, count=options.count, nsfw=options.nsfw)

        await interaction.response.defer(thinking=True)

        try:
            files, urls = await fetch_waifus(self.bot.waifu_client, options)
        except ImageAPIError as e:
            self.logger.error("Error in waifu command", error=str(e), user_id=interaction.user.id)
            await interaction.followup.send(f"Sorry, I couldn't fetch waifu images: {e.message}")
            return

        if not urls:
            await interaction.followup.send("Sorry, no waifu images found!")
            return

        await self._send_followup(interaction, files, urls)

    @commands.command(name="catgirl")
    async def catgirl_prefix(self, ctx: commands.Context, *args: str) -> None:
        """!catgirl [count] [nsfw]"""
        options = parse_catgirl_args(args)
        log_function_call("catgirl_message_command", user_id=ctx.author.id, count=options.count, nsfw=options.nsfw)

        await _delete_invocation(ctx)

        async with ctx.typing():
            try:
                files, urls = await fetch_catgirls(self.bot.nekos_client, options)
            except ImageAPIError as e:
                self.logger.error("Error in catgirl command", error=str(e), user_id=ctx.author.id)
                await ctx.send(f"Sorry, I couldn't fetch catgirl images: {e.message}")
                return

            if not urls:
                await ctx.send("Sorry, no catgirl images found!")
                return

            await self._send_to_channel(ctx, files, urls)

    @commands.command(name="waifu")
    async def waifu_prefix(self, ctx: commands.Context, *args: str) -> None:
        """!waifu [count] [nsfw] [gif], in any order"""
        options = parse_waifu_args(args)
        log_function_call("waifu_message_command", user_id=ctx.author.id, count=options.count, nsfw=options.nsfw)

        await _delete_invocation(ctx)

        async with ctx.typing():
            try:
                files, urls = await fetch_waifus(self.bot.waifu_client, options)
            except ImageAPIError as e:
                self.logger.error("Error in waifu command", error=str(e), user_id=ctx.author.id)
                await ctx.send(f"Sorry, I couldn't fetch waifu images: {e.message}")
                return

            if not urls:
                await ctx.send("Sorry, no waifu images found!")
                return

            await self._send_to_channel(ctx, files, urls)


class DailyCommands(commands.Cog):
    """Controls for the daily webhook pictures."""

    def __init__(self, bot) -> None:
        self.bot = bot
        self.logger = get_logger(__name__)

    def toggle_daily_webhook(self) -> str:
        """
        Toggle the daily webhook and return the reply text.

        The new flag is persisted and pushed to the delivery. Enabling it
        while the scheduler is stopped starts the scheduler.
        """
        delivery = self.bot.daily_delivery
        _, url = delivery.get_status()
        if not url:
            return "❌ Daily webhook is not configured. Please set the `WEBHOOK_URL` environment variable."

        try:
            new_state = self.bot.settings_store.toggle_daily_webhook_enabled()
        except StorageError as e:
            self.logger.error("Failed to persist webhook toggle", error=str(e))
            return f"❌ Failed to toggle webhook: {e.message}"

        delivery.set_enabled(new_state)

        scheduler = self.bot.scheduler
        if new_state and not scheduler.is_running():
            try:
                scheduler.start(self.bot.shutdown_event)
            except SchedulerStateError:
                self.logger.debug("Scheduler was started concurrently")

        status, emoji = ("enabled", "🟢") if new_state else ("disabled", "🔴")
        return (
            f"{emoji} Daily webhook is now **{status}**!\n\n"
            f"📅 **Schedule**: Every day at {scheduler.trigger_hour:02d}:00\n"
            f"🌸 **Content**: {self._content_description()}\n"
            f"🔗 **Webhook URL**: `{mask_webhook_url(url)}`"
        )

    def force_send(self) -> str:
        """Launch an out-of-band delivery and return the reply text."""
        try:
            self.bot.scheduler.force_send()
        except DeliveryDisabledError as e:
            return f"❌ {e.message}"
        return "📤 Force sending daily webhook..."

    def _content_description(self) -> str:
        names = {"nekos": "1 catgirl picture", "waifu": "1 waifu picture"}
        return " + ".join(names[p] for p in self.bot.config.daily.providers)

    def build_status_embed(self) -> discord.Embed:
        """Describe the scheduler state."""
        scheduler = self.bot.scheduler
        enabled, url = self.bot.daily_delivery.get_status()

        embed = discord.Embed(
            title="📅 Daily Webhook Status",
            color=discord.Color.green() if scheduler.is_running() else discord.Color.red(),
        )
        embed.add_field(
            name="⚙️ State",
            value=f"**Scheduler:** {'✅ Running' if scheduler.is_running() else '❌ Stopped'}\n"
                  f"**Enabled:** {'✅' if enabled else '❌'}\n"
                  f"**Webhook:** {'✅ Configured' if url else '❌ Not configured'}",
            inline=True,
        )

        next_trigger = scheduler.next_trigger
        embed.add_field(
            name="⏰ Next Delivery",
            value=f"<t:{int(next_trigger.timestamp())}:R>" if next_trigger else "Not scheduled",
            inline=True,
        )

        report = scheduler.last_report
        if report:
            embed.add_field(
                name="📨 Last Delivery",
                value=f"**Status:** {report.status.value} ({report.trigger.value})\n"
                      f"**Attempts:** {report.attempt_count}/{report.max_attempts}\n"
                      f"**Started:** <t:{int(report.started_at.timestamp())}:R>",
                inline=False,
            )

        last_sent = self.bot.daily_delivery.last_sent
        if last_sent:
            embed.set_footer(text=f"Last sent successfully at {last_sent:%Y-%m-%d %H:%M:%S}")

        return embed

    @app_commands.command(name="webhook", description="Toggle daily webhook for waifu/catgirl pictures")
    async def webhook_slash(self, interaction: discord.Interaction) -> None:
        log_function_call("webhook_command", user_id=interaction.user.id)
        await interaction.response.send_message(self.toggle_daily_webhook())

    @commands.command(name="webhook")
    async def webhook_prefix(self, ctx: commands.Context) -> None:
        log_function_call("webhook_message_command", user_id=ctx.author.id)
        await ctx.send(self.toggle_daily_webhook())

    @app_commands.command(name="forcewebhook", description="Force send the daily webhook now for testing")
    async def force_webhook_slash(self, interaction: discord.Interaction) -> None:
        log_function_call("forcewebhook_command", user_id=interaction.user.id)
        await interaction.response.send_message(self.force_send(), ephemeral=True)

    @app_commands.command(name="schedule", description="Show the daily webhook schedule")
    async def schedule_slash(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(embed=self.build_status_embed(), ephemeral=True)


class UtilityCommands(commands.Cog):
    """Help command."""

    def __init__(self, bot) -> None:
        self.bot = bot
        self.logger = get_logger(__name__)

    def build_help_embed(self, prefix: Optional[str] = None) -> discord.Embed:
        """
        Build the help embed.

        Args:
            prefix: Text command prefix to document, or None for slash only
        """
        hour = self.bot.config.daily.trigger_hour

        embed = discord.Embed(
            title="🌸 Kawaii Bot Help 🌸",
            color=discord.Color.pink(),
            description="*Your personal anime picture companion!*",
        )

        catgirl = "`/catgirl [count] [nsfw]` - Slash command"
        waifu = "`/waifu [count] [nsfw] [gif]` - Slash command"
        webhook = "`/webhook` - Toggle daily webhook"
        if prefix:
            catgirl = f"`{prefix}catgirl [count] [nsfw]` - Message command\n" + catgirl
            waifu = f"`{prefix}waifu [count] [nsfw] [gif]` - Message command\n" + waifu
            webhook = f"`{prefix}webhook` - Toggle daily webhook (message command)\n" + webhook

        embed.add_field(
            name="🐱 Catgirl Commands",
            value=f"{catgirl}\n"
                  "• **count**: 1-10 pictures (optional, defaults to 1)\n"
                  "• **nsfw**: `y/yes` or `n/no` (optional, defaults to no)",
            inline=False,
        )
        embed.add_field(
            name="💜 Waifu Commands",
            value=f"{waifu}\n"
                  "• **count**: 1-10 pictures (optional, defaults to 1)\n"
                  "• **nsfw**: `y/yes` or `n/no` (optional, defaults to no)\n"
                  "• **gif**: `y/yes` or `n/no` (optional, defaults to no)",
            inline=False,
        )
        embed.add_field(
            name="📅 Daily Webhook",
            value=f"{webhook}\n"
                  "`/forcewebhook` - Send the daily pictures now\n"
                  "`/schedule` - Show the daily schedule\n"
                  f"• Sends daily pictures every day at {hour:02d}:00\n"
                  "• Requires `WEBHOOK_URL` environment variable",
            inline=False,
        )
        if prefix:
            embed.add_field(
                name="💡 Tips",
                value="• Message command arguments can be in any order!\n"
                      f"• Examples: `{prefix}waifu y`, `{prefix}waifu 5 y`, `{prefix}waifu y 3 n`\n"
                      "• Your command message will be automatically deleted",
                inline=False,
            )

        embed.set_footer(text="Powered by Nekos.moe API & Waifu.im 💕")
        return embed

    @app_commands.command(name="help", description="Show help information about the bot")
    async def help_slash(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(embed=self.build_help_embed(), ephemeral=True)

    @commands.command(name="help")
    async def help_prefix(self, ctx: commands.Context) -> None:
        await ctx.send(embed=self.build_help_embed(self.bot.config.discord.command_prefix))


async def setup_commands(bot) -> None:
    """
    Set up all bot commands.

    Args:
        bot: The Discord bot instance
    """
    logger = get_logger(__name__)
    logger.debug("Setting up bot commands")

    await bot.add_cog(PictureCommands(bot))
    await bot.add_cog(DailyCommands(bot))
    await bot.add_cog(UtilityCommands(bot))

    all_commands = bot.tree.get_commands()
    logger.info(f"Total commands registered: {len(all_commands)}")
    for cmd in all_commands:
        logger.debug(f"Registered command: {cmd.name} - {cmd.description}")

    logger.info("Bot commands setup complete")
