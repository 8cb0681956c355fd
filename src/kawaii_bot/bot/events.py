"""
Discord event handlers for Kawaii Bot.

This module contains event handlers that respond to Discord events
like errors, command failures, and guild joins.
"""

import sys
from typing import Any

import discord
from discord import app_commands
from discord.ext import commands

from kawaii_bot.utils.logging import get_logger, log_discord_event, log_error


async def setup_events(bot) -> None:
    """
    Set up event handlers for the bot.

    Args:
        bot: The Discord bot instance
    """
    logger = get_logger(__name__)
    logger.debug("Setting up event handlers")

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError) -> None:
        """
        Handle text command errors.

        Args:
            ctx: Command context
            error: The error that occurred
        """
        # Plain chat that happens to start with the prefix
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.CommandOnCooldown):
            await ctx.send(f"⏰ This command is on cooldown. Try again in {error.retry_after:.1f} seconds.")
            return

        if isinstance(error, commands.MissingPermissions):
            await ctx.send("❌ You don't have permission to use this command.")
            return

        if isinstance(error, commands.BadArgument):
            await ctx.send(f"❌ Invalid argument provided: {error}")
            return

        log_error(error, {
            "command": ctx.command.name if ctx.command else "unknown",
            "user_id": ctx.author.id,
            "channel_id": ctx.channel.id,
            "guild_id": ctx.guild.id if ctx.guild else None,
        })

        await ctx.send("❌ An unexpected error occurred while processing your command.")

    @bot.tree.error
    async def on_app_command_error(
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        """
        Handle slash command errors.

        Args:
            interaction: The interaction that caused the error
            error: The error that occurred
        """
        if isinstance(error, app_commands.CommandOnCooldown):
            message = f"⏰ This command is on cooldown. Try again in {error.retry_after:.1f} seconds."
        elif isinstance(error, app_commands.MissingPermissions):
            message = "❌ You don't have permission to use this command."
        elif isinstance(error, app_commands.TransformerError):
            message = f"❌ Invalid argument provided: {error}"
        else:
            log_error(error, {
                "command": interaction.command.name if interaction.command else "unknown",
                "user_id": interaction.user.id,
                "channel_id": interaction.channel_id,
                "guild_id": interaction.guild_id,
            })
            message = "❌ An unexpected error occurred while processing your command."

        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)

    @bot.event
    async def on_error(event: str, *args: Any, **kwargs: Any) -> None:
        """Handle errors raised by other event handlers."""
        _, exc_value, _ = sys.exc_info()

        if exc_value:
            log_error(exc_value, {
                "event": event,
                "args": str(args)[:500],
                "kwargs": str(kwargs)[:500],
            })
        else:
            logger.error("Unknown error in event", event=event)

    @bot.event
    async def on_guild_join(guild: discord.Guild) -> None:
        """
        Handle bot joining a new guild.

        Args:
            guild: The guild that was joined
        """
        log_discord_event(
            "guild_join",
            guild_id=guild.id,
            guild_name=guild.name,
            member_count=guild.member_count,
        )

        if guild.system_channel and guild.system_channel.permissions_for(guild.me).send_messages:
            embed = discord.Embed(
                title="🌸 Hello! Thanks for adding me!",
                color=discord.Color.pink(),
                description="I fetch catgirl and waifu pictures, and can send a daily picture to a webhook!",
            )
            embed.add_field(
                name="🚀 Getting Started",
                value="• Use `/catgirl` or `/waifu` for pictures\n"
                      "• Use `/help` to see all available commands",
                inline=False,
            )

            try:
                await guild.system_channel.send(embed=embed)
            except discord.HTTPException:
                logger.warning("Failed to send welcome message", guild_id=guild.id)

    logger.info("Event handlers setup complete")
