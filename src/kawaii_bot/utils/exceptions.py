"""
Custom exceptions for Kawaii Bot.

This module defines a hierarchy of custom exceptions that provide clear
error handling and debugging information throughout the application.
All exceptions inherit from a base KawaiiBotError class for easy
catching and handling.
"""

from typing import Optional, Any, Dict


class KawaiiBotError(Exception):
    """
    Base exception class for all Kawaii Bot errors.

    This is the root exception that all other custom exceptions inherit from.
    It provides a consistent interface and allows catching all bot-related
    errors with a single except clause.

    Attributes:
        message: Human-readable error message
        context: Additional context information about the error
        original_error: The original exception that caused this error (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            context: Additional context information
            original_error: The original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        error_str = self.message
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            error_str += f" (Context: {context_str})"
        if self.original_error:
            error_str += f" (Caused by: {self.original_error})"
        return error_str


class ConfigurationError(KawaiiBotError):
    """
    Raised when there's an error in configuration.

    This exception is raised when:
    - Required environment variables are missing
    - Configuration values are invalid

    Example:
        ```python
        if not discord_token:
            raise ConfigurationError(
                "Discord token is required",
                context={"env_var": "DISCORD_BOT_TOKEN"}
            )
        ```
    """
    pass


class SchedulerStateError(KawaiiBotError):
    """
    Raised when the daily scheduler is used in the wrong state.

    Starting a scheduler that is already running, or stopping one that
    is not running, raises this error. The scheduler state is left
    unchanged.
    """
    pass


class DeliveryError(KawaiiBotError):
    """
    Raised when a daily delivery attempt fails.

    This exception is raised when:
    - No picture could be fetched from the configured providers
    - The webhook endpoint rejects the message
    - The webhook endpoint is unreachable

    Failures inside the scheduler's background loop are retried and
    logged, never propagated.
    """
    pass


class DeliveryDisabledError(DeliveryError):
    """
    Raised when a delivery is requested while the daily webhook is disabled.

    Example:
        ```python
        try:
            scheduler.force_send()
        except DeliveryDisabledError as e:
            await interaction.response.send_message(f"❌ {e.message}")
        ```
    """
    pass


class ImageAPIError(KawaiiBotError):
    """
    Raised when there's an error communicating with an image provider.

    This exception is raised when:
    - The provider API is unreachable
    - The API returns an error response
    - The response body cannot be decoded
    - Request times out

    Example:
        ```python
        try:
            images = await nekos_client.get_random_images(count=1)
        except aiohttp.ClientError as e:
            raise ImageAPIError(
                "Failed to communicate with nekos.moe",
                context={"url": url},
                original_error=e
            )
        ```
    """
    pass


class StorageError(KawaiiBotError):
    """
    Raised when bot settings cannot be loaded or saved.

    Example:
        ```python
        try:
            path.write_text(data)
        except OSError as e:
            raise StorageError(
                "Failed to write settings file",
                context={"path": str(path)},
                original_error=e
            )
        ```
    """
    pass


class DiscordAPIError(KawaiiBotError):
    """
    Raised when there's an error with Discord API operations.

    This exception is raised when:
    - Discord API rate limits are hit
    - Bot permissions are insufficient
    - Discord API returns unexpected errors
    - Message or file sending fails

    Example:
        ```python
        try:
            await channel.send(files=files)
        except discord.HTTPException as e:
            raise DiscordAPIError(
                "Failed to upload pictures to Discord",
                context={"channel_id": channel.id, "file_count": len(files)},
                original_error=e
            )
        ```
    """
    pass
