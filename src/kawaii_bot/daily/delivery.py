"""
Daily webhook delivery.

DailyDelivery fetches one random picture from each configured provider and
posts them to a Discord webhook as a message with one embed per picture.
It is the sender used by the daily scheduler and by the force-send command.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

import aiohttp
import discord

from kawaii_bot.config import DailyConfig, ProviderConfig
from kawaii_bot.daily.state import ScheduleState
from kawaii_bot.providers.models import NSFWMode
from kawaii_bot.providers.nekos import NekosClient
from kawaii_bot.providers.waifu import WaifuClient
from kawaii_bot.utils.exceptions import DeliveryDisabledError, DeliveryError, ImageAPIError
from kawaii_bot.utils.logging import (
    get_service_logger,
    log_http_request,
    log_http_response,
    log_operation_timing,
    generate_correlation_id,
)


WEBHOOK_URL_PATTERN = re.compile(
    r"^https://(?:discord\.com|discordapp\.com)/api/webhooks/\d+/[a-zA-Z0-9_-]+$"
)

MESSAGE_HEADER = (
    "## 🌸 Your daily motivational waifu/catgirl 🌸\n"
    "*Starting your day with some kawaii energy!* 💕\n"
    "🎲 *Today's random selection!* 🎲"
)

WAIFU_COLOR = 0x9B59B6
CATGIRL_COLOR = 0xE91E63


def is_valid_webhook_url(url: str) -> bool:
    """Check whether a URL looks like a Discord webhook URL."""
    return bool(WEBHOOK_URL_PATTERN.match(url))


@dataclass
class DailyPicture:
    """One picture of the daily bundle."""
    provider: str
    label: str
    title: str
    description: str
    url: str
    color: int


class DailyDelivery:
    """
    Sends the daily pictures to the configured Discord webhook.

    Delivery is enabled when the shared enabled flag is set and a webhook
    URL is configured.

    Attributes:
        config: Daily delivery settings
        webhook_url: Destination webhook URL ("" when unconfigured)
    """

    def __init__(
        self,
        config: DailyConfig,
        state: ScheduleState,
        nekos_client: NekosClient,
        waifu_client: Optional[WaifuClient] = None,
        provider_config: Optional[ProviderConfig] = None,
    ) -> None:
        self.config = config
        self.webhook_url = config.webhook_url.strip()
        self.logger = get_service_logger("webhook")

        self._state = state
        self._nekos = nekos_client
        self._waifu = waifu_client
        self._timeout = provider_config.timeout if provider_config else 30
        self._session: Optional[aiohttp.ClientSession] = None
        self._last_sent: Optional[datetime] = None

        if self.webhook_url and not is_valid_webhook_url(self.webhook_url):
            self.logger.warning("Webhook URL does not appear to be a valid Discord webhook URL")

        if "waifu" in config.providers and waifu_client is None:
            self.logger.warning("waifu provider configured without a client, it will be skipped")

    def is_enabled(self) -> bool:
        return self._state.enabled and self.webhook_url != ""

    def set_enabled(self, enabled: bool) -> None:
        self._state.set_enabled(enabled)
        self.logger.info("Daily webhook enabled flag set", enabled=enabled)

    def toggle(self) -> bool:
        """Flip the enabled flag and return its new value."""
        enabled = self._state.toggle_enabled()
        self.logger.info("Daily webhook toggled", enabled=enabled)
        return enabled

    def get_status(self) -> Tuple[bool, str]:
        """Return the enabled flag and the configured webhook URL."""
        return self._state.enabled, self.webhook_url

    @property
    def last_sent(self) -> Optional[datetime]:
        return self._last_sent

    async def send(self) -> None:
        """
        Fetch today's pictures and post them to the webhook.

        Raises:
            DeliveryDisabledError: If delivery is disabled
            DeliveryError: If no picture could be fetched or the post failed
        """
        if not self.is_enabled():
            raise DeliveryDisabledError("Daily webhook is disabled")

        with log_operation_timing("daily_webhook_send", self.logger, providers=self.config.providers) as result:
            pictures = await self.fetch_pictures()
            if not pictures:
                raise DeliveryError(
                    "No pictures could be fetched",
                    context={"providers": ",".join(self.config.providers)},
                )

            content, embeds = self.build_message(pictures)
            await self._post(content, embeds)
            result["picture_count"] = len(pictures)

        self._last_sent = datetime.now()

    async def fetch_pictures(self) -> List[DailyPicture]:
        """
        Fetch one random picture from each configured provider.

        Raises:
            DeliveryError: If a provider request fails
        """
        pictures: List[DailyPicture] = []

        for provider in self.config.providers:
            try:
                if provider == "waifu":
                    picture = await self._fetch_waifu()
                else:
                    picture = await self._fetch_catgirl()
            except ImageAPIError as e:
                raise DeliveryError(
                    f"Failed to fetch {provider} picture",
                    context={"provider": provider},
                    original_error=e,
                )

            if picture is not None:
                pictures.append(picture)

        return pictures

    async def _fetch_waifu(self) -> Optional[DailyPicture]:
        if self._waifu is None:
            return None

        images = await self._waifu.get_images(count=1, nsfw=NSFWMode.ALL)
        if not images:
            self.logger.warning("waifu.im returned no images")
            return None

        image = images[0]
        self.logger.info("Fetched waifu image", image_id=image.id, nsfw=image.is_nsfw)
        return DailyPicture(
            provider="waifu",
            label="💜 Daily Waifu",
            title="💜 Daily Waifu",
            description="Here's your beautiful waifu for today!",
            url=image.url,
            color=WAIFU_COLOR,
        )

    async def _fetch_catgirl(self) -> Optional[DailyPicture]:
        # nsfw=None asks nekos.moe for a mixed selection
        images = await self._nekos.get_random_images(count=1, nsfw=None)
        if not images:
            self.logger.warning("nekos.moe returned no images")
            return None

        image = images[0]
        url = self._nekos.image_url(image.id)
        self.logger.info("Fetched catgirl image", image_id=image.id, nsfw=image.nsfw)
        return DailyPicture(
            provider="nekos",
            label="🐱 Daily Catgirl",
            title="🐱 Daily Catgirl",
            description="And here's your adorable catgirl!",
            url=url,
            color=CATGIRL_COLOR,
        )

    def build_message(self, pictures: List[DailyPicture]) -> Tuple[str, List[discord.Embed]]:
        """
        Build the webhook content and embeds.

        The content lists the raw image URLs as well, so the message still
        shows pictures if Discord fails to render the embeds.
        """
        lines = [MESSAGE_HEADER]
        embeds: List[discord.Embed] = []

        for picture in pictures:
            lines.append(f"**{picture.label}:** {picture.url}")

            embed = discord.Embed(
                title=picture.title,
                description=picture.description,
                color=picture.color,
            )
            embed.set_image(url=picture.url)
            embeds.append(embed)

        return "\n".join(lines), embeds

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def _post(self, content: str, embeds: List[discord.Embed]) -> None:
        """
        Post a message to the webhook.

        Raises:
            DeliveryError: If the webhook rejects the message or is unreachable
        """
        correlation_id = generate_correlation_id()
        log_http_request(
            method="POST",
            url=self.webhook_url,
            service="webhook",
            correlation_id=correlation_id,
        )

        start_time = time.time()
        session = await self._ensure_session()

        try:
            webhook = discord.Webhook.from_url(self.webhook_url, session=session)
            await webhook.send(content=content, embeds=embeds, wait=True)
        except ValueError as e:
            raise DeliveryError(
                "Invalid webhook URL",
                original_error=e,
            )
        except discord.HTTPException as e:
            log_http_response(
                status_code=e.status,
                response_time_ms=(time.time() - start_time) * 1000,
                error=str(e),
                service="webhook",
                correlation_id=correlation_id,
            )
            raise DeliveryError(
                f"Webhook returned status code {e.status}",
                context={"status_code": e.status},
                original_error=e,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log_http_response(
                status_code=0,
                response_time_ms=(time.time() - start_time) * 1000,
                error=str(e) or type(e).__name__,
                service="webhook",
                correlation_id=correlation_id,
            )
            raise DeliveryError(
                "Failed to send webhook",
                context={"error_type": type(e).__name__},
                original_error=e,
            )

        log_http_response(
            status_code=200,
            response_time_ms=(time.time() - start_time) * 1000,
            service="webhook",
            correlation_id=correlation_id,
        )

    async def close(self) -> None:
        """Close the webhook HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
