"""waifu.im API client for waifu pictures."""

from typing import Dict, List, Optional

from pydantic import ValidationError

from kawaii_bot.providers.base import BaseImageClient
from kawaii_bot.providers.models import NSFWMode, WaifuImage, WaifuImagePage
from kawaii_bot.utils.exceptions import ImageAPIError
from kawaii_bot.utils.logging import log_function_call


MAX_PAGE_SIZE = 10


class WaifuClient(BaseImageClient):
    """Client for https://waifu.im."""

    service = "waifu"

    async def get_images(
        self,
        count: int = 1,
        nsfw: NSFWMode = NSFWMode.SFW,
        animated: Optional[bool] = None,
    ) -> List[WaifuImage]:
        """
        Fetch random images.

        Args:
            count: Number of images, clamped to 1..10
            nsfw: NSFW filter mode
            animated: True for GIFs only, False for stills only, None for both

        Returns:
            The images returned by the API
        """
        count = max(1, min(count, MAX_PAGE_SIZE))
        log_function_call("WaifuClient.get_images", count=count, nsfw=nsfw.value, animated=animated)

        params: Dict[str, str] = {"IsNsfw": nsfw.value, "pageSize": str(count)}
        if animated is not None:
            params["IsAnimated"] = "True" if animated else "False"

        data = await self._request_json("GET", self.config.waifu_base_url, params=params)
        try:
            return WaifuImagePage.model_validate(data).items
        except ValidationError as e:
            raise ImageAPIError(
                "Unexpected waifu.im response",
                context={"errors": e.error_count()},
                original_error=e,
            )

    async def download_image(self, url: str) -> bytes:
        """Download image bytes from a waifu.im image URL."""
        return await self._download(url)
