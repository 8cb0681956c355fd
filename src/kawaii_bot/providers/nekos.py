"""nekos.moe API client for catgirl pictures."""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from kawaii_bot.providers.base import BaseImageClient
from kawaii_bot.providers.models import NekosImage, NekosImageList, NekosImageResponse
from kawaii_bot.utils.exceptions import ImageAPIError
from kawaii_bot.utils.logging import log_function_call


class NekosClient(BaseImageClient):
    """
    Client for https://nekos.moe.

    The API returns image ids only; image bytes live under
    ``<nekos_image_url>/<id>.jpg``.
    """

    service = "nekos"

    def _endpoint(self, path: str) -> str:
        return self.config.nekos_base_url.rstrip("/") + "/" + path

    def image_url(self, image_id: str) -> str:
        """Public URL of an image."""
        return f"{self.config.nekos_image_url.rstrip('/')}/{image_id}.jpg"

    def _parse_list(self, data: Any) -> List[NekosImage]:
        try:
            return NekosImageList.model_validate(data).images
        except ValidationError as e:
            raise ImageAPIError(
                "Unexpected nekos.moe response",
                context={"errors": e.error_count()},
                original_error=e,
            )

    async def get_random_images(self, count: int = 1, nsfw: Optional[bool] = None) -> List[NekosImage]:
        """
        Fetch random images.

        Args:
            count: Number of images to request
            nsfw: True for NSFW only, False for SFW only, None for mixed results

        Returns:
            The images returned by the API (possibly fewer than requested)
        """
        log_function_call("NekosClient.get_random_images", count=count, nsfw=nsfw)

        params: Dict[str, str] = {"count": str(count)}
        if nsfw is not None:
            params["nsfw"] = "true" if nsfw else "false"

        data = await self._request_json("GET", self._endpoint("random/image"), params=params)
        return self._parse_list(data)

    async def get_image(self, image_id: str) -> NekosImage:
        """Fetch a single image by id."""
        data = await self._request_json("GET", self._endpoint(f"images/{image_id}"))
        try:
            return NekosImageResponse.model_validate(data).image
        except ValidationError as e:
            raise ImageAPIError(
                "Unexpected nekos.moe response",
                context={"image_id": image_id},
                original_error=e,
            )

    async def search_images(
        self,
        tags: List[str],
        count: int = 1,
        nsfw: Optional[bool] = None,
    ) -> List[NekosImage]:
        """Search images by tags."""
        body: Dict[str, Any] = {"tags": tags, "limit": count}
        if nsfw is not None:
            body["nsfw"] = nsfw

        data = await self._request_json("POST", self._endpoint("images/search"), json_body=body)
        return self._parse_list(data)

    async def download_image(self, image_id: str) -> bytes:
        """Download the JPEG bytes of an image."""
        return await self._download(self.image_url(image_id))
