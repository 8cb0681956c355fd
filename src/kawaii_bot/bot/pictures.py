"""
Picture fetching and argument parsing shared by the prefix and slash commands.
"""

import time
from dataclasses import dataclass
from io import BytesIO
from typing import List, Sequence, Tuple

import discord

from kawaii_bot.providers.models import NSFWMode
from kawaii_bot.providers.nekos import NekosClient
from kawaii_bot.providers.waifu import WaifuClient
from kawaii_bot.utils.exceptions import ImageAPIError
from kawaii_bot.utils.logging import get_logger


MIN_COUNT = 1
MAX_COUNT = 10

YES = {"y", "yes"}
NO = {"n", "no"}

logger = get_logger(__name__)


@dataclass
class PictureOptions:
    """Options of a picture command."""
    count: int = 1
    nsfw: bool = False
    gif: bool = False


def _parse_count(value: str):
    try:
        count = int(value)
    except ValueError:
        return None
    if MIN_COUNT <= count <= MAX_COUNT:
        return count
    return None


def parse_catgirl_args(args: Sequence[str]) -> PictureOptions:
    """
    Parse ``!catgirl [count] [nsfw]``.

    Out-of-range or malformed values fall back to the defaults.
    """
    options = PictureOptions()

    if len(args) > 0:
        count = _parse_count(args[0])
        if count is not None:
            options.count = count

    if len(args) > 1 and args[1].lower() in YES:
        options.nsfw = True

    return options


def parse_waifu_args(args: Sequence[str]) -> PictureOptions:
    """
    Parse ``!waifu [count] [nsfw] [gif]`` with arguments in any order.

    The first number in range is the count. The first yes/no answer sets
    nsfw, the second sets gif. Anything else is ignored.
    """
    options = PictureOptions()
    count_set = nsfw_set = gif_set = False

    for raw in args:
        arg = raw.lower()

        count = _parse_count(arg)
        if count is not None:
            if not count_set:
                options.count = count
                count_set = True
            continue

        if arg in YES or arg in NO:
            answer = arg in YES
            if not nsfw_set:
                options.nsfw = answer
                nsfw_set = True
            elif not gif_set:
                options.gif = answer
                gif_set = True

    return options


def yes_no(value: str) -> bool:
    """Interpret a slash command y/n choice; anything but yes is no."""
    return value.strip().lower() in YES


async def fetch_catgirls(client: NekosClient, options: PictureOptions) -> Tuple[List[discord.File], List[str]]:
    """
    Fetch catgirl pictures as uploadable files.

    Returns:
        The files that could be downloaded and the URLs of all pictures

    Raises:
        ImageAPIError: If the image list cannot be fetched
    """
    images = await client.get_random_images(count=options.count, nsfw=options.nsfw)

    files: List[discord.File] = []
    urls: List[str] = []
    for image in images:
        urls.append(client.image_url(image.id))
        try:
            data = await client.download_image(image.id)
        except ImageAPIError as e:
            logger.warning("Failed to download catgirl image", image_id=image.id, error=str(e))
            continue

        filename = f"catgirl_{image.id}_{int(time.time())}.jpg"
        files.append(discord.File(BytesIO(data), filename=filename))

    return files, urls


async def fetch_waifus(client: WaifuClient, options: PictureOptions) -> Tuple[List[discord.File], List[str]]:
    """
    Fetch waifu pictures as uploadable files.

    Returns:
        The files that could be downloaded and the URLs of all pictures

    Raises:
        ImageAPIError: If the image list cannot be fetched
    """
    images = await client.get_images(
        count=options.count,
        nsfw=NSFWMode.NSFW if options.nsfw else NSFWMode.SFW,
        animated=options.gif,
    )

    files: List[discord.File] = []
    urls: List[str] = []
    for image in images:
        urls.append(image.url)
        try:
            data = await client.download_image(image.url)
        except ImageAPIError as e:
            logger.warning("Failed to download waifu image", image_id=image.id, error=str(e))
            continue

        filename = f"waifu_{image.id}_{int(time.time())}{image.extension}"
        files.append(discord.File(BytesIO(data), filename=filename))

    return files, urls
