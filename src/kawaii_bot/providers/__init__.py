"""Image provider clients for nekos.moe and waifu.im."""

from kawaii_bot.providers.models import (
    NSFWMode,
    NekosImage,
    WaifuImage,
)
from kawaii_bot.providers.nekos import NekosClient
from kawaii_bot.providers.waifu import WaifuClient

__all__ = [
    "NSFWMode",
    "NekosImage",
    "WaifuImage",
    "NekosClient",
    "WaifuClient",
]
