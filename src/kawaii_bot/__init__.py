"""
Kawaii Bot - a Discord bot that serves anime pictures.

This package fetches catgirl pictures from nekos.moe and waifu pictures
from waifu.im on demand, and sends a daily picture bundle to a Discord
webhook at a fixed local hour.

Key Features:
- Slash commands and prefix commands for pictures
- Daily webhook delivery with retries and backoff
- Persistent enable/disable toggle for the daily delivery

Example:
    ```python
    from kawaii_bot.main import main

    if __name__ == "__main__":
        main()
    ```
"""

__version__ = "1.0.0"


# Imported lazily so that importing the package does not pull in discord.py
def main():
    """Main entry point for Kawaii Bot."""
    from kawaii_bot.main import main as _main
    return _main()


__all__ = ["main", "__version__"]
