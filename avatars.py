"""
Avatar downloads for the stat card.
A failed download never blocks the card: callers get None and the renderer
falls back to the placeholder avatar.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF = 0.5
# Discord and osu! avatars are small; anything bigger is not an avatar
MAX_AVATAR_BYTES = 8 * 1024 * 1024


async def fetch_avatar(session: aiohttp.ClientSession, url: Optional[str], *,
                       timeout: float = DEFAULT_TIMEOUT,
                       retries: int = DEFAULT_RETRIES,
                       backoff: float = DEFAULT_BACKOFF) -> Optional[bytes]:
    """Download an avatar, retrying with exponential backoff. Returns None on failure."""
    if not url:
        return None

    client_timeout = aiohttp.ClientTimeout(total=timeout)
    attempts = max(0, retries) + 1
    for attempt in range(attempts):
        try:
            async with session.get(url, timeout=client_timeout) as response:
                if response.status == 404:
                    logger.warning("[avatar] %s not found", url)
                    return None
                if response.status == 200:
                    data = await response.read()
                    if len(data) > MAX_AVATAR_BYTES:
                        logger.warning("[avatar] %s is too large (%d bytes)", url, len(data))
                        return None
                    return data or None
                error = f"HTTP {response.status}"
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = e
        logger.warning("[avatar] Attempt %d/%d for %s failed: %s", attempt + 1, attempts, url, error)
        if attempt + 1 < attempts:
            await asyncio.sleep(backoff * (2 ** attempt))

    return None


async def fetch_avatars(urls, **kwargs) -> list:
    """Fetch several avatars concurrently in one session."""
    async with aiohttp.ClientSession() as session:
        return list(await asyncio.gather(*(fetch_avatar(session, url, **kwargs) for url in urls)))
