"""Resolution of shared photo-album links into direct image URLs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

import httpx

from .errors import ExternalDependencyError

logger = logging.getLogger(__name__)

PHOTO_URL_PATTERN = re.compile(r"https://lh3\.googleusercontent\.com/[^\"'\s)]+")
ALBUM_HOST_MARKERS = ("photos.app.goo.gl", "google.com/photos", "photos.google.com")
PHOTO_SIZE_SUFFIX = "=w1920-h1080-no"

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class MediaResolver(Protocol):
    async def resolve(self, album_url: str) -> list[str]:
        """Return direct image URLs for an album link.

        Raises ExternalDependencyError when the album cannot be fetched.
        """


def is_album_link(url: str | None) -> bool:
    if not url:
        return False
    return any(marker in url for marker in ALBUM_HOST_MARKERS)


def extract_photo_urls(html: str) -> list[str]:
    photos: list[str] = []
    seen: set[str] = set()
    for match in PHOTO_URL_PATTERN.finditer(html):
        url = match.group(0)
        # avatars and icons
        if "/a/" in url or len(url) < 50:
            continue
        base_url = url.split("=")[0]
        if base_url in seen:
            continue
        seen.add(base_url)
        photos.append(f"{base_url}{PHOTO_SIZE_SUFFIX}")
    return photos


@dataclass
class GooglePhotosResolver:
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None

    async def resolve(self, album_url: str) -> list[str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=BROWSER_HEADERS, transport=self.transport) as client:
                final_url = await self._follow_short_link(client, album_url)
                response = await client.get(final_url, follow_redirects=True)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExternalDependencyError(f"Could not fetch album {album_url}: {exc}") from exc

        photos = extract_photo_urls(response.text)
        logger.info("resolved %d photos from %s", len(photos), album_url)
        return photos

    async def _follow_short_link(self, client: httpx.AsyncClient, url: str) -> str:
        if "goo.gl" not in url and "google.com" not in url:
            return url
        try:
            response = await client.head(url, follow_redirects=False)
        except httpx.HTTPError as exc:
            logger.warning("could not expand %s, using it as given: %s", url, exc)
            return url
        location = response.headers.get("location")
        if 300 <= response.status_code < 400 and location:
            return location
        return url
