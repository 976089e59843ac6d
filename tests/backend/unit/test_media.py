import asyncio

import httpx
import pytest

from partyhub.backend.errors import ExternalDependencyError
from partyhub.backend.media import PHOTO_SIZE_SUFFIX, GooglePhotosResolver, extract_photo_urls, is_album_link

PHOTO_A = "https://lh3.googleusercontent.com/pw/AP1GczN" + "a" * 60
PHOTO_B = "https://lh3.googleusercontent.com/pw/AP1GczN" + "b" * 60
AVATAR = "https://lh3.googleusercontent.com/a/ACg8ocL" + "c" * 60

ALBUM_HTML = f"""
<html><body>
<img src="{PHOTO_A}=w400-h300">
<img src="{PHOTO_A}=w1200">
<img src="{AVATAR}=s64">
<img src="https://lh3.googleusercontent.com/short">
<script>var data = ["{PHOTO_B}=w800"];</script>
</body></html>
"""


def test_extract_photo_urls_dedupes_and_skips_avatars() -> None:
    photos = extract_photo_urls(ALBUM_HTML)

    assert photos == [PHOTO_A + PHOTO_SIZE_SUFFIX, PHOTO_B + PHOTO_SIZE_SUFFIX]


def test_is_album_link() -> None:
    assert is_album_link("https://photos.app.goo.gl/xyz")
    assert is_album_link("https://photos.google.com/share/abc")
    assert not is_album_link("https://cdn.example/picture.png")
    assert not is_album_link(None)


def test_resolver_follows_short_link_then_parses_album() -> None:
    requests: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, str(request.url)))
        if request.url.host == "photos.app.goo.gl":
            return httpx.Response(302, headers={"location": "https://photos.google.com/share/album-1"})
        return httpx.Response(200, text=ALBUM_HTML)

    resolver = GooglePhotosResolver(transport=httpx.MockTransport(handler))

    photos = asyncio.run(resolver.resolve("https://photos.app.goo.gl/xyz"))

    assert photos == [PHOTO_A + PHOTO_SIZE_SUFFIX, PHOTO_B + PHOTO_SIZE_SUFFIX]
    assert requests == [
        ("HEAD", "https://photos.app.goo.gl/xyz"),
        ("GET", "https://photos.google.com/share/album-1"),
    ]


def test_resolver_wraps_http_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(500)

    resolver = GooglePhotosResolver(transport=httpx.MockTransport(handler))

    with pytest.raises(ExternalDependencyError):
        asyncio.run(resolver.resolve("https://photos.app.goo.gl/xyz"))
