from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx


_HTTP_RE = re.compile(r"^https?://", flags=re.IGNORECASE)


class FetchError(Exception):
    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"http_{status_code} fetching {url}")
        self.url = url
        self.status_code = status_code


def is_http(ref: str) -> bool:
    return _HTTP_RE.match(ref) is not None


def is_file_uri(ref: str) -> bool:
    return ref.startswith("file://")


def resolve_local_path(ref: str) -> Path:
    if is_file_uri(ref):
        return Path(url2pathname(urlsplit(ref).path))
    path = Path(ref)
    if path.is_absolute():
        return path
    return Path.cwd() / path


async def fetch(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    accept: str = "text/calendar, application/rss+xml, application/json, text/xml, */*",
) -> bytes:
    """Read a feed from the network or the local filesystem.

    Non-2xx responses raise FetchError.
    """
    if not is_http(url):
        return resolve_local_path(url).read_bytes()

    headers = {"User-Agent": user_agent, "Accept": accept}
    timeout = httpx.Timeout(connect=5.0, read=30.0, write=5.0, pool=5.0)
    response = await client.get(url, headers=headers, timeout=timeout)
    if not response.is_success:
        raise FetchError(url, response.status_code)
    return response.content
