import asyncio
from pathlib import Path

import httpx
import pytest

from ingest.fetch import FetchError, fetch, is_file_uri, is_http, resolve_local_path


def test_source_reference_kinds() -> None:
    assert is_http("https://example.edu/feed.ics")
    assert is_http("HTTP://example.edu/feed.ics")
    assert not is_http("file:///tmp/feed.ics")
    assert is_file_uri("file:///tmp/feed.ics")
    assert not is_file_uri("feeds/local.json")


def test_resolve_local_path(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert resolve_local_path("data/events.json") == tmp_path / "data" / "events.json"
    assert resolve_local_path(str(tmp_path / "a.ics")) == tmp_path / "a.ics"
    assert resolve_local_path((tmp_path / "b.ics").as_uri()) == tmp_path / "b.ics"


def test_fetch_reads_local_file(tmp_path) -> None:
    path = tmp_path / "feed.json"
    path.write_bytes(b"[]")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
            return await fetch(client, url=path.as_uri(), user_agent="test")

    assert asyncio.run(run()) == b"[]"


def test_fetch_sends_user_agent_and_raises_on_non_success() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/ok":
            return httpx.Response(200, content=b"BEGIN:VCALENDAR")
        return httpx.Response(404)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            body = await fetch(client, url="https://feeds.test/ok", user_agent="ingest-test")
            with pytest.raises(FetchError) as excinfo:
                await fetch(client, url="https://feeds.test/gone", user_agent="ingest-test")
            return body, excinfo.value

    body, error = asyncio.run(run())
    assert body == b"BEGIN:VCALENDAR"
    assert error.status_code == 404
    assert str(error) == "http_404 fetching https://feeds.test/gone"
    assert seen[0].headers["User-Agent"] == "ingest-test"


def test_fetch_missing_local_file_raises(tmp_path) -> None:
    async def run():
        async with httpx.AsyncClient() as client:
            await fetch(client, url=str(Path(tmp_path) / "absent.ics"), user_agent="test")

    with pytest.raises(FileNotFoundError):
        asyncio.run(run())
