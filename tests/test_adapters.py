import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx

from geo.geocode import GeocodeResult, Geocoder, NullGeocoder
from ingest.adapters import collect_all_sources, collect_source_events
from ingest.feed_packs import EventSourceConfig
from normalize.fallbacks import FALLBACK_LOCATIONS, DisabledFallbackProvider, RandomFallbackProvider


FIXTURES = Path(__file__).resolve().parent / "fixtures"


class RecordingGeocoder(Geocoder):
    def __init__(self, known: dict[str, GeocodeResult]) -> None:
        self.known = known
        self.calls: list[str] = []

    async def lookup(self, address: str) -> GeocodeResult | None:
        self.calls.append(address)
        return self.known.get(address.strip().lower())


def _client(handler=None) -> httpx.AsyncClient:
    def default(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler or default))


def _collect(config: EventSourceConfig, **kwargs):
    async def run():
        async with _client(kwargs.pop("handler", None)) as client:
            return await collect_source_events(
                client,
                config,
                user_agent="test",
                geocoder=kwargs.get("geocoder", NullGeocoder()),
                fallbacks=kwargs.get("fallbacks", DisabledFallbackProvider()),
            )

    return asyncio.run(run())


def test_ics_adapter_normalizes_fixture() -> None:
    memorial = GeocodeResult(lat=33.4184, lon=-111.9339, city="Tempe", state="AZ")
    geocoder = RecordingGeocoder({"memorial union": memorial})
    config = EventSourceConfig(
        key="campus",
        source_type="ics",
        url=str(FIXTURES / "campus.ics"),
        default_status="scheduled",
        tags=("asu",),
    )
    events = _collect(config, geocoder=geocoder, fallbacks=RandomFallbackProvider(seed=7))
    by_id = {e.external_id: e for e in events}

    assert "blank-1@campus" not in by_id
    assert len(events) == 5

    fair = by_id["cf-1@campus"]
    assert fair.categories == {"career", "networking"}
    assert fair.organizer == "Career Services"
    assert fair.status == "scheduled"
    assert fair.venue == "Memorial Union"
    assert fair.venue_lat == 33.4184
    assert fair.venue_city == "Tempe"

    redacted = by_id["cf-2@campus"]
    assert redacted.venue in FALLBACK_LOCATIONS
    assert redacted.categories == {"asu"}

    assert by_id["jazz-1@campus"].status == "cancelled"
    assert by_id["jazz-1@campus"].end - by_id["jazz-1@campus"].start == timedelta(hours=3)

    study = by_id["study-1@campus"]
    assert study.title == "Study Hall"
    assert study.status == "postponed"
    assert study.end == study.start + timedelta(minutes=60)

    spring = by_id["allday-1@campus"]
    assert spring.start == datetime(2024, 3, 11, tzinfo=UTC)
    assert spring.end > spring.start

    assert "Memorial Union" in geocoder.calls


def test_ics_adapter_uses_default_venue_when_location_redacted_and_fallbacks_off() -> None:
    config = EventSourceConfig(
        key="campus",
        source_type="ics",
        url=str(FIXTURES / "campus.ics"),
        default_venue_name="Campus",
    )
    events = _collect(config)
    redacted = next(e for e in events if e.external_id == "cf-2@campus")
    assert redacted.venue == "Campus"


def test_rss_adapter_over_http() -> None:
    body = (FIXTURES / "events.rss.xml").read_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body)

    config = EventSourceConfig(
        key="news",
        source_type="rss",
        url="https://example.edu/events.rss",
        default_organizer_name="Campus News",
    )
    events = _collect(config, handler=handler)
    assert [e.title for e in events] == ["Robotics Demo Day", "Poetry Slam"]
    assert events[0].categories == {"tech", "robotics"}
    assert events[0].end - events[0].start == timedelta(minutes=120)
    assert events[1].external_id == "https://example.edu/events/poetry"
    assert events[1].organizer == "Campus News"


def test_json_adapter_file_uri() -> None:
    config = EventSourceConfig(
        key="api",
        source_type="json",
        url=(FIXTURES / "events.json").as_uri(),
    )
    events = _collect(config)
    assert len(events) == 2
    sculpture, film = events
    assert sculpture.categories == {"arts", "outdoors"}
    assert sculpture.end == sculpture.start + timedelta(minutes=90)
    assert sculpture.description == "Guided tour of the outdoor collection."
    assert film.status == "postponed"
    assert film.end == datetime(2024, 3, 6, 3, 30, tzinfo=UTC)


def test_disabled_source_contributes_nothing() -> None:
    config = EventSourceConfig(
        key="api", source_type="json", url=str(FIXTURES / "events.json"), enabled=False
    )
    assert _collect(config) == []


def test_failing_sources_are_isolated() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    configs = [
        EventSourceConfig(key="down", source_type="json", url="https://example.edu/events.json"),
        EventSourceConfig(key="missing", source_type="ics", url=str(FIXTURES / "nope.ics")),
        EventSourceConfig(key="invalid", source_type="json", url=str(FIXTURES / "events_invalid.json")),
        EventSourceConfig(key="bad-url", source_type="rss", url="http://[::1/feed"),
        EventSourceConfig(key="good", source_type="json", url=str(FIXTURES / "events.json")),
    ]

    async def run():
        async with _client(handler) as client:
            return await collect_all_sources(
                client,
                configs,
                user_agent="test",
                geocoder=NullGeocoder(),
                fallbacks=DisabledFallbackProvider(),
            )

    results = asyncio.run(run())
    outcome = {r.config.key: r for r in results}
    assert outcome["down"].error == "http_503"
    assert outcome["missing"].error == "FileNotFoundError"
    assert outcome["invalid"].error == "ValidationError"
    assert outcome["bad-url"].error == "InvalidURL"
    assert outcome["good"].ok
    assert len(outcome["good"].events) == 2
    assert [r.config.key for r in results] == ["down", "missing", "invalid", "bad-url", "good"]
