from datetime import UTC, date, datetime, timedelta

from ingest.feed_packs import EventSourceConfig
from normalize.fallbacks import (
    FALLBACK_LOCATIONS,
    DisabledFallbackProvider,
    RandomFallbackProvider,
)
from normalize.normalize import (
    ensure_end,
    map_ics_status,
    normalize_categories,
    normalize_ics_record,
    normalize_json_record,
    normalize_rss_record,
    parse_iso,
    split_category_token,
    substitute_placeholder_location,
    to_iso_utc,
)


START = datetime(2024, 3, 1, 10, 0, tzinfo=UTC)


def _config(**overrides) -> EventSourceConfig:
    values = {"key": "feed", "source_type": "ics", "url": "feed.ics"}
    values.update(overrides)
    return EventSourceConfig(**values)


def test_ensure_end_keeps_later_end() -> None:
    end = START + timedelta(minutes=30)
    assert ensure_end(START, end, 90) == end


def test_ensure_end_substitutes_missing_or_backwards_end() -> None:
    assert ensure_end(START, None) == START + timedelta(minutes=60)
    assert ensure_end(START, None, 90) == START + timedelta(minutes=90)
    assert ensure_end(START, START, 15) == START + timedelta(minutes=15)
    assert ensure_end(START, START - timedelta(hours=1), 15) == START + timedelta(minutes=15)


def test_parse_iso_variants() -> None:
    assert parse_iso("2024-03-01T10:00:00Z") == START
    assert parse_iso("2024-03-01T03:00:00-07:00") == START
    assert parse_iso("2024-03-01T10:00:00") == START
    assert parse_iso(date(2024, 3, 1)) == datetime(2024, 3, 1, tzinfo=UTC)
    assert parse_iso("next tuesday") is None
    assert parse_iso("") is None
    assert parse_iso(None) is None


def test_to_iso_utc_is_stable() -> None:
    assert to_iso_utc(START) == "2024-03-01T10:00:00.000Z"
    assert to_iso_utc(parse_iso(to_iso_utc(START))) == "2024-03-01T10:00:00.000Z"


def test_normalize_categories_lowercases_trims_and_dedupes() -> None:
    assert normalize_categories(["Music", " music ", "MUSIC", "Live  Shows", ""]) == {
        "music",
        "live shows",
    }


def test_normalize_categories_uses_tags_only_when_empty() -> None:
    assert normalize_categories([], ("ASU", " Campus")) == {"asu", "campus"}
    assert normalize_categories(["Art"], ("ASU",)) == {"art"}


def test_split_category_token_takes_last_colon_segment() -> None:
    assert split_category_token("TOPIC:Music") == "Music"
    assert split_category_token("A:B:  Live   Music ") == "Live Music"
    assert split_category_token("Plain") == "Plain"


def test_placeholder_location_is_never_passed_through() -> None:
    fallbacks = RandomFallbackProvider(seed=3)
    for sentinel in ("Sign in to download the location", "SIGN IN TO DOWNLOAD THE LOCATION "):
        assert substitute_placeholder_location(sentinel, fallbacks) in FALLBACK_LOCATIONS
    assert (
        substitute_placeholder_location("Sign in to download the location", DisabledFallbackProvider())
        is None
    )
    assert substitute_placeholder_location(" Hayden Lawn ", fallbacks) == "Hayden Lawn"
    assert substitute_placeholder_location("   ", fallbacks) is None


def test_map_ics_status() -> None:
    assert map_ics_status("CANCELLED") == "cancelled"
    assert map_ics_status("Tentative") == "postponed"
    assert map_ics_status("CONFIRMED") == "scheduled"
    assert map_ics_status(None) is None


def test_normalize_ics_record_defaults() -> None:
    config = _config(default_status="scheduled", default_venue_name="Main Hall", tags=("campus",))
    record = {"uid": None, "summary": " Open House ", "start": START, "end": None}
    event = normalize_ics_record(config, record)
    assert event is not None
    assert event.title == "Open House"
    assert event.external_id == "Open House-2024-03-01T10:00:00.000Z"
    assert event.end == START + timedelta(minutes=60)
    assert event.status == "scheduled"
    assert event.venue == "Main Hall"
    assert event.categories == {"campus"}


def test_normalize_ics_record_drops_missing_title_or_start() -> None:
    config = _config()
    assert normalize_ics_record(config, {"summary": "   ", "start": START}) is None
    assert normalize_ics_record(config, {"summary": "Talk", "start": None}) is None


def test_normalize_rss_record_uses_config_defaults() -> None:
    config = _config(
        source_type="rss",
        default_organizer_name="Library",
        default_venue_name="Hayden Library",
        default_status="scheduled",
    )
    record = {
        "id": None,
        "link": "https://example.edu/e/1",
        "title": "Book Talk",
        "summary": "An author visit",
        "content": None,
        "published": "2024-03-01T10:00:00Z",
        "categories": ["Books"],
    }
    event = normalize_rss_record(config, record)
    assert event is not None
    assert event.external_id == "https://example.edu/e/1"
    assert event.end - event.start == timedelta(minutes=120)
    assert event.organizer == "Library"
    assert event.venue == "Hayden Library"
    assert event.description == "An author visit"


def test_normalize_json_record_defaults_end_to_ninety_minutes() -> None:
    config = _config(source_type="json")
    record = {"id": "j1", "title": "Lecture", "start_at": "2024-03-01T10:00:00Z", "end_at": None}
    event = normalize_json_record(config, record, DisabledFallbackProvider())
    assert event is not None
    assert event.end == START + timedelta(minutes=90)
    assert event.external_id == "j1"


def test_normalize_json_record_skips_unparseable_start() -> None:
    config = _config(source_type="json")
    record = {"id": "j1", "title": "Lecture", "start_at": "soon"}
    assert normalize_json_record(config, record, DisabledFallbackProvider()) is None
