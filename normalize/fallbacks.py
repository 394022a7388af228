from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


PLACEHOLDER_LOCATION_SENTINELS: tuple[str, ...] = ("sign in to download the location",)

FALLBACK_LOCATIONS: tuple[str, ...] = (
    "Memorial Union, Tempe Campus",
    "Hayden Library, Tempe Campus",
    "Student Pavilion, Tempe Campus",
    "Downtown Phoenix Campus Commons",
    "Polytechnic Campus Student Union",
)

CATEGORY_POOL: tuple[str, ...] = (
    "academic",
    "arts",
    "career",
    "community",
    "music",
    "social",
    "sports",
    "tech",
    "volunteer",
    "wellness",
)

STATUS_POOL: tuple[str, ...] = ("scheduled", "postponed", "cancelled")

PLACEHOLDER_VENUES: tuple[dict, ...] = (
    {
        "name": "Desert Innovation Hub",
        "street_address": "401 S Palm Dr",
        "city": "Tempe",
        "state": "AZ",
        "postal_code": "85281",
        "lat": 33.4193,
        "lon": -111.9345,
    },
    {
        "name": "Sunset Collaboration Center",
        "street_address": "18 W University Blvd",
        "city": "Phoenix",
        "state": "AZ",
        "postal_code": "85004",
        "lat": 33.4514,
        "lon": -112.0738,
    },
    {
        "name": "Mesa Civic Pavilion",
        "street_address": "245 N Center St",
        "city": "Mesa",
        "state": "AZ",
        "postal_code": "85201",
        "lat": 33.4222,
        "lon": -111.8226,
    },
    {
        "name": "Canyon Learning Loft",
        "street_address": "777 W Grand Ave",
        "city": "Phoenix",
        "state": "AZ",
        "postal_code": "85007",
        "lat": 33.4529,
        "lon": -112.0887,
    },
    {
        "name": "Copper State Commons",
        "street_address": "1225 S Mill Ave",
        "city": "Tempe",
        "state": "AZ",
        "postal_code": "85281",
        "lat": 33.4102,
        "lon": -111.9402,
    },
    {
        "name": "Camelback Cultural Hall",
        "street_address": "950 E Camelback Rd",
        "city": "Phoenix",
        "state": "AZ",
        "postal_code": "85014",
        "lat": 33.5093,
        "lon": -112.0618,
    },
    {
        "name": "Arcadia Arts Annex",
        "street_address": "3101 N 48th St",
        "city": "Phoenix",
        "state": "AZ",
        "postal_code": "85018",
        "lat": 33.483,
        "lon": -111.9826,
    },
    {
        "name": "Papago Tech Works",
        "street_address": "690 N Scottsdale Rd",
        "city": "Scottsdale",
        "state": "AZ",
        "postal_code": "85257",
        "lat": 33.4543,
        "lon": -111.9258,
    },
    {
        "name": "Rio Salado Studio",
        "street_address": "625 E Rio Salado Pkwy",
        "city": "Tempe",
        "state": "AZ",
        "postal_code": "85281",
        "lat": 33.4308,
        "lon": -111.9307,
    },
    {
        "name": "Downtown Discovery Lab",
        "street_address": "55 W Jackson St",
        "city": "Phoenix",
        "state": "AZ",
        "postal_code": "85003",
        "lat": 33.4465,
        "lon": -112.0742,
    },
)

PLACEHOLDER_ORGANIZERS: tuple[dict, ...] = (
    {"org_name": "Campus Events Collective", "website_url": "https://example.org/collective"},
    {"org_name": "Student Life Council", "website_url": "https://example.org/student-life"},
    {"org_name": "Valley Makers Guild", "website_url": "https://example.org/makers"},
    {"org_name": "Sonoran Arts Society", "website_url": None},
    {"org_name": "Career Pathways Network", "website_url": "https://example.org/careers"},
)


class FallbackProvider:
    """Source of substitute values when feed data is missing.

    The base class never substitutes anything; production deployments use it
    so that every stored event is backed by real feed data.
    """

    enabled = False

    def choose(self, pool: Sequence[T]) -> T | None:
        return None

    def sample(self, pool: Sequence[T], count: int) -> list[T]:
        return []


class DisabledFallbackProvider(FallbackProvider):
    pass


class RandomFallbackProvider(FallbackProvider):
    enabled = True

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def choose(self, pool: Sequence[T]) -> T | None:
        if not pool:
            return None
        return self._rng.choice(pool)

    def sample(self, pool: Sequence[T], count: int) -> list[T]:
        limit = min(count, len(pool))
        if limit < 1:
            return []
        size = self._rng.randint(1, limit)
        return self._rng.sample(list(pool), size)


def build_fallback_provider(mode: str, seed: int | None = None) -> FallbackProvider:
    if mode == "random":
        return RandomFallbackProvider(seed)
    if mode == "off":
        return DisabledFallbackProvider()
    raise ValueError(f"unknown fallback mode: {mode}")
