from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass

from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim
from geopy.location import Location


logger = logging.getLogger(__name__)

DEFAULT_NOMINATIM_DOMAIN = "nominatim.openstreetmap.org"


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lon: float
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None


def normalize_address(address: str) -> str:
    return address.strip().lower()


class Geocoder:
    async def lookup(self, address: str) -> GeocodeResult | None:
        raise NotImplementedError


class NullGeocoder(Geocoder):
    async def lookup(self, address: str) -> GeocodeResult | None:
        return None


class NominatimGeocoder(Geocoder):
    """Free-text search against an OpenStreetMap Nominatim endpoint.

    Requests are spaced at least min_delay_seconds apart, as the public
    endpoint's usage policy requires. geopy's RateLimiter blocks, so each
    lookup runs in a worker thread.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        domain: str = DEFAULT_NOMINATIM_DOMAIN,
        scheme: str = "https",
        timeout: float = 10.0,
        min_delay_seconds: float = 1.0,
        geocoder=None,
    ) -> None:
        if geocoder is None:
            geocoder = Nominatim(
                user_agent=user_agent, domain=domain, scheme=scheme, timeout=timeout
            )
        self._geocode = RateLimiter(
            geocoder.geocode,
            min_delay_seconds=min_delay_seconds,
            max_retries=0,
            swallow_exceptions=False,
        )

    async def lookup(self, address: str) -> GeocodeResult | None:
        query = address.strip()
        if not query:
            return None
        try:
            location = await asyncio.to_thread(
                self._geocode, query, exactly_one=True, addressdetails=True
            )
        except GeopyError as e:
            logger.debug("geocode request failed for %r: %s", query, e.__class__.__name__)
            return None

        if location is None:
            logger.debug("geocode miss for %r", query)
            return None
        return _result_from_location(location)


def _result_from_location(location: Location) -> GeocodeResult:
    address = (location.raw or {}).get("address") or {}
    street = None
    road = address.get("road")
    if road:
        number = address.get("house_number")
        street = f"{number} {road}" if number else str(road)
    city = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("suburb")
    )
    return GeocodeResult(
        lat=float(location.latitude),
        lon=float(location.longitude),
        street=street,
        city=str(city) if city else None,
        state=address.get("state"),
        postal_code=address.get("postcode"),
    )


class CachedGeocoder(Geocoder):
    """Memoizes lookups, misses included, keyed by lowercase trimmed address.

    A capacity of 0 never evicts; otherwise the least recently used entry
    is dropped once the cache is full.
    """

    def __init__(self, inner: Geocoder, *, capacity: int = 0) -> None:
        self._inner = inner
        self._capacity = capacity
        self._cache: OrderedDict[str, GeocodeResult | None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    async def lookup(self, address: str) -> GeocodeResult | None:
        key = normalize_address(address)
        if not key:
            return None
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]

        result = await self._inner.lookup(key)
        self._cache[key] = result
        if self._capacity and len(self._cache) > self._capacity:
            self._cache.popitem(last=False)
        return result
