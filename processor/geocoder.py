"""Nominatim geocoding with a persistent JSON file cache."""
import json
import logging
import os
import re
import tempfile
from typing import Dict, List, Optional

from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from processor.locales import get_country_name
from processor.models import CandidateEvent, GeocodeResult

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'protest-scraper/1.0'

# "10117", "8001" or "D-10117"
POSTAL_CODE_PATTERN = re.compile(r'^(?:[A-Z]{1,2}-)?\d{4,5}$')


class Geocoder:
    """
    Resolve free-text locations to coordinates.

    Results are cached in a flat JSON file mapping cache key to
    {latitude, longitude, normalizedAddress, formattedAddress}. The file is
    read once and rewritten in full whenever a new entry is added; a single
    process is assumed to own it.
    """

    NOMINATIM_DOMAIN = 'nominatim.openstreetmap.org'
    MIN_INTERVAL = 1.1  # Nominatim allows one request per second

    def __init__(
        self,
        cache_file: str = 'geocode-cache.json',
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: int = 10,
        min_interval: float = MIN_INTERVAL,
        domain: str = NOMINATIM_DOMAIN
    ):
        """
        Initialize the geocoder.

        Args:
            cache_file: Path of the JSON cache file
            user_agent: Identity header required by Nominatim's usage policy
            timeout: HTTP request timeout in seconds
            min_interval: Minimum seconds between lookups
            domain: Nominatim host
        """
        self.cache_file = cache_file
        self.user_agent = user_agent
        self.nominatim = Nominatim(user_agent=user_agent, timeout=timeout, domain=domain)
        # Failures surface to geocode(); the next run is the retry
        self._lookup = RateLimiter(
            self.nominatim.geocode,
            min_delay_seconds=min_interval,
            max_retries=0,
            swallow_exceptions=False
        )
        self._cache: Optional[Dict[str, dict]] = None

    @property
    def cache(self) -> Dict[str, dict]:
        if self._cache is None:
            self._cache = self._load_cache()
        return self._cache

    def geocode(
        self,
        query: str,
        cache_key: Optional[str] = None,
        fallback_city: Optional[str] = None,
        fallback_country: Optional[str] = None
    ) -> Optional[GeocodeResult]:
        """
        Geocode a location query.

        Args:
            query: Free-text location (e.g. "Alexanderplatz, Berlin")
            cache_key: Cache key, defaults to the trimmed query
            fallback_city: City for a simplified retry when nothing is found
            fallback_country: Country code used with the fallback city

        Returns:
            GeocodeResult or None if the location could not be resolved
        """
        query = (query or '').strip()
        key = (cache_key or query).strip()
        if not query:
            return None

        cached = self.cached_result(key)
        if cached is not None:
            return cached

        try:
            result = self._search(query, fallback_country)
            if result is None and fallback_city:
                fallback_query = self._fallback_query(fallback_city, fallback_country)
                if fallback_query != query:
                    logger.info(f"No result for '{query}', retrying with '{fallback_query}'")
                    result = self._search(fallback_query, fallback_country)
        except (GeopyError, KeyError, TypeError, IndexError, ValueError) as e:
            logger.warning(f"Failed to geocode '{query}': {e}", extra={'error_type': type(e).__name__})
            return None

        if result is None:
            logger.info(f"No geocoding result for '{query}'")
            return None

        self.cache[key] = self._result_to_entry(result)
        self._save_cache()
        return result

    def cached_result(self, key: str) -> Optional[GeocodeResult]:
        """Cached result for a key; malformed entries count as a miss."""
        entry = self.cache.get(key)
        if not entry:
            return None
        result = self._entry_to_result(entry)
        if result is None:
            logger.warning(f"Ignoring malformed geocode cache entry for '{key}'")
        return result

    def geocode_events(self, events: List[CandidateEvent]) -> dict:
        """
        Attach coordinates and normalized addresses to candidates in place.

        The original location is kept in location_details when the
        location is replaced by the normalized address.

        Args:
            events: Candidates to geocode

        Returns:
            Dict with cached, geocoded and failed counts
        """
        stats = {'cached': 0, 'geocoded': 0, 'failed': 0}

        for event in events:
            query = self.build_query(event)
            if not query:
                stats['failed'] += 1
                continue

            try:
                from_cache = self.cached_result(query) is not None
                result = self.geocode(
                    query,
                    fallback_city=event.city,
                    fallback_country=event.country
                )
            except Exception as e:
                logger.error(
                    f"Unexpected geocoding failure for '{query}': {e}",
                    extra={'url': event.url, 'error_type': type(e).__name__},
                    exc_info=True
                )
                result = None

            if result is None:
                stats['failed'] += 1
                continue

            stats['cached' if from_cache else 'geocoded'] += 1
            event.coordinates = result.coordinates
            if result.normalized_address:
                if event.location:
                    event.location_details = event.location
                event.location = result.normalized_address

        logger.info(
            f"Geocoding done. Cached: {stats['cached']}, "
            f"New: {stats['geocoded']}, Failed: {stats['failed']}",
            extra=stats
        )
        return stats

    @staticmethod
    def build_query(event: CandidateEvent) -> str:
        """Query from location and city, without repeating the city."""
        location = (event.location or '').strip()
        city = (event.city or '').strip()
        if location and city and city.lower() not in location.lower():
            return f"{location}, {city}"
        return location or city

    @staticmethod
    def format_address(display_name: Optional[str]) -> Optional[str]:
        """
        Turn a Nominatim display_name into a short, readable address.

        "12, Unter den Linden, Mitte, Berlin, 10117, Deutschland" becomes
        "10117 Berlin, Mitte, Unter den Linden, 12".

        Args:
            display_name: Comma-separated components, most specific first

        Returns:
            Formatted address or None
        """
        if not display_name:
            return None

        components = [part.strip() for part in display_name.split(',') if part.strip()]
        if len(components) > 1:
            components = components[:-1]
        components.reverse()

        merged = []
        index = 0
        while index < len(components):
            component = components[index]
            if POSTAL_CODE_PATTERN.match(component) and index + 1 < len(components):
                merged.append(f"{component} {components[index + 1]}")
                index += 2
                continue
            merged.append(component)
            index += 1

        return ', '.join(merged)

    @staticmethod
    def _fallback_query(city: str, country: Optional[str]) -> str:
        country_name = get_country_name(country) if country else None
        if country_name:
            return f"{city.strip()}, {country_name}"
        return city.strip()

    def _search(self, query: str, country: Optional[str]) -> Optional[GeocodeResult]:
        kwargs = {'exactly_one': True}
        if country:
            kwargs['country_codes'] = country.lower()

        location = self._lookup(query, **kwargs)
        if location is None:
            return None

        place = location.raw
        if not isinstance(place, dict) or not place.get('lat') or not place.get('lon'):
            logger.warning(f"Ignoring geocoding result without coordinates for '{query}'")
            return None

        display_name = place.get('display_name')
        return GeocodeResult(
            latitude=float(place['lat']),
            longitude=float(place['lon']),
            normalized_address=self.format_address(display_name),
            formatted_address=display_name,
        )

    def _load_cache(self) -> Dict[str, dict]:
        if not os.path.exists(self.cache_file):
            return {}
        try:
            with open(self.cache_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load geocode cache {self.cache_file}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed geocode cache {self.cache_file}")
            return {}
        return data

    def _save_cache(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.cache_file))
        try:
            fd, temp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self.cache, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.cache_file)
        except OSError as e:
            logger.error(f"Failed to save geocode cache {self.cache_file}: {e}")

    @staticmethod
    def _entry_to_result(entry: dict) -> Optional[GeocodeResult]:
        try:
            return GeocodeResult(
                latitude=float(entry['latitude']),
                longitude=float(entry['longitude']),
                normalized_address=entry.get('normalizedAddress'),
                formatted_address=entry.get('formattedAddress'),
            )
        except (AttributeError, KeyError, TypeError, ValueError):
            return None

    @staticmethod
    def _result_to_entry(result: GeocodeResult) -> dict:
        return {
            'latitude': result.latitude,
            'longitude': result.longitude,
            'normalizedAddress': result.normalized_address,
            'formattedAddress': result.formatted_address,
        }
