"""
Central list of protest event sources.

New sources are added to SOURCES; the ingestion run picks them up in list
order.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Type

import requests

from processor.locales import ConfigurationError, get_locale
from scraper.amnesty_swiss import AmnestySwissAdapter
from scraper.base_adapter import DEFAULT_USER_AGENT, SourceAdapter
from scraper.berlin_police import BerlinPoliceAdapter
from scraper.demokrateam import DemokrateamAdapter
from scraper.dresden_city import DresdenCityAdapter
from scraper.friedenskooperative import FriedenskooperativeAdapter
from scraper.robots import CrawlPolicyGuard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceDefinition:
    """Metadata for one source and the adapter that scrapes it."""
    id: str
    name: str
    country: str
    city: Optional[str]
    adapter_class: Type[SourceAdapter]
    enabled: bool = True
    description: str = ''


SOURCES: List[SourceDefinition] = [
    # Germany
    SourceDefinition(
        id='berlin-police',
        name='Berlin Police',
        country='DE',
        city='Berlin',
        adapter_class=BerlinPoliceAdapter,
        description='Official assembly registry from Berlin Police',
    ),
    SourceDefinition(
        id='dresden-city',
        name='Dresden City',
        country='DE',
        city='Dresden',
        adapter_class=DresdenCityAdapter,
        description='Public assembly JSON feed from Dresden City',
    ),
    SourceDefinition(
        id='friedenskooperative',
        name='Friedenskooperative',
        country='DE',
        city=None,
        adapter_class=FriedenskooperativeAdapter,
        description='Peace movement events across Germany (5 categories)',
    ),
    SourceDefinition(
        id='demokrateam',
        name='DemokraTEAM',
        country='DE',
        city=None,
        adapter_class=DemokrateamAdapter,
        description='Democracy and protest events across Germany',
    ),
    # Switzerland
    SourceDefinition(
        id='amnesty-swiss',
        name='Amnesty International Switzerland',
        country='CH',
        city=None,
        adapter_class=AmnestySwissAdapter,
        description='Protest calendar from Amnesty International Switzerland',
    ),
]


def get_enabled_sources() -> List[SourceDefinition]:
    """All enabled sources in registry order."""
    return [source for source in SOURCES if source.enabled]


def get_sources_by_country(country_code: str) -> List[SourceDefinition]:
    """
    Get enabled sources for a country.

    Args:
        country_code: ISO 3166-1 alpha-2 country code (e.g. "DE", "CH")

    Returns:
        List of enabled sources for that country
    """
    return [
        source for source in SOURCES
        if source.enabled and source.country == country_code.upper()
    ]


def get_source_by_id(source_id: str) -> Optional[SourceDefinition]:
    for source in SOURCES:
        if source.id == source_id:
            return source
    return None


def get_available_countries() -> List[str]:
    """Sorted country codes with at least one enabled source."""
    return sorted({source.country for source in SOURCES if source.enabled})


def build_adapters(
    guard: Optional[CrawlPolicyGuard] = None,
    timeout: int = 30,
    user_agent: str = DEFAULT_USER_AGENT,
    request_delay: Optional[float] = None,
    session: Optional[requests.Session] = None,
    source_ids: Optional[Sequence[str]] = None
) -> List[SourceAdapter]:
    """
    Instantiate adapters for the selected sources.

    Args:
        guard: robots.txt guard shared by all adapters
        timeout: HTTP timeout in seconds
        user_agent: Identity sent to every origin
        request_delay: Override for every adapter's politeness delay
        session: Optional requests session shared by all adapters
        source_ids: Source ids to build, in registry order (default: all enabled)

    Returns:
        List of adapters in registry order

    Raises:
        ConfigurationError: If a source id is unknown or a source's country
            has no locale
    """
    if source_ids is None:
        selected = get_enabled_sources()
    else:
        wanted = [source_id.strip() for source_id in source_ids if source_id.strip()]
        unknown = [source_id for source_id in wanted if get_source_by_id(source_id) is None]
        if unknown:
            raise ConfigurationError(f"Unknown source id(s): {', '.join(unknown)}")
        selected = [source for source in SOURCES if source.id in wanted]

    guard = guard or CrawlPolicyGuard(session=session)
    adapters = []
    for source in selected:
        get_locale(source.country)
        adapters.append(source.adapter_class(
            guard=guard,
            timeout=timeout,
            request_delay=request_delay,
            user_agent=user_agent,
            session=session,
        ))

    logger.info(
        f"Built {len(adapters)} source adapters",
        extra={'sources': [adapter.source_id for adapter in adapters]}
    )
    return adapters
