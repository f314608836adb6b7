"""Per-country parsing rules for dates, attendee counts and timezones."""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple


# Grouped number, e.g. "1.000", "10 000" or "250", never the tail of a longer number
NUMBER = r'(?<!\d)(\d{1,3}(?:[.\s]\d{3})+|\d+)'
RANGE_PATTERN = re.compile(NUMBER + r'\s*[-–]\s*' + NUMBER)


class ConfigurationError(Exception):
    """Raised when the pipeline is wired with settings it cannot run with."""


class LocaleNotFoundError(ConfigurationError):
    """Raised when a country code has no locale configuration."""


@dataclass(frozen=True)
class LocaleConfig:
    """Immutable parsing rules for one country."""
    country_code: str
    timezone: str
    language: str
    month_names: Dict[str, str]
    date_formats: Tuple[str, ...]
    approximately: Tuple[Pattern, ...]
    range_pattern: Pattern = RANGE_PATTERN


GERMAN_MONTHS = {
    'Januar': '01', 'Februar': '02', 'März': '03', 'April': '04',
    'Mai': '05', 'Juni': '06', 'Juli': '07', 'August': '08',
    'September': '09', 'Oktober': '10', 'November': '11', 'Dezember': '12',
    'Jan': '01', 'Feb': '02', 'Mär': '03', 'Apr': '04',
    'Jun': '06', 'Jul': '07', 'Aug': '08', 'Sep': '09',
    'Sept': '09', 'Okt': '10', 'Nov': '11', 'Dez': '12',
}

FRENCH_MONTHS = {
    'janvier': '01', 'février': '02', 'mars': '03', 'avril': '04',
    'mai': '05', 'juin': '06', 'juillet': '07', 'août': '08',
    'septembre': '09', 'octobre': '10', 'novembre': '11', 'décembre': '12',
    'janv': '01', 'févr': '02', 'fév': '02', 'avr': '04', 'juil': '07',
    'aoû': '08', 'sept': '09', 'oct': '10', 'nov': '11', 'déc': '12',
}

ENGLISH_MONTHS = {
    'January': '01', 'February': '02', 'March': '03', 'April': '04',
    'May': '05', 'June': '06', 'July': '07', 'August': '08',
    'September': '09', 'October': '10', 'November': '11', 'December': '12',
    'Jan': '01', 'Feb': '02', 'Mar': '03', 'Apr': '04',
    'Jun': '06', 'Jul': '07', 'Aug': '08', 'Sep': '09',
    'Sept': '09', 'Oct': '10', 'Nov': '11', 'Dec': '12',
}

GERMAN_DATE_FORMATS = (
    '%d.%m.%Y %H:%M',     # 23.10.2025 14:30
    '%d.%m.%Y',           # 23.10.2025
    '%d.%m. %H:%M',       # 23.10. 14:30
    '%d. %m %H:%M %Y',    # 23. 10 14:30 2025
    '%d. %m %Y %H:%M',    # 23. 10 2025 14:30
    '%d. %m %Y',          # 23. 10 2025
    '%d.%m.%y',           # 23.10.25
    '%Y-%m-%d %H:%M',     # 2025-10-23 11:00
    '%Y-%m-%d',           # 2025-10-23
)

GERMAN_APPROXIMATELY = (
    re.compile(r'ca\.\s*' + NUMBER, re.IGNORECASE),
    re.compile(r'etwa\s+' + NUMBER, re.IGNORECASE),
    re.compile(r'~\s*' + NUMBER),
    re.compile(r'ungefähr\s+' + NUMBER, re.IGNORECASE),
)

LOCALES: Dict[str, LocaleConfig] = {
    'DE': LocaleConfig(
        country_code='DE',
        timezone='Europe/Berlin',
        language='de-DE',
        month_names=GERMAN_MONTHS,
        date_formats=GERMAN_DATE_FORMATS,
        approximately=GERMAN_APPROXIMATELY,
    ),
    'AT': LocaleConfig(
        country_code='AT',
        timezone='Europe/Vienna',
        language='de-AT',
        month_names=GERMAN_MONTHS,
        date_formats=GERMAN_DATE_FORMATS,
        approximately=GERMAN_APPROXIMATELY,
    ),
    'CH': LocaleConfig(
        country_code='CH',
        timezone='Europe/Zurich',
        language='de-CH',
        month_names=GERMAN_MONTHS,
        date_formats=GERMAN_DATE_FORMATS,
        approximately=GERMAN_APPROXIMATELY,
    ),
    'FR': LocaleConfig(
        country_code='FR',
        timezone='Europe/Paris',
        language='fr-FR',
        month_names=FRENCH_MONTHS,
        date_formats=(
            '%d/%m/%Y %H:%M',     # 23/10/2025 14:30
            '%d/%m/%Y',           # 23/10/2025
            '%d-%m-%Y',           # 23-10-2025
            '%d %m %Y %H:%M',     # 23 10 2025 14:30 (after month names)
            '%d %m %Y',           # 23 10 2025
        ),
        approximately=(
            re.compile(r'environ\s+' + NUMBER, re.IGNORECASE),
            re.compile(r'~\s*' + NUMBER),
            re.compile(r'approximativement\s+' + NUMBER, re.IGNORECASE),
        ),
    ),
    'US': LocaleConfig(
        country_code='US',
        timezone='America/New_York',
        language='en-US',
        month_names=ENGLISH_MONTHS,
        date_formats=(
            '%m/%d/%Y %I:%M %p',  # 10/23/2025 2:30 PM
            '%m/%d/%Y',           # 10/23/2025
            '%m-%d-%Y',           # 10-23-2025
            '%m %d %Y %I:%M %p',  # 10 23 2025 2:30 PM (after month names)
            '%m %d %Y',           # 10 23 2025
            '%Y-%m-%d %H:%M',     # 2025-10-23 14:30
        ),
        approximately=(
            re.compile(r'approx(?:imately|\.)?\s+' + NUMBER, re.IGNORECASE),
            re.compile(r'~\s*' + NUMBER),
            re.compile(r'about\s+' + NUMBER, re.IGNORECASE),
        ),
    ),
}

COUNTRY_NAMES = {
    'DE': 'Germany',
    'AT': 'Austria',
    'CH': 'Switzerland',
    'FR': 'France',
    'IT': 'Italy',
    'NL': 'Netherlands',
    'BE': 'Belgium',
    'PL': 'Poland',
    'CZ': 'Czech Republic',
    'DK': 'Denmark',
    'SE': 'Sweden',
    'NO': 'Norway',
    'FI': 'Finland',
    'ES': 'Spain',
    'PT': 'Portugal',
    'GB': 'United Kingdom',
    'IE': 'Ireland',
    'US': 'United States',
    'CA': 'Canada',
    'AU': 'Australia',
    'NZ': 'New Zealand',
}

# Attendee keywords by language prefix
ATTENDEE_KEYWORDS: Dict[str, List[str]] = {
    'de': ['Teilnehmer*innen', 'Teilnehmende', 'Teilnehmer', 'Personen', 'Menschen', 'Leute'],
    'en': ['attendees', 'people', 'participants', 'protesters'],
    'fr': ['participants', 'personnes', 'manifestants'],
}


def get_locale(country_code: str) -> LocaleConfig:
    """
    Get the locale configuration for a country.

    Args:
        country_code: ISO 3166-1 alpha-2 country code

    Returns:
        LocaleConfig for the country

    Raises:
        LocaleNotFoundError: If no locale is registered for the code
    """
    try:
        return LOCALES[country_code.upper()]
    except (KeyError, AttributeError):
        raise LocaleNotFoundError(
            f"No locale configured for country code: {country_code!r}"
        )


def get_country_name(country_code: Optional[str]) -> Optional[str]:
    """Full country name for a code, or the code itself if unknown."""
    if not country_code:
        return country_code
    return COUNTRY_NAMES.get(country_code.upper(), country_code)


def default_keywords(locale: LocaleConfig) -> List[str]:
    """Attendee keywords for the locale's language, German if unknown."""
    prefix = locale.language.split('-')[0].lower()
    return ATTENDEE_KEYWORDS.get(prefix, ATTENDEE_KEYWORDS['de'])
