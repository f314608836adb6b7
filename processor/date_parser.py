"""Locale-aware date parsing for scraped event announcements."""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from dateutil import tz

from processor.locales import LocaleConfig

logger = logging.getLogger(__name__)

# H:MM or H.MM that is not part of a dotted date such as 15.03.2025
TIME_PATTERN = re.compile(r'(?<![\d.])\d{1,2}[:.]\d{2}(?![\d.])')
END_TIME_SUFFIX = re.compile(r'\s*[-–]\s*\d{1,2}[:.]\d{2}.*$')
DOTTED_TIME = re.compile(r'(\s)(\d{1,2})\.(\d{2})(?=\s|$)')
YEAR_DIRECTIVES = ('%Y', '%y')

# Leap year used while parsing formats without a year, so 29.02. parses
PLACEHOLDER_YEAR = 2000


@dataclass
class ParsedDate:
    """Timezone-aware instant and whether a clock time was given."""
    value: datetime
    has_time: bool


def _clean(text: str, locale: LocaleConfig) -> str:
    cleaned = re.sub(r'[Uu]hr', '', text)
    cleaned = END_TIME_SUFFIX.sub('', cleaned)
    cleaned = cleaned.replace(',', ' ')
    cleaned = re.sub(r'\s+', ' ', cleaned)

    for month_name, month_number in locale.month_names.items():
        cleaned = re.sub(
            rf'\b{re.escape(month_name)}\b',
            month_number,
            cleaned,
            flags=re.IGNORECASE
        )
    cleaned = cleaned.strip()

    # Only the last "14.30" style token is a time; earlier dots are date separators
    matches = list(DOTTED_TIME.finditer(cleaned))
    if matches:
        last = matches[-1]
        cleaned = (
            f"{cleaned[:last.start()]}{last.group(1)}"
            f"{last.group(2)}:{last.group(3)}{cleaned[last.end():]}"
        )
    return cleaned


def _strptime(cleaned: str, fmt: str) -> Optional[datetime]:
    has_year = any(directive in fmt for directive in YEAR_DIRECTIVES)
    try:
        if has_year:
            return datetime.strptime(cleaned, fmt)
        return datetime.strptime(f"{cleaned} {PLACEHOLDER_YEAR}", f"{fmt} %Y")
    except ValueError:
        return None


def _infer_year(naive: datetime, zone, now: datetime) -> Optional[datetime]:
    for year in (now.year, now.year + 1):
        try:
            candidate = naive.replace(year=year, tzinfo=zone)
        except ValueError:
            # 29 February in a non-leap year
            continue
        if candidate >= now or year > now.year:
            return candidate
    return None


def parse_date(
    text: Optional[str],
    locale: LocaleConfig,
    now: Optional[datetime] = None
) -> Optional[ParsedDate]:
    """
    Parse a locale-formatted date string into an aware datetime.

    The clock-time flag is detected on the raw input before cleanup. Month
    names are replaced with numerals, "14.30" style times become "14:30" and
    the cleaned string is matched strictly against the locale's formats in
    order. When the matching format carries no year, the current year is used
    unless the date has already passed, in which case the next year is used.

    Args:
        text: Raw date/time string (e.g. "23. Oktober 2025 14.30 Uhr")
        locale: Locale configuration providing month names, formats, timezone
        now: Reference instant for year inference (default: current time)

    Returns:
        ParsedDate or None if the string cannot be parsed
    """
    if not text or not text.strip():
        return None

    zone = tz.gettz(locale.timezone)
    if now is None:
        now = datetime.now(zone)

    has_time = bool(TIME_PATTERN.search(text))
    cleaned = _clean(text, locale)

    for fmt in locale.date_formats:
        naive = _strptime(cleaned, fmt)
        if naive is None:
            continue

        if any(directive in fmt for directive in YEAR_DIRECTIVES):
            value = naive.replace(tzinfo=zone)
        else:
            value = _infer_year(naive, zone, now)
            if value is None:
                return None

        return ParsedDate(value=value, has_time=has_time)

    logger.debug(f"Unparseable date for {locale.country_code}: {text!r} -> {cleaned!r}")
    return None


def within_next_days(
    value: Optional[datetime],
    days: int,
    reference: Optional[datetime] = None
) -> bool:
    """
    Check whether an instant falls strictly between now and now + days.

    Args:
        value: Aware datetime to test (None is never within range)
        days: Forward horizon in days
        reference: Reference instant (default: current UTC time)

    Returns:
        True if reference < value < reference + days
    """
    if value is None:
        return False
    if reference is None:
        reference = datetime.now(tz.UTC)
    return reference < value < reference + timedelta(days=days)
