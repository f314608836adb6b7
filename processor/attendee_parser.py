"""Extract announced attendee counts from free text."""
import re
from typing import List, Optional

from processor.locales import ATTENDEE_KEYWORDS, NUMBER, LocaleConfig, default_keywords

QUALIFIERS = (
    r'(?:ca\.?\s*|etwa\s*|ungefähr\s*|approx(?:imately|\.)?\s*|environ\s*'
    r'|about\s*|~\s*|bis\s*(?:zu\s*)?|up\s+to\s*|jusqu\'à\s*)?'
)

# "14:00", "18.30", "14 - 16 Uhr" and "18.10.2025" are never counts
NOT_A_COUNT = re.compile(
    r'(?<![\d.:])\d{1,2}[:.][0-5]\d(?![\d.:])'
    r'|(?<![\d.:])\d{1,2}\s*(?:[-–]\s*\d{1,2}\s*)?Uhr\b'
    r'|(?<![\d.])\d{1,2}\.\d{1,2}\.(?:\d{4}|\d{2})?(?!\d)',
    re.IGNORECASE
)


def _to_int(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    digits = re.sub(r'[.\s]', '', raw)
    return int(digits) if digits.isdigit() else None


def parse_attendees(
    text: Optional[str],
    locale: LocaleConfig,
    keywords: Optional[List[str]] = None
) -> Optional[int]:
    """
    Parse an attendee count from text using locale-specific patterns.

    Approximate counts ("ca. 1000") win over ranges ("1000-2000", which
    yields the maximum), which win over keyword-anchored counts such as
    "1.000 Teilnehmer". Thousands separators (dot or space) are stripped.
    Clock times and dates are blanked out first so "14:00 - 16:00" is
    not read as a range.

    Args:
        text: Free text to search
        locale: Locale configuration with number patterns
        keywords: Count keywords, defaults to the locale language's list

    Returns:
        Attendee count or None if nothing matched
    """
    if not text:
        return None
    text = NOT_A_COUNT.sub(' ', text)

    for pattern in locale.approximately:
        match = pattern.search(text)
        if match:
            count = _to_int(match.group(1))
            if count is not None:
                return count

    range_match = locale.range_pattern.search(text)
    if range_match:
        low, high = _to_int(range_match.group(1)), _to_int(range_match.group(2))
        if low is not None and high is not None:
            return max(low, high)

    if keywords is None:
        keywords = default_keywords(locale)
    keyword_pattern = '|'.join(
        re.escape(keyword) for keyword in sorted(keywords, key=len, reverse=True)
    )
    pattern = re.compile(
        QUALIFIERS
        + NUMBER
        + r'(?:\s*[-–]\s*' + NUMBER + r')?'
        + r'\s*(?:' + keyword_pattern + r')',
        re.IGNORECASE
    )

    for match in pattern.finditer(text):
        first, second = _to_int(match.group(1)), _to_int(match.group(2))
        if first is None:
            continue
        if second is not None:
            return max(first, second)
        return first

    return None


def parse_german_attendees(text: Optional[str], locale: LocaleConfig) -> Optional[int]:
    """Parse attendees with German keywords ("Teilnehmer", "Menschen", ...)."""
    return parse_attendees(text, locale, ATTENDEE_KEYWORDS['de'])


def parse_english_attendees(text: Optional[str], locale: LocaleConfig) -> Optional[int]:
    """Parse attendees with English keywords ("people", "participants", ...)."""
    return parse_attendees(text, locale, ATTENDEE_KEYWORDS['en'])


def parse_french_attendees(text: Optional[str], locale: LocaleConfig) -> Optional[int]:
    """Parse attendees with French keywords ("personnes", "manifestants", ...)."""
    return parse_attendees(text, locale, ATTENDEE_KEYWORDS['fr'])
