"""Unit tests for the locale registry."""
import pytest

from processor.locales import (
    ConfigurationError,
    LocaleNotFoundError,
    default_keywords,
    get_country_name,
    get_locale,
)


def test_get_locale_known_countries():
    """Test every registered country resolves to its timezone."""
    assert get_locale('DE').timezone == 'Europe/Berlin'
    assert get_locale('AT').timezone == 'Europe/Vienna'
    assert get_locale('CH').timezone == 'Europe/Zurich'
    assert get_locale('FR').language == 'fr-FR'
    assert get_locale('US').timezone == 'America/New_York'


def test_get_locale_is_case_insensitive():
    assert get_locale('ch') is get_locale('CH')


def test_get_locale_unknown_raises():
    """Test unknown country codes are a configuration error."""
    with pytest.raises(LocaleNotFoundError):
        get_locale('XX')

    with pytest.raises(ConfigurationError):
        get_locale(None)


def test_locale_is_immutable():
    locale = get_locale('DE')
    with pytest.raises(AttributeError):
        locale.timezone = 'UTC'


def test_get_country_name():
    assert get_country_name('DE') == 'Germany'
    assert get_country_name('ch') == 'Switzerland'
    assert get_country_name('ZZ') == 'ZZ'
    assert get_country_name(None) is None


def test_default_keywords_follow_language_prefix():
    assert 'Teilnehmer' in default_keywords(get_locale('CH'))
    assert 'people' in default_keywords(get_locale('US'))
    assert 'manifestants' in default_keywords(get_locale('FR'))
