"""Unit tests for the Friedenskooperative adapter."""
from datetime import datetime, timedelta
from urllib.parse import parse_qs

import pytest
import responses
from dateutil import tz

from scraper.friedenskooperative import CATEGORIES, FriedenskooperativeAdapter

BERLIN = tz.gettz('Europe/Berlin')
ROBOTS_URL = 'https://www.friedenskooperative.de/robots.txt'
ENDPOINT = FriedenskooperativeAdapter.FETCH_URL

MONTHS = ['Januar', 'Februar', 'März', 'April', 'Mai', 'Juni', 'Juli',
          'August', 'September', 'Oktober', 'November', 'Dezember']
ABBREVIATIONS = ['Jan', 'Feb', 'Mär', 'Apr', 'Mai', 'Jun', 'Jul',
                 'Aug', 'Sep', 'Okt', 'Nov', 'Dez']


def _date(offset: int) -> datetime:
    return datetime.now(BERLIN) + timedelta(days=offset)


def _heading(day: datetime) -> str:
    return f'<h3>{MONTHS[day.month - 1]} {day.year}</h3>'


def _row(day: datetime, title: str, href: str, city: str = '', place: str = '',
         start: str = '', end: str = '', text: str = '') -> str:
    time_range = ''
    if start:
        time_range = (
            '<div class="date-display-range">'
            f'<span class="date-display-start">{start}</span> bis '
            f'<span class="date-display-end">{end}</span></div>'
        )
    city_html = f'<div class="city">{city}</div>' if city else ''
    place_html = f'<div class="place line info"><span>{place}</span></div>' if place else ''
    return f"""
    <div class="row row-eq-height">
      <div class="date-column">
        <div class="date">
          <span class="date-display-single">{day:%d}. {ABBREVIATIONS[day.month - 1]}</span>
          {time_range}
        </div>
        {city_html}
      </div>
      <div class="content">
        <h2 class="node-title"><a href="{href}">{title}</a></h2>
        {place_html}
        <p>{text}</p>
      </div>
    </div>
    """


def _ajax(content: str) -> list:
    return [
        {'command': 'settings', 'settings': {}},
        {'command': 'insert', 'method': 'replaceWith',
         'data': f'<div class="view"><div class="view-content">{content}</div></div>'},
    ]


@pytest.fixture
def adapter():
    return FriedenskooperativeAdapter(request_delay=0)


class TestFriedenskooperativeAdapter:
    """Test cases for FriedenskooperativeAdapter."""

    @responses.activate
    def test_fetch_events_success(self, adapter):
        day = _date(5)
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(
            responses.POST,
            ENDPOINT,
            json=_ajax(
                _heading(day)
                + '<div class="box">'
                + _row(day, 'Ostermarsch', '/termin/ostermarsch', city='Hamburg',
                       place='Hamburg, Rathausmarkt', start='13:00', end='17:00',
                       text='Erwartet werden 2.000 Menschen')
                + _row(day, '', 'https://example.org/aktion',
                       place='Kassel, Königsplatz')
                + '</div>'
            ),
            status=200
        )
        responses.add(responses.POST, ENDPOINT, json=_ajax(''), status=200)

        events = adapter.fetch_events(days_ahead=30)

        assert len(events) == 2
        first = events[0]
        assert first.source == 'www.friedenskooperative.de'
        assert first.title == 'Ostermarsch'
        assert first.url == 'https://www.friedenskooperative.de/termin/ostermarsch'
        assert first.city == 'Hamburg'
        assert first.location == 'Hamburg, Rathausmarkt'
        assert first.start.date() == day.date()
        assert first.start.strftime('%H:%M') == '13:00'
        assert first.start_time_known is True
        assert first.end.date() == day.date()
        assert first.end.strftime('%H:%M') == '17:00'
        assert first.attendees == 2000
        assert first.categories == [CATEGORIES['34']]

        second = events[1]
        assert second.title == 'Friedensaktion'
        assert second.url == 'https://example.org/aktion'
        assert second.city == 'Kassel'
        assert second.start_time_known is False
        assert second.end is None

    @responses.activate
    def test_clock_times_in_text_are_not_attendees(self, adapter):
        day = _date(4)
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(
            responses.POST,
            ENDPOINT,
            json=_ajax(
                _heading(day)
                + '<div class="box">'
                + _row(day, 'Mahnwache', '/termin/mahnwache', city='Berlin',
                       place='Berlin, Rathaus', start='14:00', end='16:00',
                       text='Treffpunkt 14:00 - 16:00 am Rathaus')
                + '</div>'
            ),
            status=200
        )
        responses.add(responses.POST, ENDPOINT, json=_ajax(''), status=200)

        events = adapter.fetch_events(days_ahead=30)

        assert len(events) == 1
        assert events[0].attendees is None

    @responses.activate
    def test_paginates_each_category(self, adapter):
        day = _date(3)
        page = _ajax(_heading(day) + '<div class="box">' + _row(day, 'Mahnwache', '/m') + '</div>')
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(responses.POST, ENDPOINT, json=page, status=200)
        responses.add(responses.POST, ENDPOINT, json=page, status=200)
        responses.add(responses.POST, ENDPOINT, json=_ajax(''), status=200)

        events = adapter.fetch_events(days_ahead=30)

        posts = [call for call in responses.calls if call.request.method == 'POST']
        first_category = [parse_qs(call.request.body) for call in posts[:3]]
        assert [params['page'] for params in first_category] == [['0'], ['1'], ['2']]
        assert all(params['veranstaltungsart'] == ['34'] for params in first_category)
        # One empty first page for each remaining category
        assert len(posts) == 3 + len(CATEGORIES) - 1
        assert len(events) == 2
        assert posts[0].request.headers['X-Requested-With'] == 'XMLHttpRequest'

    @responses.activate
    def test_stops_at_page_limit(self, adapter, monkeypatch):
        monkeypatch.setattr('scraper.friedenskooperative.MAX_PAGES', 2)
        day = _date(3)
        page = _ajax(_heading(day) + '<div class="box">' + _row(day, 'Demo', '/d') + '</div>')
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(responses.POST, ENDPOINT, json=page, status=200)

        events = adapter.fetch_events(days_ahead=30)

        posts = [call for call in responses.calls if call.request.method == 'POST']
        assert len(posts) == 2 * len(CATEGORIES)
        assert len(events) == 2 * len(CATEGORIES)

    @responses.activate
    def test_events_beyond_horizon_are_dropped(self, adapter):
        near, far = _date(2), _date(70)
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(
            responses.POST,
            ENDPOINT,
            json=_ajax(
                _heading(near) + '<div class="box">' + _row(near, 'Nah', '/n') + '</div>'
                + _heading(far) + '<div class="box">' + _row(far, 'Fern', '/f') + '</div>'
            ),
            status=200
        )
        responses.add(responses.POST, ENDPOINT, json=_ajax(''), status=200)

        events = adapter.fetch_events(days_ahead=30)

        assert [event.title for event in events] == ['Nah']

    @responses.activate
    def test_category_error_does_not_stop_other_categories(self, adapter):
        day = _date(3)
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(responses.POST, ENDPOINT, status=503)
        responses.add(
            responses.POST,
            ENDPOINT,
            json=_ajax(_heading(day) + '<div class="box">' + _row(day, 'Blockade', '/b') + '</div>'),
            status=200
        )
        responses.add(responses.POST, ENDPOINT, json=_ajax(''), status=200)

        events = adapter.fetch_events(days_ahead=30)

        assert [event.title for event in events] == ['Blockade']
        assert events[0].categories == [CATEGORIES['35']]

    @responses.activate
    def test_response_without_insert_command(self, adapter):
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(responses.POST, ENDPOINT, json=[{'command': 'settings'}], status=200)

        assert adapter.fetch_events(days_ahead=30) == []

    def test_extract_insert_html(self):
        assert FriedenskooperativeAdapter._extract_insert_html({'command': 'insert'}) is None
        assert FriedenskooperativeAdapter._extract_insert_html(
            [{'command': 'insert', 'data': ''}, {'command': 'insert', 'data': '<p>x</p>'}]
        ) == '<p>x</p>'
