"""Unit tests for the Berlin Police adapter."""
from datetime import datetime, timedelta

import pytest
import responses
from dateutil import tz

from scraper.berlin_police import BerlinPoliceAdapter

BERLIN = tz.gettz('Europe/Berlin')
ROBOTS_URL = 'https://www.berlin.de/robots.txt'


def _day(offset: int) -> str:
    return (datetime.now(BERLIN) + timedelta(days=offset)).strftime('%d.%m.%Y')


def _page(rows: str) -> str:
    return f"""
    <html><body>
      <table id="searchresults-table">
        <thead><tr><th>Datum</th><th>Von</th><th>Bis</th><th>Thema</th>
        <th>PLZ</th><th>Versammlungsort</th><th>Aufzugsstrecke</th></tr></thead>
        <tbody>{rows}</tbody>
      </table>
    </body></html>
    """


def _row(*cells: str) -> str:
    return '<tr>' + ''.join(f'<td>{cell}</td>' for cell in cells) + '</tr>'


@pytest.fixture
def adapter():
    return BerlinPoliceAdapter(request_delay=0)


class TestBerlinPoliceAdapter:
    """Test cases for BerlinPoliceAdapter."""

    @responses.activate
    def test_fetch_events_success(self, adapter):
        day = _day(3)
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(
            responses.GET,
            BerlinPoliceAdapter.FETCH_URL,
            body=_page(
                _row(day, '14:00', '16:00', 'Frieden jetzt, ca. 500 Teilnehmer',
                     '10117', 'Alexanderplatz', 'Unter den Linden')
                + _row(day, '', '', 'Mahnwache', '', '', '')
            ),
            status=200
        )

        events = adapter.fetch_events(days_ahead=30)

        assert len(events) == 2
        first = events[0]
        assert first.source == 'www.berlin.de'
        assert first.city == 'Berlin'
        assert first.country == 'DE'
        assert first.language == 'de-DE'
        assert first.title == 'Frieden jetzt, ca. 500 Teilnehmer'
        assert first.start.strftime('%d.%m.%Y %H:%M') == f'{day} 14:00'
        assert first.start_time_known is True
        assert first.end.strftime('%H:%M') == '16:00'
        assert first.end_time_known is True
        assert first.location == '10117 Berlin, Alexanderplatz'
        assert first.attendees == 500
        assert first.url == BerlinPoliceAdapter.FETCH_URL

        second = events[1]
        assert second.start_time_known is False
        assert second.end is None
        assert second.location == 'Berlin'
        assert second.attendees is None

    @responses.activate
    def test_events_beyond_horizon_are_dropped(self, adapter):
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(
            responses.GET,
            BerlinPoliceAdapter.FETCH_URL,
            body=_page(
                _row(_day(2), '10:00', '11:00', 'Nah', '10115', 'Mitte')
                + _row(_day(60), '10:00', '11:00', 'Fern', '10115', 'Mitte')
            ),
            status=200
        )

        events = adapter.fetch_events(days_ahead=30)

        assert [event.title for event in events] == ['Nah']

    @responses.activate
    def test_malformed_rows_are_skipped(self, adapter):
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(
            responses.GET,
            BerlinPoliceAdapter.FETCH_URL,
            body=_page(
                _row('unbekannt', '10:00', '11:00', 'Ohne Datum', '10115', 'Mitte')
                + _row(_day(1), '10:00')
                + _row(_day(1), '09:00', '10:00', '', '10115', 'Mitte')
            ),
            status=200
        )

        events = adapter.fetch_events(days_ahead=30)

        assert len(events) == 1
        assert events[0].title == 'Versammlung'

    @responses.activate
    def test_blocked_by_robots(self, adapter):
        responses.add(
            responses.GET,
            ROBOTS_URL,
            body='User-agent: *\nDisallow: /polizei/\n',
            status=200
        )

        events = adapter.fetch_events(days_ahead=30)

        assert events == []
        assert [call.request.url for call in responses.calls] == [ROBOTS_URL]

    @responses.activate
    def test_http_error_returns_empty_list(self, adapter):
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(responses.GET, BerlinPoliceAdapter.FETCH_URL, status=500)

        assert adapter.fetch_events(days_ahead=30) == []

    @responses.activate
    def test_sends_identity_headers(self, adapter):
        responses.add(responses.GET, ROBOTS_URL, status=404)
        responses.add(responses.GET, BerlinPoliceAdapter.FETCH_URL, body=_page(''), status=200)

        adapter.fetch_events(days_ahead=30)

        headers = responses.calls[-1].request.headers
        assert headers['User-Agent'] == 'protest-scraper/1.0'
        assert headers['Accept-Language'].startswith('de-DE')
