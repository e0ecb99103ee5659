"""Tests for the FlightAware scraping fallback (with mocked HTTP)."""

import threading

import requests

from tests.conftest import fake_response
from wayfarer.errors import ScrapeFailure
from wayfarer.lookup.scraper import (
    CircuitBreaker,
    ScrapingFallbackClient,
    parse_flight_page,
)
from wayfarer.memo import MemoCache

PADDING = '<!-- ' + 'x' * 2000 + ' -->'

FLIGHT_PAGE = f"""
<html><head><title>AAL123 Flight Tracking</title></head><body>
<div class="flightPageAvatar"><img src="https://cdn.flightaware.test/aal.png" alt="American Airlines"></div>
<div class="flightPageFriendlyIdentLbl"><h1>American Airlines 123</h1></div>
<div class="flightPageIdent"><h1>AAL123</h1><h1>/ AA123</h1></div>
<div class="flightPageSummaryStatus">En Route <span class="flightPageSummaryStatusExt">on time</span></div>
<div class="flightPageSummaryOrigin">
  <span class="flightPageSummaryAirportCode">KJFK</span>
  <span class="flightPageSummaryCity">New York, NY</span>
</div>
<div class="flightPageSummaryDestination">
  <span class="flightPageSummaryAirportCode">KLAX</span>
  <span class="flightPageSummaryCity">Los Angeles, CA</span>
</div>
<div class="flightPageAirportGate">left Gate B22</div>
<div class="flightPageAirportGate">arriving at Gate 41A</div>
<div class="flightPageSummaryDeparture">Departed 8:05 AM EDT</div>
<div class="flightPageSummaryArrival">Arriving 11:20AM PDT</div>
<div class="flightPageDataRow">
  <div class="flightPageDataLabel">Aircraft Type</div><div>Airbus A321 (twin-jet)</div>
</div>
<div class="flightPageDataRow">
  <div class="flightPageDataLabel">Tail Number</div><div>N123AA (registered)</div>
</div>
<div class="flightPageDataRow">
  <div class="flightPageDataLabel">Altitude</div><div>35,000 ft</div>
</div>
<div class="flightPageDataRow">
  <div class="flightPageDataLabel">Speed</div><div>521 mph</div>
</div>
<div class="flightPageDataRow">
  <div class="flightPageDataLabel">Distance</div><div>2,475 mi</div>
</div>
<div class="flightPageDataRow">
  <div class="flightPageDataLabel">Route</div><div>DEEZZ5 CANDR J60 PSB</div>
</div>
{PADDING}
</body></html>
"""


def _client(http_session, monotonic=None, threshold=3):
    kwargs = {} if monotonic is None else {'clock': monotonic}
    return ScrapingFallbackClient(
        base_url='https://flightaware.test/live/flight',
        timeout=1,
        cache=MemoCache('flightaware', ttl_seconds=300, **kwargs),
        breaker=CircuitBreaker(threshold=threshold, window_seconds=300, **kwargs),
        session=http_session,
    )


class TestParseFlightPage:
    def test_extracts_all_fields(self):
        info = parse_flight_page(FLIGHT_PAGE, 'AAL123')

        assert info.airline == 'American Airlines'
        assert info.airline_logo_url == 'https://cdn.flightaware.test/aal.png'
        assert info.flight_number == '123'
        assert info.iata_ident == 'AA123'
        assert info.status == 'En Route'
        assert info.status_detail == 'on time'
        assert info.origin_code == 'JFK'
        assert info.origin_city == 'New York, NY'
        assert info.destination_code == 'LAX'
        assert info.departure_gate == 'B22'
        assert info.arrival_gate == '41A'
        assert info.departure_time == '8:05 AM EDT'
        assert info.arrival_time == '11:20AM PDT'
        assert info.aircraft_type == 'Airbus A321 (twin-jet)'
        assert info.registration == 'N123AA'
        assert info.altitude_ft == 35000
        assert info.speed_mph == 521
        assert info.distance_mi == 2475
        assert info.route == 'DEEZZ5 CANDR J60 PSB'

    def test_non_us_codes_kept(self):
        html = (
            '<div class="flightPageSummaryOrigin">'
            '<span class="flightPageSummaryAirportCode">EGLL</span></div>'
        )
        assert parse_flight_page(html, 'BAW1').origin_code == 'EGLL'

    def test_no_recognised_fields(self):
        assert parse_flight_page('<html><body><p>hello</p></body></html>', 'AAL1') is None


class TestLookupFlight:
    def test_success_is_memoised(self, http_session):
        http_session.get.return_value = fake_response(text=FLIGHT_PAGE)
        client = _client(http_session)

        first = client.lookup_flight('aal123')
        second = client.lookup_flight('AAL123')

        assert first.ok
        assert first.info.destination_code == 'LAX'
        assert second is first
        http_session.get.assert_called_once()
        url = http_session.get.call_args[0][0]
        assert url == 'https://flightaware.test/live/flight/AAL123'
        assert 'Mozilla' in http_session.get.call_args[1]['headers']['User-Agent']

    def test_memo_expires(self, http_session, monotonic):
        http_session.get.return_value = fake_response(text=FLIGHT_PAGE)
        client = _client(http_session, monotonic)

        client.lookup_flight('AAL123')
        monotonic.advance(301)
        client.lookup_flight('AAL123')

        assert http_session.get.call_count == 2

    def test_forbidden_is_blocked(self, http_session):
        http_session.get.return_value = fake_response(status_code=403)
        result = _client(http_session).lookup_flight('AAL123')
        assert result.failure is ScrapeFailure.BLOCKED

    def test_rate_limited_is_blocked(self, http_session):
        http_session.get.return_value = fake_response(status_code=429)
        assert _client(http_session).lookup_flight('AAL123').failure is ScrapeFailure.BLOCKED

    def test_challenge_page_is_blocked(self, http_session):
        http_session.get.return_value = fake_response(
            text='<html><div id="cf-challenge">checking your browser</div>' + PADDING + '</html>'
        )
        assert _client(http_session).lookup_flight('AAL123').failure is ScrapeFailure.BLOCKED

    def test_404_is_not_found_and_memoised(self, http_session):
        http_session.get.return_value = fake_response(status_code=404)
        client = _client(http_session)

        assert client.lookup_flight('XYZ999').failure is ScrapeFailure.NOT_FOUND
        assert client.lookup_flight('XYZ999').failure is ScrapeFailure.NOT_FOUND
        assert http_session.get.call_count == 1

    def test_unknown_flight_page(self, http_session):
        http_session.get.return_value = fake_response(
            text='<html><h1>Unknown Flight</h1>' + PADDING + '</html>'
        )
        assert _client(http_session).lookup_flight('XYZ999').failure is ScrapeFailure.NOT_FOUND

    def test_tiny_page_is_malformed(self, http_session):
        http_session.get.return_value = fake_response(text='<html></html>')
        result = _client(http_session).lookup_flight('AAL123')
        assert result.failure is ScrapeFailure.MALFORMED

    def test_page_without_fields_is_malformed_and_not_memoised(self, http_session):
        http_session.get.return_value = fake_response(text='<html><body>' + PADDING + '</body></html>')
        client = _client(http_session)

        assert client.lookup_flight('AAL123').failure is ScrapeFailure.MALFORMED
        client.lookup_flight('AAL123')
        assert http_session.get.call_count == 2

    def test_transport_error(self, http_session):
        http_session.get.side_effect = requests.Timeout('slow')
        result = _client(http_session).lookup_flight('AAL123')
        assert result.failure is ScrapeFailure.NETWORK_ERROR
        assert 'slow' in result.detail

    def test_server_error_is_network_error(self, http_session):
        http_session.get.return_value = fake_response(status_code=500)
        assert _client(http_session).lookup_flight('AAL123').failure is ScrapeFailure.NETWORK_ERROR

    def test_stats_exact_under_concurrent_lookups(self, http_session):
        http_session.get.return_value = fake_response(status_code=404)
        client = _client(http_session)
        threads = [
            threading.Thread(target=client.lookup_flight, args=(f'XYZ{i}',)) for i in range(16)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        stats = client.stats
        assert stats['requests'] == 16
        assert stats['failures']['not_found'] == 16


class TestCircuitBreaker:
    def test_opens_after_consecutive_blocks(self, http_session, monotonic):
        http_session.get.return_value = fake_response(status_code=403)
        client = _client(http_session, monotonic)

        for callsign in ('AAL1', 'AAL2', 'AAL3'):
            assert client.lookup_flight(callsign).failure is ScrapeFailure.BLOCKED

        result = client.lookup_flight('AAL4')

        assert result.failure is ScrapeFailure.BLOCKED
        assert result.detail == 'circuit open'
        assert http_session.get.call_count == 3
        assert client.stats['breaker']['open'] is True

    def test_closes_after_window(self, http_session, monotonic):
        http_session.get.return_value = fake_response(status_code=403)
        client = _client(http_session, monotonic)
        for callsign in ('AAL1', 'AAL2', 'AAL3'):
            client.lookup_flight(callsign)

        monotonic.advance(300)
        http_session.get.return_value = fake_response(text=FLIGHT_PAGE)

        assert client.lookup_flight('AAL123').ok
        assert client.stats['breaker']['open'] is False

    def test_non_blocked_outcome_resets_count(self, http_session, monotonic):
        client = _client(http_session, monotonic)
        http_session.get.side_effect = [
            fake_response(status_code=403),
            fake_response(status_code=403),
            fake_response(status_code=404),
            fake_response(status_code=403),
            fake_response(status_code=403),
        ]

        for callsign in ('AAL1', 'AAL2', 'AAL3', 'AAL4', 'AAL5'):
            client.lookup_flight(callsign)

        assert client.stats['breaker'] == {'open': False, 'recent_blocks': 2}

    def test_blocks_outside_window_do_not_count(self, monotonic):
        breaker = CircuitBreaker(threshold=3, window_seconds=300, clock=monotonic)
        breaker.record_blocked()
        breaker.record_blocked()
        monotonic.advance(301)
        breaker.record_blocked()
        assert breaker.is_open() is False
