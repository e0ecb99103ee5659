"""
FlightAware scraping fallback.

Last-resort flight lookup: fetches the public flight-status page for a
callsign and reads a fixed set of fields out of its markup with CSS
selectors. This is the least reliable provider, since it depends on
third-party markup staying stable, so every outcome is classified:

    BLOCKED        403/429 or a bot-challenge page
    NOT_FOUND      404 or FlightAware's unknown-flight page
    MALFORMED      page too small, or none of the expected fields present
    NETWORK_ERROR  transport failure or any other non-2xx status

A small circuit breaker stops scraping altogether after repeated blocks,
so a ban does not cost one wasted request per flight.
"""

import logging
import re
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Callable, Deque, Optional

import requests
from bs4 import BeautifulSoup

from wayfarer.config import config
from wayfarer.errors import (
    Blocked,
    EnrichmentError,
    Malformed,
    NotFound,
    ScrapeFailure,
    TransportError,
)
from wayfarer.memo import MISSING, MemoCache

logger = logging.getLogger(__name__)

_FAILURE_BY_ERROR = (
    (Blocked, ScrapeFailure.BLOCKED),
    (NotFound, ScrapeFailure.NOT_FOUND),
    (Malformed, ScrapeFailure.MALFORMED),
    (TransportError, ScrapeFailure.NETWORK_ERROR),
)


# Mimic a desktop browser to reduce the block rate
BROWSER_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
    ),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'Connection': 'keep-alive',
    'Upgrade-Insecure-Requests': '1',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Sec-Fetch-User': '?1',
    'Cache-Control': 'max-age=0',
}

BLOCK_MARKERS = (
    'cf-browser-verification',
    'cf-challenge',
    'Attention Required! | Cloudflare',
    'Access Denied',
)

NOT_FOUND_MARKERS = (
    'Unknown Flight',
    'Page Not Found',
    'could not find any flight',
)

# Real flight pages are tens of KB; anything this small is an error stub
MIN_PAGE_LENGTH = 1000

_TIME = re.compile(r'(\d{1,2}:\d{2}\s?[AP]M)(?:\s+([A-Z]{3,4}))?', re.IGNORECASE)
_NUMBER = re.compile(r'([\d,]+)')
_FRIENDLY_IDENT = re.compile(r'^(.+?)\s+(\d+)$')
_LEFT_GATE = re.compile(r'left\s+Gate\s+([A-Z0-9]+)', re.IGNORECASE)
_ARRIVAL_GATE = re.compile(r'(?:arriving|arrived)\s+at\s+Gate\s+([A-Z0-9]+)', re.IGNORECASE)


@dataclass(frozen=True)
class ScrapedFlightInfo:
    """Flight details read from a FlightAware flight page."""
    callsign: str
    airline: Optional[str] = None
    airline_logo_url: Optional[str] = None
    flight_number: Optional[str] = None
    friendly_ident: Optional[str] = None
    iata_ident: Optional[str] = None
    status: Optional[str] = None
    status_detail: Optional[str] = None
    origin_code: Optional[str] = None
    origin_city: Optional[str] = None
    destination_code: Optional[str] = None
    destination_city: Optional[str] = None
    departure_gate: Optional[str] = None
    arrival_gate: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    aircraft_type: Optional[str] = None
    registration: Optional[str] = None
    altitude_ft: Optional[int] = None
    speed_mph: Optional[int] = None
    distance_mi: Optional[int] = None
    route: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of one scrape: either info or a classified failure."""
    callsign: str
    info: Optional[ScrapedFlightInfo] = None
    failure: Optional[ScrapeFailure] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.info is not None

    @classmethod
    def failed(cls, callsign: str, failure: ScrapeFailure, detail: str) -> 'ScrapeResult':
        return cls(callsign=callsign, failure=failure, detail=detail)


class CircuitBreaker:
    """
    Opens after `threshold` consecutive blocks inside `window_seconds`.

    While open, scraping is skipped for `window_seconds`. Any non-blocked
    outcome closes it and clears the count.
    """

    def __init__(
        self,
        threshold: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.window_seconds = window_seconds
        self._clock = clock
        self._blocks: Deque[float] = deque()
        self._opened_at: Optional[float] = None
        self._lock = threading.Lock()

    def is_open(self) -> bool:
        with self._lock:
            if self._opened_at is None:
                return False
            if self._clock() - self._opened_at >= self.window_seconds:
                # Cooldown over: allow a probe request
                self._opened_at = None
                self._blocks.clear()
                return False
            return True

    def record_blocked(self) -> None:
        now = self._clock()
        with self._lock:
            self._blocks.append(now)
            while self._blocks and now - self._blocks[0] > self.window_seconds:
                self._blocks.popleft()
            if len(self._blocks) >= self.threshold and self._opened_at is None:
                self._opened_at = now
                logger.warning(
                    f'Scraper circuit opened after {len(self._blocks)} blocks '
                    f'in {self.window_seconds}s'
                )

    def record_success(self) -> None:
        with self._lock:
            self._blocks.clear()
            self._opened_at = None

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                'open': self._opened_at is not None,
                'recent_blocks': len(self._blocks),
            }


def _text(node) -> Optional[str]:
    if node is None:
        return None
    text = node.get_text(' ', strip=True)
    return text or None


def _own_text(node) -> Optional[str]:
    """Text of a node without its child elements."""
    if node is None:
        return None
    text = ' '.join(s.strip() for s in node.find_all(string=True, recursive=False)).strip()
    return text or None


def _to_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = _NUMBER.search(value)
    if not match:
        return None
    try:
        return int(match.group(1).replace(',', ''))
    except ValueError:
        return None


def _time(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    match = _TIME.search(value)
    if not match:
        return None
    clock, zone = match.group(1), match.group(2)
    return f'{clock} {zone}' if zone else clock


def _airport_code(value: Optional[str]) -> Optional[str]:
    """FlightAware shows US airports as ICAO (KLAX); reduce those to IATA."""
    if not value:
        return None
    code = value.strip().upper()
    if len(code) == 4 and code.startswith('K'):
        return code[1:]
    return code


def parse_flight_page(html: str, callsign: str) -> Optional[ScrapedFlightInfo]:
    """
    Extract flight fields from a FlightAware flight page.

    Returns None when none of the core fields (airline, status, origin,
    destination) can be found, which means the markup changed or the page
    is not a flight page.
    """
    soup = BeautifulSoup(html, 'html.parser')
    fields = {}

    avatar = soup.select_one('.flightPageAvatar img')
    if avatar is not None:
        fields['airline'] = (avatar.get('alt') or '').strip() or None
        fields['airline_logo_url'] = avatar.get('src') or None

    friendly = _text(soup.select_one('.flightPageFriendlyIdentLbl h1'))
    if friendly:
        fields['friendly_ident'] = friendly
        match = _FRIENDLY_IDENT.match(friendly)
        if match:
            fields['airline'] = fields.get('airline') or match.group(1).strip()
            fields['flight_number'] = match.group(2)

    idents = soup.select('.flightPageIdent h1')
    if len(idents) >= 2:
        fields['iata_ident'] = (_text(idents[1]) or '').lstrip('/ ').strip() or None

    status = soup.select_one('.flightPageSummaryStatus')
    if status is not None:
        fields['status'] = _own_text(status) or _text(status)
        fields['status_detail'] = _text(status.select_one('.flightPageSummaryStatusExt'))

    for prefix, selector in (('origin', '.flightPageSummaryOrigin'),
                             ('destination', '.flightPageSummaryDestination')):
        section = soup.select_one(selector)
        if section is None:
            continue
        fields[f'{prefix}_code'] = _airport_code(
            _text(section.select_one('.flightPageSummaryAirportCode'))
        )
        fields[f'{prefix}_city'] = _text(section.select_one('.flightPageSummaryCity'))

    for gate in soup.select('.flightPageAirportGate'):
        gate_text = _text(gate) or ''
        left = _LEFT_GATE.search(gate_text)
        arriving = _ARRIVAL_GATE.search(gate_text)
        if left and not fields.get('departure_gate'):
            fields['departure_gate'] = left.group(1)
        if arriving and not fields.get('arrival_gate'):
            fields['arrival_gate'] = arriving.group(1)

    fields['departure_time'] = _time(_text(soup.select_one('.flightPageSummaryDeparture')))
    fields['arrival_time'] = _time(_text(soup.select_one('.flightPageSummaryArrival')))

    # Label/value rows in the flight data panel
    for label in soup.select('.flightPageDataLabel'):
        name = (_text(label) or '').lower()
        value = _text(label.find_next_sibling('div'))
        if not value:
            continue
        if name.startswith('aircraft type'):
            fields['aircraft_type'] = value
        elif name.startswith('tail number'):
            fields['registration'] = value.split()[0]
        elif name.startswith('altitude'):
            fields['altitude_ft'] = _to_int(value)
        elif name.startswith('speed'):
            fields['speed_mph'] = _to_int(value)
        elif name.startswith('distance'):
            fields['distance_mi'] = _to_int(value)
        elif name.startswith('route'):
            fields['route'] = value

    core = ('airline', 'status', 'origin_code', 'destination_code')
    if not any(fields.get(key) for key in core):
        return None

    return ScrapedFlightInfo(callsign=callsign, **fields)


class ScrapingFallbackClient:
    """
    Single-request flight page scraper.

    Never raises: every outcome, including transport errors, comes back
    as a ScrapeResult so callers and tests can tell "no such flight"
    apart from "scrape broke".
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache: Optional[MemoCache] = None,
        breaker: Optional[CircuitBreaker] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.scraper.base_url).rstrip('/')
        self.timeout = timeout or config.scraper.timeout_seconds
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else MemoCache(
            'flightaware', ttl_seconds=config.scraper.cache_seconds, max_entries=500,
        )
        self.breaker = breaker or CircuitBreaker(
            threshold=config.scraper.breaker_threshold,
            window_seconds=config.scraper.breaker_window_seconds,
        )

        self._lock = threading.Lock()
        self._requests = 0
        self._failures = {failure.value: 0 for failure in ScrapeFailure}

    def lookup_flight(self, callsign: Optional[str]) -> ScrapeResult:
        """Scrape the flight page for a callsign."""
        cs = (callsign or '').strip().upper().replace(' ', '')
        if not cs:
            return ScrapeResult.failed('', ScrapeFailure.NOT_FOUND, 'empty callsign')

        cached = self.cache.get(cs)
        if cached is not MISSING:
            logger.debug(f'FlightAware cache hit for {cs}')
            return cached

        if self.breaker.is_open():
            logger.debug(f'Skipping FlightAware scrape for {cs}: circuit open')
            return ScrapeResult.failed(cs, ScrapeFailure.BLOCKED, 'circuit open')

        result = self._scrape(cs)

        if result.failure is ScrapeFailure.BLOCKED:
            self.breaker.record_blocked()
        else:
            self.breaker.record_success()

        if result.failure is not None:
            with self._lock:
                self._failures[result.failure.value] += 1
            logger.warning(f'FlightAware scrape for {cs} failed: {result.failure.value} ({result.detail})')

        # Only stable answers are worth remembering
        if result.ok or result.failure is ScrapeFailure.NOT_FOUND:
            self.cache.set(cs, result)

        return result

    def _scrape(self, callsign: str) -> ScrapeResult:
        try:
            info = self._fetch_and_parse(callsign)
        except EnrichmentError as e:
            failure = next(
                (failure for error_type, failure in _FAILURE_BY_ERROR if isinstance(e, error_type)),
                ScrapeFailure.NETWORK_ERROR,
            )
            return ScrapeResult.failed(callsign, failure, str(e))
        return ScrapeResult(callsign=callsign, info=info)

    def _fetch_and_parse(self, callsign: str) -> ScrapedFlightInfo:
        """
        Fetch and parse one flight page.

        Raises:
            Blocked: 403/429 or a bot-challenge page
            NotFound: 404 or the unknown-flight page
            Malformed: stub page or no recognised fields
            TransportError: network failure or any other non-2xx status
        """
        url = f'{self.base_url}/{callsign}'
        logger.info(f'Scraping FlightAware for {callsign}')
        with self._lock:
            self._requests += 1

        try:
            response = self.session.get(url, headers=BROWSER_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(str(e)) from e

        if response.status_code in (403, 429):
            raise Blocked(f'HTTP {response.status_code}')
        if response.status_code == 404:
            raise NotFound('HTTP 404')
        if not 200 <= response.status_code < 300:
            raise TransportError(f'HTTP {response.status_code}')

        html = response.text or ''
        if any(marker in html for marker in BLOCK_MARKERS):
            raise Blocked('bot challenge page')
        if any(marker in html for marker in NOT_FOUND_MARKERS):
            raise NotFound('unknown flight page')
        if len(html) < MIN_PAGE_LENGTH:
            raise Malformed(f'page too small ({len(html)} chars)')

        info = parse_flight_page(html, callsign)
        if info is None:
            raise Malformed('no recognised flight fields')
        return info

    @property
    def stats(self) -> dict:
        with self._lock:
            requests_made = self._requests
            failures = dict(self._failures)
        return {
            'requests': requests_made,
            'failures': failures,
            'breaker': self.breaker.stats,
            'cache': self.cache.stats,
        }
