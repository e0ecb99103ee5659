"""
HexDB reference-data client.

Resolves airlines (by callsign prefix) and aircraft (by ICAO24 address)
against the public HexDB API (https://hexdb.io/api-docs).

Every distinct key is fetched at most once per process: positive results
and definitive "no such record" answers are both memoised. Transport
errors are not memoised, so a later request may try again.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from wayfarer.config import config
from wayfarer.lookup.static_table import AirlineRecord
from wayfarer.memo import MISSING, MemoCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AircraftRecord:
    """Aircraft registry data keyed by ICAO24 address."""
    icao24: str
    registration: Optional[str] = None
    manufacturer: Optional[str] = None
    type_code: Optional[str] = None
    operator: Optional[str] = None
    operator_icao: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'icao24': self.icao24,
            'registration': self.registration,
            'manufacturer': self.manufacturer,
            'type_code': self.type_code,
            'operator': self.operator,
            'operator_icao': self.operator_icao,
        }


def _text(value: Any) -> Optional[str]:
    """Stripped string value, or None for blanks and non-strings."""
    if not isinstance(value, str):
        return None
    return value.strip() or None


def callsign_prefix(callsign: Optional[str]) -> Optional[str]:
    """
    Extract the airline ICAO prefix from a callsign.

    E.g., 'UAL839' -> 'UAL'. Returns None for callsigns too short to
    carry an airline designator.
    """
    cs = (callsign or '').strip().upper().replace(' ', '')
    if len(cs) < 3:
        return None
    return cs[:3]


class RemoteLookupClient:
    """
    Thin HTTP client for HexDB airline and aircraft lookups.

    Never raises to the caller: any non-2xx response, transport error or
    unexpected payload is logged and reported as None.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        airline_cache: Optional[MemoCache] = None,
        aircraft_cache: Optional[MemoCache] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.remote.base_url).rstrip('/')
        self.timeout = timeout or config.remote.timeout_seconds
        self.session = session or requests.Session()

        # Process-lifetime memo: no TTL, bounded by size
        self.airline_cache = airline_cache if airline_cache is not None else MemoCache(
            'hexdb-airlines', max_entries=config.remote.max_entries,
        )
        self.aircraft_cache = aircraft_cache if aircraft_cache is not None else MemoCache(
            'hexdb-aircraft', max_entries=config.remote.max_entries,
        )

        self._requests = 0
        self._errors = 0

    def lookup_airline(self, callsign: Optional[str]) -> Optional[AirlineRecord]:
        """Look up the operating airline for a callsign."""
        prefix = callsign_prefix(callsign)
        if not prefix:
            return None

        cached = self.airline_cache.get(prefix)
        if cached is not MISSING:
            logger.debug(f'HexDB airline cache hit for {prefix}: {cached}')
            return cached

        found, payload = self._get_json(f'/airline/icao/{prefix}')
        if not found:
            return None

        airline = self._parse_airline(payload)
        self.airline_cache.set(prefix, airline)

        if airline:
            logger.info(f'HexDB resolved {prefix} -> {airline.name}')
        else:
            logger.debug(f'HexDB has no airline for {prefix}')
        return airline

    def lookup_aircraft(self, icao24: Optional[str]) -> Optional[AircraftRecord]:
        """Look up registry data for an ICAO24 transponder address."""
        key = (icao24 or '').strip().lower()
        if not key:
            return None

        cached = self.aircraft_cache.get(key)
        if cached is not MISSING:
            return cached

        found, payload = self._get_json(f'/aircraft/{key}')
        if not found:
            return None

        aircraft = self._parse_aircraft(key, payload)
        self.aircraft_cache.set(key, aircraft)
        return aircraft

    def _get_json(self, path: str) -> Tuple[bool, Any]:
        """
        Issue one GET against HexDB.

        Returns (definitive, payload). definitive is False for transport
        errors and undecodable bodies, which must not be memoised. A non-2xx
        status is a definitive miss with payload None.
        """
        url = f'{self.base_url}{path}'
        self._requests += 1
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            self._errors += 1
            logger.warning(f'HexDB request failed for {path}: {e}')
            return False, None

        if not 200 <= response.status_code < 300:
            logger.debug(f'HexDB returned {response.status_code} for {path}')
            return True, None

        try:
            return True, response.json()
        except ValueError as e:
            self._errors += 1
            logger.warning(f'HexDB returned malformed JSON for {path}: {e}')
            return False, None

    @staticmethod
    def _parse_airline(payload: Any) -> Optional[AirlineRecord]:
        if not isinstance(payload, dict):
            return None
        name = _text(payload.get('name'))
        if not name:
            return None
        return AirlineRecord(
            name=name,
            iata=_text(payload.get('iata')),
            icao=_text(payload.get('icao')),
            callsign=_text(payload.get('callsign')),
            country=_text(payload.get('country')),
            active=bool(payload.get('active', True)),
        )

    @staticmethod
    def _parse_aircraft(icao24: str, payload: Any) -> Optional[AircraftRecord]:
        if not isinstance(payload, dict) or not payload:
            return None
        fields: Dict[str, Optional[str]] = {
            'registration': _text(payload.get('Registration')) or _text(payload.get('registration')),
            'manufacturer': _text(payload.get('Manufacturer')) or _text(payload.get('manufacturer')),
            'type_code': _text(payload.get('ICAOTypeCode')) or _text(payload.get('type')),
            'operator': _text(payload.get('RegisteredOwners')) or _text(payload.get('operator')),
            'operator_icao': _text(payload.get('OperatorFlagCode')) or _text(payload.get('operatoricao')),
        }
        if not any(fields.values()):
            return None
        return AircraftRecord(icao24=icao24, **fields)

    @property
    def stats(self) -> dict:
        """Get client statistics."""
        return {
            'requests': self._requests,
            'errors': self._errors,
            'airline_cache': self.airline_cache.stats,
            'aircraft_cache': self.aircraft_cache.stats,
        }
