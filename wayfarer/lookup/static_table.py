"""
OpenFlights static lookup table.

Maps airline codes (IATA, ICAO, radio callsign) and airport codes
(IATA, ICAO) to reference records. The table is built once from a bundled
JSON dataset and never written at runtime.

Dataset format (wayfarer/data/openflights-runtime.json):

    {
      "airlines": [{"name", "iata", "icao", "callsign", "country", "active"}, ...],
      "airports": [{"name", "city", "country", "iata", "icao", "lat", "lng", "tz"}, ...]
    }

A mapping keyed by code is accepted in place of either list. Use
build_runtime_dataset() to produce the file from the raw OpenFlights
airlines.dat / airports.dat downloads.

Usage:
    from wayfarer.lookup.static_table import StaticLookupTable

    table = StaticLookupTable.from_file(path)
    table.find_airline('AAL123').name   # 'American Airlines'
"""

import csv
import json
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

_TRAILING_DIGITS = re.compile(r'\d+$')


@dataclass(frozen=True)
class AirlineRecord:
    """Airline reference data."""
    name: str
    iata: Optional[str] = None
    icao: Optional[str] = None
    callsign: Optional[str] = None
    country: Optional[str] = None
    active: bool = True

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'iata': self.iata,
            'icao': self.icao,
            'callsign': self.callsign,
            'country': self.country,
        }


@dataclass(frozen=True)
class AirportRecord:
    """Airport reference data."""
    name: str
    city: Optional[str] = None
    country: Optional[str] = None
    iata: Optional[str] = None
    icao: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    timezone: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'city': self.city,
            'country': self.country,
            'iata': self.iata,
            'icao': self.icao,
            'lat': self.lat,
            'lng': self.lng,
            'timezone': self.timezone,
        }


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value in ('\\N', '-', 'N/A'):
        return None
    return value


def _normalize(code: Optional[str]) -> str:
    return (code or '').strip().upper()


def _airline_from_dict(raw: Dict[str, Any]) -> Optional[AirlineRecord]:
    name = _clean(raw.get('name'))
    if not name:
        return None
    active = raw.get('active', True)
    if isinstance(active, str):
        active = active.strip().upper() in ('Y', 'YES', 'TRUE', '1')
    return AirlineRecord(
        name=name,
        iata=_clean(raw.get('iata')),
        icao=_clean(raw.get('icao')),
        callsign=_clean(raw.get('callsign')),
        country=_clean(raw.get('country')),
        active=bool(active),
    )


def _float_or_none(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _airport_from_dict(raw: Dict[str, Any]) -> Optional[AirportRecord]:
    name = _clean(raw.get('name'))
    if not name:
        return None
    return AirportRecord(
        name=name,
        city=_clean(raw.get('city')),
        country=_clean(raw.get('country')),
        iata=_clean(raw.get('iata')),
        icao=_clean(raw.get('icao')),
        lat=_float_or_none(raw.get('lat', raw.get('latitude'))),
        lng=_float_or_none(raw.get('lng', raw.get('longitude'))),
        timezone=_clean(raw.get('tz', raw.get('timezone'))),
    )


def _records(section: Union[list, dict, None]) -> Iterable[dict]:
    if isinstance(section, dict):
        return [r for r in section.values() if isinstance(r, dict)]
    if isinstance(section, list):
        return [r for r in section if isinstance(r, dict)]
    return []


class StaticLookupTable:
    """
    In-memory airline/airport index.

    Exact lookups are O(1) dictionary hits. The callsign prefix scan in
    find_airline() is a linear pass over every airline and only runs when
    both keyed lookups miss.
    """

    def __init__(
        self,
        airlines: Iterable[AirlineRecord] = (),
        airports: Iterable[AirportRecord] = (),
    ):
        self._airlines: Dict[str, AirlineRecord] = {}
        self._airline_list: List[AirlineRecord] = []
        self._airports: Dict[str, AirportRecord] = {}

        for airline in airlines:
            self._index_airline(airline)
        for airport in airports:
            self._index_airport(airport)

    def _index_airline(self, airline: AirlineRecord) -> None:
        self._airline_list.append(airline)

        # IATA codes are reused across carriers; keep an active one if we have it
        for code in (airline.iata, airline.icao):
            key = _normalize(code)
            if not key:
                continue
            existing = self._airlines.get(key)
            if existing is not None and existing.active and not airline.active:
                continue
            self._airlines[key] = airline

        # Radio callsigns index last so they win, as in the OpenFlights merge
        key = _normalize(airline.callsign)
        if key:
            existing = self._airlines.get(key)
            if existing is None or airline.active or not existing.active:
                self._airlines[key] = airline

    def _index_airport(self, airport: AirportRecord) -> None:
        for code in (airport.iata, airport.icao):
            key = _normalize(code)
            if key:
                self._airports[key] = airport

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StaticLookupTable':
        """Build a table from a decoded runtime dataset."""
        airlines = [a for a in map(_airline_from_dict, _records(data.get('airlines'))) if a]
        airports = [a for a in map(_airport_from_dict, _records(data.get('airports'))) if a]
        return cls(airlines, airports)

    @classmethod
    def from_file(cls, path: Path) -> 'StaticLookupTable':
        """
        Load the bundled dataset.

        A missing or unreadable dataset yields an empty table; the resolver
        then simply falls through to the network stages.
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f'OpenFlights dataset not found at {path}, static lookups disabled')
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f'Failed to load OpenFlights dataset {path}: {e}')
            return cls()

        if not isinstance(data, dict):
            logger.error(f'OpenFlights dataset {path} is not a JSON object')
            return cls()

        table = cls.from_dict(data)
        logger.info(f'Loaded static lookup table: {table.stats}')
        return table

    def find_airline(self, code: Optional[str]) -> Optional[AirlineRecord]:
        """
        Find an airline by callsign, IATA or ICAO code.

        Tries, in order:
        1. Exact key match ('AAL', 'AA', 'AMERICAN')
        2. Trailing digits stripped ('AAL123' -> 'AAL')
        3. Any airline whose radio callsign prefixes the input
        """
        upper = _normalize(code)
        if not upper:
            return None

        airline = self._airlines.get(upper)
        if airline:
            return airline

        base = _TRAILING_DIGITS.sub('', upper)
        if base and base != upper:
            airline = self._airlines.get(base)
            if airline:
                return airline

        for airline in self._airline_list:
            prefix = _normalize(airline.callsign)
            if prefix and upper.startswith(prefix):
                return airline

        return None

    def find_airport(self, code: Optional[str]) -> Optional[AirportRecord]:
        """Find an airport by IATA or ICAO code."""
        upper = _normalize(code)
        if not upper:
            return None
        return self._airports.get(upper)

    def airport_display(self, code: Optional[str]) -> Optional[str]:
        """Format an airport as 'Name (CODE)', or the bare code if unknown."""
        upper = _normalize(code)
        if not upper:
            return None
        airport = self._airports.get(upper)
        if not airport:
            return upper
        return f'{airport.name} ({upper})'

    @property
    def stats(self) -> dict:
        return {
            'airlines': len(self._airline_list),
            'airports': len(set(map(id, self._airports.values()))),
        }


def _read_dat(path: Path) -> List[List[str]]:
    with open(path, 'r', encoding='utf-8', errors='ignore', newline='') as f:
        return [row for row in csv.reader(f) if row]


def build_runtime_dataset(airlines_dat: Path, airports_dat: Path, output: Path) -> dict:
    """
    Convert raw OpenFlights .dat files into the runtime JSON dataset.

    airlines.dat columns: id, name, alias, iata, icao, callsign, country, active
    airports.dat columns: id, name, city, country, iata, icao, lat, lng,
                          altitude, utc_offset, dst, tz, type, source

    Returns the metadata block written alongside the records.
    """
    airlines = []
    for row in _read_dat(Path(airlines_dat)):
        if len(row) < 8:
            continue
        airline = _airline_from_dict({
            'name': row[1], 'iata': row[3], 'icao': row[4],
            'callsign': row[5], 'country': row[6], 'active': row[7],
        })
        if airline and (airline.iata or airline.icao or airline.callsign):
            airlines.append(airline.to_dict() | {'active': airline.active})

    airports = []
    for row in _read_dat(Path(airports_dat)):
        if len(row) < 12:
            continue
        airport = _airport_from_dict({
            'name': row[1], 'city': row[2], 'country': row[3], 'iata': row[4],
            'icao': row[5], 'lat': row[6], 'lng': row[7], 'tz': row[11],
        })
        if airport and (airport.iata or airport.icao):
            record = airport.to_dict()
            record['tz'] = record.pop('timezone')
            airports.append(record)

    metadata = {'airline_count': len(airlines), 'airport_count': len(airports)}
    with open(output, 'w', encoding='utf-8') as f:
        json.dump({'airlines': airlines, 'airports': airports, 'metadata': metadata}, f)

    logger.info(f'Wrote runtime dataset to {output}: {metadata}')
    return metadata


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    if len(sys.argv) != 4:
        print('usage: python -m wayfarer.lookup.static_table AIRLINES_DAT AIRPORTS_DAT OUTPUT_JSON')
        sys.exit(1)
    build_runtime_dataset(Path(sys.argv[1]), Path(sys.argv[2]), Path(sys.argv[3]))
