"""
Flight resolver - attaches airline and airport info to raw flight records.

Each record's callsign is run through an ordered list of resolvers,
cheapest first:

    static  -> bundled OpenFlights table, no I/O
    remote  -> HexDB airline lookup
    scrape  -> FlightAware page scrape, at most one at a time

The first resolver that returns a match wins and is recorded as the
record's resolution_source. Records are resolved in parallel; one slow or
failing record never holds up the rest of the batch.
"""

import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from wayfarer.config import config
from wayfarer.lookup.remote_client import RemoteLookupClient, callsign_prefix
from wayfarer.lookup.scraper import ScrapingFallbackClient
from wayfarer.lookup.static_table import AirlineRecord, StaticLookupTable

logger = logging.getLogger(__name__)

_IATA_FLIGHT = re.compile(r'^([A-Z0-9]{2})\d+[A-Z]?$')


class ResolutionSource(str, Enum):
    """Which provider produced a record's enrichment."""
    STATIC = 'static'
    REMOTE = 'remote'
    SCRAPE = 'scrape'
    UNRESOLVED = 'unresolved'


@dataclass(frozen=True)
class Resolution:
    """A resolver's answer for one callsign."""
    source: ResolutionSource
    airline: Optional[AirlineRecord] = None
    departure_code: Optional[str] = None
    arrival_code: Optional[str] = None


class Resolver(Protocol):
    source: ResolutionSource

    def resolve(self, callsign: str) -> Optional[Resolution]:
        ...


class StaticResolver:
    source = ResolutionSource.STATIC

    def __init__(self, table: StaticLookupTable):
        self.table = table

    def resolve(self, callsign: str) -> Optional[Resolution]:
        airline = self.table.find_airline(callsign)
        if airline is None:
            return None
        return Resolution(source=self.source, airline=airline)


class RemoteResolver:
    source = ResolutionSource.REMOTE

    def __init__(self, client: RemoteLookupClient):
        self.client = client

    def resolve(self, callsign: str) -> Optional[Resolution]:
        airline = self.client.lookup_airline(callsign)
        if airline is None:
            return None
        return Resolution(source=self.source, airline=airline)


class ScrapeResolver:
    """
    FlightAware stage.

    Only one scrape may be in flight per resolver. A record that finds the
    gate taken skips this stage rather than queueing behind it.
    """

    source = ResolutionSource.SCRAPE

    def __init__(self, client: ScrapingFallbackClient):
        self.client = client
        self._gate = threading.Semaphore(1)
        self._skipped = 0
        self._lock = threading.Lock()

    def resolve(self, callsign: str) -> Optional[Resolution]:
        if not self._gate.acquire(blocking=False):
            with self._lock:
                self._skipped += 1
            logger.debug(f'Scrape gate busy, skipping {callsign}')
            return None
        try:
            result = self.client.lookup_flight(callsign)
        finally:
            self._gate.release()

        if not result.ok:
            return None

        info = result.info
        airline = None
        if info.airline:
            iata_match = _IATA_FLIGHT.match(info.iata_ident or '')
            airline = AirlineRecord(
                name=info.airline,
                iata=iata_match.group(1) if iata_match else None,
                icao=callsign_prefix(callsign),
            )

        if airline is None and not (info.origin_code or info.destination_code):
            return None

        return Resolution(
            source=self.source,
            airline=airline,
            departure_code=info.origin_code,
            arrival_code=info.destination_code,
        )

    @property
    def skipped(self) -> int:
        with self._lock:
            return self._skipped


@dataclass
class EnrichedFlight:
    """A caller's flight record plus resolved fields."""
    record: Dict[str, Any]
    resolution_source: ResolutionSource = ResolutionSource.UNRESOLVED
    airline_name: Optional[str] = None
    airline_iata: Optional[str] = None
    airline_icao: Optional[str] = None
    airline_country: Optional[str] = None
    departure_airport: Optional[str] = None
    departure_city: Optional[str] = None
    departure_country: Optional[str] = None
    departure_timezone: Optional[str] = None
    arrival_airport: Optional[str] = None
    arrival_city: Optional[str] = None
    arrival_country: Optional[str] = None
    arrival_timezone: Optional[str] = None

    def to_dict(self) -> dict:
        """The original record with non-empty enrichment keys layered on top."""
        out = dict(self.record)
        for key in _ENRICHMENT_KEYS:
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        out['resolution_source'] = self.resolution_source.value
        return out


_ENRICHMENT_KEYS = tuple(
    f.name for f in fields(EnrichedFlight) if f.name not in ('record', 'resolution_source')
)


def _record_callsign(record: Mapping[str, Any]) -> str:
    return str(record.get('callsign') or '').strip().upper()


@dataclass
class _Counters:
    by_source: Dict[str, int] = field(
        default_factory=lambda: {source.value: 0 for source in ResolutionSource}
    )
    stage_errors: int = 0
    batches: int = 0


class FlightResolver:
    """
    Batch flight enrichment over an ordered list of resolvers.

    Only the first max_batch records of a batch run the full resolver
    chain; the rest get the static stage only, so a large batch never
    turns into hundreds of network lookups. Each distinct callsign is
    resolved once per batch and shared by every record carrying it.
    """

    def __init__(
        self,
        static_table: StaticLookupTable,
        resolvers: Optional[Sequence[Resolver]] = None,
        max_batch: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        self.static_table = static_table
        self.resolvers: List[Resolver] = (
            list(resolvers) if resolvers is not None else [StaticResolver(static_table)]
        )
        self.max_batch = max_batch if max_batch is not None else config.resolver.max_batch

        self._static_only = [r for r in self.resolvers if r.source is ResolutionSource.STATIC]
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or config.resolver.max_workers,
            thread_name_prefix='flight-resolver',
        )
        self._counters = _Counters()
        self._lock = threading.Lock()

    def resolve_batch(
        self,
        records: Sequence[Mapping[str, Any]],
        max_batch: Optional[int] = None,
    ) -> List[EnrichedFlight]:
        """
        Enrich a batch of flight records.

        Output has the same length and order as the input. Input records
        are never mutated.
        """
        limit = self.max_batch if max_batch is None else max(0, max_batch)
        head, tail = records[:limit], records[limit:]

        futures: Dict[str, Future] = {}
        for record in head:
            callsign = _record_callsign(record)
            if callsign and callsign not in futures:
                futures[callsign] = self._pool.submit(self._resolve_callsign, callsign, self.resolvers)

        resolutions: Dict[str, Optional[Resolution]] = {
            callsign: self._collect(future, callsign) for callsign, future in futures.items()
        }
        results = [self._enrich(record, resolutions.get(_record_callsign(record))) for record in head]

        tail_resolutions: Dict[str, Optional[Resolution]] = {}
        for record in tail:
            callsign = _record_callsign(record)
            if callsign and callsign not in tail_resolutions:
                tail_resolutions[callsign] = self._resolve_callsign(callsign, self._static_only)
            results.append(self._enrich(record, tail_resolutions.get(callsign)))

        with self._lock:
            self._counters.batches += 1
            for result in results:
                self._counters.by_source[result.resolution_source.value] += 1

        logger.debug(
            f'Resolved batch of {len(records)} ({len(head)} full, {len(tail)} static only, '
            f'{len(futures)} distinct callsigns)'
        )
        return results

    def _collect(self, future: Future, callsign: str) -> Optional[Resolution]:
        try:
            return future.result()
        except Exception:
            logger.exception(f'Failed to resolve callsign {callsign}')
            return None

    def _resolve_callsign(self, callsign: str, resolvers: Sequence[Resolver]) -> Optional[Resolution]:
        for resolver in resolvers:
            try:
                resolution = resolver.resolve(callsign)
            except Exception as e:
                with self._lock:
                    self._counters.stage_errors += 1
                logger.warning(f'{resolver.source.value} resolver failed for {callsign}: {e}')
                continue
            if resolution is not None:
                return resolution
        return None

    def _enrich(self, record: Mapping[str, Any], resolution: Optional[Resolution]) -> EnrichedFlight:
        departure_code = record.get('departureAirportCode')
        arrival_code = record.get('arrivalAirportCode') or record.get('destinationAirportCode')

        enriched = EnrichedFlight(record=dict(record))
        if resolution is not None:
            enriched.resolution_source = resolution.source
            airline = resolution.airline
            if airline is not None:
                enriched.airline_name = airline.name
                enriched.airline_iata = airline.iata
                enriched.airline_icao = airline.icao
                enriched.airline_country = airline.country
            departure_code = departure_code or resolution.departure_code
            arrival_code = arrival_code or resolution.arrival_code

        # Unknown airports add nothing
        departure = self.static_table.find_airport(departure_code)
        if departure is not None:
            enriched.departure_airport = self.static_table.airport_display(departure_code)
            enriched.departure_city = departure.city
            enriched.departure_country = departure.country
            enriched.departure_timezone = departure.timezone

        arrival = self.static_table.find_airport(arrival_code)
        if arrival is not None:
            enriched.arrival_airport = self.static_table.airport_display(arrival_code)
            enriched.arrival_city = arrival.city
            enriched.arrival_country = arrival.country
            enriched.arrival_timezone = arrival.timezone
        return enriched

    def close(self) -> None:
        self._pool.shutdown(wait=True)

    @property
    def stats(self) -> dict:
        """Get resolver statistics."""
        with self._lock:
            return {
                'batches': self._counters.batches,
                'by_source': dict(self._counters.by_source),
                'stage_errors': self._counters.stage_errors,
                'max_batch': self.max_batch,
                'stages': [r.source.value for r in self.resolvers],
            }
