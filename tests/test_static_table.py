"""Tests for the OpenFlights static lookup table."""

import json

from wayfarer.lookup.static_table import (
    AirlineRecord,
    StaticLookupTable,
    build_runtime_dataset,
)


class TestFindAirline:
    def test_exact_icao(self, static_table):
        assert static_table.find_airline('AAL').name == 'American Airlines'

    def test_exact_iata(self, static_table):
        assert static_table.find_airline('BA').icao == 'BAW'

    def test_radio_callsign(self, static_table):
        assert static_table.find_airline('SPEEDBIRD').icao == 'BAW'

    def test_trailing_digits_stripped(self, static_table):
        airline = static_table.find_airline('AAL123')
        assert airline.name == 'American Airlines'
        assert airline.iata == 'AA'

    def test_case_and_whitespace_insensitive(self, static_table):
        assert static_table.find_airline('  dal45 ').icao == 'DAL'

    def test_callsign_prefix_scan(self, static_table):
        assert static_table.find_airline('EMIRATES7X').icao == 'UAE'

    def test_unknown(self, static_table):
        assert static_table.find_airline('XYZ999') is None

    def test_empty(self, static_table):
        assert static_table.find_airline('') is None
        assert static_table.find_airline(None) is None

    def test_exact_match_beats_prefix(self):
        table = StaticLookupTable([
            AirlineRecord(name='Prefix Air', icao='PRX', callsign='AB'),
            AirlineRecord(name='Exact Air', icao='ABC'),
        ])
        assert table.find_airline('ABC').name == 'Exact Air'

    def test_active_airline_wins_shared_iata(self):
        table = StaticLookupTable([
            AirlineRecord(name='Active Air', iata='ZZ', icao='AAA', active=True),
            AirlineRecord(name='Defunct Air', iata='ZZ', icao='BBB', active=False),
        ])
        assert table.find_airline('ZZ').name == 'Active Air'
        assert table.find_airline('BBB').name == 'Defunct Air'


class TestAirports:
    def test_find_by_iata_and_icao(self, static_table):
        assert static_table.find_airport('jfk').icao == 'KJFK'
        assert static_table.find_airport('KLAX').iata == 'LAX'

    def test_display(self, static_table):
        assert static_table.airport_display('JFK') == 'John F Kennedy International Airport (JFK)'

    def test_display_unknown_code(self, static_table):
        assert static_table.airport_display('zzz') == 'ZZZ'

    def test_display_none(self, static_table):
        assert static_table.airport_display(None) is None


class TestLoading:
    def test_bundled_dataset_loads(self, static_table):
        stats = static_table.stats
        assert stats['airlines'] > 30
        assert stats['airports'] > 15

    def test_missing_file_gives_empty_table(self, tmp_path):
        table = StaticLookupTable.from_file(tmp_path / 'missing.json')
        assert table.stats == {'airlines': 0, 'airports': 0}
        assert table.find_airline('AAL') is None

    def test_invalid_json_gives_empty_table(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{not json')
        assert StaticLookupTable.from_file(path).stats['airlines'] == 0

    def test_mapping_form_accepted(self):
        table = StaticLookupTable.from_dict({
            'airlines': {'AAL': {'name': 'American Airlines', 'iata': 'AA', 'icao': 'AAL'}},
            'airports': {'JFK': {'name': 'JFK Intl', 'iata': 'JFK', 'icao': 'KJFK'}},
        })
        assert table.find_airline('AA').icao == 'AAL'
        assert table.find_airport('KJFK').name == 'JFK Intl'


class TestBuildRuntimeDataset:
    def test_converts_dat_files(self, tmp_path):
        airlines_dat = tmp_path / 'airlines.dat'
        airlines_dat.write_text(
            '24,"American Airlines",\\N,"AA","AAL","AMERICAN","United States","Y"\n'
            '-1,"Unknown",\\N,"-","N/A","","\\N","Y"\n'
            '1355,"Old Air",\\N,"AA","OLD","OLDIE","Nowhere","N"\n'
        )
        airports_dat = tmp_path / 'airports.dat'
        airports_dat.write_text(
            '3797,"John F Kennedy International Airport","New York","United States",'
            '"JFK","KJFK",40.63980103,-73.77890015,13,-5,"A","America/New_York","airport","OurAirports"\n'
        )
        output = tmp_path / 'runtime.json'

        metadata = build_runtime_dataset(airlines_dat, airports_dat, output)

        assert metadata == {'airline_count': 2, 'airport_count': 1}
        data = json.loads(output.read_text())
        assert data['airports'][0]['tz'] == 'America/New_York'

        table = StaticLookupTable.from_dict(data)
        assert table.find_airline('AA').name == 'American Airlines'
        assert table.find_airline('OLD').active is False
        assert table.find_airport('JFK').lat == 40.63980103
