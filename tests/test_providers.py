import unittest
from unittest import mock

import requests

from livability.config import ScoringConfig
from livability.errors import InvalidInput, ProviderError, ProviderTimeout, SafetyDataUnavailable
from livability.models import ElementKind, POIResult, SafetyReading
from livability.providers import (
    CrimeDataProvider,
    OverpassPOIProvider,
    build_overpass_query,
    fetch_location_data,
    parse_crime_payload,
    parse_overpass_elements,
    validate_coordinates,
)

OVERPASS_PAYLOAD = {
    "version": 0.6,
    "elements": [
        {"type": "node", "id": 1, "lat": 40.71, "lon": -74.0, "tags": {"leisure": "park", "name": "City Hall Park"}},
        {"type": "way", "id": 2, "tags": {"amenity": "cafe"}},
        {"type": "node", "id": 3, "lat": 40.72, "lon": -74.01},
    ],
}


def make_response(payload=None, status_code=200):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        error = requests.HTTPError(f"{status_code} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    else:
        response.raise_for_status.return_value = None
    return response


class TestOverpassParsing(unittest.TestCase):
    def test_query_covers_every_category(self):
        query = build_overpass_query(40.7128, -74.006, 1000)
        self.assertTrue(query.startswith("[out:json][timeout:25];"))
        self.assertIn('node["leisure"="park"](around:1000,40.7128,-74.006);', query)
        self.assertIn('relation["railway"="station"](around:1000,40.7128,-74.006);', query)
        self.assertIn('node["highway"="bus_stop"]', query)
        self.assertNotIn('way["highway"="bus_stop"]', query)
        self.assertTrue(query.endswith("out skel qt;"))

    def test_parse_elements(self):
        elements = parse_overpass_elements(OVERPASS_PAYLOAD)
        self.assertEqual([element.id for element in elements], [1, 2, 3])
        self.assertEqual(elements[1].kind, ElementKind.WAY)
        self.assertIsNone(elements[1].lat)
        self.assertEqual(elements[2].tags, {})

    def test_missing_elements_key_is_empty_result(self):
        self.assertEqual(parse_overpass_elements({"version": 0.6}), [])

    def test_malformed_payloads(self):
        for payload in ([], {"elements": "nope"}, {"elements": [{"id": 1}]},
                        {"elements": [{"id": 1, "type": "area"}]},
                        {"elements": [{"id": 1, "type": "node", "tags": ["x"]}]}):
            with self.assertRaises(ProviderError, msg=repr(payload)):
                parse_overpass_elements(payload)


class TestCrimeParsing(unittest.TestCase):
    def test_upstream_payload(self):
        reading = parse_crime_payload(
            {"crime_index": 48.2, "safety_index": 51.8, "crime_rate": "48 per 100,000 people"}, "Boston")
        self.assertEqual(reading.crime_index, 48.2)
        self.assertEqual(reading.safety_index, 51.8)
        self.assertEqual(reading.city, "Boston")
        self.assertEqual(reading.source, "CrimeScore API")
        self.assertFalse(reading.estimated)

    def test_served_payload_keeps_note(self):
        reading = parse_crime_payload(
            {"city": "Oslo", "crimeIndex": 20, "safetyIndex": 80, "note": "Data is estimated"}, "", source="file")
        self.assertEqual(reading.city, "Oslo")
        self.assertEqual(reading.note, "Data is estimated")
        self.assertTrue(reading.estimated)

    def test_missing_index(self):
        self.assertIsNone(parse_crime_payload({"safety_index": 40}, "Paris"))
        self.assertIsNone(parse_crime_payload(None, "Paris"))

    def test_non_numeric_index(self):
        with self.assertRaises(ProviderError):
            parse_crime_payload({"crime_index": "high"}, "Paris")


class TestValidateCoordinates(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(validate_coordinates("40.7128", "-74.0060"), (40.7128, -74.006))

    def test_invalid(self):
        for lat, lon in (("abc", 1), (None, 1), (91, 0), (0, 181), (float("nan"), 0)):
            with self.assertRaises(InvalidInput):
                validate_coordinates(lat, lon)


class TestOverpassPOIProvider(unittest.TestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.provider = OverpassPOIProvider(ScoringConfig(), session=self.session)

    def test_fetch(self):
        self.session.get.return_value = make_response(OVERPASS_PAYLOAD)
        result = self.provider.fetch(40.7128, -74.006, 800)

        self.assertEqual(result.radius_m, 800.0)
        self.assertEqual(len(result.elements), 3)
        args, kwargs = self.session.get.call_args
        self.assertEqual(args[0], "https://overpass-api.de/api/interpreter")
        self.assertEqual(kwargs["timeout"], 30.0)
        self.assertIn("around:800,40.7128,-74.006", kwargs["params"]["data"])

    def test_timeout_is_distinct(self):
        self.session.get.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(ProviderTimeout):
            self.provider.fetch(40.7, -74.0, 1000)

    def test_upstream_error(self):
        self.session.get.return_value = make_response(status_code=504)
        with self.assertRaises(ProviderError) as ctx:
            self.provider.fetch(40.7, -74.0, 1000)
        self.assertNotIsInstance(ctx.exception, ProviderTimeout)
        self.assertEqual(ctx.exception.status_code, 504)
        self.assertEqual(ctx.exception.provider, "overpass")

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(ProviderError):
            self.provider.fetch(40.7, -74.0, 1000)

    def test_invalid_input_never_hits_network(self):
        with self.assertRaises(InvalidInput):
            self.provider.fetch("north", -74.0, 1000)
        with self.assertRaises(InvalidInput):
            self.provider.fetch(40.7, -74.0, 0)
        self.session.get.assert_not_called()


class TestCrimeDataProvider(unittest.TestCase):
    def setUp(self):
        self.session = mock.Mock()

    def test_fetch(self):
        self.session.get.return_value = make_response({"crime_index": 62, "safety_index": 38})
        reading = CrimeDataProvider(ScoringConfig(), session=self.session).fetch("New York")

        self.assertEqual(reading.crime_index, 62.0)
        self.assertEqual(reading.city, "New York")
        self.assertEqual(self.session.get.call_args[0][0], "https://api.crimescore.com/city/New%20York")

    def test_failure_without_fallback_is_unavailable(self):
        self.session.get.side_effect = requests.ConnectionError("down")
        with self.assertRaises(SafetyDataUnavailable):
            CrimeDataProvider(ScoringConfig(), session=self.session).fetch("Springfield")

    def test_timeout_without_fallback_stays_a_timeout(self):
        self.session.get.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(ProviderTimeout) as ctx:
            CrimeDataProvider(ScoringConfig(), session=self.session).fetch("Springfield")
        self.assertNotIsInstance(ctx.exception, SafetyDataUnavailable)
        self.assertEqual(ctx.exception.provider, "crime")

    def test_timeout_with_placeholder_is_flagged(self):
        self.session.get.side_effect = requests.Timeout("read timed out")
        reading = CrimeDataProvider(ScoringConfig(fallback_crime_index=40), session=self.session).fetch("Springfield")
        self.assertEqual(reading.crime_index, 40)
        self.assertTrue(reading.estimated)

    def test_empty_payload_without_fallback_is_unavailable(self):
        self.session.get.return_value = make_response({})
        with self.assertRaises(SafetyDataUnavailable):
            CrimeDataProvider(ScoringConfig(), session=self.session).fetch("Springfield")

    def test_failure_with_placeholder_is_flagged(self):
        self.session.get.return_value = make_response(status_code=503)
        provider = CrimeDataProvider(ScoringConfig(fallback_crime_index=50), session=self.session)
        reading = provider.fetch("Springfield")

        self.assertEqual(reading.crime_index, 50)
        self.assertEqual(reading.safety_index, 50)
        self.assertTrue(reading.estimated)
        self.assertEqual(reading.source, "Configured placeholder")
        self.assertIsNotNone(reading.note)
        self.assertIsNotNone(reading.warning)

    def test_blank_city(self):
        with self.assertRaises(InvalidInput):
            CrimeDataProvider(ScoringConfig(), session=self.session).fetch("  ")


class TestFetchLocationData(unittest.TestCase):
    def test_combines_both_results(self):
        poi_provider = mock.Mock()
        safety_provider = mock.Mock()
        poi_provider.fetch.return_value = POIResult(latitude=1.0, longitude=2.0, radius_m=500)
        safety_provider.fetch.return_value = SafetyReading(crime_index=30)

        poi_result, reading = fetch_location_data(poi_provider, safety_provider, 1.0, 2.0, 500, "Lyon")

        self.assertEqual(poi_result.radius_m, 500)
        self.assertEqual(reading.crime_index, 30)
        poi_provider.fetch.assert_called_once_with(1.0, 2.0, 500)
        safety_provider.fetch.assert_called_once_with("Lyon")

    def test_provider_error_propagates(self):
        poi_provider = mock.Mock()
        safety_provider = mock.Mock()
        poi_provider.fetch.side_effect = ProviderTimeout("slow", provider="overpass")
        safety_provider.fetch.return_value = SafetyReading(crime_index=30)

        with self.assertRaises(ProviderTimeout):
            fetch_location_data(poi_provider, safety_provider, 1.0, 2.0, 500, "Lyon")


if __name__ == "__main__":
    unittest.main()
