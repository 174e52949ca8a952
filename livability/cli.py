"""
Command line entry point: score saved provider payloads or fetch live data
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from livability.config import load_config, parse_factor_mapping
from livability.errors import InvalidInput, ProviderError
from livability.logging_config import configure_logging
from livability.models import POIResult
from livability.providers import (
    CrimeDataProvider,
    OverpassPOIProvider,
    fetch_location_data,
    parse_crime_payload,
    parse_overpass_elements,
    validate_radius,
)
from livability.scorer import LivabilityScorer

logger = logging.getLogger(__name__)

EXIT_INVALID_INPUT = 2
EXIT_PROVIDER_ERROR = 3


def _load_json(path: str):
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise InvalidInput(f"Cannot read {path}: {e.strerror}") from e
    except json.JSONDecodeError as e:
        raise InvalidInput(f"{path} is not valid JSON: {e}") from e


def _weights(args, default_weights) -> Dict[str, float]:
    if not args.weights:
        return dict(default_weights)
    return parse_factor_mapping(args.weights)


def _unwrap(payload):
    # Accept both the bare upstream body and the {"data": ...} envelope the HTTP API returns
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict) and "elements" not in payload:
        return payload["data"]
    return payload


def run_score(args, config) -> dict:
    try:
        elements = parse_overpass_elements(_load_json(args.poi))
    except ProviderError as e:
        raise InvalidInput(f"{args.poi} is not an Overpass response: {e}") from e
    radius = validate_radius(args.radius if args.radius is not None else config.default_radius_m)
    raw_safety = _load_json(args.safety)
    crime_payload = _unwrap(raw_safety)
    source = args.source
    if source is None and crime_payload is not raw_safety:
        source = raw_safety.get("source")
    try:
        safety = parse_crime_payload(crime_payload, city=args.city or "", source=source or "file")
    except ProviderError as e:
        raise InvalidInput(f"{args.safety} is not a crime index payload: {e}") from e
    if safety is None:
        raise InvalidInput(f"{args.safety} does not contain a crime_index")

    poi_result = POIResult(latitude=args.lat, longitude=args.lon, radius_m=radius, elements=elements)
    report = LivabilityScorer(config).calculate_score(poi_result, safety, _weights(args, config.default_weights))
    return report.to_dict()


def run_fetch(args, config) -> dict:
    radius = args.radius if args.radius is not None else config.default_radius_m
    poi_result, safety = fetch_location_data(
        OverpassPOIProvider(config), CrimeDataProvider(config),
        args.lat, args.lon, radius, args.city,
    )
    report = LivabilityScorer(config).calculate_score(poi_result, safety, _weights(args, config.default_weights))
    result = report.to_dict()
    result["query"] = {"latitude": poi_result.latitude, "longitude": poi_result.longitude,
                       "radius": poi_result.radius_m, "city": safety.city}
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("livability", description="Neighborhood livability score")
    parser.add_argument("--env-file", default=None, help="dotenv file with LIVABILITY_* settings")
    parser.add_argument("--log-level", default=None, help="Overrides LIVABILITY_LOG_LEVEL")
    sub = parser.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("score", help="Score saved Overpass and crime API responses")
    s.add_argument("--poi", required=True, help="Overpass JSON response")
    s.add_argument("--safety", required=True, help="Crime API JSON response")
    s.add_argument("--radius", type=float, default=None, help="Search radius in meters")
    s.add_argument("--lat", type=float, default=0.0)
    s.add_argument("--lon", type=float, default=0.0)
    s.add_argument("--city", default=None)
    s.add_argument("--source", default=None, help="Provenance label stored in the report")
    s.add_argument("--weights", default="", help="e.g. parks=0.2,crimeRate=0.3")

    f = sub.add_parser("fetch", help="Fetch live data for a location and score it")
    f.add_argument("--lat", required=True)
    f.add_argument("--lon", required=True)
    f.add_argument("--city", required=True)
    f.add_argument("--radius", type=float, default=None, help="Search radius in meters")
    f.add_argument("--weights", default="", help="e.g. parks=0.2,crimeRate=0.3")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.env_file)
        configure_logging(args.log_level or config.log_level)
        result = run_score(args, config) if args.cmd == "score" else run_fetch(args, config)
    except InvalidInput as e:
        logger.error("Invalid input: %s", e)
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return EXIT_INVALID_INPUT
    except ProviderError as e:
        logger.error("Provider %s failed: %s", e.provider or "unknown", e)
        print(json.dumps({"error": str(e), "provider": e.provider}), file=sys.stderr)
        return EXIT_PROVIDER_ERROR

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
