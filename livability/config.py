"""
Tunable scoring constants and provider settings

Values come from the environment (a ``.env`` file is loaded first) and fall
back to the defaults below.
"""
import math
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from livability.errors import InvalidInput
from livability.models import CATEGORY_NAMES, FACTOR_NAMES

# Units per km² at which a category saturates to a normalized value of 1.0
DEFAULT_DENSITY_THRESHOLDS: Dict[str, float] = {
    "parks": 2.0,
    "cafes": 5.0,
    "gyms": 1.0,
    "busStops": 10.0,
    "trainStations": 0.5,
}

DEFAULT_WEIGHTS: Dict[str, float] = {
    "parks": 0.15,
    "cafes": 0.15,
    "gyms": 0.10,
    "busStops": 0.20,
    "trainStations": 0.20,
    "crimeRate": 0.20,
}

DEFAULT_RADIUS_M = 1000.0
OVERPASS_API_URL = "https://overpass-api.de/api/interpreter"
CRIME_API_URL = "https://api.crimescore.com/city"


@dataclass(frozen=True)
class ScoringConfig:
    """Everything the engine and the providers need to run"""
    density_thresholds: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_DENSITY_THRESHOLDS))
    default_weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    default_radius_m: float = DEFAULT_RADIUS_M
    overpass_api_url: str = OVERPASS_API_URL
    crime_api_url: str = CRIME_API_URL
    poi_timeout_s: float = 30.0
    safety_timeout_s: float = 10.0
    fallback_crime_index: Optional[float] = None
    log_level: str = "INFO"

    def __post_init__(self):
        # Partial threshold mappings fill in from the defaults
        thresholds = dict(DEFAULT_DENSITY_THRESHOLDS)
        for category, threshold in (self.density_thresholds or {}).items():
            if category not in CATEGORY_NAMES:
                raise InvalidInput(f"Unknown category {category!r}; expected one of {', '.join(CATEGORY_NAMES)}")
            threshold = _to_float(threshold, f"density threshold for {category}")
            if threshold <= 0:
                raise InvalidInput(f"Density threshold for {category} must be > 0, got {threshold}")
            thresholds[category] = threshold
        object.__setattr__(self, "density_thresholds", thresholds)


def parse_factor_mapping(raw: str, allowed=FACTOR_NAMES) -> Dict[str, float]:
    """
    Parse ``"parks=0.2,cafes=0.1"`` into a factor -> float mapping

    Args:
        raw: Comma separated ``name=value`` pairs
        allowed: Factor names accepted as keys

    Returns:
        Parsed mapping (only the names present in ``raw``)
    """
    parsed: Dict[str, float] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            raise InvalidInput(f"Expected name=value, got {part!r}")
        name, value = (piece.strip() for piece in part.split("=", 1))
        if name not in allowed:
            raise InvalidInput(f"Unknown factor {name!r}; expected one of {', '.join(allowed)}")
        parsed[name] = _to_float(value, name)
    return parsed


def _to_float(value, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise InvalidInput(f"{name} must be a finite number, got {value!r}")
    return number


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return _to_float(raw, name)


def load_config(env_file: Optional[str] = None) -> ScoringConfig:
    """
    Build a ScoringConfig from the environment

    Args:
        env_file: Optional path to a dotenv file; defaults to ``.env`` lookup

    Returns:
        Frozen configuration object
    """
    load_dotenv(env_file, override=False)

    thresholds = parse_factor_mapping(os.getenv("LIVABILITY_DENSITY_THRESHOLDS", ""), CATEGORY_NAMES)

    weights = dict(DEFAULT_WEIGHTS)
    weights.update(parse_factor_mapping(os.getenv("LIVABILITY_WEIGHTS", "")))

    radius = _env_float("LIVABILITY_DEFAULT_RADIUS_M", DEFAULT_RADIUS_M)
    if radius <= 0:
        raise InvalidInput(f"LIVABILITY_DEFAULT_RADIUS_M must be > 0, got {radius}")

    return ScoringConfig(
        density_thresholds=thresholds,
        default_weights=weights,
        default_radius_m=radius,
        overpass_api_url=os.getenv("OVERPASS_API_URL", OVERPASS_API_URL),
        crime_api_url=os.getenv("CRIME_API_URL", CRIME_API_URL),
        poi_timeout_s=_env_float("POI_TIMEOUT_S", 30.0),
        safety_timeout_s=_env_float("SAFETY_TIMEOUT_S", 10.0),
        fallback_crime_index=_env_float("LIVABILITY_FALLBACK_CRIME_INDEX", None),
        log_level=os.getenv("LIVABILITY_LOG_LEVEL", "INFO").upper(),
    )
