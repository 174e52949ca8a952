"""
Livability scoring based on points-of-interest density and a city crime index
"""
import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from livability.classifier import get_crime_level, get_safety_level, get_score_level
from livability.config import ScoringConfig
from livability.errors import InvalidInput
from livability.models import (
    CATEGORY_NAMES,
    CRIME_FACTOR,
    FACTOR_NAMES,
    CategorizedElement,
    CategorizedElements,
    FactorScore,
    GeoElement,
    POIResult,
    SafetyReading,
    ScoreReport,
)

logger = logging.getLogger(__name__)

# (category, tag key, tag value, fallback name) in priority order
CATEGORY_RULES: Tuple[Tuple[str, str, str, str], ...] = (
    ("parks", "leisure", "park", "Unnamed Park"),
    ("cafes", "amenity", "cafe", "Unnamed Cafe"),
    ("gyms", "leisure", "fitness_centre", "Unnamed Gym"),
    ("busStops", "highway", "bus_stop", "Bus Stop"),
    ("trainStations", "railway", "station", "Train Station"),
)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values, like Math.round"""
    factor = 10 ** digits
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def _as_number(value, name: str) -> float:
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise InvalidInput(f"{name} must be a finite number, got {value!r}")
    return number


class LivabilityScorer:
    """Turns categorized points of interest and a crime index into a weighted score"""

    def __init__(self, config: Optional[ScoringConfig] = None):
        config = config or ScoringConfig()
        self.thresholds = dict(config.density_thresholds)
        self.default_weights = dict(config.default_weights)
        self.category_rules = CATEGORY_RULES

    def categorize_elements(self, elements: Iterable[GeoElement]) -> CategorizedElements:
        """
        Bucket raw elements into categories

        Args:
            elements: Elements from the points-of-interest provider

        Returns:
            CategorizedElements with one (possibly empty) list per category
        """
        buckets: Dict[str, List[CategorizedElement]] = {category: [] for category in CATEGORY_NAMES}
        total = 0
        dropped = 0

        for element in elements:
            total += 1
            tags = element.tags or {}

            for category, key, value, fallback_name in self.category_rules:
                if tags.get(key) == value:
                    buckets[category].append(CategorizedElement(
                        id=element.id,
                        kind=element.kind,
                        lat=element.lat,
                        lon=element.lon,
                        name=tags.get("name") or fallback_name,
                        tags=tags,
                    ))
                    break  # Element goes in first matching category only
            else:
                dropped += 1

        logger.debug("Categorized %d elements, %d unmatched", total, dropped)
        return CategorizedElements(buckets=buckets, total_elements=total)

    def calculate_area_km2(self, radius_m) -> float:
        """
        Area of the search disc in square kilometers

        Raises:
            InvalidInput: if the radius is missing, not a number, not > 0
                or too small or too large to give a usable area
        """
        if radius_m is None:
            raise InvalidInput("radius must be > 0, got None")
        radius = _as_number(radius_m, "radius")
        if radius <= 0:
            raise InvalidInput(f"radius must be > 0, got {radius_m!r}")
        try:
            area = math.pi * radius ** 2 / 1_000_000
        except OverflowError:
            raise InvalidInput(f"radius {radius_m!r} is too large") from None
        if not math.isfinite(area):
            raise InvalidInput(f"radius {radius_m!r} is too large")
        # Densities are count / area
        if area <= 0 or not math.isfinite(1 / area):
            raise InvalidInput(f"radius {radius_m!r} is too small")
        return area

    def calculate_density_per_km2(self, count: int, area_km2: float) -> float:
        density = count / area_km2
        if not math.isfinite(density):
            raise InvalidInput(f"density of {count} elements over {area_km2!r} km² is out of range")
        return density

    def normalize_count(self, count: int, area_km2: float, category: str) -> float:
        """Density relative to the category's saturation threshold, capped at 1.0"""
        if not count:
            return 0.0
        saturation = area_km2 * self.thresholds[category]
        if saturation <= 0:
            return 1.0
        return min(count / saturation, 1.0)

    def crime_rate_factor(self, crime_index) -> float:
        """Inverted crime index on a 0-1 scale (lower crime scores higher)"""
        index = _as_number(crime_index, "crimeIndex")
        return max(0.0, min(1.0, 1 - index / 100))

    def normalize_factors(self, counts: Mapping[str, int], radius_m, safety: SafetyReading) -> Dict[str, float]:
        """
        Normalize category counts and crime index to 0-1 factor values

        Args:
            counts: Number of elements per category (missing categories count as 0)
            radius_m: Search radius in meters
            safety: Reading from the safety provider

        Returns:
            Factor name -> normalized value for all six factors
        """
        area_km2 = self.calculate_area_km2(radius_m)
        factors = {
            category: self.normalize_count(counts.get(category, 0), area_km2, category)
            for category in CATEGORY_NAMES
        }
        factors[CRIME_FACTOR] = self.crime_rate_factor(safety.crime_index)
        return factors

    def resolve_weights(self, weights: Optional[Mapping[str, float]]) -> Dict[str, float]:
        """Weight per factor; a missing weight counts as 0"""
        if weights is None:
            weights = self.default_weights
        unknown = set(weights) - set(FACTOR_NAMES)
        if unknown:
            logger.debug("Ignoring weights for unknown factors: %s", sorted(unknown))
        return {
            factor: _as_number(weights[factor], f"weight for {factor}") if weights.get(factor) is not None else 0.0
            for factor in FACTOR_NAMES
        }

    def calculate_score(self, poi_result: POIResult, safety: SafetyReading,
                        weights: Optional[Mapping[str, float]] = None) -> ScoreReport:
        """
        Calculate the livability report for one location

        Args:
            poi_result: Points-of-interest query and its elements
            safety: Crime/safety reading for the location's city
            weights: Factor weights; None uses the configured defaults

        Returns:
            ScoreReport with per-factor breakdown and levels
        """
        area_km2 = self.calculate_area_km2(poi_result.radius_m)
        categorized = self.categorize_elements(poi_result.elements)
        counts = categorized.counts()
        factors = self.normalize_factors(counts, poi_result.radius_m, safety)
        resolved_weights = self.resolve_weights(weights)
        crime_index = _as_number(safety.crime_index, "crimeIndex")
        safety_index = None if safety.safety_index is None else _as_number(safety.safety_index, "safetyIndex")

        factor_scores: List[FactorScore] = []
        total_score = 0.0
        for name in FACTOR_NAMES:
            weighted = factors[name] * resolved_weights[name]
            factor_scores.append(FactorScore(
                name=name,
                normalized_value=factors[name],
                weight=resolved_weights[name],
                weighted_score=weighted,
            ))
            total_score += weighted
        if not math.isfinite(total_score):
            raise InvalidInput(f"weights give a score out of range: {resolved_weights}")

        breakdown: Dict[str, Dict] = {}
        for category in CATEGORY_NAMES:
            breakdown[category] = {
                "count": counts[category],
                "density": round_half_up(self.calculate_density_per_km2(counts[category], area_km2), 2),
                "normalized": round_half_up(factors[category], 2),
                "score": round_half_up(factors[category] * resolved_weights[category], 2),
                "level": get_score_level(factors[category]),
            }
        breakdown[CRIME_FACTOR] = {
            "crimeIndex": crime_index,
            "safetyIndex": safety_index,
            "normalized": round_half_up(factors[CRIME_FACTOR], 2),
            "score": round_half_up(factors[CRIME_FACTOR] * resolved_weights[CRIME_FACTOR], 2),
            "level": get_score_level(factors[CRIME_FACTOR]),
        }

        weight_total = sum(resolved_weights.values())
        if not math.isclose(weight_total, 1.0, abs_tol=1e-9):
            logger.debug("Weights sum to %.4f instead of 1.0", weight_total)

        return ScoreReport(
            total_score=total_score,
            total_score_percentage=int(round_half_up(total_score * 100)),
            factors=factor_scores,
            breakdown=breakdown,
            weight_total=weight_total,
            level=get_score_level(total_score),
            crime_level=get_crime_level(crime_index),
            safety_level=get_safety_level(safety_index),
            summary=categorized.summary(),
            radius_m=float(poi_result.radius_m),
            safety_source=safety.source,
            safety_note=safety.note,
            safety_warning=safety.warning,
            safety_estimated=safety.estimated,
            safety_crime_rate=safety.crime_rate,
            safety_last_updated=safety.last_updated,
        )


def score(poi_result: POIResult, safety_result: SafetyReading,
          weights: Optional[Mapping[str, float]] = None,
          config: Optional[ScoringConfig] = None) -> ScoreReport:
    """Score a location with a fresh scorer; see LivabilityScorer.calculate_score"""
    return LivabilityScorer(config).calculate_score(poi_result, safety_result, weights)
