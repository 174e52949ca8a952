"""
Data model shared by the scoring engine and the provider boundary
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

CATEGORY_NAMES = ("parks", "cafes", "gyms", "busStops", "trainStations")
CRIME_FACTOR = "crimeRate"
FACTOR_NAMES = CATEGORY_NAMES + (CRIME_FACTOR,)


class ElementKind(str, Enum):
    """OSM element type as reported by Overpass"""
    NODE = "node"
    WAY = "way"
    RELATION = "relation"


@dataclass(frozen=True)
class GeoElement:
    """A single raw element returned by the points-of-interest provider"""
    id: int
    kind: ElementKind
    lat: Optional[float] = None  # ways/relations carry no coordinates with `out body`
    lon: Optional[float] = None
    tags: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CategorizedElement:
    """An element after it has been bucketed into a category"""
    id: int
    kind: ElementKind
    lat: Optional[float]
    lon: Optional[float]
    name: str
    tags: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "lat": self.lat,
            "lon": self.lon,
            "name": self.name,
            "tags": dict(self.tags),
        }


@dataclass
class CategorizedElements:
    """Elements grouped by category, plus the number of raw elements seen"""
    buckets: Dict[str, List[CategorizedElement]]
    total_elements: int = 0

    def count(self, category: str) -> int:
        return len(self.buckets.get(category, []))

    def counts(self) -> Dict[str, int]:
        return {category: self.count(category) for category in CATEGORY_NAMES}

    def summary(self) -> Dict[str, int]:
        """Counts per category with the raw element total, as the POI endpoint reports it"""
        summary = {"total": self.total_elements}
        summary.update(self.counts())
        return summary


@dataclass(frozen=True)
class SafetyReading:
    """Crime/safety estimate for a city

    Only ``crime_index`` takes part in scoring. The provenance fields are carried
    through to the report untouched so callers can tell estimated data apart.
    """
    crime_index: float  # 0-100, higher means more crime
    safety_index: Optional[float] = None
    city: Optional[str] = None
    source: Optional[str] = None
    note: Optional[str] = None
    warning: Optional[str] = None
    crime_rate: Optional[str] = None
    last_updated: Optional[str] = None
    estimated: bool = False


@dataclass(frozen=True)
class POIResult:
    """Points-of-interest query together with the elements it returned"""
    latitude: float
    longitude: float
    radius_m: float
    elements: List[GeoElement] = field(default_factory=list)


@dataclass
class FactorScore:
    """Contribution of one factor to the composite score"""
    name: str
    normalized_value: float  # 0.0 to 1.0
    weight: float
    weighted_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "normalizedValue": self.normalized_value,
            "weight": self.weight,
            "weightedScore": self.weighted_score,
        }


@dataclass
class ScoreReport:
    """Complete livability analysis for one (location, weights) pair"""
    total_score: float  # 0.0 to 1.0 when the weights sum to at most 1
    total_score_percentage: int  # 0-100
    factors: List[FactorScore]
    breakdown: Dict[str, Dict[str, Any]]
    weight_total: float
    level: str
    crime_level: str
    safety_level: Optional[str]
    summary: Dict[str, int]
    radius_m: float
    safety_source: Optional[str] = None
    safety_note: Optional[str] = None
    safety_warning: Optional[str] = None
    safety_estimated: bool = False
    safety_crime_rate: Optional[str] = None
    safety_last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "totalScorePercentage": self.total_score_percentage,
            "level": self.level,
            "weightTotal": self.weight_total,
            "radius": self.radius_m,
            "factors": [factor.to_dict() for factor in self.factors],
            "breakdown": self.breakdown,
            "summary": self.summary,
            "safety": {
                "crimeLevel": self.crime_level,
                "safetyLevel": self.safety_level,
                "source": self.safety_source,
                "note": self.safety_note,
                "warning": self.safety_warning,
                "estimated": self.safety_estimated,
                "crimeRate": self.safety_crime_rate,
                "lastUpdated": self.safety_last_updated,
            },
        }
