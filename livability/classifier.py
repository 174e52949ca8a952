"""
Qualitative levels for composite scores, crime and safety indices
"""
from typing import Optional, Sequence, Tuple

# (minimum score, level), evaluated highest-first
SCORE_LEVELS: Sequence[Tuple[float, str]] = (
    (0.8, "Excellent"),
    (0.6, "Good"),
    (0.4, "Fair"),
    (0.2, "Poor"),
)

# (maximum index, level), evaluated lowest-first
CRIME_LEVELS: Sequence[Tuple[float, str]] = (
    (20, "Very Low"),
    (40, "Low"),
    (60, "Moderate"),
    (80, "High"),
)

SAFETY_LEVELS: Sequence[Tuple[float, str]] = (
    (80, "Very Safe"),
    (60, "Safe"),
    (40, "Moderate"),
    (20, "Unsafe"),
)


def get_score_level(score: float) -> str:
    """
    Get level (Excellent/Good/Fair/Poor/Very Poor) for a 0-1 score

    Args:
        score: Composite or per-factor score

    Returns:
        Level label
    """
    for minimum, level in SCORE_LEVELS:
        if score >= minimum:
            return level
    return "Very Poor"


def get_crime_level(crime_index: float) -> str:
    """Get level (Very Low ... Very High) for a 0-100 crime index"""
    for maximum, level in CRIME_LEVELS:
        if crime_index <= maximum:
            return level
    return "Very High"


def get_safety_level(safety_index: Optional[float]) -> Optional[str]:
    """Get level (Very Safe ... Very Unsafe); None when no safety index was reported"""
    if safety_index is None:
        return None
    for minimum, level in SAFETY_LEVELS:
        if safety_index >= minimum:
            return level
    return "Very Unsafe"
