"""
Severity validation and aggregation. Pure functions; the oracle never decides
the overall score or urgency.
"""
from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Tuple

from greenwire.models import Dimension, PriorScores, SeverityLevel, Urgency, ValidatedScore

logger = logging.getLogger(__name__)

INSUFFICIENT_SCORE = -1
FALLBACK_OVERALL_SCORE = 50
DEFAULT_ANOMALY_THRESHOLD = 25.0

LEVEL_RANGES: Dict[SeverityLevel, Tuple[int, int]] = {
    SeverityLevel.MINIMAL: (0, 25),
    SeverityLevel.MODERATE: (26, 50),
    SeverityLevel.SIGNIFICANT: (51, 75),
    SeverityLevel.SEVERE: (76, 100),
}

# Ecological carries the most weight; the three sum to 1.
DIMENSION_WEIGHTS: Dict[Dimension, Decimal] = {
    Dimension.ECOLOGICAL: Decimal("0.40"),
    Dimension.HEALTH: Decimal("0.35"),
    Dimension.ECONOMIC: Decimal("0.25"),
}

URGENCY_THRESHOLDS = [
    (80, Urgency.BREAKING),
    (60, Urgency.CRITICAL),
    (30, Urgency.MODERATE),
]


def _normalize_level(level: Any) -> Optional[SeverityLevel]:
    if not isinstance(level, str):
        return None
    try:
        return SeverityLevel(level.strip().upper())
    except ValueError:
        return None


def _usable_number(score: Any) -> bool:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return False
    return math.isfinite(score)


def validate_score(level: Any, score: Any) -> ValidatedScore:
    """
    Force a (level, score) pair into the level's allowed range.

    The sentinel score -1 always means INSUFFICIENT_DATA; paired with any other
    level it is flagged as adjusted. A missing or non-numeric score is treated
    the same way and also flagged. Unknown levels fall
    back to MODERATE.
    """
    parsed_level = _normalize_level(level)

    if not _usable_number(score):
        logger.warning("Non-numeric score %r for level %r; marking INSUFFICIENT_DATA", score, level)
        return ValidatedScore(SeverityLevel.INSUFFICIENT_DATA, INSUFFICIENT_SCORE, True)

    if score == INSUFFICIENT_SCORE:
        adjusted = parsed_level is not SeverityLevel.INSUFFICIENT_DATA
        if adjusted:
            logger.warning("Sentinel score -1 paired with level %r; marking INSUFFICIENT_DATA", level)
        return ValidatedScore(SeverityLevel.INSUFFICIENT_DATA, INSUFFICIENT_SCORE, adjusted)

    if parsed_level is SeverityLevel.INSUFFICIENT_DATA:
        logger.warning("INSUFFICIENT_DATA level paired with score %s; forcing score to -1", score)
        return ValidatedScore(SeverityLevel.INSUFFICIENT_DATA, INSUFFICIENT_SCORE, True)

    if parsed_level is None:
        low, high = LEVEL_RANGES[SeverityLevel.MODERATE]
        logger.warning(
            'Unknown severity level "%s", falling back to MODERATE. Valid levels: %s',
            level,
            ", ".join(item.value for item in LEVEL_RANGES),
        )
        return ValidatedScore(SeverityLevel.MODERATE, max(low, min(high, score)), True)

    low, high = LEVEL_RANGES[parsed_level]
    clamped = max(low, min(high, score))
    return ValidatedScore(parsed_level, clamped, clamped != score)


def score_to_level(score: float) -> SeverityLevel:
    if score == INSUFFICIENT_SCORE:
        return SeverityLevel.INSUFFICIENT_DATA
    for level, (low, high) in LEVEL_RANGES.items():
        if low <= score <= high:
            return level
    # fractional scores between bands, e.g. 25.5
    if 0 <= score <= 100:
        for level, (_, high) in LEVEL_RANGES.items():
            if score <= high:
                return level
    logger.warning("score_to_level: score %s is out of range, defaulting to MODERATE", score)
    return SeverityLevel.MODERATE


def compute_overall_score(
    health: Optional[float],
    ecological: Optional[float],
    economic: Optional[float],
) -> int:
    """
    Weighted average over the dimensions that have data, weights renormalized.
    Rounded half-up; 50 when no dimension has data.
    """
    present = []
    for dimension, score in (
        (Dimension.HEALTH, health),
        (Dimension.ECOLOGICAL, ecological),
        (Dimension.ECONOMIC, economic),
    ):
        if _usable_number(score) and score >= 0:
            present.append((Decimal(str(score)), DIMENSION_WEIGHTS[dimension]))

    if not present:
        logger.warning(
            "All dimensions marked as INSUFFICIENT_DATA, using fallback score of %s", FALLBACK_OVERALL_SCORE
        )
        return FALLBACK_OVERALL_SCORE

    total_weight = sum(weight for _, weight in present)
    weighted = sum(score * weight for score, weight in present) / total_weight
    return int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def derive_urgency(overall_score: float) -> Urgency:
    for threshold, urgency in URGENCY_THRESHOLDS:
        if overall_score >= threshold:
            return urgency
    return Urgency.INFORMATIONAL


def detect_anomaly(
    previous: Optional[float],
    new: Optional[float],
    topic_name: str = "",
    dimension: str = "",
    threshold: float = DEFAULT_ANOMALY_THRESHOLD,
) -> bool:
    if previous is None or new is None:
        return False
    if previous == INSUFFICIENT_SCORE or new == INSUFFICIENT_SCORE:
        return False
    delta = abs(new - previous)
    if delta > threshold:
        logger.warning(
            'ANOMALY DETECTED: "%s" %s score jumped %s points (%s -> %s). Manual review recommended.',
            topic_name,
            dimension,
            delta,
            previous,
            new,
        )
        return True
    return False


def detect_topic_anomaly(
    prior: Optional[PriorScores],
    health: Optional[float],
    ecological: Optional[float],
    economic: Optional[float],
    topic_name: str = "",
    threshold: float = DEFAULT_ANOMALY_THRESHOLD,
) -> bool:
    """True if any dimension moved more than `threshold` since the prior snapshot."""
    if prior is None:
        return False
    flags = [
        detect_anomaly(prior.health, health, topic_name, Dimension.HEALTH.value, threshold),
        detect_anomaly(prior.ecological, ecological, topic_name, Dimension.ECOLOGICAL.value, threshold),
        detect_anomaly(prior.economic, economic, topic_name, Dimension.ECONOMIC.value, threshold),
    ]
    return any(flags)
