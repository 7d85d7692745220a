"""
Pass 2: rubric scoring of one topic, turned into a validated snapshot.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from greenwire.errors import OracleError
from greenwire.models import (
    Dimension,
    DimensionResult,
    MergedArticle,
    PriorScores,
    SeverityLevel,
    TopicScoreSnapshot,
)
from greenwire.oracle import Oracle, extract_json
from greenwire.prompts import build_scoring_prompt
from greenwire.schemas import OracleScoreReply
from greenwire.scoring import (
    DEFAULT_ANOMALY_THRESHOLD,
    FALLBACK_OVERALL_SCORE,
    compute_overall_score,
    derive_urgency,
    detect_topic_anomaly,
    validate_score,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "climate"
DEFAULT_REGION = "Global"


def default_snapshot(topic_name: str, raw_response: str = "") -> TopicScoreSnapshot:
    """Neutral snapshot used whenever the oracle reply is unusable."""
    sentence = f"Recent news coverage about {topic_name}."
    neutral = DimensionResult(reasoning=sentence, level=SeverityLevel.MODERATE, score=FALLBACK_OVERALL_SCORE)
    return TopicScoreSnapshot(
        topic_name=topic_name,
        health=neutral,
        ecological=neutral,
        economic=neutral,
        overall_score=FALLBACK_OVERALL_SCORE,
        urgency=derive_urgency(FALLBACK_OVERALL_SCORE),
        anomaly_detected=False,
        summary=sentence,
        category=DEFAULT_CATEGORY,
        region=DEFAULT_REGION,
        keywords=[word for word in topic_name.lower().split() if word],
        raw_response=raw_response,
        is_fallback=True,
    )


def score_topic(
    topic_name: str,
    articles: Sequence[MergedArticle],
    oracle: Oracle,
    prior: Optional[PriorScores] = None,
    anomaly_threshold: float = DEFAULT_ANOMALY_THRESHOLD,
) -> TopicScoreSnapshot:
    prompt = build_scoring_prompt(topic_name, articles)
    try:
        reply = oracle.complete(prompt, json_mode=True)
    except OracleError as exc:
        logger.warning('Scoring oracle call failed for "%s", using defaults: %s', topic_name, exc)
        return default_snapshot(topic_name)

    parsed = extract_json(reply)
    if not isinstance(parsed, dict):
        logger.warning('Scoring oracle returned no JSON for "%s", using defaults', topic_name)
        return default_snapshot(topic_name, raw_response=reply or "")
    try:
        scored = OracleScoreReply.model_validate(parsed)
    except ValidationError as exc:
        logger.warning(
            'Scoring reply for "%s" failed validation, using defaults (%s errors)',
            topic_name,
            exc.error_count(),
        )
        return default_snapshot(topic_name, raw_response=reply or "")

    adjusted: List[Dimension] = []
    results = {}
    for dimension, reasoning, level, score in (
        (Dimension.HEALTH, scored.health_reasoning, scored.health_level, scored.health_score),
        (Dimension.ECOLOGICAL, scored.eco_reasoning, scored.eco_level, scored.eco_score),
        (Dimension.ECONOMIC, scored.econ_reasoning, scored.econ_level, scored.econ_score),
    ):
        validated = validate_score(level, score)
        if validated.adjusted:
            logger.warning(
                'Clamped %s score for "%s": %s -> %s (%s)',
                dimension.value,
                topic_name,
                score,
                validated.score,
                validated.level.value,
            )
            adjusted.append(dimension)
        results[dimension] = DimensionResult(reasoning=reasoning, level=validated.level, score=validated.score)

    health = results[Dimension.HEALTH]
    ecological = results[Dimension.ECOLOGICAL]
    economic = results[Dimension.ECONOMIC]
    overall = compute_overall_score(health.score, ecological.score, economic.score)
    anomaly = detect_topic_anomaly(
        prior,
        health.score,
        ecological.score,
        economic.score,
        topic_name=topic_name,
        threshold=anomaly_threshold,
    )
    return TopicScoreSnapshot(
        topic_name=topic_name,
        health=health,
        ecological=ecological,
        economic=economic,
        overall_score=overall,
        urgency=derive_urgency(overall),
        anomaly_detected=anomaly,
        summary=scored.overall_summary,
        category=scored.category or DEFAULT_CATEGORY,
        region=scored.region or DEFAULT_REGION,
        keywords=list(scored.keywords),
        raw_response=reply,
        adjusted_dimensions=adjusted,
    )
