"""
Pass 1: filter out non-environmental articles and group the rest into topics.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError

from greenwire.errors import OracleError
from greenwire.models import Classification, ClassificationOutcome, MergedArticle
from greenwire.oracle import Oracle, extract_json
from greenwire.prompts import build_classification_prompt
from greenwire.schemas import OracleClassification

logger = logging.getLogger(__name__)

RAW_REPLY_LOG_LIMIT = 1000


def classify_articles(
    articles: Sequence[MergedArticle],
    existing_topics: Sequence[Tuple[str, Sequence[str]]],
    oracle: Oracle,
    batch_size: int = 10,
) -> ClassificationOutcome:
    """
    Classify `articles` in sub-batches, one oracle call each, run sequentially.

    Returned indices refer to positions in `articles`. A sub-batch whose reply
    cannot be used contributes nothing; this function does not raise.
    """
    known = {name.lower() for name, _ in existing_topics}
    prompt_topics: List[Tuple[str, Sequence[str]]] = list(existing_topics)
    outcome = ClassificationOutcome(classifications=[])
    assigned: Set[int] = set()
    size = max(1, batch_size)

    for offset in range(0, len(articles), size):
        batch = articles[offset : offset + size]
        parsed = _ask(oracle, batch, prompt_topics)
        if parsed is None:
            logger.warning("Skipping %s articles due to classification failure", len(batch))
            continue

        for entry in parsed["classifications"]:
            try:
                item = OracleClassification.model_validate(entry)
            except ValidationError:
                logger.warning("Ignoring malformed classification entry: %s", entry)
                continue
            if not 0 <= item.article_index < len(batch):
                logger.warning(
                    "Ignoring classification for out-of-range article index %s (batch of %s)",
                    item.article_index,
                    len(batch),
                )
                continue
            index = offset + item.article_index
            if index in assigned:
                logger.debug("Article %s already classified; ignoring duplicate entry", index)
                continue
            assigned.add(index)
            outcome.classifications.append(
                Classification(
                    article_index=index,
                    topic_name=item.topic_name,
                    is_new=item.topic_name.lower() not in known,
                )
            )
            if item.topic_name.lower() not in {name.lower() for name, _ in prompt_topics}:
                prompt_topics.append((item.topic_name, []))

        outcome.rejected += _log_rejections(parsed, batch)

    logger.info(
        "Classified %s of %s articles (%s rejected)",
        len(outcome.classifications),
        len(articles),
        outcome.rejected,
    )
    if articles:
        kept = len(articles) - outcome.rejected
        logger.info(
            "Relevance rate: %.1f%% (%s/%s articles)",
            kept / len(articles) * 100,
            kept,
            len(articles),
        )
    return outcome


def _ask(
    oracle: Oracle,
    batch: Sequence[MergedArticle],
    topics: Sequence[Tuple[str, Sequence[str]]],
) -> Optional[Dict[str, Any]]:
    prompt = build_classification_prompt(batch, topics)
    try:
        reply = oracle.complete(prompt, json_mode=False)
    except OracleError as exc:
        logger.error("Classification oracle call failed: %s", exc)
        return None

    parsed = extract_json(reply)
    if not isinstance(parsed, dict) or not isinstance(parsed.get("classifications"), list):
        logger.error("Classification oracle failed to return valid JSON")
        logger.error("Oracle reply was: %s", (reply or "")[:RAW_REPLY_LOG_LIMIT])
        return None
    return parsed


def _log_rejections(parsed: Dict[str, Any], batch: Sequence[MergedArticle]) -> int:
    rejected = parsed.get("rejected")
    if not isinstance(rejected, list):
        return 0
    reasons = parsed.get("rejectionReasons")
    if not isinstance(reasons, list):
        reasons = []

    count = 0
    for position, index in enumerate(rejected):
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(batch):
            continue
        count += 1
        title = batch[index].title
        if len(title) > 60:
            title = title[:60] + "..."
        reason = reasons[position] if position < len(reasons) else "no reason given"
        logger.info('Rejected [%s] "%s" (%s)', index, title, reason)
    return count
