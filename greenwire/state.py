"""
Merge a scoring snapshot into the durable per-topic state.
"""
from __future__ import annotations

import hashlib
import logging
import re
import unicodedata
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from greenwire.models import MergedArticle, TopicScoreSnapshot, TopicState
from greenwire.store import TopicStore

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """`"Amazon Deforestation"` -> `amazon-deforestation`."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM_RE.sub("-", ascii_name.lower()).strip("-")
    if not slug:
        slug = "topic-" + hashlib.sha256(name.encode("utf-8")).hexdigest()[:8]
    return slug


def merge_keywords(existing: Iterable[str], incoming: Iterable[str]) -> List[str]:
    """Lower-cased union, first occurrence order kept. Keywords are never removed."""
    merged: List[str] = []
    seen = set()
    for keyword in list(existing) + list(incoming):
        if not isinstance(keyword, str):
            continue
        normalized = keyword.strip().lower()
        if normalized and normalized not in seen:
            seen.add(normalized)
            merged.append(normalized)
    return merged


def first_image(articles: Sequence[MergedArticle]) -> Optional[str]:
    return next((article.image_url for article in articles if article.image_url), None)


def merge_topic_state(
    snapshot: TopicScoreSnapshot,
    current: Optional[TopicState],
    article_count: int,
    image_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TopicState:
    """
    Pure merge. A new topic starts with previous_score 0; an existing one rotates
    current_score into previous_score. The input state is not modified.
    """
    now = now or datetime.now(timezone.utc)
    if current is None:
        return TopicState(
            name=snapshot.topic_name,
            slug=slugify(snapshot.topic_name),
            category=snapshot.category,
            region=snapshot.region,
            current_score=snapshot.overall_score,
            previous_score=0,
            urgency=snapshot.urgency,
            summary=snapshot.summary,
            health_score=snapshot.health.score,
            eco_score=snapshot.ecological.score,
            econ_score=snapshot.economic.score,
            article_count=article_count,
            image_url=image_url,
            keywords=merge_keywords([], snapshot.keywords),
            updated_at=now,
        )

    return replace(
        current,
        category=snapshot.category,
        region=snapshot.region,
        previous_score=current.current_score,
        current_score=snapshot.overall_score,
        urgency=snapshot.urgency,
        summary=snapshot.summary,
        health_score=snapshot.health.score,
        eco_score=snapshot.ecological.score,
        econ_score=snapshot.economic.score,
        article_count=current.article_count + article_count,
        image_url=image_url if image_url is not None else current.image_url,
        keywords=merge_keywords(current.keywords, snapshot.keywords),
        updated_at=now,
    )


@dataclass
class MergeOutcome:
    state: TopicState
    articles_added: int


class TopicStateMerger:
    """Reads, merges and persists one topic at a time."""

    def __init__(self, store: TopicStore) -> None:
        self.store = store

    def current_state(self, topic_name: str) -> Optional[TopicState]:
        return self.store.get_topic(slugify(topic_name))

    def apply(
        self,
        snapshot: TopicScoreSnapshot,
        articles: Sequence[MergedArticle],
        now: Optional[datetime] = None,
    ) -> MergeOutcome:
        now = now or datetime.now(timezone.utc)
        current = self.current_state(snapshot.topic_name)
        state = merge_topic_state(snapshot, current, len(articles), first_image(articles), now)
        added = self.store.save_topic(state, snapshot, articles, recorded_at=now)
        logger.info(
            'Topic "%s": score %s -> %s (%s), %s new articles',
            state.name,
            state.previous_score,
            state.current_score,
            state.urgency.value,
            added,
        )
        return MergeOutcome(state=state, articles_added=added)
