"""
Durable topic state: topics, their articles, score history and keywords.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine, make_url

from greenwire.errors import ConfigurationError
from greenwire.models import MergedArticle, TopicScoreSnapshot, TopicState, Urgency

logger = logging.getLogger(__name__)

metadata = MetaData()

topics_table = Table(
    "topics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("slug", String, nullable=False, unique=True),
    Column("category", String, default="climate"),
    Column("region", String, nullable=True),
    Column("current_score", Integer, default=0),
    Column("previous_score", Integer, default=0),
    Column("urgency", String, default=Urgency.INFORMATIONAL.value, index=True),
    Column("impact_summary", Text, nullable=True),
    Column("image_url", String, nullable=True),
    Column("article_count", Integer, default=0),
    Column("health_score", Float, nullable=True),
    Column("eco_score", Float, nullable=True),
    Column("econ_score", Float, nullable=True),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

articles_table = Table(
    "articles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("topic_id", Integer, ForeignKey("topics.id"), nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("url", String, nullable=False, unique=True),
    Column("source", String, nullable=True),
    Column("summary", Text, nullable=True),
    Column("image_url", String, nullable=True),
    Column("source_type", String, default="unknown"),
    Column("published_at", String, nullable=True),
    Column("fetched_at", DateTime(timezone=True)),
)

score_history_table = Table(
    "score_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("topic_id", Integer, ForeignKey("topics.id"), nullable=False, index=True),
    Column("score", Integer, nullable=False),
    Column("health_score", Float),
    Column("eco_score", Float),
    Column("econ_score", Float),
    Column("health_level", String),
    Column("eco_level", String),
    Column("econ_level", String),
    Column("health_reasoning", Text),
    Column("eco_reasoning", Text),
    Column("econ_reasoning", Text),
    Column("overall_summary", Text),
    Column("raw_response", Text),
    Column("anomaly_detected", Boolean, default=False),
    Column("recorded_at", DateTime(timezone=True), index=True),
)

topic_keywords_table = Table(
    "topic_keywords",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("topic_id", Integer, ForeignKey("topics.id"), nullable=False, index=True),
    Column("keyword", String, nullable=False),
    UniqueConstraint("topic_id", "keyword", name="uq_topic_keyword"),
)

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class TopicStore:
    """
    SQLite or PostgreSQL via SQLAlchemy Core. `save_topic` writes one topic's
    whole update in a single transaction.
    """

    def __init__(self, database_url: str = "sqlite:///greenwire.db", engine: Optional[Engine] = None) -> None:
        if engine is None:
            url = make_url(database_url)
            if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(url, future=True)
        if engine.dialect.name not in _INSERTS:
            raise ConfigurationError(f"Unsupported database backend: {engine.dialect.name}")
        self.engine = engine
        self._insert = _INSERTS[engine.dialect.name]
        metadata.create_all(self.engine)
        logger.debug("Topic store ready at %s", engine.url.render_as_string(hide_password=True))

    def list_topics(self) -> List[TopicState]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(topics_table).order_by(topics_table.c.id)).mappings().all()
            return [self._to_state(conn, row) for row in rows]

    def get_topic(self, slug: str) -> Optional[TopicState]:
        with self.engine.connect() as conn:
            row = conn.execute(select(topics_table).where(topics_table.c.slug == slug)).mappings().first()
            return self._to_state(conn, row) if row else None

    def score_history(self, slug: str) -> List[Dict[str, Any]]:
        stmt = (
            select(score_history_table)
            .join(topics_table, topics_table.c.id == score_history_table.c.topic_id)
            .where(topics_table.c.slug == slug)
            .order_by(score_history_table.c.id)
        )
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def articles_for(self, slug: str) -> List[Dict[str, Any]]:
        stmt = (
            select(articles_table)
            .join(topics_table, topics_table.c.id == articles_table.c.topic_id)
            .where(topics_table.c.slug == slug)
            .order_by(articles_table.c.id)
        )
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def save_topic(
        self,
        state: TopicState,
        snapshot: TopicScoreSnapshot,
        articles: Sequence[MergedArticle],
        recorded_at: Optional[datetime] = None,
    ) -> int:
        """
        Upsert the topic row, append a history row, insert new articles and
        keywords. Returns the number of articles actually inserted; `state.id`
        is set on return.
        """
        now = recorded_at or datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            topic_id = self._upsert_topic(conn, state, now)
            conn.execute(
                score_history_table.insert().values(
                    topic_id=topic_id,
                    score=snapshot.overall_score,
                    health_score=snapshot.health.score,
                    eco_score=snapshot.ecological.score,
                    econ_score=snapshot.economic.score,
                    health_level=snapshot.health.level.value,
                    eco_level=snapshot.ecological.level.value,
                    econ_level=snapshot.economic.level.value,
                    health_reasoning=snapshot.health.reasoning,
                    eco_reasoning=snapshot.ecological.reasoning,
                    econ_reasoning=snapshot.economic.reasoning,
                    overall_summary=snapshot.summary,
                    raw_response=snapshot.raw_response,
                    anomaly_detected=snapshot.anomaly_detected,
                    recorded_at=now,
                )
            )

            inserted = 0
            for article in articles:
                stmt = self._insert(articles_table).values(
                    topic_id=topic_id,
                    title=article.title,
                    url=article.url,
                    source=article.source,
                    summary=article.description,
                    image_url=article.image_url,
                    source_type=article.provenance.value,
                    published_at=article.published_at,
                    fetched_at=now,
                )
                result = conn.execute(stmt.on_conflict_do_nothing(index_elements=["url"]))
                inserted += max(result.rowcount or 0, 0)

            for keyword in state.keywords:
                stmt = self._insert(topic_keywords_table).values(topic_id=topic_id, keyword=keyword)
                conn.execute(stmt.on_conflict_do_nothing(index_elements=["topic_id", "keyword"]))

        state.id = topic_id
        return inserted

    def _upsert_topic(self, conn: Connection, state: TopicState, now: datetime) -> int:
        values = {
            "name": state.name,
            "slug": state.slug,
            "category": state.category,
            "region": state.region,
            "current_score": state.current_score,
            "previous_score": state.previous_score,
            "urgency": state.urgency.value,
            "impact_summary": state.summary,
            "image_url": state.image_url,
            "article_count": state.article_count,
            "health_score": state.health_score,
            "eco_score": state.eco_score,
            "econ_score": state.econ_score,
            "updated_at": state.updated_at or now,
        }
        if state.id is not None:
            conn.execute(update(topics_table).where(topics_table.c.id == state.id).values(**values))
            return state.id
        result = conn.execute(topics_table.insert().values(created_at=now, **values))
        return result.inserted_primary_key[0]

    @staticmethod
    def _to_state(conn: Connection, row: Any) -> TopicState:
        keywords = conn.execute(
            select(topic_keywords_table.c.keyword)
            .where(topic_keywords_table.c.topic_id == row["id"])
            .order_by(topic_keywords_table.c.id)
        ).scalars().all()
        return TopicState(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            category=row["category"] or "climate",
            region=row["region"],
            current_score=row["current_score"] or 0,
            previous_score=row["previous_score"] or 0,
            urgency=Urgency(row["urgency"] or Urgency.INFORMATIONAL.value),
            summary=row["impact_summary"],
            health_score=row["health_score"],
            eco_score=row["eco_score"],
            econ_score=row["econ_score"],
            article_count=row["article_count"] or 0,
            image_url=row["image_url"],
            keywords=list(keywords),
            updated_at=row["updated_at"],
        )
