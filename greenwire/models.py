"""
Core data structures shared by the ingestion and scoring pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class Provenance(str, Enum):
    FEED = "feed"
    SEARCH = "search"


class SeverityLevel(str, Enum):
    MINIMAL = "MINIMAL"
    MODERATE = "MODERATE"
    SIGNIFICANT = "SIGNIFICANT"
    SEVERE = "SEVERE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class Urgency(str, Enum):
    BREAKING = "breaking"
    CRITICAL = "critical"
    MODERATE = "moderate"
    INFORMATIONAL = "informational"


class Dimension(str, Enum):
    HEALTH = "health"
    ECOLOGICAL = "ecological"
    ECONOMIC = "economic"


@dataclass(frozen=True)
class RawArticle:
    """
    One discovered news item, normalized across feed and search sources.
    """

    title: str
    url: str
    source: str
    published_at: str
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class MergedArticle:
    article: RawArticle
    provenance: Provenance

    @property
    def title(self) -> str:
        return self.article.title

    @property
    def url(self) -> str:
        return self.article.url

    @property
    def source(self) -> str:
        return self.article.source

    @property
    def description(self) -> Optional[str]:
        return self.article.description

    @property
    def image_url(self) -> Optional[str]:
        return self.article.image_url

    @property
    def published_at(self) -> str:
        return self.article.published_at


@dataclass(frozen=True)
class Classification:
    article_index: int
    topic_name: str
    is_new: bool


@dataclass(frozen=True)
class ValidatedScore:
    level: SeverityLevel
    score: float
    adjusted: bool


@dataclass(frozen=True)
class DimensionResult:
    reasoning: str
    level: SeverityLevel
    score: float


@dataclass(frozen=True)
class PriorScores:
    health: Optional[float]
    ecological: Optional[float]
    economic: Optional[float]


@dataclass(frozen=True)
class TopicScoreSnapshot:
    """
    One point-in-time scoring result for a topic. Appended to history, never edited.
    """

    topic_name: str
    health: DimensionResult
    ecological: DimensionResult
    economic: DimensionResult
    overall_score: int
    urgency: Urgency
    anomaly_detected: bool
    summary: str
    category: str
    region: str
    keywords: List[str] = field(default_factory=list)
    raw_response: str = ""
    adjusted_dimensions: List[Dimension] = field(default_factory=list)
    is_fallback: bool = False

    def dimension(self, dimension: Dimension) -> DimensionResult:
        return {
            Dimension.HEALTH: self.health,
            Dimension.ECOLOGICAL: self.ecological,
            Dimension.ECONOMIC: self.economic,
        }[dimension]


@dataclass
class TopicState:
    """
    Durable per-topic record. Only the topic state merger writes it.
    """

    name: str
    slug: str
    category: str = "climate"
    region: Optional[str] = None
    current_score: int = 0
    previous_score: int = 0
    urgency: Urgency = Urgency.INFORMATIONAL
    summary: Optional[str] = None
    health_score: Optional[float] = None
    eco_score: Optional[float] = None
    econ_score: Optional[float] = None
    article_count: int = 0
    image_url: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def change(self) -> int:
        return self.current_score - self.previous_score

    def prior_scores(self) -> Optional[PriorScores]:
        if self.health_score is None and self.eco_score is None and self.econ_score is None:
            return None
        return PriorScores(
            health=self.health_score,
            ecological=self.eco_score,
            economic=self.econ_score,
        )


@dataclass
class FeedHealth:
    name: str
    url: str
    status: str
    article_count: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.status == "ok"


@dataclass
class SearchStats:
    raw_count: int = 0
    filtered_count: int = 0
    groups: int = 0
    failed_groups: int = 0


@dataclass
class MergeResult:
    articles: List[MergedArticle]
    provenance: Dict[str, Provenance]
    feed_count: int
    search_count: int


@dataclass
class ClassificationOutcome:
    classifications: List[Classification]
    rejected: int = 0


@dataclass
class PipelineSummary:
    started_at: datetime
    finished_at: Optional[datetime] = None
    topics_processed: int = 0
    articles_added: int = 0
    scores_recorded: int = 0
    feed_articles: int = 0
    search_articles: int = 0
    unique_articles: int = 0
    rejected_articles: int = 0
    clamped_dimensions: int = 0
    fallback_scores: int = 0
    anomalies: int = 0
    failed_topics: List[str] = field(default_factory=list)
    feed_health: List[FeedHealth] = field(default_factory=list)
    search_stats: SearchStats = field(default_factory=SearchStats)
