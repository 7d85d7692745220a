"""
Pydantic models for payloads received from external services.
These validate untrusted wire data before it is adapted to the core dataclasses.
"""
from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, field_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SearchSource(_WireModel):
    name: Optional[str] = None
    url: Optional[str] = None


class SearchArticle(_WireModel):
    """One entry of the keyword search API's `articles` array."""

    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    image: Optional[str] = None
    published_at: Optional[str] = None
    source: Optional[SearchSource] = None

    @field_validator("title", "description", "url", "image", "published_at", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        return value.strip() or None


class OracleClassification(_WireModel):
    article_index: StrictInt
    topic_name: str
    is_new: bool = False

    @field_validator("topic_name")
    @classmethod
    def _topic_name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("topicName must not be empty")
        return value


Numeric = Union[StrictInt, StrictFloat]


class OracleScoreReply(_WireModel):
    """
    Rubric reply for one topic. All three numeric scores are required;
    everything else falls back to a neutral value.
    """

    health_reasoning: str = ""
    health_level: str = ""
    health_score: Numeric
    eco_reasoning: str = ""
    eco_level: str = ""
    eco_score: Numeric
    econ_reasoning: str = ""
    econ_level: str = ""
    econ_score: Numeric
    overall_summary: str = ""
    category: str = ""
    region: str = ""
    keywords: List[str] = []

    @field_validator(
        "health_reasoning",
        "health_level",
        "eco_reasoning",
        "eco_level",
        "econ_reasoning",
        "econ_level",
        "overall_summary",
        "category",
        "region",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else str(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
