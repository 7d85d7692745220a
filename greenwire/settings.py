"""
Centralised settings for the pipeline (env-first, YAML for longer lists).

One PipelineSettings object is built at process start and handed to every
component; nothing below this module reads the environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from greenwire.config_loader import load_sources_config
from greenwire.errors import ConfigurationError
from greenwire.security import is_configured_key

logger = logging.getLogger(__name__)

DEFAULT_FEEDS = [
    "https://www.theguardian.com/uk/environment/rss",
    "https://grist.org/feed/",
    "https://www.carbonbrief.org/feed/",
    "https://insideclimatenews.org/feed/",
    "https://www.eia.gov/rss/todayinenergy.xml",
    "https://www.eea.europa.eu/en/newsroom/rss-feeds/eeas-press-releases-rss",
    "https://www.ecowatch.com/feed",
    "https://feeds.npr.org/1025/rss.xml",
    "https://www.downtoearth.org.in/feed",
    "https://india.mongabay.com/feed/",
]

DEFAULT_KEYWORDS = ["climate change", "pollution", "deforestation", "wildfire", "flood"]

# Q&A / educational mills rejected before classification.
DEFAULT_BLOCKED_DOMAINS = ["lifesciencesworld.com", "alltoc.com"]

# Substrings of search-result source names or hosts that are never news.
DEFAULT_SOURCE_DENYLIST = ["bringatrailer", "auction", "ebay"]

DEFAULT_ORACLE_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_ORACLE_MODEL = "meta-llama/llama-3.1-8b-instruct:free"
DEFAULT_SEARCH_ENDPOINT = "https://gnews.io/api/v4/search"


@dataclass
class PipelineSettings:
    oracle_api_key: str = ""
    oracle_model: str = DEFAULT_ORACLE_MODEL
    oracle_endpoint: str = DEFAULT_ORACLE_ENDPOINT
    oracle_timeout_seconds: float = 60.0
    search_api_key: str = ""
    search_endpoint: str = DEFAULT_SEARCH_ENDPOINT
    search_language: str = "en"
    search_max_results: int = 10
    search_timeout_seconds: float = 15.0
    search_min_interval_seconds: float = 1.0
    feeds: List[str] = field(default_factory=lambda: list(DEFAULT_FEEDS))
    feed_timeout_seconds: float = 15.0
    feed_workers: int = 8
    keywords: List[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    keyword_group_size: int = 4
    blocked_domains: List[str] = field(default_factory=lambda: list(DEFAULT_BLOCKED_DOMAINS))
    source_denylist: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_DENYLIST))
    classification_batch_size: int = 10
    anomaly_threshold: float = 25.0
    clamp_warning_ratio: float = 0.3
    database_url: str = "sqlite:///greenwire.db"
    user_agent: str = "greenwire/1.0"

    def require_oracle_credentials(self) -> None:
        if not is_configured_key(self.oracle_api_key):
            raise ConfigurationError("OPENROUTER_API_KEY is not configured; refusing to start the pipeline")
        if not self.oracle_model.strip():
            raise ConfigurationError("OPENROUTER_MODEL is empty")


def _int_value(key: str, raw: Any, default: int) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except (TypeError, ValueError):
        logger.warning("Invalid int value for %s=%s; using default %s", key, raw, default)
        return default


def _float_value(key: str, raw: Any, default: float) -> float:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
        return value if value > 0 else default
    except (TypeError, ValueError):
        logger.warning("Invalid float value for %s=%s; using default %s", key, raw, default)
        return default


def _split_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def _list_value(raw: Any) -> List[str]:
    if isinstance(raw, str):
        return _split_list(raw)
    if isinstance(raw, list):
        return [str(item).strip() for item in raw if isinstance(item, str) and item.strip()]
    return []


# (env var, YAML key under `settings:`, attribute)
_INT_FIELDS = [
    ("GREENWIRE_CLASSIFICATION_BATCH_SIZE", "classification_batch_size", "classification_batch_size"),
    ("GREENWIRE_KEYWORD_GROUP_SIZE", "keyword_group_size", "keyword_group_size"),
    ("GREENWIRE_FEED_WORKERS", "feed_workers", "feed_workers"),
    ("GREENWIRE_SEARCH_MAX_RESULTS", "search_max_results", "search_max_results"),
]
_FLOAT_FIELDS = [
    ("GREENWIRE_FEED_TIMEOUT", "feed_timeout_seconds", "feed_timeout_seconds"),
    ("GREENWIRE_SEARCH_TIMEOUT", "search_timeout_seconds", "search_timeout_seconds"),
    ("GREENWIRE_ORACLE_TIMEOUT", "oracle_timeout_seconds", "oracle_timeout_seconds"),
    ("GREENWIRE_ANOMALY_THRESHOLD", "anomaly_threshold", "anomaly_threshold"),
    ("GREENWIRE_CLAMP_WARNING_RATIO", "clamp_warning_ratio", "clamp_warning_ratio"),
]


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> PipelineSettings:
    """
    Build settings from `.env`, the optional YAML sources file and the environment.

    Environment variables win over YAML values, which win over built-in defaults.
    """
    if env is None:
        load_dotenv(os.getenv("GREENWIRE_DOTENV", ".env"))
        env = os.environ
    if config_path is None and env.get("GREENWIRE_CONFIG"):
        config_path = Path(env["GREENWIRE_CONFIG"])

    config: Dict[str, Any] = load_sources_config(config_path)
    overrides: Dict[str, Any] = config.get("settings") or {}
    settings = PipelineSettings()

    settings.feeds = _split_list(env.get("RSS_FEEDS")) or _list_value(config.get("feeds")) or settings.feeds
    settings.keywords = (
        _split_list(env.get("BATCH_KEYWORDS")) or _list_value(config.get("keywords")) or settings.keywords
    )
    if "blocked_domains" in config:
        settings.blocked_domains = [d.lower() for d in _list_value(config.get("blocked_domains"))]
    if "source_denylist" in config:
        settings.source_denylist = [d.lower() for d in _list_value(config.get("source_denylist"))]

    for env_key, yaml_key, attr in _INT_FIELDS:
        value = _int_value(yaml_key, overrides.get(yaml_key), getattr(settings, attr))
        setattr(settings, attr, _int_value(env_key, env.get(env_key), value))
    for env_key, yaml_key, attr in _FLOAT_FIELDS:
        value = _float_value(yaml_key, overrides.get(yaml_key), getattr(settings, attr))
        setattr(settings, attr, _float_value(env_key, env.get(env_key), value))

    settings.oracle_api_key = env.get("OPENROUTER_API_KEY", "") or str(overrides.get("oracle_api_key") or "")
    settings.oracle_model = env.get("OPENROUTER_MODEL") or overrides.get("oracle_model") or settings.oracle_model
    settings.oracle_endpoint = (
        env.get("OPENROUTER_ENDPOINT") or overrides.get("oracle_endpoint") or settings.oracle_endpoint
    )
    settings.search_api_key = env.get("GNEWS_API_KEY", "") or str(overrides.get("search_api_key") or "")
    settings.database_url = env.get("DATABASE_URL") or overrides.get("database_url") or settings.database_url
    return settings
