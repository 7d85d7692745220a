"""
Adapter for the keyword news-search API (GNews v4 compatible schema).
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests
from pydantic import ValidationError

from greenwire.http_client import HttpClient
from greenwire.models import RawArticle, SearchStats
from greenwire.rate_limiter import RateLimiter
from greenwire.schemas import SearchArticle
from greenwire.security import is_configured_key, redact_secrets
from greenwire.settings import DEFAULT_SEARCH_ENDPOINT, DEFAULT_SOURCE_DENYLIST

logger = logging.getLogger(__name__)


def keyword_groups(keywords: Sequence[str], group_size: int = 4) -> List[str]:
    """Batch keywords into OR-joined query strings of at most `group_size` terms."""
    cleaned = [kw.strip() for kw in keywords if kw and kw.strip()]
    size = max(1, group_size)
    return [" OR ".join(cleaned[i : i + size]) for i in range(0, len(cleaned), size)]


class KeywordSearchFetcher:
    """
    Runs one search request per keyword group, sequentially. A failing group is
    logged and counted; the remaining groups still run.
    """

    name = "search"

    def __init__(
        self,
        api_key: Optional[str],
        keywords: Sequence[str],
        group_size: int = 4,
        endpoint: str = DEFAULT_SEARCH_ENDPOINT,
        language: str = "en",
        max_results: int = 10,
        timeout: float = 15.0,
        source_denylist: Optional[Sequence[str]] = None,
        min_interval: float = 1.0,
        http: Optional[HttpClient] = None,
    ) -> None:
        self.api_key = api_key
        self.keywords = list(keywords)
        self.group_size = group_size
        self.endpoint = endpoint
        self.language = language
        self.max_results = max_results
        self.timeout = timeout
        denylist = DEFAULT_SOURCE_DENYLIST if source_denylist is None else source_denylist
        self.source_denylist = [term.lower() for term in denylist if term]
        self.http = http or HttpClient(timeout=timeout)
        self.rate_limiter = RateLimiter(min_interval)

    def fetch(self) -> Tuple[List[RawArticle], SearchStats]:
        stats = SearchStats()
        if not is_configured_key(self.api_key):
            logger.warning("Search API key missing; keyword search disabled for this run")
            return [], stats

        groups = keyword_groups(self.keywords, self.group_size)
        stats.groups = len(groups)
        collected: List[RawArticle] = []
        for query in groups:
            self.rate_limiter.wait()
            items = self._fetch_group(query)
            if items is None:
                stats.failed_groups += 1
                continue
            stats.raw_count += len(items)
            for item in items:
                article = self._adapt(item)
                if article is not None:
                    collected.append(article)

        stats.filtered_count = len(collected)
        logger.info(
            "Keyword search: %s groups (%s failed), %s raw results, %s kept",
            stats.groups,
            stats.failed_groups,
            stats.raw_count,
            stats.filtered_count,
        )
        return collected, stats

    def _fetch_group(self, query: str) -> Optional[List[Any]]:
        """Raw result entries for one group, or None when the group failed."""
        params = {
            "q": query,
            "lang": self.language,
            "max": self.max_results,
            "sortby": "publishedAt",
            "apikey": self.api_key,
        }
        try:
            response = self.http.get(self.endpoint, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error('Failed to fetch news for "%s": %s', query, redact_secrets(str(exc)))
            return None

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        error = _first_error(payload.get("errors"))
        if error or response.status_code >= 400:
            message = redact_secrets(error or f"HTTP {response.status_code}")
            if response.status_code == 401:
                logger.error('Search auth failure for "%s": %s', query, message)
            elif response.status_code == 429:
                logger.error('Search rate limit for "%s": %s', query, message)
            else:
                logger.error('Search error for "%s": %s', query, message)
            return None

        articles = payload.get("articles") or []
        return articles if isinstance(articles, list) else []

    def _adapt(self, item: Any) -> Optional[RawArticle]:
        if not isinstance(item, dict):
            return None
        try:
            parsed = SearchArticle.model_validate(item)
        except ValidationError:
            logger.debug("Skipping malformed search result: %s", item)
            return None
        if not (parsed.title and parsed.description and parsed.url and parsed.published_at):
            return None
        source_name = (parsed.source.name if parsed.source else None) or ""
        if self._is_denied(source_name, parsed.url):
            logger.debug("Dropping search result from denied source %s: %s", source_name, parsed.url)
            return None
        return RawArticle(
            title=parsed.title,
            url=parsed.url,
            source=source_name or "news",
            published_at=parsed.published_at,
            description=parsed.description,
            image_url=parsed.image,
        )

    def _is_denied(self, source_name: str, url: str) -> bool:
        source = source_name.lower()
        try:
            host = (urlsplit(url).hostname or "").lower()
        except ValueError:
            host = ""
        return any(term in source or term in host for term in self.source_denylist)


def _first_error(errors: Any) -> Optional[str]:
    if not errors:
        return None
    if isinstance(errors, dict):
        return str(next(iter(errors.values())))
    if isinstance(errors, (list, tuple)):
        return str(errors[0])
    return str(errors)
