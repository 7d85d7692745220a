"""
Merge feed and search results into one deduplicated, provenance-tagged pool.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import urlsplit

from greenwire.models import MergedArticle, MergeResult, Provenance, RawArticle
from greenwire.settings import DEFAULT_BLOCKED_DOMAINS

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dedupe_by_key(items: Iterable[T], key_fn: Callable[[T], Hashable]) -> List[T]:
    seen = set()
    result: List[T] = []
    for item in items:
        key = key_fn(item)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def is_blocked_domain(url: str, blocked_domains: Optional[Sequence[str]] = None) -> bool:
    """True when the URL host equals, or is a subdomain of, a blocked domain."""
    domains = DEFAULT_BLOCKED_DOMAINS if blocked_domains is None else blocked_domains
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def merge_and_dedup(
    feed_articles: Sequence[RawArticle],
    search_articles: Sequence[RawArticle],
    blocked_domains: Optional[Sequence[str]] = None,
) -> MergeResult:
    """
    Feed articles are placed first, so the feed copy survives a URL tie and the
    provenance map (first write wins) tags it `feed`. Empty URLs and blocked
    domains are dropped.
    """
    provenance: Dict[str, Provenance] = {}
    for article in feed_articles:
        provenance.setdefault(article.url, Provenance.FEED)
    for article in search_articles:
        provenance.setdefault(article.url, Provenance.SEARCH)

    blocked: List[str] = []
    candidates: List[RawArticle] = []
    for article in list(feed_articles) + list(search_articles):
        if not article.url:
            continue
        if is_blocked_domain(article.url, blocked_domains):
            blocked.append(article.url)
            continue
        candidates.append(article)

    unique = dedupe_by_key(candidates, lambda article: article.url)
    merged = [MergedArticle(article=article, provenance=provenance[article.url]) for article in unique]

    if blocked:
        hosts = sorted({urlsplit(url).hostname or url for url in blocked})
        logger.info("Blocked %s articles from junk domains: %s", len(blocked), ", ".join(hosts))

    feed_count = sum(1 for article in merged if article.provenance is Provenance.FEED)
    search_count = len(merged) - feed_count
    logger.info(
        "Merged %s feed + %s search articles into %s unique (%s feed, %s search)",
        len(feed_articles),
        len(search_articles),
        len(merged),
        feed_count,
        search_count,
    )
    return MergeResult(
        articles=merged,
        provenance={article.url: article.provenance for article in merged},
        feed_count=feed_count,
        search_count=search_count,
    )
