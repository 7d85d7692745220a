"""
Feed fetcher: pulls every configured syndication feed concurrently and reports per-feed health.
"""
from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import requests

from greenwire.errors import FetchError
from greenwire.http_client import HttpClient
from greenwire.ingest.feed_parser import ParsedFeed, feed_hostname, parse_feed
from greenwire.models import FeedHealth, RawArticle
from greenwire.security import redact_secrets

logger = logging.getLogger(__name__)


@dataclass
class _FeedOutcome:
    url: str
    duration_ms: int
    parsed: Optional[ParsedFeed] = None
    error: Optional[str] = None


class FeedFetcher:
    """
    One failing feed (timeout, HTTP error, malformed document) never affects the others.
    """

    name = "rss"

    def __init__(
        self,
        feeds: Sequence[str],
        timeout: float = 15.0,
        max_workers: int = 8,
        user_agent: Optional[str] = None,
        http: Optional[HttpClient] = None,
    ) -> None:
        self.feeds = [url.strip() for url in feeds if url and url.strip()]
        self.timeout = timeout
        self.max_workers = max_workers
        self.http = http or HttpClient(timeout=timeout, user_agent=user_agent)

    def fetch(self) -> Tuple[List[RawArticle], List[FeedHealth]]:
        if not self.feeds:
            logger.warning("No feeds configured; skipping feed fetch")
            return [], []

        outcomes: Dict[str, _FeedOutcome] = {}
        workers = max(1, min(self.max_workers, len(self.feeds)))
        # Feeds beyond the first `workers` queue behind a slot, so the wait covers every wave.
        budget = self.timeout * math.ceil(len(self.feeds) / workers)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feed")
        future_map = {executor.submit(self._fetch_one, url): url for url in self.feeds}
        try:
            for future in as_completed(future_map, timeout=budget):
                url = future_map[future]
                try:
                    outcomes[url] = future.result()
                except Exception as exc:  # pragma: no cover - _fetch_one already captures errors
                    outcomes[url] = _FeedOutcome(url=url, duration_ms=0, error=str(exc))
        except FuturesTimeoutError:
            for url in self.feeds:
                if url not in outcomes:
                    logger.error("Timed out fetching RSS feed %s after %.1fs", url, budget)
                    outcomes[url] = _FeedOutcome(url=url, duration_ms=int(budget * 1000), error="timeout")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        articles: List[RawArticle] = []
        health: List[FeedHealth] = []
        for url in self.feeds:
            outcome = outcomes[url]
            if outcome.parsed is not None:
                articles.extend(outcome.parsed.articles)
                health.append(
                    FeedHealth(
                        name=outcome.parsed.name,
                        url=url,
                        status="ok",
                        article_count=len(outcome.parsed.articles),
                        duration_ms=outcome.duration_ms,
                    )
                )
            else:
                health.append(
                    FeedHealth(
                        name=feed_hostname(url),
                        url=url,
                        status="error",
                        article_count=0,
                        duration_ms=outcome.duration_ms,
                        error=outcome.error,
                    )
                )
        return articles, health

    def _fetch_one(self, url: str) -> _FeedOutcome:
        start = time.monotonic()
        try:
            response = self.http.get(url, timeout=self.timeout)
            if response.status_code >= 400:
                raise FetchError(f"HTTP {response.status_code}")
            parsed = parse_feed(response.content, url)
        except (requests.RequestException, FetchError) as exc:
            error = redact_secrets(str(exc)) or exc.__class__.__name__
            logger.error("Failed to fetch RSS feed %s: %s", url, error)
            return _FeedOutcome(url=url, duration_ms=_elapsed_ms(start), error=error)
        except Exception as exc:
            logger.exception("Unexpected error parsing RSS feed %s", url)
            return _FeedOutcome(url=url, duration_ms=_elapsed_ms(start), error=str(exc) or exc.__class__.__name__)
        return _FeedOutcome(url=url, duration_ms=_elapsed_ms(start), parsed=parsed)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
