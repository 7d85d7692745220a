"""
Batch orchestration: fetch, merge, classify, score and persist in one run.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from greenwire.adapters.rss import FeedFetcher
from greenwire.adapters.search import KeywordSearchFetcher
from greenwire.classification import classify_articles
from greenwire.dedupe import merge_and_dedup
from greenwire.models import FeedHealth, MergedArticle, PipelineSummary, RawArticle, SearchStats
from greenwire.oracle import OpenRouterOracle, Oracle
from greenwire.settings import PipelineSettings
from greenwire.state import TopicStateMerger, slugify
from greenwire.status import log_feed_health
from greenwire.store import TopicStore
from greenwire.topic_scoring import score_topic

logger = logging.getLogger(__name__)


class BatchPipeline:
    """
    One end-to-end batch run. The two fetchers run concurrently; classification
    and per-topic scoring run sequentially. Only ConfigurationError escapes `run`.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        oracle: Optional[Oracle] = None,
        store: Optional[TopicStore] = None,
        feed_fetcher: Optional[FeedFetcher] = None,
        search_fetcher: Optional[KeywordSearchFetcher] = None,
    ) -> None:
        self.settings = settings
        self.oracle = oracle
        self.store = store
        self.feed_fetcher = feed_fetcher or FeedFetcher(
            settings.feeds,
            timeout=settings.feed_timeout_seconds,
            max_workers=settings.feed_workers,
            user_agent=settings.user_agent,
        )
        self.search_fetcher = search_fetcher or KeywordSearchFetcher(
            api_key=settings.search_api_key,
            keywords=settings.keywords,
            group_size=settings.keyword_group_size,
            endpoint=settings.search_endpoint,
            language=settings.search_language,
            max_results=settings.search_max_results,
            timeout=settings.search_timeout_seconds,
            source_denylist=settings.source_denylist,
            min_interval=settings.search_min_interval_seconds,
        )

    def _resolve_oracle(self) -> Oracle:
        if self.oracle is None:
            self.settings.require_oracle_credentials()
            self.oracle = OpenRouterOracle(
                api_key=self.settings.oracle_api_key,
                model=self.settings.oracle_model,
                endpoint=self.settings.oracle_endpoint,
                timeout=self.settings.oracle_timeout_seconds,
            )
        return self.oracle

    def run(self) -> PipelineSummary:
        oracle = self._resolve_oracle()
        if self.store is None:
            self.store = TopicStore(self.settings.database_url)
        summary = PipelineSummary(started_at=datetime.now(timezone.utc))

        feed_articles, feed_health, search_articles, search_stats = self._fetch_all()
        summary.feed_health = feed_health
        summary.search_stats = search_stats
        log_feed_health(feed_health)

        merged = merge_and_dedup(feed_articles, search_articles, self.settings.blocked_domains)
        summary.feed_articles = len(feed_articles)
        summary.search_articles = len(search_articles)
        summary.unique_articles = len(merged.articles)
        if not feed_articles and search_articles:
            logger.warning("Feed fetch returned 0 articles while keyword search returned %s", len(search_articles))
        elif feed_articles and not search_articles:
            logger.warning("Keyword search returned 0 articles while feeds returned %s", len(feed_articles))

        if not merged.articles:
            logger.warning("No articles to process this run")
            return self._finish(summary)

        try:
            existing = self.store.list_topics()
        except SQLAlchemyError:
            logger.exception("Could not load existing topics; aborting this run")
            return self._finish(summary)

        outcome = classify_articles(
            merged.articles,
            [(topic.name, topic.keywords) for topic in existing],
            oracle,
            batch_size=self.settings.classification_batch_size,
        )
        summary.rejected_articles = outcome.rejected

        groups = self._group_by_topic(merged.articles, outcome.classifications, [t.name for t in existing])
        merger = TopicStateMerger(self.store)
        scored_topics = 0
        for topic_name, articles in groups.items():
            try:
                current = merger.current_state(topic_name)
                snapshot = score_topic(
                    topic_name,
                    articles,
                    oracle,
                    prior=current.prior_scores() if current else None,
                    anomaly_threshold=self.settings.anomaly_threshold,
                )
                scored_topics += 1
                summary.clamped_dimensions += len(snapshot.adjusted_dimensions)
                summary.fallback_scores += int(snapshot.is_fallback)
                summary.anomalies += int(snapshot.anomaly_detected)
                result = merger.apply(snapshot, articles)
            except SQLAlchemyError:
                logger.exception('Failed to persist topic "%s"; skipping it', topic_name)
                summary.failed_topics.append(topic_name)
                continue
            summary.topics_processed += 1
            summary.scores_recorded += 1
            summary.articles_added += result.articles_added

        total_dimensions = scored_topics * 3
        if total_dimensions and summary.clamped_dimensions / total_dimensions > self.settings.clamp_warning_ratio:
            logger.warning(
                "Clamped %s of %s dimension scores this run; the scoring prompt may need recalibration",
                summary.clamped_dimensions,
                total_dimensions,
            )
        return self._finish(summary)

    def _fetch_all(self) -> Tuple[List[RawArticle], List[FeedHealth], List[RawArticle], SearchStats]:
        feed_articles: List[RawArticle] = []
        feed_health: List[FeedHealth] = []
        search_articles: List[RawArticle] = []
        search_stats = SearchStats()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fetch") as executor:
            feed_future = executor.submit(self.feed_fetcher.fetch)
            search_future = executor.submit(self.search_fetcher.fetch)
            try:
                feed_articles, feed_health = feed_future.result()
            except Exception:
                logger.exception("Feed fetcher failed")
            try:
                search_articles, search_stats = search_future.result()
            except Exception:
                logger.exception("Keyword search fetcher failed")
        return feed_articles, feed_health, search_articles, search_stats

    @staticmethod
    def _group_by_topic(
        articles: Sequence[MergedArticle],
        classifications,
        known_names: Sequence[str],
    ) -> Dict[str, List[MergedArticle]]:
        """Articles per topic, in first-seen order. Names sharing a slug are one topic."""
        canonical = {slugify(name): name for name in known_names}
        groups: "OrderedDict[str, List[MergedArticle]]" = OrderedDict()
        for item in classifications:
            name = canonical.setdefault(slugify(item.topic_name), item.topic_name)
            groups.setdefault(name, []).append(articles[item.article_index])
        return groups

    @staticmethod
    def _finish(summary: PipelineSummary) -> PipelineSummary:
        summary.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Batch complete: %s topics, %s new articles, %s scores recorded (%s fallback, %s anomalies)",
            summary.topics_processed,
            summary.articles_added,
            summary.scores_recorded,
            summary.fallback_scores,
            summary.anomalies,
        )
        return summary
