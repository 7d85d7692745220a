"""
Feed-health logging and JSON-friendly run summaries.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from greenwire.ingest.feed_parser import feed_hostname
from greenwire.models import FeedHealth, PipelineSummary, SearchStats

logger = logging.getLogger(__name__)


def log_feed_health(feed_health: Sequence[FeedHealth]) -> None:
    """One line per feed plus a summary line. No-op for an empty list."""
    if not feed_health:
        return
    for entry in feed_health:
        host = feed_hostname(entry.url)
        if entry.healthy:
            logger.info("  ok %s (%s): %s articles in %sms", entry.name, host, entry.article_count, entry.duration_ms)
        else:
            logger.warning("  FAILED %s (%s) in %sms: %s", entry.name, host, entry.duration_ms, entry.error)

    healthy = sum(1 for entry in feed_health if entry.healthy)
    failed = [entry for entry in feed_health if not entry.healthy]
    if failed:
        details = ", ".join(f"{feed_hostname(entry.url)}: {entry.error}" for entry in failed)
        logger.warning(
            "Feed health: %s/%s healthy, %s failed [%s]", healthy, len(feed_health), len(failed), details
        )
    else:
        logger.info("Feed health: %s/%s healthy", healthy, len(feed_health))


def feed_health_to_dict(entry: FeedHealth) -> Dict[str, Any]:
    return {
        "name": entry.name,
        "url": entry.url,
        "status": entry.status,
        "article_count": entry.article_count,
        "duration_ms": entry.duration_ms,
        "error": entry.error,
    }


def _search_stats_to_dict(stats: SearchStats) -> Dict[str, Any]:
    return {
        "groups": stats.groups,
        "failed_groups": stats.failed_groups,
        "raw_count": stats.raw_count,
        "filtered_count": stats.filtered_count,
    }


def summary_to_dict(summary: PipelineSummary) -> Dict[str, Any]:
    return {
        "started_at": summary.started_at.isoformat(),
        "finished_at": summary.finished_at.isoformat() if summary.finished_at else None,
        "topics_processed": summary.topics_processed,
        "articles_added": summary.articles_added,
        "scores_recorded": summary.scores_recorded,
        "sources": {
            "feed_articles": summary.feed_articles,
            "search_articles": summary.search_articles,
            "unique_articles": summary.unique_articles,
        },
        "rejected_articles": summary.rejected_articles,
        "clamped_dimensions": summary.clamped_dimensions,
        "fallback_scores": summary.fallback_scores,
        "anomalies": summary.anomalies,
        "failed_topics": list(summary.failed_topics),
        "feed_health": [feed_health_to_dict(entry) for entry in summary.feed_health],
        "search": _search_stats_to_dict(summary.search_stats),
    }
