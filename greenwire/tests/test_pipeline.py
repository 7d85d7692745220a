import json
import unittest
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from greenwire import run_pipeline
from greenwire.errors import ConfigurationError
from greenwire.models import FeedHealth, Provenance, RawArticle, SearchStats, Urgency
from greenwire.pipeline import BatchPipeline
from greenwire.settings import PipelineSettings
from greenwire.store import TopicStore

SCORE_REPLY = json.dumps(
    {
        "healthReasoning": "Smoke from clearing fires reaches nearby towns.",
        "healthLevel": "MODERATE",
        "healthScore": 35,
        "ecoReasoning": "Record forest loss in the basin.",
        "ecoLevel": "SEVERE",
        "ecoScore": 80,
        "econReasoning": "Mixed effects on agriculture and timber.",
        "econLevel": "MODERATE",
        "econScore": 40,
        "overallSummary": "Clearing accelerates across the Amazon.",
        "category": "deforestation",
        "region": "South America",
        "keywords": ["amazon", "deforestation"],
    }
)


class _StubOracle:
    """Plain-text calls are classification, JSON-mode calls are scoring."""

    def __init__(self, classification_reply, score_reply=SCORE_REPLY):
        self.classification_reply = classification_reply
        self.score_reply = score_reply
        self.calls = []

    def complete(self, prompt, *, json_mode=True):
        self.calls.append(json_mode)
        return self.score_reply if json_mode else self.classification_reply


class _StaticFetcher:
    def __init__(self, articles, extra):
        self.articles = articles
        self.extra = extra

    def fetch(self):
        return list(self.articles), self.extra


def _article(url, title="Satellite data shows record Amazon clearing", source="Feed Wire"):
    return RawArticle(
        title=title,
        url=url,
        source=source,
        published_at="2024-11-25T12:00:00+00:00",
        description="Deforestation rose sharply this year.",
        image_url="https://img.example.com/amazon.jpg",
    )


def _classified(*entries):
    return json.dumps(
        {
            "classifications": [
                {"articleIndex": index, "topicName": name, "isNew": True} for index, name in entries
            ],
            "rejected": [],
        }
    )


class PipelineTests(unittest.TestCase):
    def setUp(self):
        self.settings = PipelineSettings(oracle_api_key="test-key")
        self.store = TopicStore("sqlite://")

    def _pipeline(self, oracle, feed_articles, search_articles):
        feed_health = [FeedHealth(name="Feed Wire", url="https://feed.example.com/rss", status="ok")]
        return BatchPipeline(
            self.settings,
            oracle=oracle,
            store=self.store,
            feed_fetcher=_StaticFetcher(feed_articles, feed_health),
            search_fetcher=_StaticFetcher(search_articles, SearchStats(raw_count=len(search_articles))),
        )

    def test_end_to_end_new_topic(self):
        url = "https://news.example.org/amazon"
        oracle = _StubOracle(_classified((0, "Amazon Deforestation")))
        pipeline = self._pipeline(oracle, [_article(url)], [_article(url, source="Search Wire")])

        summary = pipeline.run()

        self.assertEqual(summary.unique_articles, 1)
        self.assertEqual((summary.feed_articles, summary.search_articles), (1, 1))
        self.assertEqual(summary.topics_processed, 1)
        self.assertEqual(summary.scores_recorded, 1)
        self.assertEqual(summary.articles_added, 1)
        self.assertEqual(summary.fallback_scores, 0)
        self.assertEqual(oracle.calls, [False, True])

        topic = self.store.get_topic("amazon-deforestation")
        self.assertEqual(topic.name, "Amazon Deforestation")
        self.assertEqual((topic.previous_score, topic.current_score), (0, 54))
        self.assertEqual(topic.urgency, Urgency.MODERATE)
        self.assertEqual((topic.health_score, topic.eco_score, topic.econ_score), (35, 80, 40))
        self.assertEqual(topic.image_url, "https://img.example.com/amazon.jpg")

        articles = self.store.articles_for("amazon-deforestation")
        self.assertEqual(len(articles), 1)
        self.assertEqual(articles[0]["source"], "Feed Wire")
        self.assertEqual(articles[0]["source_type"], Provenance.FEED.value)

    def test_second_run_rotates_scores(self):
        url = "https://news.example.org/amazon"
        oracle = _StubOracle(_classified((0, "Amazon Deforestation")))
        self._pipeline(oracle, [_article(url)], []).run()
        summary = self._pipeline(oracle, [_article(url + "/update")], []).run()

        topic = self.store.get_topic("amazon-deforestation")
        self.assertEqual((topic.previous_score, topic.current_score), (54, 54))
        self.assertEqual(topic.article_count, 2)
        self.assertEqual(summary.anomalies, 0)
        self.assertEqual(len(self.store.score_history("amazon-deforestation")), 2)

    def test_prose_classification_reply_processes_no_topics(self):
        oracle = _StubOracle("These articles are all interesting.")
        summary = self._pipeline(oracle, [_article("https://news.example.org/a")], []).run()

        self.assertEqual(summary.topics_processed, 0)
        self.assertEqual(summary.scores_recorded, 0)
        self.assertEqual(self.store.list_topics(), [])
        self.assertIsNotNone(summary.finished_at)

    def test_database_error_skips_only_that_topic(self):
        oracle = _StubOracle(_classified((0, "Amazon Deforestation"), (1, "Delhi Air Quality")))
        articles = [_article("https://news.example.org/a"), _article("https://news.example.org/b", title="Smog")]
        original_save = self.store.save_topic

        def flaky_save(state, snapshot, topic_articles, recorded_at=None):
            if state.slug == "amazon-deforestation":
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return original_save(state, snapshot, topic_articles, recorded_at=recorded_at)

        with patch.object(self.store, "save_topic", side_effect=flaky_save):
            summary = self._pipeline(oracle, articles, []).run()

        self.assertEqual(summary.failed_topics, ["Amazon Deforestation"])
        self.assertEqual(summary.topics_processed, 1)
        self.assertIsNotNone(self.store.get_topic("delhi-air-quality"))
        self.assertIsNone(self.store.get_topic("amazon-deforestation"))

    def _clamping_oracle(self):
        reply = json.loads(SCORE_REPLY)
        reply.update(healthLevel="MINIMAL", healthScore=90)
        return _StubOracle(_classified((0, "Amazon Deforestation")), score_reply=json.dumps(reply))

    def test_clamp_drift_warning_above_ratio(self):
        pipeline = self._pipeline(self._clamping_oracle(), [_article("https://news.example.org/a")], [])

        with self.assertLogs("greenwire.pipeline", "WARNING") as logs:
            summary = pipeline.run()

        self.assertEqual(summary.clamped_dimensions, 1)
        self.assertTrue(any("Clamped 1 of 3 dimension scores" in line for line in logs.output))

    def test_no_clamp_drift_warning_at_or_below_ratio(self):
        self.settings.clamp_warning_ratio = 0.5
        pipeline = self._pipeline(self._clamping_oracle(), [_article("https://news.example.org/a")], [])

        with patch("greenwire.pipeline.logger") as logger:
            summary = pipeline.run()

        self.assertEqual(summary.clamped_dimensions, 1)
        messages = [call.args[0] for call in logger.warning.call_args_list]
        self.assertFalse(any(message.startswith("Clamped") for message in messages))

    def test_no_clamp_drift_warning_when_nothing_clamped(self):
        oracle = _StubOracle(_classified((0, "Amazon Deforestation")))
        pipeline = self._pipeline(oracle, [_article("https://news.example.org/a")], [])

        with patch("greenwire.pipeline.logger") as logger:
            summary = pipeline.run()

        self.assertEqual(summary.clamped_dimensions, 0)
        messages = [call.args[0] for call in logger.warning.call_args_list]
        self.assertFalse(any(message.startswith("Clamped") for message in messages))

    def test_missing_oracle_key_fails_before_fetching(self):
        feed_fetcher = MagicMock()
        search_fetcher = MagicMock()
        pipeline = BatchPipeline(
            PipelineSettings(oracle_api_key=""),
            store=self.store,
            feed_fetcher=feed_fetcher,
            search_fetcher=search_fetcher,
        )
        with self.assertRaises(ConfigurationError):
            pipeline.run()
        feed_fetcher.fetch.assert_not_called()
        search_fetcher.fetch.assert_not_called()

    def test_fetcher_crash_is_contained(self):
        crashing = MagicMock()
        crashing.fetch.side_effect = RuntimeError("boom")
        oracle = _StubOracle(_classified((0, "Amazon Deforestation")))
        pipeline = BatchPipeline(
            self.settings,
            oracle=oracle,
            store=self.store,
            feed_fetcher=crashing,
            search_fetcher=_StaticFetcher([_article("https://news.example.org/s")], SearchStats()),
        )
        summary = pipeline.run()
        self.assertEqual(summary.feed_health, [])
        self.assertEqual(summary.topics_processed, 1)

    def test_run_pipeline_entry_point(self):
        with patch("greenwire.BatchPipeline") as pipeline_cls:
            run_pipeline(self.settings, oracle="oracle", store=self.store)
        pipeline_cls.assert_called_once_with(self.settings, oracle="oracle", store=self.store)
        pipeline_cls.return_value.run.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
