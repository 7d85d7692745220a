import json
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from click.testing import CliRunner

from greenwire.cli import cli
from greenwire.errors import ConfigurationError
from greenwire.models import FeedHealth, PipelineSummary
from greenwire.settings import PipelineSettings


class CliTests(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()

    @patch("greenwire.cli.logging.basicConfig")
    @patch("greenwire.cli.load_settings", return_value=PipelineSettings())
    @patch("greenwire.cli.BatchPipeline")
    def test_run_prints_summary_json(self, pipeline_cls, _settings, _logging):
        started = datetime(2024, 11, 25, 12, 0, tzinfo=timezone.utc)
        pipeline_cls.return_value.run.return_value = PipelineSummary(
            started_at=started, finished_at=started, topics_processed=2, articles_added=5
        )

        result = self.runner.invoke(cli, ["run", "--database-url", "sqlite://"])

        self.assertEqual(result.exit_code, 0, result.output)
        payload = json.loads(result.output)
        self.assertEqual(payload["topics_processed"], 2)
        self.assertEqual(payload["articles_added"], 5)
        settings = pipeline_cls.call_args.args[0]
        self.assertEqual(settings.database_url, "sqlite://")

    @patch("greenwire.cli.logging.basicConfig")
    @patch("greenwire.cli.load_settings", return_value=PipelineSettings())
    @patch("greenwire.cli.BatchPipeline")
    def test_run_exits_nonzero_on_configuration_error(self, pipeline_cls, _settings, _logging):
        pipeline_cls.return_value.run.side_effect = ConfigurationError("OPENROUTER_API_KEY is not configured")
        result = self.runner.invoke(cli, ["run"])
        self.assertEqual(result.exit_code, 1)

    @patch("greenwire.cli.logging.basicConfig")
    @patch("greenwire.cli.load_settings", return_value=PipelineSettings(feeds=["https://a.example/rss"]))
    @patch("greenwire.cli.FeedFetcher")
    def test_check_feeds_fails_when_every_feed_fails(self, fetcher_cls, _settings, _logging):
        fetcher_cls.return_value.fetch.return_value = (
            [],
            [FeedHealth(name="a.example", url="https://a.example/rss", status="error", error="HTTP 500")],
        )
        result = self.runner.invoke(cli, ["check-feeds"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("HTTP 500", result.output)

    @patch("greenwire.cli.logging.basicConfig")
    @patch("greenwire.cli.load_settings", return_value=PipelineSettings(feeds=["https://a.example/rss"]))
    @patch("greenwire.cli.FeedFetcher")
    def test_check_feeds_succeeds_with_a_healthy_feed(self, fetcher_cls, _settings, _logging):
        fetcher_cls.return_value.fetch.return_value = (
            [],
            [FeedHealth(name="A", url="https://a.example/rss", status="ok", article_count=3)],
        )
        result = self.runner.invoke(cli, ["check-feeds"])
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(json.loads(result.output.strip())["article_count"], 3)


if __name__ == "__main__":
    unittest.main()
