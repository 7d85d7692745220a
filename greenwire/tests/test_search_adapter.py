import unittest
from unittest.mock import MagicMock

import requests

from greenwire.adapters.search import KeywordSearchFetcher, keyword_groups


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


def _result(url, source="Reuters", **overrides):
    item = {
        "title": "Wildfire forces evacuations",
        "description": "Thousands leave as fires spread.",
        "url": url,
        "image": "https://img.example.com/fire.jpg",
        "publishedAt": "2024-11-25T12:00:00Z",
        "source": {"name": source, "url": "https://www.reuters.com"},
    }
    item.update(overrides)
    return item


class KeywordGroupTests(unittest.TestCase):
    def test_groups_of_four_joined_with_or(self):
        groups = keyword_groups(["a", "b", "c", "d", "e", " ", "f"], 4)
        self.assertEqual(groups, ["a OR b OR c OR d", "e OR f"])


class KeywordSearchFetcherTests(unittest.TestCase):
    def _fetcher(self, http, keywords=("climate change", "pollution")):
        return KeywordSearchFetcher(
            api_key="test-key",
            keywords=list(keywords),
            min_interval=0,
            http=http,
        )

    def test_results_are_adapted_and_filtered(self):
        http = MagicMock()
        http.get.return_value = _response(
            payload={
                "articles": [
                    _result("https://www.reuters.com/fire"),
                    _result("https://ebay.com/listing", source="eBay Deals"),
                    _result("https://bringatrailer.com/lot", source="Classic Cars"),
                    _result("https://www.reuters.com/no-description", description=None),
                    _result("https://www.reuters.com/no-date", publishedAt=""),
                ]
            }
        )

        articles, stats = self._fetcher(http).fetch()

        self.assertEqual(len(articles), 1)
        article = articles[0]
        self.assertEqual(article.url, "https://www.reuters.com/fire")
        self.assertEqual(article.source, "Reuters")
        self.assertEqual(article.image_url, "https://img.example.com/fire.jpg")
        self.assertEqual(article.published_at, "2024-11-25T12:00:00Z")
        self.assertEqual((stats.groups, stats.failed_groups, stats.raw_count, stats.filtered_count), (1, 0, 5, 1))

        params = http.get.call_args.kwargs["params"]
        self.assertEqual(params["q"], "climate change OR pollution")
        self.assertEqual(params["lang"], "en")
        self.assertEqual(params["max"], 10)
        self.assertEqual(params["sortby"], "publishedAt")
        self.assertEqual(params["apikey"], "test-key")

    def test_failed_groups_do_not_stop_the_rest(self):
        http = MagicMock()
        http.get.side_effect = [
            _response(status_code=401, payload={"errors": ["Invalid API key"]}),
            requests.Timeout("read timed out"),
            _response(status_code=429, payload={"errors": ["Too many requests"]}),
            _response(payload={"articles": [_result("https://www.reuters.com/ok")]}),
        ]
        keywords = ["k%d" % i for i in range(13)]

        with self.assertLogs("greenwire.adapters.search", level="ERROR") as logs:
            articles, stats = self._fetcher(http, keywords).fetch()

        self.assertEqual(http.get.call_count, 4)
        self.assertEqual([a.url for a in articles], ["https://www.reuters.com/ok"])
        self.assertEqual(stats.groups, 4)
        self.assertEqual(stats.failed_groups, 3)
        joined = "\n".join(logs.output)
        self.assertIn("auth failure", joined)
        self.assertIn("rate limit", joined)

    def test_missing_api_key_disables_search(self):
        http = MagicMock()
        fetcher = KeywordSearchFetcher(api_key="", keywords=["flood"], http=http)

        with self.assertLogs("greenwire.adapters.search", level="WARNING"):
            articles, stats = fetcher.fetch()

        self.assertEqual(articles, [])
        self.assertEqual(stats.groups, 0)
        http.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
