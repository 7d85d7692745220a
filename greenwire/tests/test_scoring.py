import unittest

from greenwire.models import PriorScores, SeverityLevel, Urgency
from greenwire.scoring import (
    LEVEL_RANGES,
    compute_overall_score,
    derive_urgency,
    detect_anomaly,
    detect_topic_anomaly,
    score_to_level,
    validate_score,
)


class ValidateScoreTests(unittest.TestCase):
    def test_score_inside_range_is_untouched(self):
        result = validate_score("SEVERE", 85)
        self.assertEqual(result.level, SeverityLevel.SEVERE)
        self.assertEqual(result.score, 85)
        self.assertFalse(result.adjusted)

    def test_score_outside_range_is_clamped(self):
        self.assertEqual(validate_score("MINIMAL", 30).score, 25)
        self.assertTrue(validate_score("MINIMAL", 30).adjusted)
        self.assertEqual(validate_score("SEVERE", 50).score, 76)

    def test_level_matching_ignores_case_and_whitespace(self):
        result = validate_score("  moderate ", 30)
        self.assertEqual(result.level, SeverityLevel.MODERATE)
        self.assertFalse(result.adjusted)

    def test_unknown_level_falls_back_to_moderate(self):
        result = validate_score("CATASTROPHIC", 90)
        self.assertEqual(result.level, SeverityLevel.MODERATE)
        self.assertEqual(result.score, 50)
        self.assertTrue(result.adjusted)

    def test_sentinel_score_means_insufficient_data(self):
        result = validate_score("INSUFFICIENT_DATA", -1)
        self.assertEqual(result.level, SeverityLevel.INSUFFICIENT_DATA)
        self.assertEqual(result.score, -1)
        self.assertFalse(result.adjusted)
        self.assertFalse(validate_score(" insufficient_data ", -1).adjusted)

    def test_sentinel_score_with_a_real_level_is_flagged(self):
        result = validate_score("SEVERE", -1)
        self.assertEqual(result.level, SeverityLevel.INSUFFICIENT_DATA)
        self.assertEqual(result.score, -1)
        self.assertTrue(result.adjusted)

    def test_insufficient_level_with_a_real_score_is_forced_to_sentinel(self):
        result = validate_score("INSUFFICIENT_DATA", 40)
        self.assertEqual(result.score, -1)
        self.assertTrue(result.adjusted)

    def test_unusable_scores_become_insufficient(self):
        for bad in (None, "40", True, float("nan")):
            result = validate_score("MODERATE", bad)
            self.assertEqual(result.level, SeverityLevel.INSUFFICIENT_DATA, bad)
            self.assertEqual(result.score, -1)
            self.assertTrue(result.adjusted)

    def test_clamping_is_idempotent(self):
        scores = list(range(-5, 111)) + [25.5, 50.5, 75.5, 99.9]
        for level in LEVEL_RANGES:
            for score in scores:
                first = validate_score(level.value, score)
                second = validate_score(level.value, first.score)
                self.assertEqual((second.level, second.score), (first.level, first.score))
                self.assertFalse(second.adjusted, (level, score))

    def test_validated_scores_stay_in_range(self):
        for level, (low, high) in LEVEL_RANGES.items():
            for score in range(-50, 200, 7):
                result = validate_score(level.value, score)
                if result.level is SeverityLevel.INSUFFICIENT_DATA:
                    continue
                self.assertTrue(low <= result.score <= high)


class AggregationTests(unittest.TestCase):
    def test_weighted_average_rounds_half_up(self):
        self.assertEqual(compute_overall_score(50, 60, 40), 52)

    def test_insufficient_dimension_is_excluded_and_weights_renormalized(self):
        self.assertEqual(compute_overall_score(50, -1, 40), 46)

    def test_all_insufficient_falls_back_to_fifty(self):
        with self.assertLogs("greenwire.scoring", level="WARNING"):
            self.assertEqual(compute_overall_score(-1, -1, -1), 50)

    def test_end_to_end_example_scores(self):
        self.assertEqual(compute_overall_score(35, 80, 40), 54)

    def test_urgency_boundaries(self):
        self.assertEqual(derive_urgency(80), Urgency.BREAKING)
        self.assertEqual(derive_urgency(79), Urgency.CRITICAL)
        self.assertEqual(derive_urgency(60), Urgency.CRITICAL)
        self.assertEqual(derive_urgency(59), Urgency.MODERATE)
        self.assertEqual(derive_urgency(30), Urgency.MODERATE)
        self.assertEqual(derive_urgency(29), Urgency.INFORMATIONAL)
        self.assertEqual(derive_urgency(29).value, "informational")

    def test_score_to_level(self):
        self.assertEqual(score_to_level(15), SeverityLevel.MINIMAL)
        self.assertEqual(score_to_level(40), SeverityLevel.MODERATE)
        self.assertEqual(score_to_level(65), SeverityLevel.SIGNIFICANT)
        self.assertEqual(score_to_level(90), SeverityLevel.SEVERE)
        self.assertEqual(score_to_level(-1), SeverityLevel.INSUFFICIENT_DATA)


class AnomalyTests(unittest.TestCase):
    def test_threshold_is_exclusive(self):
        self.assertFalse(detect_anomaly(40, 65, "Topic", "ecological"))
        with self.assertLogs("greenwire.scoring", level="WARNING"):
            self.assertTrue(detect_anomaly(40, 66, "Topic", "ecological"))

    def test_insufficient_baseline_is_never_anomalous(self):
        self.assertFalse(detect_anomaly(-1, 90))
        self.assertFalse(detect_anomaly(90, -1))
        self.assertFalse(detect_anomaly(None, 90))

    def test_topic_without_prior_scores_is_not_anomalous(self):
        self.assertFalse(detect_topic_anomaly(None, 10, 90, 10))

    def test_any_dimension_triggers_topic_anomaly(self):
        prior = PriorScores(health=30, ecological=40, economic=20)
        self.assertTrue(detect_topic_anomaly(prior, 30, 40, 60, topic_name="Topic"))
        self.assertFalse(detect_topic_anomaly(prior, 35, 45, 25))

    def test_custom_threshold(self):
        prior = PriorScores(health=30, ecological=40, economic=20)
        self.assertTrue(detect_topic_anomaly(prior, 41, 40, 20, threshold=10))


if __name__ == "__main__":
    unittest.main()
