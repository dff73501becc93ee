from __future__ import annotations

import copy
import unittest

from linecraft.agents.analyzer import normalize_issue
from linecraft.qa.scoring import DEFAULT_WEIGHTS, Scorer, ScoringPolicy
from linecraft.utils.config import DEFAULT_CONFIG
from linecraft.utils.types import PipelineConfig


def _issue(code: str, confidence: float = 1.0):
    return normalize_issue({"code": code, "confidence": confidence})


class ScoringPolicyTests(unittest.TestCase):
    def test_default_weights_sum_to_one(self) -> None:
        self.assertAlmostEqual(sum(DEFAULT_WEIGHTS.values()), 1.0)

    def test_bad_weights_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ScoringPolicy(weights={"line_quality": 0.5, "composition": 0.2})
        with self.assertRaises(ValueError):
            ScoringPolicy(weights={"line_quality": 1.5, "composition": -0.5})
        with self.assertRaises(ValueError):
            ScoringPolicy(penalties={"critical": 25.0})

    def test_from_config_uses_mode_tolerance(self) -> None:
        config = copy.deepcopy(DEFAULT_CONFIG)
        config["pipeline"]["mode"] = "preview"
        config["scoring"]["major_tolerance"]["preview"] = 3
        policy = ScoringPolicy.from_config(config)
        self.assertEqual(policy.tolerance_for("preview"), 3)
        self.assertEqual(policy.tolerance_for("production"), 0)

    def test_from_pipeline_config(self) -> None:
        policy = ScoringPolicy.from_pipeline_config(
            PipelineConfig(minimum_pass_score=60, publish_threshold=90, penalties={"minor": 5.0})
        )
        self.assertEqual(policy.minimum_pass_score, 60)
        self.assertEqual(policy.publish_threshold, 90)
        self.assertEqual(policy.penalties["minor"], 5.0)
        self.assertEqual(policy.penalties["critical"], 25.0)


class ScorerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scorer = Scorer()

    def test_no_issues_scores_100_and_publishes(self) -> None:
        result = self.scorer.evaluate("req", [])
        self.assertEqual(result.score, 100.0)
        self.assertTrue(result.passed)
        self.assertTrue(result.is_publishable)

    def test_penalty_fallback_uses_confidence(self) -> None:
        result = self.scorer.evaluate("req", [_issue("COLOR_DETECTED", 0.9), _issue("LOW_RESOLUTION", 0.5)])
        self.assertAlmostEqual(result.score, 100 - 22.5 - 1.5)
        self.assertEqual(result.critical_count, 1)
        self.assertEqual(result.minor_count, 1)
        self.assertFalse(result.passed)

    def test_penalty_is_clamped_at_zero(self) -> None:
        result = self.scorer.evaluate("req", [_issue("COLOR_DETECTED")] * 6)
        self.assertEqual(result.score, 0.0)

    def test_weighted_dimensions(self) -> None:
        dims = {
            "line_quality": 100,
            "region_integrity": 60,
            "style_compliance": 80,
            "complexity_compliance": 90,
            "audience_alignment": 100,
            "composition": 50,
        }
        result = self.scorer.evaluate("req", [], dimension_scores=dims)
        self.assertAlmostEqual(result.score, 25 + 15 + 16 + 9 + 10 + 5)

    def test_missing_dimensions_fall_back_to_penalty_score(self) -> None:
        result = self.scorer.evaluate("req", [_issue("TOO_COMPLEX")], dimension_scores={"line_quality": 100})
        self.assertEqual(result.dimension_scores["composition"], 90.0)
        self.assertAlmostEqual(result.score, 25 + 0.75 * 90)

    def test_major_tolerance_depends_on_mode(self) -> None:
        issues = [_issue("TOO_COMPLEX", 0.5), _issue("CONTAINS_TEXT", 0.5)]
        production = self.scorer.evaluate("req", issues, mode="production")
        preview = self.scorer.evaluate("req", issues, mode="preview")
        self.assertFalse(production.passed)
        self.assertTrue(preview.passed)
        self.assertFalse(preview.is_publishable)

    def test_passed_but_not_publishable_below_threshold(self) -> None:
        result = self.scorer.evaluate("req", [_issue("LOW_RESOLUTION")] * 4)
        self.assertEqual(result.score, 88.0)
        self.assertTrue(result.is_publishable)
        result = self.scorer.evaluate("req", [_issue("LOW_RESOLUTION")] * 6)
        self.assertEqual(result.score, 82.0)
        self.assertTrue(result.passed)
        self.assertFalse(result.is_publishable)

    def test_counts_match_issue_total(self) -> None:
        issues = [_issue("COLOR_DETECTED"), _issue("TOO_COMPLEX"), _issue("TOO_SIMPLE"), _issue("ODDITY")]
        result = self.scorer.evaluate("req", issues)
        self.assertEqual(result.critical_count + result.major_count + result.minor_count, len(result.issues))

    def test_production_fail_safe_blocks(self) -> None:
        result = self.scorer.fail_safe("req", "production", "timeout")
        self.assertTrue(result.fail_safe)
        self.assertFalse(result.passed)
        self.assertFalse(result.is_publishable)
        self.assertEqual(result.critical_count, 1)
        self.assertEqual(result.issues[0].code, "SERVICE_ERROR")

    def test_preview_fail_safe_is_neutral_pass(self) -> None:
        result = self.scorer.fail_safe("req", "preview", "timeout")
        self.assertTrue(result.passed)
        self.assertFalse(result.is_publishable)
        self.assertEqual(result.score, 70.0)
        self.assertEqual(result.minor_count, 1)
        self.assertEqual(result.summary.split(":")[0], "unvalidated")


if __name__ == "__main__":
    unittest.main()
