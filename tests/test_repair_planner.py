from __future__ import annotations

import unittest
from typing import List, Sequence

from linecraft.agents.analyzer import normalize_issue
from linecraft.agents.repair_planner import RepairPlanBuilder
from linecraft.qa.scoring import Scorer
from linecraft.utils.types import IssueHistory, QaIssue, RepairContext


def _issues(*codes: str) -> List[QaIssue]:
    return [normalize_issue({"code": code, "confidence": 0.9}) for code in codes]


def _context(attempt: int = 1, history: Sequence[Sequence[str]] = (), **overrides) -> RepairContext:
    previous = IssueHistory()
    for codes in history:
        previous.record_attempt(codes)
    values = {
        "style_id": "Cozy",
        "complexity_id": "Intricate",
        "audience_id": "adults",
        "attempt_number": attempt,
        "previous_issues": previous,
        "original_prompt": "lighthouse on a cliff",
    }
    values.update(overrides)
    return RepairContext(**values)


class RepairPlanBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.builder = RepairPlanBuilder()

    def test_color_detected_plan(self) -> None:
        plan = self.builder.build(_issues("COLOR_DETECTED"), _context(), max_attempts=3)

        self.assertTrue(plan.can_auto_repair)
        self.assertTrue(plan.should_regenerate)
        self.assertEqual(len(plan.actions), 1)
        self.assertEqual(plan.actions[0].priority, 1)
        self.assertEqual(plan.actions[0].confidence, 90)
        self.assertIn("color", plan.negative_boosts)
        self.assertEqual(plan.overall_confidence, 90.0)

    def test_accepts_qa_result(self) -> None:
        qa = Scorer().evaluate("req-1", _issues("TOO_COMPLEX"))
        plan = self.builder.build(qa, _context(), max_attempts=3)
        self.assertEqual([action.issue_code for action in plan.actions], ["TOO_COMPLEX"])

    def test_actions_sorted_by_priority_and_higher_priority_wins_merge(self) -> None:
        plan = self.builder.build(
            _issues("TOO_COMPLEX", "CURVES_IN_GEOMETRIC"),
            _context(style_id="Geometric"),
            max_attempts=3,
        )
        self.assertEqual([action.issue_code for action in plan.actions], ["CURVES_IN_GEOMETRIC", "TOO_COMPLEX"])
        self.assertEqual(plan.parameter_suggestions.temperature, 0.4)
        self.assertEqual(len(plan.prompt_overrides), 2)
        self.assertTrue(plan.prompt_overrides[0].startswith("[CRITICAL]"))

    def test_negative_boosts_are_deduplicated(self) -> None:
        plan = self.builder.build(
            _issues("GREY_TONES_DETECTED", "SHADING_DETECTED"),
            _context(),
            max_attempts=3,
        )
        self.assertEqual(plan.negative_boosts.count("shading"), 1)

    def test_duplicate_codes_produce_one_action(self) -> None:
        plan = self.builder.build(_issues("UNCLOSED_REGIONS", "UNCLOSED_REGIONS"), _context(), max_attempts=3)
        self.assertEqual(len(plan.actions), 1)

    def test_confidence_decays_and_escalation_replaces_suggestion(self) -> None:
        first = self.builder.build(_issues("TOO_COMPLEX"), _context(), max_attempts=3)
        second = self.builder.build(
            _issues("TOO_COMPLEX"),
            _context(attempt=2, history=[["TOO_COMPLEX"]]),
            max_attempts=3,
        )

        self.assertLess(second.actions[0].confidence, first.actions[0].confidence)
        self.assertEqual(second.actions[0].confidence, 65)
        self.assertFalse(first.actions[0].escalated)
        self.assertEqual(first.actions[0].parameter_suggestions.complexity_id, None)
        self.assertTrue(second.actions[0].escalated)
        self.assertEqual(second.actions[0].parameter_suggestions.complexity_id, "Moderate")

    def test_disallowed_escalation_keeps_base_suggestion(self) -> None:
        builder = RepairPlanBuilder(allow_escalation=False)
        plan = builder.build(
            _issues("TOO_COMPLEX"),
            _context(attempt=2, history=[["TOO_COMPLEX"]]),
            max_attempts=3,
        )
        self.assertFalse(plan.actions[0].escalated)
        self.assertEqual(plan.actions[0].parameter_suggestions.temperature, 0.6)
        self.assertIsNone(plan.actions[0].parameter_suggestions.complexity_id)

    def test_strategy_budget_exhaustion_is_unrepairable(self) -> None:
        plan = self.builder.build(
            _issues("TOO_COMPLEX"),
            _context(attempt=3, history=[["TOO_COMPLEX"], ["TOO_COMPLEX"]]),
            max_attempts=5,
        )
        self.assertEqual([issue.code for issue in plan.unrepairable_issues], ["TOO_COMPLEX"])
        self.assertFalse(plan.can_auto_repair)
        self.assertFalse(plan.should_regenerate)

    def test_inappropriate_content_is_hard_stop(self) -> None:
        plan = self.builder.build(
            _issues("INAPPROPRIATE_CONTENT", "COLOR_DETECTED"),
            _context(),
            max_attempts=10,
        )
        self.assertFalse(plan.can_auto_repair)
        self.assertFalse(plan.should_regenerate)
        self.assertEqual([issue.code for issue in plan.unrepairable_issues], ["INAPPROPRIATE_CONTENT"])
        self.assertIn("Manual review needed", plan.summary)

    def test_unrepairable_subset_of_issues(self) -> None:
        issues = _issues("INAPPROPRIATE_CONTENT", "TOO_COMPLEX", "LOW_RESOLUTION")
        plan = self.builder.build(issues, _context(attempt=2, history=[["TOO_COMPLEX"], ["TOO_COMPLEX"]]), 3)
        for issue in plan.unrepairable_issues:
            self.assertIn(issue, issues)
            prior = 2 if issue.code == "TOO_COMPLEX" else 0
            self.assertTrue(not issue.auto_repairable or prior >= 2)

    def test_last_attempt_does_not_regenerate(self) -> None:
        plan = self.builder.build(_issues("COLOR_DETECTED"), _context(attempt=3), max_attempts=3)
        self.assertTrue(plan.can_auto_repair)
        self.assertFalse(plan.should_regenerate)

    def test_minor_only_issues_do_not_regenerate(self) -> None:
        plan = self.builder.build(_issues("COMPOSITION_IMBALANCED"), _context(), max_attempts=3)
        self.assertTrue(plan.can_auto_repair)
        self.assertFalse(plan.should_regenerate)

    def test_unknown_code_uses_generic_strategy(self) -> None:
        plan = self.builder.build(_issues("WOBBLY_HORIZON"), _context(), max_attempts=3)
        self.assertTrue(plan.should_regenerate)
        self.assertEqual(plan.actions[0].action, "regenerate")
        self.assertEqual(plan.actions[0].priority, 3)

    def test_empty_issue_list(self) -> None:
        plan = self.builder.build([], _context(), max_attempts=3)
        self.assertEqual(plan.actions, ())
        self.assertEqual(plan.overall_confidence, 0.0)
        self.assertFalse(plan.should_regenerate)


if __name__ == "__main__":
    unittest.main()
