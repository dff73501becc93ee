from __future__ import annotations

from linecraft.qa.taxonomy import IssueCode
from linecraft.repair.strategies.base import RepairStrategy

CATEGORY = "service"
DESCRIPTION = "Analysis outages surfaced as issues."

STRATEGIES = (
    RepairStrategy(
        issue_code=IssueCode.SERVICE_ERROR.value,
        priority=1,
        base_confidence=50,
        action="regenerate",
        max_attempts=2,
        notes="Analysis unavailable; retry the attempt",
    ),
    RepairStrategy(
        issue_code=IssueCode.ANALYSIS_UNAVAILABLE.value,
        priority=5,
        base_confidence=50,
        action="accept",
        max_attempts=3,
        notes="Preview accepted without analysis",
    ),
)
