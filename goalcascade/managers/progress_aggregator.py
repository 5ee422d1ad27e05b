"""
ProgressAggregator for milestone completion values.

Leaves carry binary progress; ancestors carry the value persisted for them.
Children report status eligibility upward, never a weighted average.
"""

from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from goalcascade.constants import (
    LEAF_COMPLETED_RATE,
    LEAF_OPEN_RATE,
    get_expected_task_count,
    get_percentage_round_precision,
)
from goalcascade.models.base import Milestone, MilestoneLevel, MilestoneStatus


class ProgressAggregator:
    """
    Produces 0-100 completion values for milestones.

    Handles:
    - Binary leaf progress (completed -> 100, anything else -> 0)
    - Persisted values for outcomes and phases
    - Display breakdowns and counts per level
    """

    def __init__(self, round_precision: int = None) -> None:
        """
        Initialize ProgressAggregator.

        Args:
            round_precision: Decimal places for percentage rounding. Defaults to config value.
        """
        self._round_precision = (
            round_precision if round_precision is not None else get_percentage_round_precision()
        )

    def completion_value(
        self, milestone: Milestone, children: Optional[List[Milestone]] = None
    ) -> int:
        """Completion value of a milestone.

        Children are accepted for non-leaf milestones but do not change the
        result: an ancestor's value is set when it is promoted.

        Args:
            milestone: Milestone to evaluate.
            children: Materialized children, if any.

        Returns:
            Integer between 0 and 100.
        """
        if milestone.is_leaf:
            if milestone.status == MilestoneStatus.COMPLETED:
                return LEAF_COMPLETED_RATE
            return LEAF_OPEN_RATE
        return milestone.completion_rate

    @staticmethod
    def leaf_values(status: MilestoneStatus) -> Tuple[int, Optional[date]]:
        """Rate and completion date to persist for a leaf in this status."""
        if status == MilestoneStatus.COMPLETED:
            return LEAF_COMPLETED_RATE, date.today()
        return LEAF_OPEN_RATE, None

    def _percent(self, part: int, total: int) -> float:
        if total == 0:
            return 0.0
        return round((part / total) * 100, self._round_precision)

    def calculate_completion_percentage(
        self, milestone: Milestone, descendants: Iterable[Milestone]
    ) -> Dict[str, object]:
        """Calculate display percentages for a milestone.

        Args:
            milestone: Milestone to calculate percentage for.
            descendants: Flattened milestones below it.

        Returns:
            Dictionary with 'overall' percentage and 'by_level' breakdown.
        """
        descendants = list(descendants)
        by_level = {}
        for level in (MilestoneLevel.PHASE, MilestoneLevel.TASK):
            members = [m for m in descendants if m.level == level]
            completed = sum(1 for m in members if m.status == MilestoneStatus.COMPLETED)
            by_level[level.value] = self._percent(completed, len(members))

        return {
            "overall": float(self.completion_value(milestone, descendants)),
            "by_level": by_level,
        }

    def get_completion_stats(self, descendants: Iterable[Milestone]) -> Dict[str, int]:
        """Get completion statistics per level.

        Args:
            descendants: Milestones to count.

        Returns:
            Dictionary with total, completed, cancelled and open counts per level.
        """
        stats: Dict[str, int] = {}
        descendants = list(descendants)
        for level in (MilestoneLevel.PHASE, MilestoneLevel.TASK):
            members = [m for m in descendants if m.level == level]
            completed = sum(1 for m in members if m.status == MilestoneStatus.COMPLETED)
            cancelled = sum(1 for m in members if m.status == MilestoneStatus.CANCELLED)
            key = f"{level.value}s"
            stats[f"{key}_total"] = len(members)
            stats[f"{key}_completed"] = completed
            stats[f"{key}_cancelled"] = cancelled
            stats[f"{key}_open"] = len(members) - completed - cancelled
        return stats

    def achievement_rate(
        self, descendants: Iterable[Milestone], expected_tasks: int = None
    ) -> int:
        """Share of planned tasks achieved under an outcome, for display.

        Measured against the planned task count rather than the tasks that
        exist, so an outcome with missing weeks reads lower. Capped at 100.

        Args:
            descendants: Flattened milestones below the outcome.
            expected_tasks: Planned task count. Defaults to config value.

        Returns:
            Integer between 0 and 100.
        """
        expected = expected_tasks if expected_tasks is not None else get_expected_task_count()
        if expected <= 0:
            return 0
        completed = sum(
            1 for m in descendants
            if m.level == MilestoneLevel.TASK and m.status == MilestoneStatus.COMPLETED
        )
        return min(100, round((completed / expected) * 100))
