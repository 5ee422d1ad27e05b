"""
CompletionEvaluator for cascade eligibility.

Finds the ancestor milestone that a leaf change has made ready for promotion.
Only computes; never writes and never opens a confirmation.
"""

from typing import Iterable, Optional

from goalcascade.exceptions import InvalidStateTransition, ValidationError
from goalcascade.managers.goal_store import GoalStore
from goalcascade.models.base import Milestone, MilestoneLevel, MilestoneStatus


def is_cascade_eligible(children: Iterable[Milestone]) -> bool:
    """Every child resolved and at least one completed.

    An empty set is never eligible, and a set where everything was
    cancelled is not either.
    """
    children = list(children)
    if not children:
        return False
    all_resolved = all(c.is_resolved for c in children)
    any_completed = any(c.status == MilestoneStatus.COMPLETED for c in children)
    return all_resolved and any_completed


class CompletionEvaluator:
    """
    Detects cascade-eligible ancestors after a milestone status write.

    Evaluation order:
    1. The changed leaf's own parent phase, if it is still open
    2. The patient's non-completed outcomes in store order, checked over
       all of their descendants at once; the first eligible one wins
    """

    def __init__(self, store: GoalStore) -> None:
        """
        Initialize CompletionEvaluator.

        Args:
            store: GoalStore to read milestones from.
        """
        self.store = store

    async def evaluate(
        self, patient_id: str, leaf_id: Optional[str] = None
    ) -> Optional[Milestone]:
        """Return the nearest ancestor that became cascade-eligible, or None.

        Args:
            patient_id: Patient whose tree changed.
            leaf_id: Task that changed, if known.

        Returns:
            The eligible phase or outcome, or None if nothing cascades.
        """
        if leaf_id is not None:
            phase = await self.find_eligible_parent_phase(patient_id, leaf_id)
            if phase is not None:
                return phase
        return await self.find_eligible_outcome(patient_id)

    async def find_eligible_parent_phase(
        self, patient_id: str, leaf_id: str
    ) -> Optional[Milestone]:
        """Check the phase directly above a changed task.

        Args:
            patient_id: Owner of the task.
            leaf_id: The changed task.

        Returns:
            The parent phase if it is active and eligible, otherwise None.
        """
        leaf = await self.store.get_milestone(leaf_id)
        if leaf.patient_id != patient_id:
            raise ValidationError(f"Milestone {leaf_id} does not belong to patient {patient_id}")
        if not leaf.is_leaf:
            raise ValidationError(f"Milestone {leaf_id} is not a task")
        if leaf.parent_id is None:
            return None

        parent = await self.store.get_milestone(leaf.parent_id)
        # Tasks hanging directly off an outcome are covered by the outcome scan
        if parent.level != MilestoneLevel.PHASE or parent.status != MilestoneStatus.ACTIVE:
            return None

        children = await self.store.get_descendants(parent.id)
        if is_cascade_eligible(children):
            return parent
        return None

    async def find_eligible_outcome(self, patient_id: str) -> Optional[Milestone]:
        """Scan the patient's open outcomes, first match wins.

        Descendants are checked flattened: phases and tasks together,
        regardless of depth.

        Args:
            patient_id: Patient to scan.

        Returns:
            The first eligible outcome in store order, or None.
        """
        outcomes = await self.store.get_non_completed_outcomes(patient_id)
        for outcome in outcomes:
            if outcome.status == MilestoneStatus.CANCELLED:
                continue
            descendants = await self.store.get_descendants(outcome.id)
            if is_cascade_eligible(descendants):
                return outcome
        return None

    async def revalidate(self, milestone_id: str) -> Milestone:
        """Re-read a milestone and confirm it can still be promoted.

        Args:
            milestone_id: Phase or outcome about to be completed.

        Returns:
            The freshly read milestone.

        Raises:
            InvalidStateTransition: If it is already resolved or its
                children no longer satisfy the eligibility rule.
        """
        milestone = await self.store.get_milestone(milestone_id)
        if milestone.is_leaf:
            raise InvalidStateTransition(f"{milestone.display_name} is a task and cannot cascade")
        if milestone.is_resolved:
            raise InvalidStateTransition(
                f"{milestone.display_name} is already {milestone.status.value}"
            )
        if milestone.level == MilestoneLevel.PHASE and milestone.status != MilestoneStatus.ACTIVE:
            raise InvalidStateTransition(
                f"{milestone.display_name} is {milestone.status.value} and cannot be completed"
            )
        descendants = await self.store.get_descendants(milestone.id)
        if not is_cascade_eligible(descendants):
            raise InvalidStateTransition(
                f"{milestone.display_name} is no longer eligible for completion"
            )
        return milestone
