"""
PatientLifecycleController for the "all goals achieved" transition.

After an outcome is promoted, checks whether the patient has any outcome
left open. If not, an acknowledgment gate opens; closing it deactivates
the patient and notifies listeners.
"""

from typing import List, Optional, Set

import click

from goalcascade.exceptions import InvalidStateTransition
from goalcascade.managers.events import Event, EventBus, EventType
from goalcascade.managers.goal_store import GoalStore
from goalcascade.models.base import Milestone, MilestoneLevel, MilestoneStatus, PatientStatus


class PatientLifecycleController:
    """
    Drives the terminal patient transition.

    The transition is one way; reactivating a patient is an administrative
    action outside the engine.
    """

    def __init__(self, store: GoalStore, bus: EventBus, echo: bool = True) -> None:
        """
        Initialize PatientLifecycleController.

        Args:
            store: GoalStore for outcome queries and the patient write.
            bus: Bus that receives PATIENT_STATUS_CHANGED.
            echo: Whether to print user-facing notices.
        """
        self.store = store
        self.bus = bus
        self._echo = echo
        self._awaiting_acknowledgment: Set[str] = set()

    def _notify(self, message: str) -> None:
        if self._echo:
            click.echo(message)

    def is_awaiting_acknowledgment(self, patient_id: str) -> bool:
        """Whether the all-goals gate is open for a patient."""
        return patient_id in self._awaiting_acknowledgment

    async def remaining_outcomes(self, patient_id: str, promoted_id: str) -> List[Milestone]:
        """Outcomes still open once promoted_id is completed.

        Read before the promotion is written, so nothing after the write
        depends on the store.
        """
        outcomes = await self.store.get_non_completed_outcomes(patient_id)
        return [o for o in outcomes if o.id != promoted_id]

    async def after_outcome_completed(
        self, patient_id: str, remaining: Optional[List[Milestone]] = None
    ) -> bool:
        """Check for the all-goals condition after an outcome promotion.

        Args:
            patient_id: Owner of the promoted outcome.
            remaining: Outcomes left open, as read before the promotion.
                Queried from the store if omitted.

        Returns:
            True if no outcome is left open and the gate is now open.
        """
        if remaining is None:
            remaining = await self.store.get_non_completed_outcomes(patient_id)
        if remaining:
            self._notify("  ✓ Outcome completed")
            return False

        self._awaiting_acknowledgment.add(patient_id)
        self._notify("  🎉 All rehabilitation goals achieved")
        return True

    async def gate_open_in_store(self, patient_id: str) -> bool:
        """Whether the stored records alone call for an acknowledgment.

        True when the patient has outcomes, none of them is left open, and
        the patient is not inactive yet.
        """
        milestones = await self.store.get_patient_milestones(patient_id)
        outcomes = [m for m in milestones if m.level == MilestoneLevel.OUTCOME]
        if not outcomes or any(o.status != MilestoneStatus.COMPLETED for o in outcomes):
            return False
        patient = await self.store.get_patient(patient_id)
        return patient.status != PatientStatus.INACTIVE

    async def acknowledge_all_goals_complete(self, patient_id: str) -> bool:
        """Close the all-goals gate and apply the transition.

        The gate is the one opened by after_outcome_completed in this
        process, or, failing that, the one implied by the stored records.
        The outcome set is re-read here; an outcome added since the gate
        opened keeps the patient active.

        Args:
            patient_id: Patient whose gate is being closed.

        Returns:
            True if the patient was set inactive.

        Raises:
            InvalidStateTransition: If no gate is open for the patient.
        """
        if (
            patient_id not in self._awaiting_acknowledgment
            and not await self.gate_open_in_store(patient_id)
        ):
            raise InvalidStateTransition(
                f"Patient {patient_id} has no pending all-goals acknowledgment"
            )

        remaining = await self.store.get_non_completed_outcomes(patient_id)
        if remaining:
            self._awaiting_acknowledgment.discard(patient_id)
            self._notify(f"  Patient still has {len(remaining)} open outcome(s); status unchanged")
            return False

        patient = await self.store.get_patient(patient_id)
        await self.store.write_patient_status(patient_id, PatientStatus.INACTIVE)
        self._awaiting_acknowledgment.discard(patient_id)

        if patient.status != PatientStatus.INACTIVE:
            self.bus.emit(
                Event(
                    type=EventType.PATIENT_STATUS_CHANGED,
                    patient_id=patient_id,
                    payload={"new_status": PatientStatus.INACTIVE.value},
                )
            )
        self._notify("  ✓ Patient marked inactive; new goals can now be set")
        return True
