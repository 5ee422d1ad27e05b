"""
ConfirmationWorkflow: the single-slot confirmation state machine.

Each patient has one slot:

    Idle -> PendingConfirmation(milestone) -> Resolved(confirmed|declined) -> Idle

A slot that is not Idle refuses new requests, so at most one confirmation
is open per patient.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from goalcascade.exceptions import InvalidStateTransition
from goalcascade.models.base import Milestone


class WorkflowState(str, Enum):
    """States of a patient's confirmation slot."""
    IDLE = "idle"
    PENDING_CONFIRMATION = "pending_confirmation"
    RESOLVED = "resolved"


class Resolution(str, Enum):
    """How a pending confirmation was answered."""
    CONFIRMED = "confirmed"
    DECLINED = "declined"


@dataclass
class ConfirmationSlot:
    """Confirmation state for one patient."""
    patient_id: str
    state: WorkflowState = WorkflowState.IDLE
    milestone: Optional[Milestone] = None
    resolution: Optional[Resolution] = None


class ConfirmationWorkflow:
    """Holds one confirmation slot per patient."""

    def __init__(self) -> None:
        self._slots: Dict[str, ConfirmationSlot] = {}

    def slot(self, patient_id: str) -> ConfirmationSlot:
        """Get the slot for a patient; idle slots are not kept."""
        slot = self._slots.get(patient_id)
        if slot is None:
            return ConfirmationSlot(patient_id=patient_id)
        return slot

    def state(self, patient_id: str) -> WorkflowState:
        return self.slot(patient_id).state

    def pending(self, patient_id: str) -> Optional[Milestone]:
        """Milestone awaiting an answer, or None."""
        slot = self.slot(patient_id)
        if slot.state == WorkflowState.PENDING_CONFIRMATION:
            return slot.milestone
        return None

    def open(self, patient_id: str, milestone: Milestone) -> bool:
        """Request confirmation for a milestone.

        Returns:
            False if the slot is busy; the existing request is left untouched.
        """
        if self.state(patient_id) != WorkflowState.IDLE:
            return False
        self._slots[patient_id] = ConfirmationSlot(
            patient_id=patient_id,
            state=WorkflowState.PENDING_CONFIRMATION,
            milestone=milestone,
        )
        return True

    def find_pending(self, milestone_id: str) -> ConfirmationSlot:
        """Find the slot whose pending request is for milestone_id.

        Raises:
            InvalidStateTransition: If no request is open for it.
        """
        for slot in self._slots.values():
            if (
                slot.state == WorkflowState.PENDING_CONFIRMATION
                and slot.milestone is not None
                and slot.milestone.id == milestone_id
            ):
                return slot
        raise InvalidStateTransition(f"No confirmation pending for milestone {milestone_id}")

    def resolve(self, patient_id: str, resolution: Resolution) -> ConfirmationSlot:
        """Record the answer to the pending request."""
        slot = self.slot(patient_id)
        if slot.state != WorkflowState.PENDING_CONFIRMATION:
            raise InvalidStateTransition(
                f"Cannot resolve confirmation for patient {patient_id} in state {slot.state.value}"
            )
        slot.state = WorkflowState.RESOLVED
        slot.resolution = resolution
        return slot

    def finish(self, patient_id: str) -> None:
        """Return a resolved slot to idle once its outcome has been acted on."""
        slot = self.slot(patient_id)
        if slot.state != WorkflowState.RESOLVED:
            raise InvalidStateTransition(
                f"Cannot finish confirmation for patient {patient_id} in state {slot.state.value}"
            )
        self.reset(patient_id)

    def reset(self, patient_id: str) -> None:
        """Force the slot back to idle, dropping any request."""
        self._slots.pop(patient_id, None)

    def busy_count(self) -> int:
        """Number of patients whose slot is not idle."""
        return len(self._slots)
