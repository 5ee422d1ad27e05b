"""
Base record models for the goal cascade engine.

A patient owns a three-level milestone tree:
Outcome (long horizon) -> Phase (mid horizon) -> Task (leaf).
Records are flat with parent_id references, the way they are stored.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from goalcascade.constants import VALIDATION_COMPLETION_DATE


class MilestoneLevel(str, Enum):
    """Levels of the milestone tree, top to bottom."""

    OUTCOME = "outcome"
    PHASE = "phase"
    TASK = "task"


class MilestoneStatus(str, Enum):
    """Valid status values for milestones."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class PatientStatus(str, Enum):
    """Patient lifecycle states handled by the engine."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCHARGED = "discharged"
    PENDING = "pending"


class Milestone(BaseModel):
    """
    A goal at any level of a patient's tree.

    Fields:
    - id: Unique identifier
    - patient_id: Owning patient
    - level: outcome, phase or task
    - parent_id: Milestone one level up (None for outcomes)
    - sequence_number: Ordering within siblings
    - status / completion_rate / completion_date: Progress state
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    patient_id: str
    title: str
    description: Optional[str] = None
    level: MilestoneLevel
    parent_id: Optional[str] = None
    sequence_number: int = Field(default=1, ge=0)
    status: MilestoneStatus = MilestoneStatus.PENDING
    completion_rate: int = Field(default=0, ge=0, le=100)
    completion_date: Optional[date] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def validate_consistency(self) -> "Milestone":
        """Check parent linkage and the completion date invariant."""
        if self.level == MilestoneLevel.OUTCOME and self.parent_id is not None:
            raise ValueError("Outcome milestones cannot have a parent")
        if self.level != MilestoneLevel.OUTCOME and self.parent_id is None:
            raise ValueError(f"{self.level.value.capitalize()} milestones require a parent")
        if (self.status == MilestoneStatus.COMPLETED) != (self.completion_date is not None):
            raise ValueError(VALIDATION_COMPLETION_DATE)
        return self

    @property
    def is_leaf(self) -> bool:
        """Tasks are the only leaves."""
        return self.level == MilestoneLevel.TASK

    @property
    def is_resolved(self) -> bool:
        """Completed and cancelled are terminal."""
        return self.status in (MilestoneStatus.COMPLETED, MilestoneStatus.CANCELLED)

    @property
    def display_name(self) -> str:
        """Label used in user-facing messages."""
        return f"{self.level.value.capitalize()} '{self.title}'"


class Patient(BaseModel):
    """Patient record; only the status is touched by the engine."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    status: PatientStatus = PatientStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CascadeResult(BaseModel):
    """Outcome of a leaf status change.

    cascade_offered is the ancestor now awaiting confirmation, if any.
    pending is the request that was already open when a new offer was suppressed.
    """

    cascade_offered: Optional[Milestone] = None
    pending: Optional[Milestone] = None


class ConfirmationResult(BaseModel):
    """Outcome of a confirmed cascade."""

    milestone: Milestone
    all_goals_complete: bool = False
    cascade_offered: Optional[Milestone] = None
