"""
Test fixtures for the goalcascade test suite.

Provides:
- Working directory isolation (no stray .goalcascade/ config is picked up)
- Mock data builders for creating patients and milestones
- Store, bus and engine fixtures wired together
"""

from datetime import date
from typing import Dict, Optional

import pytest

from goalcascade.constants import reset_config_manager
from goalcascade.core import CascadeEngine
from goalcascade.managers.events import EventBus, RecordingListener
from goalcascade.managers.goal_store import InMemoryGoalStore
from goalcascade.models.base import (
    Milestone,
    MilestoneLevel,
    MilestoneStatus,
    Patient,
    PatientStatus,
)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every test from an empty directory with a fresh config singleton."""
    monkeypatch.chdir(tmp_path)
    reset_config_manager()
    yield tmp_path
    reset_config_manager()


# =============================================================================
# Mock Data Builders
# =============================================================================


class MockDataBuilder:
    """Helper class for building mock records for testing."""

    @staticmethod
    def create_patient(
        name: str = "Test Patient",
        status: PatientStatus = PatientStatus.ACTIVE,
        id: Optional[str] = None,
    ) -> Patient:
        """Create a mock Patient for testing."""
        patient = Patient(name=name, status=status)
        if id:
            patient.id = id
        return patient

    @staticmethod
    def create_milestone(
        level: MilestoneLevel,
        patient_id: str = "patient-1",
        title: str = "Test Goal",
        status: MilestoneStatus = MilestoneStatus.ACTIVE,
        parent_id: Optional[str] = None,
        sequence_number: int = 1,
        id: Optional[str] = None,
        completion_rate: Optional[int] = None,
    ) -> Milestone:
        """Create a mock Milestone, filling in completion fields for its status."""
        completed = status == MilestoneStatus.COMPLETED
        values = dict(
            patient_id=patient_id,
            title=title,
            level=level,
            parent_id=parent_id,
            sequence_number=sequence_number,
            status=status,
            completion_rate=completion_rate if completion_rate is not None else (100 if completed else 0),
            completion_date=date.today() if completed else None,
        )
        if id:
            values["id"] = id
        return Milestone(**values)

    def create_outcome(self, patient_id: str = "patient-1", **kwargs) -> Milestone:
        """Create a mock Outcome for testing."""
        kwargs.setdefault("title", "Test Outcome")
        return self.create_milestone(MilestoneLevel.OUTCOME, patient_id, **kwargs)

    def create_phase(self, parent_id: str, patient_id: str = "patient-1", **kwargs) -> Milestone:
        """Create a mock Phase for testing."""
        kwargs.setdefault("title", "Test Phase")
        return self.create_milestone(
            MilestoneLevel.PHASE, patient_id, parent_id=parent_id, **kwargs
        )

    def create_task(self, parent_id: str, patient_id: str = "patient-1", **kwargs) -> Milestone:
        """Create a mock Task for testing."""
        kwargs.setdefault("title", "Test Task")
        return self.create_milestone(
            MilestoneLevel.TASK, patient_id, parent_id=parent_id, **kwargs
        )


@pytest.fixture
def mock_data() -> MockDataBuilder:
    """Provide mock data builder for record creation."""
    return MockDataBuilder()


# =============================================================================
# Store / Engine Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryGoalStore:
    """Empty in-memory goal store."""
    return InMemoryGoalStore()


@pytest.fixture
def patient(store, mock_data) -> Patient:
    """An active patient registered in the store."""
    return store.add_patient(mock_data.create_patient(id="patient-1"))


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus) -> RecordingListener:
    """Listener capturing every event on the bus."""
    listener = RecordingListener()
    bus.subscribe(listener)
    return listener


@pytest.fixture
def engine(store, bus) -> CascadeEngine:
    """Silent engine over the in-memory store."""
    return CascadeEngine(store, bus, echo=False, confirm_completion_rate=100)


@pytest.fixture
def sample_tree(store, patient, mock_data) -> Dict[str, Milestone]:
    """Create a patient tree for cascade tests.

    Structure:
        outcome (active)
        ├── phase-1 (completed)
        │   └── task-0 (completed)
        └── phase-2 (active)
            ├── task-1 (completed)
            └── task-2 (active)
    """
    items = {}
    items["outcome"] = mock_data.create_outcome(id="outcome", title="Walk independently")
    items["phase-1"] = mock_data.create_phase(
        "outcome", id="phase-1", title="Stand unaided", status=MilestoneStatus.COMPLETED
    )
    items["task-0"] = mock_data.create_task(
        "phase-1", id="task-0", title="Stand 1 minute", status=MilestoneStatus.COMPLETED
    )
    items["phase-2"] = mock_data.create_phase(
        "outcome", id="phase-2", title="Walk with frame", sequence_number=2
    )
    items["task-1"] = mock_data.create_task(
        "phase-2", id="task-1", title="Walk 10 metres", status=MilestoneStatus.COMPLETED
    )
    items["task-2"] = mock_data.create_task(
        "phase-2", id="task-2", title="Walk 20 metres", sequence_number=2
    )
    for milestone in items.values():
        store.add_milestone(milestone)
    return items
