"""
Goal stores for the goal cascade engine.

GoalStore is the persistence boundary the engine talks to. Two implementations:
- InMemoryGoalStore: records held in memory, used by tests and embedding callers
- JsonGoalStore: .goalcascade/goals.json with atomic writes
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from goalcascade.constants import DEFAULT_DATA_DIR
from goalcascade.exceptions import (
    NotFoundError,
    StoreReadFailure,
    StoreWriteFailure,
    ValidationError,
)
from goalcascade.models.base import (
    Milestone,
    MilestoneLevel,
    MilestoneStatus,
    Patient,
    PatientStatus,
)
from goalcascade.models.files import ArchiveFile, ConfigFile, StoreFile


class GoalStore(ABC):
    """
    Read/write operations over milestone and patient records.

    All operations are coroutines; callers must not assume they complete
    without suspending.
    """

    @abstractmethod
    async def get_non_completed_outcomes(self, patient_id: str) -> List[Milestone]:
        """Outcome milestones of a patient whose status is not completed, in store order."""

    @abstractmethod
    async def get_descendants(self, milestone_id: str) -> List[Milestone]:
        """Every milestone below milestone_id, any level, in store order."""

    @abstractmethod
    async def write_milestone_status(
        self,
        milestone_id: str,
        status: MilestoneStatus,
        completion_rate: int,
        completion_date: Optional[date] = None,
    ) -> Milestone:
        """Persist a status change and return the updated record."""

    @abstractmethod
    async def write_patient_status(self, patient_id: str, status: PatientStatus) -> Patient:
        """Persist a patient status change and return the updated record."""

    @abstractmethod
    async def get_milestone(self, milestone_id: str) -> Milestone:
        """Fetch one milestone.

        Raises:
            NotFoundError: If no milestone has this id.
        """

    @abstractmethod
    async def get_patient(self, patient_id: str) -> Patient:
        """Fetch one patient.

        Raises:
            NotFoundError: If no patient has this id.
        """

    @abstractmethod
    async def get_patient_milestones(self, patient_id: str) -> List[Milestone]:
        """Every milestone owned by a patient, in store order."""


class RecordGoalStore(GoalStore):
    """
    GoalStore over a StoreFile document.

    Subclasses supply _load() and _save(); all queries and validation live here.
    """

    @abstractmethod
    def _load(self) -> StoreFile:
        """Return the current document."""

    @abstractmethod
    def _save(self, data: StoreFile) -> None:
        """Persist the document."""

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_non_completed_outcomes(self, patient_id: str) -> List[Milestone]:
        data = self._load()
        return [
            m for m in data.milestones
            if m.patient_id == patient_id
            and m.level == MilestoneLevel.OUTCOME
            and m.status != MilestoneStatus.COMPLETED
        ]

    async def get_descendants(self, milestone_id: str) -> List[Milestone]:
        return self._collect_descendants(self._load(), milestone_id)

    async def get_milestone(self, milestone_id: str) -> Milestone:
        data = self._load()
        for milestone in data.milestones:
            if milestone.id == milestone_id:
                return milestone
        raise NotFoundError(f"Milestone not found: {milestone_id}")

    async def get_patient(self, patient_id: str) -> Patient:
        data = self._load()
        for patient in data.patients:
            if patient.id == patient_id:
                return patient
        raise NotFoundError(f"Patient not found: {patient_id}")

    async def get_patient_milestones(self, patient_id: str) -> List[Milestone]:
        data = self._load()
        return [m for m in data.milestones if m.patient_id == patient_id]

    # =========================================================================
    # Writes
    # =========================================================================

    async def write_milestone_status(
        self,
        milestone_id: str,
        status: MilestoneStatus,
        completion_rate: int,
        completion_date: Optional[date] = None,
    ) -> Milestone:
        data = self._load()
        index = self._index_of(data.milestones, milestone_id, "Milestone")
        updated = self._revalidate(
            Milestone,
            data.milestones[index],
            status=status,
            completion_rate=completion_rate,
            completion_date=completion_date,
        )
        data.milestones[index] = updated
        self._save(data)
        return updated

    async def write_patient_status(self, patient_id: str, status: PatientStatus) -> Patient:
        data = self._load()
        index = self._index_of(data.patients, patient_id, "Patient")
        updated = self._revalidate(Patient, data.patients[index], status=status)
        data.patients[index] = updated
        self._save(data)
        return updated

    # =========================================================================
    # Authoring helpers (goal creation lives outside the engine)
    # =========================================================================

    def add_patient(self, patient: Patient) -> Patient:
        """Append a patient record."""
        data = self._load()
        if any(p.id == patient.id for p in data.patients):
            raise ValidationError(f"Patient already exists: {patient.id}")
        data.patients.append(patient)
        self._save(data)
        return patient

    def add_milestone(self, milestone: Milestone) -> Milestone:
        """Append a milestone record after checking its parent linkage."""
        data = self._load()
        if any(m.id == milestone.id for m in data.milestones):
            raise ValidationError(f"Milestone already exists: {milestone.id}")
        if not any(p.id == milestone.patient_id for p in data.patients):
            raise NotFoundError(f"Patient not found: {milestone.patient_id}")
        if milestone.parent_id is not None:
            parent = next((m for m in data.milestones if m.id == milestone.parent_id), None)
            if parent is None:
                raise NotFoundError(f"Parent milestone not found: {milestone.parent_id}")
            if parent.patient_id != milestone.patient_id:
                raise ValidationError("Parent milestone belongs to another patient")
            if parent.level == MilestoneLevel.TASK:
                raise ValidationError("Tasks cannot have children")
            if milestone.level == MilestoneLevel.PHASE and parent.level != MilestoneLevel.OUTCOME:
                raise ValidationError("Phases can only have Outcomes as parents")
        data.milestones.append(milestone)
        self._save(data)
        return milestone

    def snapshot_outcome(self, outcome_id: str) -> ArchiveFile:
        """Copy of an outcome and its whole subtree."""
        data = self._load()
        index = self._index_of(data.milestones, outcome_id, "Milestone")
        return ArchiveFile(
            outcome=data.milestones[index],
            descendants=self._collect_descendants(data, outcome_id),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _collect_descendants(data: StoreFile, milestone_id: str) -> List[Milestone]:
        found = {milestone_id}
        frontier = {milestone_id}
        while frontier:
            children = {
                m.id for m in data.milestones
                if m.parent_id in frontier and m.id not in found
            }
            found |= children
            frontier = children
        found.discard(milestone_id)
        return [m for m in data.milestones if m.id in found]

    @staticmethod
    def _index_of(records: List[Any], record_id: str, kind: str) -> int:
        for index, record in enumerate(records):
            if record.id == record_id:
                return index
        raise NotFoundError(f"{kind} not found: {record_id}")

    @staticmethod
    def _revalidate(model, record, **updates):
        """Build the updated record through validation before anything is stored."""
        values = record.model_dump()
        values.update(updates)
        values["updated_at"] = datetime.now()
        try:
            return model.model_validate(values)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid update for {record.id}: {e}")


class InMemoryGoalStore(RecordGoalStore):
    """Goal store held in process memory."""

    def __init__(self, data: Optional[StoreFile] = None) -> None:
        self._data = data if data is not None else StoreFile()

    def _load(self) -> StoreFile:
        return self._data

    def _save(self, data: StoreFile) -> None:
        self._data = data


class JsonGoalStore(RecordGoalStore):
    """
    Goal store persisted to JSON files in the .goalcascade/ directory.

    Handles atomic writes to prevent data corruption.
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        """
        Initialize the store with a .goalcascade/ directory path.

        Args:
            data_dir: Path to the .goalcascade/ directory. Defaults to .goalcascade/ in current directory.
        """
        self.data_dir = data_dir if data_dir else Path(DEFAULT_DATA_DIR)
        self.archive_dir = self.data_dir / "archive"
        self.goals_path = self.data_dir / "goals.json"
        self._ensure_data_dir()

    def _ensure_data_dir(self) -> None:
        """Create the data directory and archive subdirectory if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.archive_dir.mkdir(exist_ok=True)

    def _atomic_write(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Write data to a JSON file atomically to prevent corruption.

        Args:
            file_path: Path to the file to write.
            data: Dictionary data to write as JSON.

        Raises:
            StoreWriteFailure: If writing to file fails.
        """
        try:
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.data_dir, prefix=".tmp_goals_", suffix=".json"
            )
        except OSError as e:
            raise StoreWriteFailure(f"Failed to write to {file_path}: {e}")

        try:
            with os.fdopen(temp_fd, "w") as temp_file:
                json.dump(data, temp_file, indent=2)
            os.replace(temp_path, file_path)
        except Exception as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StoreWriteFailure(f"Failed to write to {file_path}: {e}")

    def _load(self) -> StoreFile:
        """Load goals.json and return as StoreFile model."""
        if not self.goals_path.exists():
            return StoreFile()

        try:
            with open(self.goals_path, "r") as f:
                data = json.load(f)
            return StoreFile.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            raise StoreReadFailure(f"Failed to load goals.json: {e}")

    def _save(self, data: StoreFile) -> None:
        """Save StoreFile model to goals.json."""
        self._atomic_write(self.goals_path, data.model_dump(mode="json"))

    def initialize(self) -> None:
        """Write an empty goals.json, replacing any existing one."""
        self._save(StoreFile())

    # =========================================================================
    # Config File
    # =========================================================================

    def load_config(self) -> ConfigFile:
        """Load config.json and return as ConfigFile model."""
        file_path = self.data_dir / "config.json"
        if not file_path.exists():
            return ConfigFile()

        try:
            with open(file_path, "r") as f:
                data = json.load(f)
            return ConfigFile.model_validate(data)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise StoreReadFailure(f"Failed to load config.json: {e}")

    def save_config(self, data: ConfigFile) -> None:
        """Save ConfigFile model to config.json."""
        self._atomic_write(self.data_dir / "config.json", data.model_dump(mode="json"))

    # =========================================================================
    # Archive
    # =========================================================================

    def archive_outcome(self, data: ArchiveFile) -> Path:
        """Write a completed outcome snapshot to archive/outcome-<id>.json."""
        file_path = self.archive_dir / f"outcome-{data.outcome.id}.json"
        self._atomic_write(file_path, data.model_dump(mode="json"))
        return file_path

    def load_archived_outcome(self, outcome_id: str) -> Optional[ArchiveFile]:
        """Load an archived outcome snapshot, or None if it was never archived."""
        file_path = self.archive_dir / f"outcome-{outcome_id}.json"
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r") as f:
                data = json.load(f)
            return ArchiveFile.model_validate(data)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise StoreReadFailure(f"Failed to load archived outcome: {e}")
