"""
File models for the goal cascade engine.

Models representing the structure of JSON files in the .goalcascade/ directory.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from goalcascade.constants import (
    DEFAULT_AUTO_ARCHIVE_ENABLED,
    DEFAULT_CONFIRM_COMPLETION_RATE,
    DEFAULT_DATE_FORMAT,
    DEFAULT_EXPECTED_TASK_COUNT,
    DEFAULT_PERCENTAGE_ROUND_PRECISION,
)

from .base import Milestone, Patient


class StoreFile(BaseModel):
    """Model for goals.json file.

    Flat lists of patients and milestones with parent_id references.
    Milestone order is the store order used for first-match evaluation.
    """

    patients: List[Patient] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)


class ArchiveFile(BaseModel):
    """Model for archive/outcome-<id>.json files.

    Snapshot of a completed outcome and everything below it.
    """

    outcome: Milestone
    descendants: List[Milestone] = Field(default_factory=list)
    archived_at: datetime = Field(default_factory=datetime.now)


class ConfigFile(BaseModel):
    """Model for config.json file."""

    schema_version: str = "0.1.0"

    confirm_completion_rate: int = Field(default=DEFAULT_CONFIRM_COMPLETION_RATE, ge=0, le=100)
    percentage_round_precision: int = DEFAULT_PERCENTAGE_ROUND_PRECISION
    expected_task_count: int = Field(default=DEFAULT_EXPECTED_TASK_COUNT, gt=0)
    auto_archive_enabled: bool = DEFAULT_AUTO_ARCHIVE_ENABLED
    date_format: str = DEFAULT_DATE_FORMAT
