"""
Data models for the goal cascade engine.

Import models explicitly from their modules to avoid circular imports:
    from goalcascade.models.base import Milestone, MilestoneLevel, MilestoneStatus
    from goalcascade.models.files import StoreFile, ArchiveFile, ConfigFile
"""

from .base import (
    CascadeResult,
    ConfirmationResult,
    Milestone,
    MilestoneLevel,
    MilestoneStatus,
    Patient,
    PatientStatus,
)

CascadeResult.model_rebuild()
ConfirmationResult.model_rebuild()

__all__ = [
    "CascadeResult",
    "ConfirmationResult",
    "Milestone",
    "MilestoneLevel",
    "MilestoneStatus",
    "Patient",
    "PatientStatus",
]
