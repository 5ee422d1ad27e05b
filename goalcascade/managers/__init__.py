"""
Managers for the goal cascade engine.

This package contains focused classes that each handle one step of the cascade:
- GoalStore: Persistence boundary (in-memory and JSON implementations)
- ProgressAggregator: Completion values for milestones
- CompletionEvaluator: Detects cascade-eligible ancestors
- ConfirmationWorkflow: Single-slot confirmation state per patient
- PatientLifecycleController: All-goals-achieved transition
- EventBus: Injected notification fan-out
- CompletionArchiveListener: Archive completed outcomes
"""

from goalcascade.managers.goal_store import (
    GoalStore,
    InMemoryGoalStore,
    JsonGoalStore,
    RecordGoalStore,
)
from goalcascade.managers.progress_aggregator import ProgressAggregator
from goalcascade.managers.completion_evaluator import (
    CompletionEvaluator,
    is_cascade_eligible,
)
from goalcascade.managers.confirmation_workflow import (
    ConfirmationSlot,
    ConfirmationWorkflow,
    Resolution,
    WorkflowState,
)
from goalcascade.managers.lifecycle_controller import PatientLifecycleController
from goalcascade.managers.events import (
    Event,
    EventBus,
    EventListener,
    EventType,
    RecordingListener,
)
from goalcascade.managers.auto_archive import CompletionArchiveListener

__all__ = [
    "GoalStore",
    "InMemoryGoalStore",
    "JsonGoalStore",
    "RecordGoalStore",
    "ProgressAggregator",
    "CompletionEvaluator",
    "is_cascade_eligible",
    "ConfirmationSlot",
    "ConfirmationWorkflow",
    "Resolution",
    "WorkflowState",
    "PatientLifecycleController",
    "Event",
    "EventBus",
    "EventListener",
    "EventType",
    "RecordingListener",
    "CompletionArchiveListener",
]
