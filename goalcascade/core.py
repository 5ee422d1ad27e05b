"""
CascadeEngine - entry points for the goal completion cascade.

Orchestrates manager classes for every cascade operation:
leaf change -> evaluation -> confirmation -> promotion -> patient lifecycle.
Work for one patient is serialized with a per-patient asyncio lock.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Dict, Optional

import click

from goalcascade.constants import (
    LEAF_STATUSES,
    VALIDATION_INVALID_LEAF_STATUS,
    get_auto_archive_enabled,
    get_confirm_completion_rate,
)
from goalcascade.exceptions import ConfigurationError, StoreReadFailure, ValidationError
from goalcascade.managers import (
    CompletionArchiveListener,
    CompletionEvaluator,
    ConfirmationWorkflow,
    Event,
    EventBus,
    EventType,
    GoalStore,
    JsonGoalStore,
    PatientLifecycleController,
    ProgressAggregator,
    Resolution,
    WorkflowState,
)
from goalcascade.models.base import (
    CascadeResult,
    ConfirmationResult,
    Milestone,
    MilestoneLevel,
    MilestoneStatus,
)


class CascadeEngine:
    """
    Core class for the completion cascade.

    Orchestrates manager classes:
    - GoalStore: Reads and writes milestones and patients
    - ProgressAggregator: Leaf values and display percentages
    - CompletionEvaluator: Finds eligible ancestors
    - ConfirmationWorkflow: One open confirmation per patient
    - PatientLifecycleController: All-goals-achieved transition
    - EventBus: Notification fan-out
    """

    def __init__(
        self,
        store: GoalStore,
        bus: Optional[EventBus] = None,
        echo: bool = True,
        confirm_completion_rate: Optional[int] = None,
    ):
        """
        Initialize the CascadeEngine around a goal store.

        Args:
            store: GoalStore the engine reads and writes through.
            bus: EventBus for notifications. A private bus is created if omitted.
            echo: Whether to print user-facing notices.
            confirm_completion_rate: Rate written on confirmation. Defaults to config value.
        """
        self.store = store
        self.bus = bus if bus is not None else EventBus()
        self._echo = echo
        self._confirm_rate = (
            confirm_completion_rate
            if confirm_completion_rate is not None
            else get_confirm_completion_rate()
        )
        if not 0 <= self._confirm_rate <= 100:
            raise ConfigurationError(
                f"confirm_completion_rate must be between 0 and 100, got {self._confirm_rate}"
            )

        self.aggregator = ProgressAggregator()
        self.evaluator = CompletionEvaluator(store)
        self.workflow = ConfirmationWorkflow()
        self.lifecycle = PatientLifecycleController(store, self.bus, echo=echo)
        self.archive_listener: Optional[CompletionArchiveListener] = None

        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @classmethod
    def from_data_dir(
        cls,
        data_dir: Optional[Path] = None,
        auto_archive_enabled: Optional[bool] = None,
        echo: bool = True,
    ) -> "CascadeEngine":
        """
        Build an engine over a .goalcascade/ directory.

        Args:
            data_dir: Path to .goalcascade/ directory. Defaults to .goalcascade/ in current directory.
            auto_archive_enabled: Whether to archive completed outcomes. Defaults to config value.
            echo: Whether to print user-facing notices.
        """
        store = JsonGoalStore(data_dir)
        engine = cls(store, EventBus(), echo=echo)
        if auto_archive_enabled is None:
            auto_archive_enabled = get_auto_archive_enabled()
        if auto_archive_enabled:
            engine.archive_listener = CompletionArchiveListener(store, enabled=True)
            engine.bus.subscribe(engine.archive_listener)
        return engine

    @asynccontextmanager
    async def _patient_lock(self, patient_id: str):
        """Hold the patient's lock; the entry is dropped when nobody uses it."""
        if patient_id not in self._locks:
            self._locks[patient_id] = asyncio.Lock()
            self._lock_users[patient_id] = 0
        lock = self._locks[patient_id]
        self._lock_users[patient_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[patient_id] -= 1
            if self._lock_users[patient_id] == 0:
                del self._locks[patient_id]
                del self._lock_users[patient_id]

    def _notify(self, message: str, err: bool = False) -> None:
        if self._echo:
            click.echo(message, err=err)

    # =========================================================================
    # Leaf changes
    # =========================================================================

    async def set_leaf_status(
        self, patient_id: str, leaf_id: str, status: MilestoneStatus
    ) -> CascadeResult:
        """Write a task's status and run the cascade for it.

        Args:
            patient_id: Owner of the task.
            leaf_id: Task being edited.
            status: active, completed or cancelled.

        Returns:
            CascadeResult with the ancestor offered for confirmation, if any.
        """
        status = self._validate_leaf_status(status)
        async with self._patient_lock(patient_id):
            leaf = await self.store.get_milestone(leaf_id)
            if leaf.patient_id != patient_id:
                raise ValidationError(f"Milestone {leaf_id} does not belong to patient {patient_id}")
            if not leaf.is_leaf:
                raise ValidationError(f"Only tasks can be edited directly; {leaf.display_name} is not one")

            rate, completion_date = self.aggregator.leaf_values(status)
            await self.store.write_milestone_status(leaf_id, status, rate, completion_date)
            return await self._evaluate(patient_id, leaf_id, status)

    async def on_leaf_status_changed(
        self, patient_id: str, leaf_id: str, new_status: MilestoneStatus
    ) -> CascadeResult:
        """Run the cascade after a task's status was written elsewhere.

        Args:
            patient_id: Owner of the task.
            leaf_id: Task that changed.
            new_status: Its new status.

        Returns:
            CascadeResult with the ancestor offered for confirmation, if any.
        """
        new_status = self._validate_leaf_status(new_status)
        async with self._patient_lock(patient_id):
            return await self._evaluate(patient_id, leaf_id, new_status)

    @staticmethod
    def _validate_leaf_status(status) -> MilestoneStatus:
        try:
            status = MilestoneStatus(status)
        except ValueError:
            raise ValidationError(VALIDATION_INVALID_LEAF_STATUS)
        if status.value not in LEAF_STATUSES:
            raise ValidationError(VALIDATION_INVALID_LEAF_STATUS)
        return status

    async def _evaluate(
        self,
        patient_id: str,
        leaf_id: Optional[str] = None,
        new_status: Optional[MilestoneStatus] = None,
    ) -> CascadeResult:
        """Evaluate and open a confirmation if the slot is free. Caller holds the lock."""
        if self.workflow.state(patient_id) != WorkflowState.IDLE:
            return CascadeResult(pending=self.workflow.pending(patient_id))

        candidate = await self.evaluator.evaluate(patient_id, leaf_id)
        if candidate is None:
            if new_status is not None:
                self._notify_leaf(new_status)
            return CascadeResult()

        if not self.workflow.open(patient_id, candidate):
            return CascadeResult(pending=self.workflow.pending(patient_id))

        self.bus.emit(
            Event(
                type=EventType.CASCADE_OFFERED,
                patient_id=patient_id,
                payload={"milestone_id": candidate.id, "level": candidate.level.value},
            )
        )
        self._notify(f"  ? All goals under {candidate.display_name} are done; confirmation requested")
        return CascadeResult(cascade_offered=candidate)

    def _notify_leaf(self, status: MilestoneStatus) -> None:
        if status == MilestoneStatus.COMPLETED:
            self._notify("  ✓ Goal achieved")
        elif status == MilestoneStatus.CANCELLED:
            self._notify("  Goal marked as not achieved")
        else:
            self._notify("  Goal status reset")

    # =========================================================================
    # Resolution
    # =========================================================================

    async def confirm_cascade(self, milestone_id: str) -> ConfirmationResult:
        """Promote the milestone awaiting confirmation to completed.

        Eligibility, and for an outcome the set of outcomes left open, is
        read before writing. On any failure up to the write the patient's
        slot returns to idle and the error propagates unchanged. A failed
        read while looking for a follow-up offer after a phase is reported
        on stderr; the phase stays completed.

        Args:
            milestone_id: Phase or outcome awaiting confirmation.

        Returns:
            ConfirmationResult; for a phase it may carry a follow-up offer
            for its outcome, for an outcome it reports whether every goal
            of the patient is now complete.
        """
        patient_id = self.workflow.find_pending(milestone_id).patient_id
        async with self._patient_lock(patient_id):
            self.workflow.find_pending(milestone_id)
            try:
                milestone = await self.evaluator.revalidate(milestone_id)
                remaining = None
                if milestone.level == MilestoneLevel.OUTCOME:
                    remaining = await self.lifecycle.remaining_outcomes(patient_id, milestone_id)
                updated = await self.store.write_milestone_status(
                    milestone_id,
                    MilestoneStatus.COMPLETED,
                    self._confirm_rate,
                    date.today(),
                )
                self.workflow.resolve(patient_id, Resolution.CONFIRMED)
                self._notify(f"  ✓ {updated.display_name} marked complete")
                self.bus.emit(
                    Event(
                        type=EventType.MILESTONE_COMPLETED,
                        patient_id=patient_id,
                        payload={"milestone_id": updated.id, "level": updated.level.value},
                    )
                )

                if updated.level == MilestoneLevel.OUTCOME:
                    all_complete = await self.lifecycle.after_outcome_completed(
                        patient_id, remaining
                    )
                    if all_complete:
                        # Slot stays resolved until the acknowledgment closes it
                        return ConfirmationResult(milestone=updated, all_goals_complete=True)
                    self.workflow.finish(patient_id)
                    return ConfirmationResult(milestone=updated)

                self.workflow.finish(patient_id)
            except Exception:
                self.workflow.reset(patient_id)
                raise

            # The phase is already written; a failed follow-up check is
            # reported and retried on the next task change.
            try:
                follow_up = await self._evaluate(patient_id)
            except StoreReadFailure as e:
                click.echo(f"  ⚠ Could not check the outcome above {updated.display_name}: {e}", err=True)
                return ConfirmationResult(milestone=updated)
            return ConfirmationResult(milestone=updated, cascade_offered=follow_up.cascade_offered)

    async def decline_cascade(self, milestone_id: str) -> Milestone:
        """Close the pending confirmation without changing anything.

        The milestone stays eligible and is offered again on the next
        qualifying leaf change.

        Args:
            milestone_id: Phase or outcome awaiting confirmation.

        Returns:
            The milestone that was declined.
        """
        patient_id = self.workflow.find_pending(milestone_id).patient_id
        async with self._patient_lock(patient_id):
            slot = self.workflow.find_pending(milestone_id)
            milestone = slot.milestone
            self.workflow.resolve(patient_id, Resolution.DECLINED)
            self.bus.emit(
                Event(
                    type=EventType.CASCADE_DECLINED,
                    patient_id=patient_id,
                    payload={"milestone_id": milestone.id, "level": milestone.level.value},
                )
            )
            self._notify(f"  {milestone.display_name} is still in progress")
            self.workflow.finish(patient_id)
            return milestone

    async def acknowledge_all_goals_complete(self, patient_id: str) -> bool:
        """Close the all-goals gate and deactivate the patient if still warranted.

        Args:
            patient_id: Patient whose goals were all completed.

        Returns:
            True if the patient was set inactive.
        """
        async with self._patient_lock(patient_id):
            transitioned = await self.lifecycle.acknowledge_all_goals_complete(patient_id)
            if self.workflow.state(patient_id) == WorkflowState.RESOLVED:
                self.workflow.finish(patient_id)
            return transitioned

    # =========================================================================
    # Queries
    # =========================================================================

    def pending_confirmation(self, patient_id: str) -> Optional[Milestone]:
        """Milestone awaiting confirmation for a patient, or None."""
        return self.workflow.pending(patient_id)

    async def completion_summary(self, milestone_id: str) -> Dict[str, object]:
        """Display percentages and counts for one milestone."""
        milestone = await self.store.get_milestone(milestone_id)
        descendants = await self.store.get_descendants(milestone_id)
        summary = self.aggregator.calculate_completion_percentage(milestone, descendants)
        summary["stats"] = self.aggregator.get_completion_stats(descendants)
        if milestone.level == MilestoneLevel.OUTCOME:
            summary["achievement_rate"] = self.aggregator.achievement_rate(descendants)
        return summary
