"""
Archive listener for completed outcomes.

Writes a snapshot of each completed outcome and its subtree to the archive.
"""
from typing import List

import click

from goalcascade.managers.events import Event, EventListener, EventType
from goalcascade.managers.goal_store import JsonGoalStore
from goalcascade.models.base import MilestoneLevel


class CompletionArchiveListener(EventListener):
    """
    Archives outcomes when they are completed.

    Phases are left alone; they are archived as part of their outcome.
    """

    def __init__(self, store: JsonGoalStore, enabled: bool = True) -> None:
        """
        Initialize CompletionArchiveListener.

        Args:
            store: JsonGoalStore holding the archive directory.
            enabled: Whether archiving is enabled.
        """
        self.store = store
        self.enabled = enabled

    @property
    def subscribed_events(self) -> List[EventType]:
        """Return list of events this listener handles."""
        return [EventType.MILESTONE_COMPLETED]

    def handle(self, event: Event) -> None:
        """Handle a milestone completion event.

        Args:
            event: The completion event.
        """
        if not self.enabled:
            return

        if event.payload.get("level") != MilestoneLevel.OUTCOME.value:
            return

        snapshot = self.store.snapshot_outcome(event.payload["milestone_id"])
        path = self.store.archive_outcome(snapshot)
        click.echo(f"  📦 Archived outcome '{snapshot.outcome.title}' to {path.name}")
