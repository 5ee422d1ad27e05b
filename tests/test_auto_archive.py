"""
Tests for archiving completed outcomes through the event bus.
"""
import asyncio
import json
from pathlib import Path

import pytest

from goalcascade.constants import reset_config_manager
from goalcascade.core import CascadeEngine
from goalcascade.managers import CompletionArchiveListener, Event, EventType
from goalcascade.models.base import MilestoneStatus


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / ".goalcascade"


def seed(store, mock_data):
    """One outcome with a single phase and task, all still open."""
    store.add_patient(mock_data.create_patient(id="patient-1"))
    store.add_milestone(mock_data.create_outcome(id="o", title="Return to work"))
    store.add_milestone(mock_data.create_phase("o", id="p"))
    store.add_milestone(mock_data.create_task("p", id="t"))


async def complete_everything(engine):
    result = await engine.set_leaf_status("patient-1", "t", MilestoneStatus.COMPLETED)
    confirmation = await engine.confirm_cascade(result.cascade_offered.id)
    return await engine.confirm_cascade(confirmation.cascade_offered.id)


class TestAutoArchiveFlow:
    """Test archive snapshots written when an outcome is confirmed."""

    def test_outcome_archived_on_confirmation(self, data_dir, mock_data):
        engine = CascadeEngine.from_data_dir(data_dir, auto_archive_enabled=True, echo=False)
        seed(engine.store, mock_data)

        result = asyncio.run(complete_everything(engine))

        assert result.all_goals_complete
        archive_file = data_dir / "archive" / "outcome-o.json"
        assert archive_file.exists()
        data = json.loads(archive_file.read_text())
        assert data["outcome"]["status"] == "completed"
        assert [m["id"] for m in data["descendants"]] == ["p", "t"]

    def test_phase_completion_not_archived(self, data_dir, mock_data):
        engine = CascadeEngine.from_data_dir(data_dir, auto_archive_enabled=True, echo=False)
        seed(engine.store, mock_data)

        async def complete_phase():
            result = await engine.set_leaf_status("patient-1", "t", MilestoneStatus.COMPLETED)
            await engine.confirm_cascade(result.cascade_offered.id)

        asyncio.run(complete_phase())

        assert list((data_dir / "archive").iterdir()) == []

    def test_archive_disabled(self, data_dir, mock_data):
        engine = CascadeEngine.from_data_dir(data_dir, auto_archive_enabled=False, echo=False)
        seed(engine.store, mock_data)

        asyncio.run(complete_everything(engine))

        assert engine.archive_listener is None
        assert list((data_dir / "archive").iterdir()) == []

    def test_disabled_by_config(self, isolated_cwd, mock_data):
        config_dir = isolated_cwd / ".goalcascade"
        config_dir.mkdir()
        (config_dir / "config.json").write_text(json.dumps({"auto_archive_enabled": False}))
        reset_config_manager()

        engine = CascadeEngine.from_data_dir(echo=False)

        assert engine.archive_listener is None

    def test_archive_failure_does_not_undo_completion(self, data_dir, mock_data, monkeypatch, capsys):
        engine = CascadeEngine.from_data_dir(data_dir, auto_archive_enabled=True, echo=False)
        seed(engine.store, mock_data)

        def fail(snapshot):
            raise OSError("archive unavailable")

        monkeypatch.setattr(engine.store, "archive_outcome", fail)

        result = asyncio.run(complete_everything(engine))

        assert result.milestone.status == MilestoneStatus.COMPLETED
        assert "archive unavailable" in capsys.readouterr().err


class TestCompletionArchiveListener:
    """Test the listener in isolation."""

    def test_ignores_when_disabled(self, data_dir, mock_data):
        engine = CascadeEngine.from_data_dir(data_dir, auto_archive_enabled=False, echo=False)
        seed(engine.store, mock_data)
        listener = CompletionArchiveListener(engine.store, enabled=False)

        listener.handle(
            Event(
                type=EventType.MILESTONE_COMPLETED,
                patient_id="patient-1",
                payload={"milestone_id": "o", "level": "outcome"},
            )
        )

        assert engine.store.load_archived_outcome("o") is None

    def test_subscribes_to_completions_only(self, data_dir):
        engine = CascadeEngine.from_data_dir(data_dir, auto_archive_enabled=False, echo=False)
        listener = CompletionArchiveListener(engine.store)
        assert listener.subscribed_events == [EventType.MILESTONE_COMPLETED]
