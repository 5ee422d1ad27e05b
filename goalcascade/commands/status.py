"""
Status command for goalcascade.

Displays a patient's goal tree with completion indicators.
"""

import asyncio
import json
from typing import Dict, List

import click

from goalcascade.constants import get_date_format
from goalcascade.core import CascadeEngine
from goalcascade.exceptions import CascadeError
from goalcascade.models.base import Milestone, MilestoneLevel, MilestoneStatus


STATUS_INDICATORS = {
    MilestoneStatus.COMPLETED: " ✓",
    MilestoneStatus.CANCELLED: " ✗",
    MilestoneStatus.ON_HOLD: " ⏸",
}


def group_children(milestones: List[Milestone]) -> Dict[str, List[Milestone]]:
    """Index milestones by parent id, siblings ordered by sequence number."""
    children: Dict[str, List[Milestone]] = {}
    for milestone in milestones:
        if milestone.parent_id is not None:
            children.setdefault(milestone.parent_id, []).append(milestone)
    for siblings in children.values():
        siblings.sort(key=lambda m: m.sequence_number)
    return children


def display_tree(engine, milestone, children, summaries, depth=0):
    """Display a milestone and everything below it."""
    indent = "  " * depth
    indicator = STATUS_INDICATORS.get(milestone.status, "")
    percent = engine.aggregator.completion_value(milestone, children.get(milestone.id, []))
    line = f"{indent}- {milestone.title} ({percent}%){indicator}"
    if milestone.completion_date is not None:
        line += f" on {milestone.completion_date.strftime(get_date_format())}"
    if milestone.level == MilestoneLevel.OUTCOME:
        line += f" [achievement {summaries[milestone.id]['achievement_rate']}%]"
    click.echo(line)
    for child in children.get(milestone.id, []):
        display_tree(engine, child, children, summaries, depth + 1)


def get_tree_data(engine, milestone, children):
    """Get tree data in a structured format for JSON output."""
    return {
        "id": milestone.id,
        "title": milestone.title,
        "level": milestone.level.value,
        "status": milestone.status.value,
        "completion_rate": engine.aggregator.completion_value(
            milestone, children.get(milestone.id, [])
        ),
        "children": [
            get_tree_data(engine, child, children)
            for child in children.get(milestone.id, [])
        ],
    }


async def load_status(engine, patient_id):
    patient = await engine.store.get_patient(patient_id)
    milestones = await engine.store.get_patient_milestones(patient_id)
    outcomes = [m for m in milestones if m.level == MilestoneLevel.OUTCOME]
    summaries = {}
    for outcome in outcomes:
        summaries[outcome.id] = await engine.completion_summary(outcome.id)
    return patient, milestones, outcomes, summaries


@click.command(name="status")
@click.argument("patient_id")
@click.option(
    "-j",
    "--json",
    "json_output",
    is_flag=True,
    help="Output status in JSON format.",
)
def status(patient_id, json_output):
    """Displays a patient's goal tree and progress."""
    try:
        engine = CascadeEngine.from_data_dir(echo=False)
        patient, milestones, outcomes, summaries = asyncio.run(load_status(engine, patient_id))
    except CascadeError as e:
        raise click.ClickException(f"Error: {e}")

    children = group_children(milestones)

    if json_output:
        result = {
            "patient": {"id": patient.id, "name": patient.name, "status": patient.status.value},
            "outcomes": [],
        }
        for outcome in outcomes:
            data = get_tree_data(engine, outcome, children)
            data["summary"] = summaries[outcome.id]
            result["outcomes"].append(data)
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(f"Patient: {patient.name} ({patient.status.value})")
    click.echo("=========================")
    if not outcomes:
        click.echo("No goals set.")
        return
    for outcome in outcomes:
        display_tree(engine, outcome, children, summaries)
