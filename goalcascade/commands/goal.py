"""
Goal command group.

Adds outcomes, phases and tasks to a patient's tree.
"""
import click

from goalcascade.exceptions import CascadeError
from goalcascade.managers.goal_store import JsonGoalStore
from goalcascade.models.base import Milestone, MilestoneLevel, MilestoneStatus


@click.group()
def goal():
    """Manage a patient's goal tree."""
    pass


@goal.command(name="add")
@click.argument("patient_id")
@click.option(
    "--level",
    type=click.Choice([level.value for level in MilestoneLevel]),
    required=True,
    help="Outcome (six-month), phase (monthly) or task (weekly).",
)
@click.option("--title", required=True, help="The goal title.")
@click.option("--desc", help="A description for the goal.")
@click.option("--parent", "parent_id", help="Id of the goal one level up.")
@click.option("--seq", "sequence_number", type=int, default=1, show_default=True, help="Order among siblings.")
def add_goal(patient_id, level, title, desc, parent_id, sequence_number):
    """Adds a goal to a patient's tree."""
    store = JsonGoalStore()
    try:
        milestone = Milestone(
            patient_id=patient_id,
            title=title,
            description=desc,
            level=MilestoneLevel(level),
            parent_id=parent_id,
            sequence_number=sequence_number,
            status=MilestoneStatus.ACTIVE,
        )
    except ValueError as e:
        raise click.ClickException(f"Error: {e}")

    try:
        store.add_milestone(milestone)
    except CascadeError as e:
        raise click.ClickException(f"Error: {e}")
    click.echo(f"{level.capitalize()} '{title}' created with id {milestone.id}")
