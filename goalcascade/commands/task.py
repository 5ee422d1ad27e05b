"""
Task command group.

Records weekly task results and walks the user through any cascade
confirmation they trigger.
"""
import asyncio

import click

from goalcascade.constants import LEAF_STATUSES
from goalcascade.core import CascadeEngine
from goalcascade.exceptions import CascadeError
from goalcascade.models.base import MilestoneStatus


@click.group()
def task():
    """Commands for recording task results."""
    pass


async def run_task_update(engine, patient_id, task_id, status):
    """Apply a task status and resolve every confirmation it leads to."""
    result = await engine.set_leaf_status(patient_id, task_id, status)
    if result.pending is not None:
        click.echo(f"A confirmation is already open for {result.pending.display_name}.")

    offer = result.cascade_offered
    while offer is not None:
        if not click.confirm(
            f"All goals under {offer.display_name} are done. Mark it as achieved?",
            default=True,
        ):
            await engine.decline_cascade(offer.id)
            return

        confirmation = await engine.confirm_cascade(offer.id)
        if confirmation.all_goals_complete:
            click.echo("Congratulations! Every rehabilitation goal has been achieved.")
            try:
                click.prompt("Press Enter to close", default="", show_default=False)
            except click.Abort:
                click.echo(f"Run 'goalcascade patient acknowledge {patient_id}' to close the plan.", err=True)
                raise
            await engine.acknowledge_all_goals_complete(patient_id)
            return
        offer = confirmation.cascade_offered


@task.command(name="set")
@click.argument("patient_id")
@click.argument("task_id")
@click.argument("status", type=click.Choice(LEAF_STATUSES))
def set_task(patient_id, task_id, status):
    """Mark a task active, completed or cancelled."""
    try:
        engine = CascadeEngine.from_data_dir()
        asyncio.run(run_task_update(engine, patient_id, task_id, MilestoneStatus(status)))
    except CascadeError as e:
        raise click.ClickException(f"Error: {e}")
