"""
Command-line interface for goalcascade using .goalcascade/ storage.

Uses CascadeEngine and the JSON goal store exclusively.
"""
import click

from goalcascade.commands.init import init
from goalcascade.commands.patient import patient
from goalcascade.commands.goal import goal
from goalcascade.commands.task import task
from goalcascade.commands.status import status


@click.group()
def cli():
    """Track rehabilitation goals and cascade their completion upward."""
    pass


cli.add_command(init)
cli.add_command(patient)
cli.add_command(goal)
cli.add_command(task)
cli.add_command(status)


if __name__ == '__main__':
    cli()
