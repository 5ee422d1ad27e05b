"""
Patient command group.

Registers patients and shows their lifecycle status.
"""
import asyncio

import click

from goalcascade.core import CascadeEngine
from goalcascade.exceptions import CascadeError
from goalcascade.managers.goal_store import JsonGoalStore
from goalcascade.models.base import Patient


@click.group()
def patient():
    """Manage patient records."""
    pass


@patient.command(name="add")
@click.argument("name")
def add_patient(name):
    """Register a new patient."""
    store = JsonGoalStore()
    try:
        record = store.add_patient(Patient(name=name))
    except CascadeError as e:
        raise click.ClickException(f"Error: {e}")
    click.echo(f"Patient '{record.name}' created with id {record.id}")


@patient.command(name="show")
@click.argument("patient_id")
def show_patient(patient_id):
    """Show a patient's status."""
    store = JsonGoalStore()
    try:
        record = asyncio.run(store.get_patient(patient_id))
    except CascadeError as e:
        raise click.ClickException(f"Error: {e}")
    click.echo(f"Name: {record.name}")
    click.echo(f"Status: {record.status.value}")


@patient.command(name="acknowledge")
@click.argument("patient_id")
def acknowledge_patient(patient_id):
    """Close a patient's plan once every goal is achieved."""
    try:
        engine = CascadeEngine.from_data_dir()
        transitioned = asyncio.run(engine.acknowledge_all_goals_complete(patient_id))
    except CascadeError as e:
        raise click.ClickException(f"Error: {e}")
    if not transitioned:
        click.echo("Open goals remain; the patient stays active.")
