from pathlib import Path

import click

from goalcascade.constants import DEFAULT_DATA_DIR
from goalcascade.exceptions import CascadeError
from goalcascade.managers.goal_store import JsonGoalStore
from goalcascade.models.files import ConfigFile


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help="Force re-initialization, overwriting existing goals.json.",
)
def init(force):
    """Initializes a new goal store in .goalcascade/."""
    data_dir = Path(DEFAULT_DATA_DIR)
    goals_file = data_dir / "goals.json"
    if goals_file.exists() and not force:
        click.confirm(
            f"A goal store already exists at {goals_file.resolve()}. Do you want to overwrite it?",
            abort=True,
        )

    store = JsonGoalStore(data_dir)
    try:
        store.initialize()
        store.save_config(ConfigFile())
        click.echo(f"Goal store initialized at {data_dir.resolve()}")
    except CascadeError as e:
        click.echo(f"Error: Could not initialize goal store at {data_dir.resolve()}: {e}", err=True)
        raise SystemExit(1)
