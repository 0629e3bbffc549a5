from pathlib import Path

import click

from upgrades.constants import UPGRADE_ORDER
from upgrades.types import MinFloat

params_option = click.option(
    "--params",
    "-p",
    "params_filepath",
    help="YAML upgrade params file; environment variables are used when omitted.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

module_option = click.option(
    "--module",
    "-m",
    "module_names",
    help="Only upgrade the named module(s); others are skipped.",
    type=click.Choice(UPGRADE_ORDER),
    multiple=True,
)

timeout_option = click.option(
    "--timeout",
    "-t",
    help="Seconds to wait for each upgrade transaction to confirm.",
    type=MinFloat(1),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Do not ask for confirmation before each upgrade transaction.",
    is_flag=True,
    default=False,
)

dry_run_option = click.option(
    "--dry-run",
    help="Run discovery, safety and authorization checks without upgrading.",
    is_flag=True,
    default=False,
)
