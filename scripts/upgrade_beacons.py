#!/usr/bin/python3

# Usage:
#  > ape run upgrade_beacons --network ethereum:sepolia:node --account upgrader \
#      --params upgrades/params/testnet/upgrade-modules.yml

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from upgrades.ape_network import ApeNetwork
from upgrades.cli import execute_upgrade
from upgrades.config import UpgradeConfig
from upgrades.constants import PARAMS_DIR
from upgrades.errors import ConfigurationError
from upgrades.options import autosign_option, dry_run_option, module_option, timeout_option

DEFAULT_PARAMS_FILEPATH = PARAMS_DIR / "testnet" / "upgrade-modules.yml"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@click.option(
    "--params",
    "-p",
    "params_filepath",
    help="YAML upgrade params file",
    type=click.Path(dir_okay=False, exists=True),
    default=str(DEFAULT_PARAMS_FILEPATH),
)
@module_option
@timeout_option
@autosign_option
@dry_run_option
def cli(network, account, params_filepath, module_names, timeout, autosign, dry_run):
    """Upgrade beacon-proxied modules using an ape account."""
    try:
        config = UpgradeConfig.from_yaml(params_filepath)
        if module_names:
            config = config.restricted_to(module_names)
        if timeout:
            config = config.replace(confirmation_timeout=timeout)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if autosign:
        print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        account.set_autosign(True)

    ape_network = ApeNetwork(
        networks.provider,
        max_fee=config.max_fee,
        max_priority_fee=config.max_priority_fee,
    )
    exit_code = execute_upgrade(
        config, ape_network, account, autosign=autosign, dry_run=dry_run
    )
    raise SystemExit(exit_code)


if __name__ == "__main__":
    cli()
