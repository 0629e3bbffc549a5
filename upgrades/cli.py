"""
# Setup
Create a .env file in the project root directory (or pass --env-file) with:
```
PROVIDER_URL=<your_provider_url>
PRIVATE_KEY=<beacon_owner_private_key>

UPGRADE_VERIFIER=true
VERIFIER_PROXY_ADDRESS=0x...
VERIFIER_IMPLEMENTATION_ADDRESS=0x...
ENABLE_SAFETY_CHECKS=true
```
Each of TEE_VERIFIER, VERIFIER, AGENT_NFT and AGENT_MARKET takes the same three variables.

# Usage
```
beacon-upgrade run
beacon-upgrade run --params upgrades/params/testnet/upgrade-modules.yml --autosign
beacon-upgrade run --module AgentNFT --timeout 600
beacon-upgrade check
beacon-upgrade beacon 0x5b8ef7960187b1acfc532c6eC2C058383FDe3143
```
"""

import os
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

import click
from dotenv import load_dotenv
from eth_account import Account

from upgrades.beacon import StorageSlotReader, UpgradeableContract
from upgrades.config import UpgradeConfig
from upgrades.confirm import _confirm_upgrade, _continue
from upgrades.constants import DEFAULT_PROVIDER_URL, PRIVATE_KEY_ENVVAR, PROVIDER_URL_ENVVAR
from upgrades.errors import ConfigurationError, UpgradeAborted, UpgradeError
from upgrades.network import Network, Web3Network
from upgrades.options import (
    autosign_option,
    dry_run_option,
    module_option,
    params_option,
    timeout_option,
)
from upgrades.orchestrator import Orchestrator
from upgrades.types import ChecksumAddress
from upgrades.utils import is_zero_address


def load_config(
    params_filepath: Optional[Path] = None,
    module_names: Sequence[str] = (),
    timeout: Optional[float] = None,
) -> UpgradeConfig:
    """Builds the run configuration once, at the process boundary."""
    if params_filepath:
        config = UpgradeConfig.from_yaml(params_filepath)
    else:
        config = UpgradeConfig.from_env(os.environ)
    if module_names:
        config = config.restricted_to(module_names)
    if timeout:
        config = config.replace(confirmation_timeout=timeout)
    return config


def setup_network(
    config: Optional[UpgradeConfig] = None, signing: bool = True
) -> Tuple[Network, Any]:
    """Set up the Web3 connection and the signing account."""
    provider_url = os.environ.get(PROVIDER_URL_ENVVAR) or DEFAULT_PROVIDER_URL
    account = None
    if signing:
        private_key = os.environ.get(PRIVATE_KEY_ENVVAR)
        if not private_key:
            raise ConfigurationError(f"{PRIVATE_KEY_ENVVAR} is not set.")
        account = Account.from_key(private_key)

    kwargs = dict()
    if config is not None:
        kwargs.update(max_fee=config.max_fee, max_priority_fee=config.max_priority_fee)
    network = Web3Network.from_url(provider_url, account=account, **kwargs)
    return network, account


def _print_run_info(config: UpgradeConfig, network: Network, signer: Any, dry_run: bool) -> None:
    print(
        f"Account: {signer.address}",
        f"Chain ID: {network.chain_id}",
        f"Modules: {', '.join(config.enabled_modules) or 'none'}",
        f"Safety checks: {config.safety_checks}",
        f"Confirmation timeout: {config.confirmation_timeout}s",
        f"Dry run: {dry_run}",
        sep="\n",
    )


def execute_upgrade(
    config: UpgradeConfig,
    network: Network,
    signer: Any,
    autosign: bool = False,
    dry_run: bool = False,
) -> int:
    """Runs the upgrade and prints the summary; returns the process exit code."""
    interactive = not (autosign or dry_run)
    try:
        config.validate()
        config.check_chain_id(network.chain_id)
        _print_run_info(config, network, signer, dry_run)
        if interactive:
            # Confirms the start of the upgrade run.
            _continue()
    except (UpgradeError, ValueError) as e:
        click.echo(f"(!) Upgrade run aborted: {e}", err=True)
        return 1

    orchestrator = Orchestrator(
        config=config,
        network=network,
        signer=signer,
        confirm=_confirm_upgrade if interactive else None,
        dry_run=dry_run,
    )
    try:
        summary = orchestrator.run()
    except (ConfigurationError, UpgradeAborted) as e:
        click.echo(orchestrator.summary.render())
        click.echo(f"(!) Upgrade run aborted: {e}", err=True)
        return 1

    click.echo(summary.render())
    return summary.exit_code


@click.group()
@click.option(
    "--env-file",
    help="Environment file to load instead of ./.env",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)
def cli(env_file):
    """Beacon proxy upgrade CLI"""
    load_dotenv(dotenv_path=env_file, override=True)


def _run(params_filepath, module_names, timeout, autosign, dry_run) -> None:
    try:
        config = load_config(params_filepath, module_names, timeout)
        network, signer = setup_network(config)
    except (UpgradeError, ValueError) as e:
        click.echo(f"(!) Upgrade run aborted: {e}", err=True)
        raise SystemExit(1)

    exit_code = execute_upgrade(config, network, signer, autosign=autosign, dry_run=dry_run)
    raise SystemExit(exit_code)


@cli.command()
@params_option
@module_option
@timeout_option
@autosign_option
@dry_run_option
def run(params_filepath, module_names, timeout, autosign, dry_run):
    """Upgrade every enabled module's beacon to its new implementation."""
    _run(params_filepath, module_names, timeout, autosign, dry_run)


@cli.command()
@params_option
@module_option
def check(params_filepath, module_names):
    """Run discovery, safety and authorization checks only."""
    _run(params_filepath, module_names, timeout=None, autosign=True, dry_run=True)


@cli.command()
@click.argument("proxy_address", type=ChecksumAddress())
def beacon(proxy_address):
    """Show the beacon, implementation and owner behind a proxy."""
    network, _ = setup_network(signing=False)
    try:
        beacon_address = StorageSlotReader(network).read_beacon(proxy_address)
        click.echo(f"Proxy          : {proxy_address}")
        click.echo(f"Beacon         : {beacon_address}")
        if is_zero_address(beacon_address):
            click.echo("(!) Beacon slot is empty; not a beacon proxy")
            raise SystemExit(1)
        contract = UpgradeableContract(network, beacon_address)
        click.echo(f"Implementation : {contract.implementation()}")
        click.echo(f"Owner          : {contract.owner()}")
    except UpgradeError as e:
        click.echo(f"(!) {e}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
