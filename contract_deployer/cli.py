from pathlib import Path
from typing import List, Optional

import click
from ape import accounts, networks
from ape.api import AccountAPI
from ape.cli.choices import select_account

from contract_deployer.constants import DEFAULT_NETWORK, DEFAULT_PARAMS_FILEPATH
from contract_deployer.exceptions import DeploymentError
from contract_deployer.networks import is_local_network
from contract_deployer.params import Deployer
from contract_deployer.types import DeploymentResult


def get_account(account_alias: Optional[str]) -> AccountAPI:
    if account_alias:
        return accounts.load(account_alias)
    if is_local_network():
        return accounts.test_accounts[0]
    return select_account()


def _print_deployment_info(deployer: Deployer) -> None:
    print(
        f"Account: {deployer.get_account().address}",
        f"Config: {deployer.path}",
        f"Registry: {deployer.registry_filepath}",
        f"Verify: {deployer.verify}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {networks.provider.network.name}",
        f"Chain ID: {networks.provider.network.chain_id}",
        sep="\n",
    )


def main(
    params_filepath: Path,
    network: str = DEFAULT_NETWORK,
    account_alias: Optional[str] = None,
    autosign: bool = False,
    verify: bool = False,
) -> List[DeploymentResult]:
    """
    Connects to the network, deploys the contracts declared in the parameters
    file and publishes the results. Raises DeploymentError on failure.
    """
    with networks.parse_network_choice(network):
        account = get_account(account_alias)
        deployer = Deployer.from_yaml(
            filepath=params_filepath,
            account=account,
            autosign=autosign,
            verify=verify,
            interactive=not is_local_network(),
        )
        _print_deployment_info(deployer)
        results = deployer.deploy_all()
        deployer.finalize(results)
    return results


@click.command()
@click.option(
    "--network",
    "-n",
    help="Ape network choice, e.g. ethereum:sepolia:infura",
    default=DEFAULT_NETWORK,
    show_default=True,
)
@click.option(
    "--params-filepath",
    "-f",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="Constructor params filepath",
    default=DEFAULT_PARAMS_FILEPATH,
    show_default=True,
)
@click.option(
    "--account",
    "account_alias",
    help="Alias of the ape account to deploy from",
    default=None,
)
@click.option(
    "--autosign",
    help="Sign transactions automatically",
    is_flag=True,
    default=False,
)
@click.option(
    "--verify",
    help="Publish contract sources to the block explorer",
    is_flag=True,
    default=False,
)
def cli(network, params_filepath, account_alias, autosign, verify):
    """Deploy the contracts declared in a constructor params file."""
    try:
        results = main(
            params_filepath=params_filepath,
            network=network,
            account_alias=account_alias,
            autosign=autosign,
            verify=verify,
        )
    except DeploymentError as e:
        raise click.ClickException(str(e)) from e

    for result in results:
        click.echo(f"{result.contract_name} deployed at: {result.address}")


if __name__ == "__main__":
    cli()
