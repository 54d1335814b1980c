#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from staking_deployment.constants import FACTORY_CONTRACT_NAME
from staking_deployment.options import autosign_option, gas_multiplier_option, params_file_option
from staking_deployment.sequencer import prepare_deployment


@click.command(cls=ConnectedProviderCommand, name="deploy-staking-factory")
@account_option()
@network_option(required=True)
@params_file_option
@gas_multiplier_option
@autosign_option
def cli(account, network, params_file, gas_multiplier, autosign):
    """
    Deploys the StakingContractFactory from its compiled artifact.

    ape run deploy_staking_factory --network xdc:apothem:node --account <ALIAS>
    """
    click.echo(f"Connected to {network.name} network.")
    sequencer, params = prepare_deployment(
        account=account,
        params_filepath=params_file,
        gas_multiplier=gas_multiplier,
        autosign=autosign,
    )

    factory = sequencer.deploy_factory(params.artifact(FACTORY_CONTRACT_NAME))
    sequencer.finalize(registry_filepath=params.registry_filepath)
    click.secho(f"StakingContractFactory deployed to: {factory.address}", fg="green")


if __name__ == "__main__":
    cli()
