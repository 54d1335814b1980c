#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from staking_deployment.constants import FXD_STAKING_CONTRACT_NAME
from staking_deployment.options import autosign_option, gas_multiplier_option, params_file_option
from staking_deployment.sequencer import prepare_deployment

FXD_TOKEN_CONSTANT = "FXD"
FXD_STAKING_VERSION = 1


@click.command(cls=ConnectedProviderCommand, name="deploy-fxd-staking")
@account_option()
@network_option(required=True)
@params_file_option
@gas_multiplier_option
@autosign_option
def cli(account, network, params_file, gas_multiplier, autosign):
    """
    Deploys the standalone StakeFXD contract for the network's FXD token.

    ape run deploy_fxd_staking --network xdc:apothem:node --account <ALIAS>
    """
    click.echo(f"Connected to {network.name} network.")
    sequencer, params = prepare_deployment(
        account=account,
        params_filepath=params_file,
        gas_multiplier=gas_multiplier,
        autosign=autosign,
    )

    stake_fxd, _ = sequencer.deploy_contract(
        params.artifact(FXD_STAKING_CONTRACT_NAME),
        params.constant(FXD_TOKEN_CONSTANT),
        FXD_STAKING_VERSION,
    )
    sequencer.finalize(registry_filepath=params.registry_filepath)
    click.secho(f"StakeFXD deployed to: {stake_fxd.address}", fg="green")


if __name__ == "__main__":
    cli()
