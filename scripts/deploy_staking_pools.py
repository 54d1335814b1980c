#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from staking_deployment.options import (
    autosign_option,
    factory_option,
    gas_multiplier_option,
    params_file_option,
)
from staking_deployment.sequencer import DeploymentStatus, prepare_deployment


@click.command(cls=ConnectedProviderCommand, name="deploy-staking-pools")
@account_option()
@network_option(required=True)
@params_file_option
@factory_option
@gas_multiplier_option
@autosign_option
def cli(account, network, params_file, factory, gas_multiplier, autosign):
    """
    Deploys and initializes every pool of the network's params file through the factory.

    ape run deploy_staking_pools --network xdc:apothem:node --account <ALIAS>
    """
    click.echo(f"Connected to {network.name} network.")
    sequencer, params = prepare_deployment(
        account=account,
        params_filepath=params_file,
        gas_multiplier=gas_multiplier,
        autosign=autosign,
    )

    try:
        sequencer.run(params, factory_address=factory)
    finally:
        # pools confirmed before a failure are registered all the same
        sequencer.finalize(registry_filepath=params.registry_filepath)

    for record in sequencer.records:
        color = "green" if record.status == DeploymentStatus.DEPLOYED else "red"
        click.secho(f"{record.pool_name}: {record.address} ({record.status.value})", fg=color)


if __name__ == "__main__":
    cli()
