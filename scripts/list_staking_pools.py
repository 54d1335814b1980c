#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option

from staking_deployment.chain import ApeChain
from staking_deployment.constants import POOL_CONTRACT_NAME
from staking_deployment.contracts import DeployedContract
from staking_deployment.options import factory_option, params_file_option
from staking_deployment.params import DeploymentParameters
from staking_deployment.sequencer import PoolDeploymentSequencer


@click.command(cls=ConnectedProviderCommand, name="list-staking-pools")
@account_option()
@params_file_option
@factory_option
def cli(account, params_file, factory):
    """List every pool registered in the factory, with its main parameters."""
    chain = ApeChain(account=account)
    params = DeploymentParameters.for_chain(chain, filepath=params_file)
    sequencer = PoolDeploymentSequencer(chain)
    staking_factory = sequencer.locate_factory(params, factory_address=factory)
    pool_type = params.contract_type(POOL_CONTRACT_NAME)

    pool_count = staking_factory.call("getPoolCount")
    click.secho(
        f"\n{pool_count} pool(s) on {networks.provider.network.name} "
        f"factory {staking_factory.address}",
        fg="green",
    )
    for index in range(pool_count):
        pool = DeployedContract(chain, staking_factory.call("getPool", index), pool_type)
        click.secho(f"    {index + 1}. {pool.call('poolName')} {pool.address}", fg="cyan")
        click.secho(
            f"        token={pool.call('stakingToken')} interest={pool.call('interest')} "
            f"minStake={pool.call('minStakeAmount')} maxStake={pool.call('maxStakeAmount')}",
            fg="yellow",
        )


if __name__ == "__main__":
    cli()
