import click

from staking_deployment.constants import DEFAULT_GAS_PRICE_MULTIPLIER
from staking_deployment.types import ChecksumAddress, MinDecimal

params_file_option = click.option(
    "--params-file",
    "-p",
    help="Deployment params YAML; defaults to the params file of the connected network.",
    type=click.Path(exists=True, dir_okay=False),
    required=False,
)

gas_multiplier_option = click.option(
    "--gas-multiplier",
    "-g",
    help="Multiple of the suggested gas price paid by every transaction.",
    type=MinDecimal(1),
    default=DEFAULT_GAS_PRICE_MULTIPLIER,
    show_default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions and skip confirmation prompts.",
    is_flag=True,
    default=False,
)

factory_option = click.option(
    "--factory",
    "-f",
    help="Address of the StakingContractFactory; defaults to the registry entry.",
    type=ChecksumAddress(),
    required=False,
)
