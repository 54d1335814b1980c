from pathlib import Path

import staking_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(staking_deployment.__file__).parent
POOL_PARAMS_DIR = DEPLOYMENT_DIR / "pool_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
ABI_DIR = DEPLOYMENT_DIR / "abi"

#
# Networks
#

LOCAL_NETWORKS = ["local", "anvil"]
FORK_SUFFIX = "-fork"

# a local fork reads the params file of the network it forks
ANVIL_FORKING_CHAIN_NAME_ENVVAR = "ANVIL_FORKING_CHAIN_NAME"

#
# Contracts
#

FACTORY_CONTRACT_NAME = "StakingContractFactory"
POOL_CONTRACT_NAME = "TokenStaking"
FXD_STAKING_CONTRACT_NAME = "StakeFXD"

POOL_DEPLOYED_EVENT = "PoolDeployed"

#
# Transactions
#

DEFAULT_GAS_PRICE_MULTIPLIER = 2
NULL_ADDRESS = "0x" + "0" * 40
