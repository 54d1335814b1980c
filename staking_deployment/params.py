import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address
from ethpm_types import ContractType

from staking_deployment.chain import ChainAPI
from staking_deployment.constants import (
    FACTORY_CONTRACT_NAME,
    NULL_ADDRESS,
    POOL_CONTRACT_NAME,
)
from staking_deployment.contracts import load_artifact, load_contract_type
from staking_deployment.errors import ConfigError
from staking_deployment.utils import _load_yaml, params_filepath_for_network, validate_config

VARIABLE_PREFIX = "$"

# params file key -> PoolConfig field
POOL_KEYS = OrderedDict(
    [
        ("tokenAddress", "token"),
        ("name", "name"),
        ("minStakeAmount", "min_stake_amount"),
        ("maxStakeAmount", "max_stake_amount"),
        ("coolOff", "cool_off"),
        ("redeemInterval", "redeem_interval"),
        ("maxPoolAmount", "max_pool_amount"),
        ("interestPrecision", "interest_precision"),
        ("interest", "interest"),
        ("decimals", "decimals"),
    ]
)

INTEGER_KEYS = [key for key in POOL_KEYS if key not in ("tokenAddress", "name")]


def is_variable(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(VARIABLE_PREFIX)


def resolve_constant(value: Any, constants: Dict[str, Any]) -> Any:
    """Replaces a ``$NAME`` reference with the value of the constant NAME."""
    if not is_variable(value):
        return value
    constant_name = value[len(VARIABLE_PREFIX) :]
    try:
        return constants[constant_name]
    except KeyError:
        raise ConfigError(f"Constant '{constant_name}' not found in params file.")


class PoolConfig(NamedTuple):
    """Immutable description of a single staking pool."""

    token: ChecksumAddress
    name: str
    min_stake_amount: int
    max_stake_amount: int
    cool_off: int
    redeem_interval: int
    max_pool_amount: int
    interest_precision: int
    interest: int
    decimals: int

    def deploy_args(self) -> tuple:
        """Arguments of the factory's ``deploy`` call."""
        return self.token, self.interest, self.decimals, self.name

    def initialize_args(self) -> tuple:
        """Arguments of the pool's ``initialize`` call."""
        return (
            self.min_stake_amount,
            self.max_stake_amount,
            self.cool_off,
            self.redeem_interval,
            self.max_pool_amount,
            self.interest_precision,
        )

    def expected_state(self) -> typing.OrderedDict[str, Any]:
        """Pool accessor name -> value expected after initialization."""
        return OrderedDict(
            [
                ("minStakeAmount", self.min_stake_amount),
                ("maxStakeAmount", self.max_stake_amount),
                ("coolOff", self.cool_off),
                ("redeemInterval", self.redeem_interval),
                ("maxPoolAmount", self.max_pool_amount),
                ("interest", self.interest),
                ("stakingToken", self.token),
                ("poolName", self.name),
            ]
        )

    @classmethod
    def from_config(
        cls, data: Dict[str, Any], constants: Optional[Dict[str, Any]] = None
    ) -> "PoolConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"Malformed pool entry: {data}")
        constants = constants or dict()
        label = data.get("name", "<unnamed>")

        missing = [key for key in POOL_KEYS if key not in data]
        if missing:
            raise ConfigError(f"Pool '{label}' is missing: {', '.join(missing)}")
        unknown = [key for key in data if key not in POOL_KEYS]
        if unknown:
            raise ConfigError(f"Pool '{label}' has unknown parameters: {', '.join(unknown)}")

        values = {key: resolve_constant(data[key], constants) for key in POOL_KEYS}

        name = values["name"]
        if not isinstance(name, str) or not name.strip():
            raise ConfigError(f"Pool name must be a non-empty string, got {name!r}")

        token = values["tokenAddress"]
        if not isinstance(token, str) or not is_address(token):
            raise ConfigError(f"Pool '{name}' has an invalid token address: {token!r}")
        if token.lower() == NULL_ADDRESS:
            raise ConfigError(f"Token address of pool '{name}' is not set (zero address).")
        values["tokenAddress"] = to_checksum_address(token)

        for key in INTEGER_KEYS:
            value = values[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(
                    f"Pool '{name}' parameter {key} must be a non-negative integer, got {value!r}"
                )

        if values["minStakeAmount"] > values["maxStakeAmount"]:
            raise ConfigError(
                f"Pool '{name}' minStakeAmount ({values['minStakeAmount']}) "
                f"exceeds maxStakeAmount ({values['maxStakeAmount']})"
            )
        if values["interestPrecision"] == 0:
            raise ConfigError(f"Pool '{name}' interestPrecision must be positive")

        return cls(**{field: values[key] for key, field in POOL_KEYS.items()})


def pools_from_config(config: Dict, constants: Optional[Dict[str, Any]] = None) -> List[PoolConfig]:
    pools = [PoolConfig.from_config(entry, constants) for entry in config.get("pools") or []]
    names = [pool.name for pool in pools]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate pool names in params file: {', '.join(duplicates)}")
    return pools


class DeploymentParameters:
    """
    The per-network deployment parameters: constants, compiled artifacts,
    factory location and the ordered list of pools to deploy.
    """

    def __init__(self, config: Dict, path: Path, chain_id: int, network_name: str):
        self.path = path
        self.config = config
        self.registry_filepath = validate_config(
            config=config, chain_id=chain_id, network_name=network_name
        )
        self.chain_id = chain_id

        self._constants = dict(config.get("constants") or dict())

        self.contracts = dict(config.get("contracts") or dict())
        self.pools = pools_from_config(config, self._constants)

    @classmethod
    def from_yaml(cls, filepath: Path, chain_id: int, network_name: str) -> "DeploymentParameters":
        filepath = Path(filepath)
        if not filepath.exists():
            raise ConfigError(f"Params file not found at {filepath}")
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, chain_id=chain_id, network_name=network_name)

    @classmethod
    def for_network(cls, network_name: str, chain_id: int) -> "DeploymentParameters":
        """Loads the params file of a network from the bundled pool_params directory."""
        filepath = params_filepath_for_network(network_name)
        return cls.from_yaml(filepath=filepath, chain_id=chain_id, network_name=network_name)

    @classmethod
    def for_chain(cls, chain: ChainAPI, filepath: Optional[Path] = None) -> "DeploymentParameters":
        """Loads ``filepath``, or the params file of the chain's network when it is not given."""
        if filepath:
            return cls.from_yaml(
                filepath=filepath, chain_id=chain.chain_id, network_name=chain.network_name
            )
        return cls.for_network(network_name=chain.network_name, chain_id=chain.chain_id)

    def constant(self, name: str) -> Any:
        return resolve_constant(f"{VARIABLE_PREFIX}{name}", self._constants)

    def resolve(self, value: Any) -> Any:
        return resolve_constant(value, self._constants)

    @property
    def factory_address(self) -> Optional[ChecksumAddress]:
        """The factory address configured in the params file, if any."""
        address = (self.config.get("factory") or dict()).get("address")
        if not address:
            return None
        address = self.resolve(address)
        if not is_address(address):
            raise ConfigError(f"Invalid factory address in params file: {address!r}")
        return to_checksum_address(address)

    def artifact(self, contract_name: str) -> ContractType:
        """
        Returns the compiled artifact configured for a contract, falling back to the
        bundled ABI (without bytecode) for the factory and pool contracts.
        """
        artifact_path = self.contracts.get(contract_name)
        if artifact_path:
            return load_artifact(Path(artifact_path), contract_name=contract_name)
        if contract_name in (FACTORY_CONTRACT_NAME, POOL_CONTRACT_NAME):
            return load_contract_type(contract_name)
        raise ConfigError(f"No artifact configured for {contract_name} in {self.path}")

    def contract_type(self, contract_name: str) -> ContractType:
        """The bundled factory and pool contract types, or the one of the configured artifact."""
        if contract_name in (FACTORY_CONTRACT_NAME, POOL_CONTRACT_NAME):
            return load_contract_type(contract_name)
        return self.artifact(contract_name)
