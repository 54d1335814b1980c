import json
import os
from pathlib import Path
from typing import Dict, Optional

import yaml

from staking_deployment.constants import (
    ANVIL_FORKING_CHAIN_NAME_ENVVAR,
    ARTIFACTS_DIR,
    FORK_SUFFIX,
    LOCAL_NETWORKS,
    POOL_PARAMS_DIR,
)
from staking_deployment.errors import ConfigError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry artifact file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ConfigError("artifact filename is not set in params file.")
    return artifact_dir / filename


def is_local_network(network_name: str) -> bool:
    return network_name in LOCAL_NETWORKS or network_name.endswith(FORK_SUFFIX)


def resolve_network_name(network_name: str) -> str:
    """
    Returns the name of the network whose params apply to ``network_name``.
    A fork uses the params of the network it forks; a local node uses those of
    the network named by ANVIL_FORKING_CHAIN_NAME when it is set.
    """
    if network_name.endswith(FORK_SUFFIX):
        return network_name[: -len(FORK_SUFFIX)]
    if network_name in LOCAL_NETWORKS:
        return os.environ.get(ANVIL_FORKING_CHAIN_NAME_ENVVAR) or network_name
    return network_name


def params_filepath_for_network(network_name: str, params_dir: Optional[Path] = None) -> Path:
    params_dir = Path(params_dir or POOL_PARAMS_DIR)
    filepath = params_dir / f"{resolve_network_name(network_name)}.yml"
    if not filepath.exists():
        raise ConfigError(f"No params file found for network '{network_name}' at {filepath}")
    return filepath


def validate_config(config: Dict, chain_id: int, network_name: str) -> Path:
    """
    Checks the structure of a params file and that it targets the connected chain.
    Returns the registry filepath of the deployment.
    """
    print("Validating parameters YAML...")
    if not isinstance(config, dict):
        raise ConfigError("Malformed params file.")

    deployment = config.get("deployment")
    if not deployment:
        raise ConfigError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ConfigError("chain_id is not set in params file.")

    if "pools" in config and not isinstance(config["pools"], list):
        raise ConfigError("'pools' must be a list in params file.")

    config_chain_id = int(config_chain_id)
    chain_mismatch = config_chain_id != chain_id
    live_deployment = not is_local_network(network_name)
    if chain_mismatch and live_deployment:
        raise ConfigError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({chain_id})."
        )

    return get_artifact_filepath(config=config)
