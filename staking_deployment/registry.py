import json
from collections import defaultdict
from pathlib import Path
from typing import List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from staking_deployment.contracts import ABI
from staking_deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}

UNMERGED_SUFFIX = ".unmerged"


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in the registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def read_registry(filepath: Path) -> List[RegistryEntry]:
    with open(filepath, "r") as file:
        data = json.load(file)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def _unmerged_filepath(filepath: Path) -> Path:
    candidate = filepath.with_suffix(f"{UNMERGED_SUFFIX}.json")
    index = 1
    while candidate.exists():
        candidate = filepath.with_suffix(f"{UNMERGED_SUFFIX}.{index}.json")
        index += 1
    return candidate


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """
    Writes registry entries to a file, merging them into an existing registry.
    Entries whose name is already registered on the same chain are not merged;
    the whole update is written next to the registry, to the first unused
    ``*.unmerged.json`` or ``*.unmerged.<N>.json`` file, instead.
    """

    if not entries:
        print("No entries provided.")
        return filepath

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name") or ""))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        if not silent:
            print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        conflicts = [
            name
            for chain_id, chain_entries in data.items()
            for name in chain_entries
            if name in existing_data.get(chain_id, {})
        ]
        if conflicts:
            filepath = _unmerged_filepath(filepath)
            if not silent:
                print(
                    f"Cannot merge entries already registered: {', '.join(conflicts)}.\n"
                    f"Writing to {filepath} to avoid overwriting existing data."
                )
        else:
            for chain_id, chain_entries in data.items():
                existing_data.setdefault(chain_id, dict()).update(chain_entries)
            data = existing_data
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_entry(
    chain_id: ChainId,
    name: ContractName,
    address: ChecksumAddress,
    abi: ABI,
    tx_hash: str,
    block_number: int,
    deployer: str,
) -> RegistryEntry:
    return RegistryEntry(
        chain_id=chain_id,
        name=name,
        address=to_checksum_address(address),
        abi=abi,
        tx_hash=tx_hash,
        block_number=block_number,
        deployer=deployer,
    )


def address_from_registry(
    filepath: Path, chain_id: ChainId, name: ContractName
) -> Optional[ChecksumAddress]:
    """Returns the registered address of a contract on a chain, if any."""
    if not filepath.exists():
        return None
    for entry in read_registry(filepath=filepath):
        if entry.chain_id == chain_id and entry.name == name:
            return to_checksum_address(entry.address)
    return None
