import json
import typing
from pathlib import Path
from typing import Any, Dict, List, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import ContractType, MethodABI
from web3.auto import w3

from staking_deployment.chain import ChainAPI, ContractCall, Event, Receipt, TransactionIntent
from staking_deployment.constants import ABI_DIR
from staking_deployment.errors import ConfigError, DecodeError

ABI = List[Dict[str, Any]]


def _read_bytecode(data: Dict[str, Any]) -> Optional[str]:
    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict):
        # foundry style artifacts
        bytecode = bytecode.get("object")
    return bytecode or None


def _contract_type(name: str, abi: ABI, bytecode: Optional[str] = None) -> ContractType:
    data = {"contractName": name, "abi": abi}
    if bytecode:
        data["deploymentBytecode"] = {"bytecode": bytecode}
    try:
        return ContractType.model_validate(data)
    except ValueError as e:
        raise ConfigError(f"Invalid ABI for {name}: {e}") from e


def load_contract_type(contract_name: str) -> ContractType:
    """Loads one of the bundled ABIs as a contract type without bytecode."""
    filepath = ABI_DIR / f"{contract_name}.json"
    if not filepath.exists():
        raise ConfigError(f"No bundled ABI for '{contract_name}'")
    with open(filepath, "r") as file:
        return _contract_type(contract_name, json.load(file))


def load_artifact(filepath: Path, contract_name: Optional[str] = None) -> ContractType:
    """Loads a compiled contract artifact (hardhat, foundry or ape JSON)."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise ConfigError(f"Contract artifact not found at {filepath}")
    with open(filepath, "r") as file:
        data = json.load(file)

    abi = data.get("abi")
    if abi is None:
        raise ConfigError(f"Contract artifact {filepath} has no 'abi' field")
    name = contract_name or data.get("contractName") or filepath.stem
    if "deploymentBytecode" in data:
        # already an ape contract type
        bytecode = (data["deploymentBytecode"] or dict()).get("bytecode")
    else:
        bytecode = _read_bytecode(data)
    return _contract_type(name, abi, bytecode)


def creation_code(contract_type: ContractType) -> Optional[str]:
    bytecode = contract_type.deployment_bytecode
    if bytecode is None or not bytecode.bytecode or bytecode.bytecode == "0x":
        return None
    return bytecode.bytecode


def get_abi(contract_type: ContractType) -> ABI:
    """Returns the JSON ABI of a contract type."""
    return [entry.model_dump(mode="json", by_alias=True) for entry in contract_type.abi]


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def validate_constructor_args(contract_type: ContractType, args: typing.Sequence[Any]) -> None:
    abi_inputs = contract_type.constructor.inputs if contract_type.constructor else []
    if len(args) != len(abi_inputs):
        raise ValueError(
            f"{contract_type.name} constructor takes {len(abi_inputs)} argument(s), got {len(args)}"
        )
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        if not w3.is_encodable(abi_input.type, value):
            raise ValueError(
                f"{contract_type.name} constructor argument at position {position} has a value "
                f"'{value}' whose type does not match expected ABI type '{abi_input.type}'"
            )


def find_events(
    receipt: Receipt, event_name: str, address: Optional[ChecksumAddress] = None
) -> List[Event]:
    """Returns the events named ``event_name`` in ``receipt``, optionally emitted by ``address``."""
    return [
        event
        for event in receipt.events
        if event.name == event_name
        and (address is None or event.address.lower() == address.lower())
    ]


def decode_event(
    receipt: Receipt, event_name: str, address: Optional[ChecksumAddress] = None
) -> Dict[str, Any]:
    """Returns the arguments of the first matching event, or raises DecodeError."""
    events = find_events(receipt, event_name, address=address)
    if not events:
        raise DecodeError(f"{event_name} event not found in transaction {receipt.txn_hash}")
    return events[0].args


class DeployedContract:
    """A contract at a known address, reached through a ChainAPI."""

    def __init__(self, chain: ChainAPI, address: ChecksumAddress, contract_type: ContractType):
        self.chain = chain
        self.address = to_checksum_address(address)
        self.contract_type = contract_type

    def __repr__(self) -> str:
        return f"<{self.name} {self.address}>"

    @property
    def name(self) -> str:
        return self.contract_type.name

    def is_deployed(self) -> bool:
        return len(self.chain.get_code(self.address)) > 0

    def _method_abis(self, method: str) -> List[MethodABI]:
        method_abis = [abi for abi in self.contract_type.methods if abi.name == method]
        if not method_abis:
            raise ConfigError(f"{self.name} has no method '{method}'")
        return method_abis

    def has_event(self, event_name: str) -> bool:
        return any(abi.name == event_name for abi in self.contract_type.events)

    def intent(self, method: str, *args, value: int = 0) -> TransactionIntent:
        """Returns an unsigned transaction calling ``method`` with ``args``."""
        _validate_method_args(method_abis=self._method_abis(method), args=args)
        return TransactionIntent(
            to=self.address,
            value=value,
            call=ContractCall(contract_type=self.contract_type, method=method, args=tuple(args)),
        )

    def call(self, method: str, *args) -> Any:
        """Executes a read-only method and returns its result."""
        _validate_method_args(method_abis=self._method_abis(method), args=args)
        return self.chain.call(self.address, self.contract_type, method, *args)
