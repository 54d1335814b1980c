from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from ape import networks
from ape.api import AccountAPI, ReceiptAPI
from ape.contracts.base import ContractCallHandler, ContractContainer, ContractInstance
from ape.exceptions import ApeException, VirtualMachineError
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import ContractType
from hexbytes import HexBytes

from staking_deployment.errors import RevertError, SubmissionError
from staking_deployment.utils import is_local_network


class ContractCall(NamedTuple):
    """A contract method (or, without a method, the constructor) and its arguments."""

    contract_type: ContractType
    method: Optional[str] = None
    args: Tuple[Any, ...] = ()


class TransactionIntent(NamedTuple):
    """A single transaction to be issued by the deployer account."""

    to: Optional[ChecksumAddress]  # None for contract creation
    value: int = 0
    nonce: Optional[int] = None
    gas_price: Optional[int] = None
    call: Optional[ContractCall] = None  # None for a plain transfer

    @property
    def is_creation(self) -> bool:
        return self.to is None

    @property
    def method(self) -> Optional[str]:
        return self.call.method if self.call else None


class Event(NamedTuple):
    name: str
    address: ChecksumAddress
    args: Dict[str, Any]


class Receipt(NamedTuple):
    txn_hash: str
    block_number: int
    status: int
    events: List[Event]
    contract_address: Optional[ChecksumAddress] = None

    @property
    def failed(self) -> bool:
        return self.status == 0


class ChainAPI(ABC):
    """
    The narrow view of a chain the deployment needs: one sending account,
    its nonce, gas prices, transaction submission and read-only calls.
    """

    @property
    @abstractmethod
    def address(self) -> ChecksumAddress:
        """The address of the account submitting transactions."""
        raise NotImplementedError

    @property
    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def network_name(self) -> str:
        raise NotImplementedError

    @property
    def is_local(self) -> bool:
        return is_local_network(self.network_name)

    @abstractmethod
    def get_transaction_count(self, address: ChecksumAddress) -> int:
        """Returns the pending-inclusive transaction count of an address."""
        raise NotImplementedError

    @abstractmethod
    def get_balance(self, address: ChecksumAddress) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_gas_price(self) -> int:
        """Returns the currently suggested gas price in wei."""
        raise NotImplementedError

    @abstractmethod
    def get_code(self, address: ChecksumAddress) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def call(self, to: ChecksumAddress, contract_type: ContractType, method: str, *args) -> Any:
        """Executes a read-only call and returns its decoded result."""
        raise NotImplementedError

    @abstractmethod
    def send_transaction(self, intent: TransactionIntent) -> Receipt:
        """
        Signs and sends a transaction, blocking until it is confirmed.
        Raises SubmissionError if it is never included and RevertError if it reverts.
        """
        raise NotImplementedError


def _to_receipt(receipt: ReceiptAPI, contract_type: Optional[ContractType] = None) -> Receipt:
    events = list()
    if contract_type is not None and contract_type.events:
        for log in receipt.decode_logs(list(contract_type.events)):
            events.append(
                Event(
                    name=log.event_name,
                    address=to_checksum_address(log.contract_address),
                    args=dict(log.event_arguments),
                )
            )

    contract_address = receipt.contract_address
    if contract_address:
        contract_address = to_checksum_address(contract_address)
    return Receipt(
        txn_hash=str(receipt.txn_hash),
        block_number=receipt.block_number,
        status=0 if receipt.failed else 1,
        events=events,
        contract_address=contract_address,
    )


class ApeChain(ChainAPI):
    """
    ChainAPI backed by the active ape provider and an ape account.

    Transactions wait for inclusion for at most the network's
    ``transaction_acceptance_timeout``. ``required_confirmations`` defaults to the
    network's ape setting (0 on local and fork networks); any extra confirmations
    are waited for without a timeout.
    """

    def __init__(self, account: AccountAPI, required_confirmations: Optional[int] = None):
        self._account = account
        self.required_confirmations = required_confirmations

    @property
    def provider(self):
        return networks.provider

    @property
    def account(self) -> AccountAPI:
        return self._account

    @property
    def address(self) -> ChecksumAddress:
        return self._account.address

    @property
    def chain_id(self) -> int:
        return self.provider.chain_id

    @property
    def network_name(self) -> str:
        return self.provider.network.name

    def get_transaction_count(self, address: ChecksumAddress) -> int:
        return self.provider.web3.eth.get_transaction_count(address, "pending")

    def get_balance(self, address: ChecksumAddress) -> int:
        return self.provider.get_balance(address)

    def get_gas_price(self) -> int:
        return self.provider.gas_price

    def get_code(self, address: ChecksumAddress) -> bytes:
        return bytes(HexBytes(self.provider.get_code(address)))

    def _instance(self, address: ChecksumAddress, contract_type: ContractType) -> ContractInstance:
        return ContractInstance(address, contract_type=contract_type)

    def call(self, to: ChecksumAddress, contract_type: ContractType, method: str, *args) -> Any:
        handler = getattr(self._instance(to, contract_type), method)
        try:
            if isinstance(handler, ContractCallHandler):
                return handler(*args)
            return handler.call(*args)
        except ApeException as e:
            raise RevertError(f"Call to {contract_type.name}[{to}].{method} failed: {e}") from e

    def _txn_kwargs(self, intent: TransactionIntent) -> Dict[str, Any]:
        kwargs = dict(nonce=intent.nonce, gas_price=intent.gas_price)
        if self.required_confirmations is not None:
            kwargs["required_confirmations"] = self.required_confirmations
        return kwargs

    def _send(self, intent: TransactionIntent) -> ReceiptAPI:
        kwargs = self._txn_kwargs(intent)
        if intent.is_creation:
            container = ContractContainer(intent.call.contract_type)
            instance = self._account.deploy(container, *intent.call.args, **kwargs)
            return instance.receipt

        if intent.call is None:
            txn = self.provider.network.ecosystem.create_transaction(
                sender=self.address, receiver=intent.to, value=intent.value, **kwargs
            )
            return self._account.call(txn)

        instance = self._instance(intent.to, intent.call.contract_type)
        method = getattr(instance, intent.call.method)
        return method(*intent.call.args, sender=self._account, value=intent.value, **kwargs)

    def send_transaction(self, intent: TransactionIntent) -> Receipt:
        try:
            receipt = self._send(intent)
        except VirtualMachineError as e:
            raise RevertError(f"Transaction with nonce {intent.nonce} reverted: {e}") from e
        except ApeException as e:
            raise SubmissionError(f"Transaction with nonce {intent.nonce} not included: {e}") from e

        if receipt.failed:
            raise RevertError(f"Transaction {receipt.txn_hash} reverted")
        contract_type = intent.call.contract_type if intent.call else None
        return _to_receipt(receipt, contract_type)
