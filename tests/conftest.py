import json
from typing import Callable, Dict, List, Optional

import pytest
import yaml
from eth_utils import to_checksum_address
from hexbytes import HexBytes

from staking_deployment.chain import ChainAPI, Event, Receipt, TransactionIntent
from staking_deployment.constants import ABI_DIR, FACTORY_CONTRACT_NAME, POOL_CONTRACT_NAME
from staking_deployment.contracts import creation_code, load_artifact, load_contract_type
from staking_deployment.errors import RevertError, SubmissionError
from staking_deployment.nonce import NonceManager
from staking_deployment.params import PoolConfig
from staking_deployment.sequencer import PoolDeploymentSequencer
from staking_deployment.submitter import TransactionSubmitter

DEPLOYER = to_checksum_address("0x" + "de" * 20)
TOKEN = to_checksum_address("0x" + "70" * 20)
OTHER_TOKEN = to_checksum_address("0x" + "71" * 20)

APOTHEM_CHAIN_ID = 51
GAS_PRICE = 10
BALANCE = 5 * 10**18

FACTORY_BYTECODE = "0xfac7"


class FakeContract:
    """Executes contract calls against python methods named after the ABI functions."""

    def __init__(self, chain: "FakeChain", address: str, contract_name: str):
        self.chain = chain
        self.address = address
        self.contract_type = load_contract_type(contract_name)
        self.emitted: List[Event] = list()

    def _method(self, name: str):
        if not any(abi.name == name for abi in self.contract_type.methods):
            raise RevertError(f"Unknown method {name} on {self.address}")
        return getattr(self, name)

    def emit(self, event_name: str, **args) -> None:
        assert any(abi.name == event_name for abi in self.contract_type.events)
        self.emitted.append(Event(name=event_name, address=self.address, args=args))

    def transact(self, method: str, args) -> List[Event]:
        self.emitted = list()
        self._method(method)(*args)
        return self.emitted

    def call(self, method: str, args):
        return self._method(method)(*args)


class FakePool(FakeContract):
    def __init__(self, chain, address, token, interest, decimals, pool_name):
        super().__init__(chain, address, POOL_CONTRACT_NAME)
        self.state = dict(
            stakingToken=to_checksum_address(token),
            interest=interest,
            poolName=pool_name,
            minStakeAmount=0,
            maxStakeAmount=0,
            coolOff=0,
            redeemInterval=0,
            maxPoolAmount=0,
        )
        self.decimals = decimals
        self.interest_precision = None
        self.initialized = False

    def initialize(
        self, min_stake, max_stake, cool_off, redeem_interval, max_pool_amount, precision
    ):
        if self.initialized:
            raise RevertError("Initializable: contract is already initialized")
        self.initialized = True
        self.interest_precision = precision
        self.state.update(
            minStakeAmount=min_stake,
            maxStakeAmount=max_stake,
            coolOff=cool_off,
            redeemInterval=redeem_interval,
            maxPoolAmount=max_pool_amount,
        )
        self.state.update(self.chain.pool_overrides)

    def __getattr__(self, name):
        # view functions
        state = self.__dict__.get("state", {})
        if name in state:
            return lambda: state[name]
        raise AttributeError(name)


class FakeFactory(FakeContract):
    def __init__(self, chain, address):
        super().__init__(chain, address, FACTORY_CONTRACT_NAME)
        self.pools: List[str] = list()
        self.emit_events = True

    def deploy(self, token, interest, decimals, pool_name):
        pool = FakePool(self.chain, self.chain.new_address(), token, interest, decimals, pool_name)
        self.chain.install(pool)
        self.pools.append(pool.address)
        if self.emit_events:
            self.emit("PoolDeployed", pool=pool.address)
        return pool.address

    def getPool(self, index):
        return self.pools[index]

    def getPoolCount(self):
        return len(self.pools)


class FakeChain(ChainAPI):
    """
    In-memory chain with a single account. Transactions are confirmed one at a
    time and must carry exactly the next nonce of the account.
    """

    def __init__(self, chain_id: int = APOTHEM_CHAIN_ID, network_name: str = "apothem"):
        self._chain_id = chain_id
        self._network_name = network_name
        self.gas_price = GAS_PRICE
        self.balance = BALANCE
        self.nonce = 0
        self.block_number = 0
        self.contracts: Dict[str, FakeContract] = dict()
        self.code: Dict[str, bytes] = dict()
        self.confirmed: List[TransactionIntent] = list()
        self.receipts: List[Receipt] = list()
        self.pool_overrides: Dict[str, object] = dict()
        self._failures = list()
        self._addresses = 0

    @property
    def address(self):
        return DEPLOYER

    @property
    def chain_id(self):
        return self._chain_id

    @property
    def network_name(self):
        return self._network_name

    def new_address(self) -> str:
        self._addresses += 1
        return to_checksum_address(f"0x{0xC0 + self._addresses:040x}")

    def install(self, contract: FakeContract, code: str = "0xc0de") -> FakeContract:
        self.contracts[contract.address] = contract
        self.code[contract.address] = bytes(HexBytes(code))
        return contract

    def deploy_factory(self) -> FakeFactory:
        return self.install(FakeFactory(self, self.new_address()), code=FACTORY_BYTECODE)

    def fail_next(
        self,
        error: Exception,
        match: Callable[[TransactionIntent], bool] = lambda intent: True,
        consume_nonce: bool = False,
    ) -> None:
        """Makes the next transaction matching ``match`` fail with ``error``."""
        self._failures.append((match, error, consume_nonce))

    def get_transaction_count(self, address):
        assert address == DEPLOYER
        return self.nonce

    def get_balance(self, address):
        assert address == DEPLOYER
        return self.balance

    def get_gas_price(self):
        return self.gas_price

    def get_code(self, address):
        return self.code.get(address, b"")

    def call(self, to, contract_type, method, *args):
        if to not in self.contracts:
            raise RevertError(f"Call to {to} failed: no contract")
        return self.contracts[to].call(method, args)

    def _mine(self, intent: TransactionIntent) -> Receipt:
        events, contract_address = list(), None
        if intent.is_creation:
            contract_address = self.new_address()
            bytecode = creation_code(intent.call.contract_type)
            if bytecode == FACTORY_BYTECODE:
                self.install(FakeFactory(self, contract_address), code=FACTORY_BYTECODE)
            else:
                self.code[contract_address] = bytes(HexBytes(bytecode))
        elif intent.call and intent.to in self.contracts:
            events = self.contracts[intent.to].transact(intent.call.method, intent.call.args)

        self.nonce += 1
        self.block_number += 1
        self.confirmed.append(intent)
        receipt = Receipt(
            txn_hash=f"0x{len(self.confirmed):064x}",
            block_number=self.block_number,
            status=1,
            events=events,
            contract_address=contract_address,
        )
        self.receipts.append(receipt)
        return receipt

    def send_transaction(self, intent):
        assert intent.gas_price is not None
        for failure in list(self._failures):
            match, error, consume_nonce = failure
            if match(intent):
                self._failures.remove(failure)
                if consume_nonce:
                    self.nonce += 1
                raise error

        if intent.nonce != self.nonce:
            raise SubmissionError(f"nonce {intent.nonce} rejected, expected {self.nonce}")
        return self._mine(intent)


def is_clearing(intent: TransactionIntent) -> bool:
    return intent.to == DEPLOYER


def calls(method: str) -> Callable[[TransactionIntent], bool]:
    return lambda intent: intent.method == method


def pool_config(name: str = "XDC Premium Pool", **overrides) -> PoolConfig:
    values = dict(
        token=TOKEN,
        name=name,
        min_stake_amount=10000,
        max_stake_amount=1000000,
        cool_off=259200,
        redeem_interval=43200,
        max_pool_amount=5000000,
        interest_precision=1000000,
        interest=7,
        decimals=18,
    )
    values.update(overrides)
    return PoolConfig(**values)


def params_data(pools: Optional[List[dict]] = None, **sections) -> dict:
    data = {
        "deployment": {"name": "test-pools", "chain_id": APOTHEM_CHAIN_ID},
        "artifacts": {"dir": "./artifacts", "filename": "test.json"},
        "constants": {"XDC": TOKEN, "FXD": OTHER_TOKEN},
        "pools": pools
        if pools is not None
        else [
            {
                "name": "XDC Premium Pool",
                "tokenAddress": "$XDC",
                "minStakeAmount": 10000,
                "maxStakeAmount": 1000000,
                "coolOff": 259200,
                "redeemInterval": 43200,
                "maxPoolAmount": 5000000,
                "interestPrecision": 1000000,
                "interest": 7,
                "decimals": 18,
            },
            {
                "name": "FXD Growth Pool",
                "tokenAddress": "$FXD",
                "minStakeAmount": 5000,
                "maxStakeAmount": 500000,
                "coolOff": 172800,
                "redeemInterval": 43200,
                "maxPoolAmount": 2000000,
                "interestPrecision": 1000000,
                "interest": 12,
                "decimals": 18,
            },
        ],
    }
    data.update(sections)
    return data


def write_artifact(directory, contract_name: str, bytecode: str, abi: Optional[list] = None):
    """Writes a hardhat style artifact and returns its path."""
    if abi is None:
        with open(ABI_DIR / f"{contract_name}.json", "r") as file:
            abi = json.load(file)
    filepath = directory / f"{contract_name}.json"
    artifact = {"contractName": contract_name, "abi": abi, "bytecode": bytecode}
    filepath.write_text(json.dumps(artifact))
    return filepath


@pytest.fixture
def write_params(tmp_path):
    def _write(data: dict, name: str = "apothem.yml"):
        data["artifacts"] = dict(data.get("artifacts") or {}, dir=str(tmp_path / "artifacts"))
        filepath = tmp_path / name
        with open(filepath, "w") as file:
            yaml.safe_dump(data, file)
        return filepath

    return _write


@pytest.fixture
def params_file(write_params):
    return write_params(params_data())


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def factory(fake_chain):
    return fake_chain.deploy_factory()


@pytest.fixture
def nonces(fake_chain):
    return NonceManager(fake_chain)


@pytest.fixture
def submitter(fake_chain):
    return TransactionSubmitter(fake_chain)


@pytest.fixture
def sequencer(fake_chain, submitter, nonces):
    return PoolDeploymentSequencer(fake_chain, submitter=submitter, nonces=nonces, autosign=True)


@pytest.fixture
def factory_artifact(tmp_path):
    return load_artifact(write_artifact(tmp_path, FACTORY_CONTRACT_NAME, FACTORY_BYTECODE))
