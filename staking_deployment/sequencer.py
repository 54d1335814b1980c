from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional, Sequence, Tuple

from ape.api import AccountAPI
from eth_typing import ChecksumAddress
from ethpm_types import ContractType

from staking_deployment.chain import ApeChain, ChainAPI, ContractCall, Receipt, TransactionIntent
from staking_deployment.confirm import _confirm_deployment, _confirm_pool, _continue
from staking_deployment.constants import (
    DEFAULT_GAS_PRICE_MULTIPLIER,
    FACTORY_CONTRACT_NAME,
    POOL_CONTRACT_NAME,
    POOL_DEPLOYED_EVENT,
)
from staking_deployment.contracts import (
    DeployedContract,
    creation_code,
    decode_event,
    get_abi,
    validate_constructor_args,
)
from staking_deployment.errors import (
    ConfigError,
    DecodeError,
    DeploymentError,
    SubmissionError,
    VerificationError,
)
from staking_deployment.nonce import NonceManager
from staking_deployment.params import DeploymentParameters, PoolConfig
from staking_deployment.registry import (
    RegistryEntry,
    address_from_registry,
    registry_entry,
    write_registry,
)
from staking_deployment.submitter import TransactionSubmitter


class DeploymentStatus(Enum):
    CREATED = "created"
    INITIALIZED = "initialized"
    DEPLOYED = "deployed"
    FAILED = "failed"


class DeploymentRecord(NamedTuple):
    pool_name: str
    address: Optional[ChecksumAddress]
    status: DeploymentStatus
    create_tx: Optional[str] = None
    initialize_tx: Optional[str] = None
    block_number: Optional[int] = None


class PoolDeploymentSequencer:
    """
    Issues the transactions of a deployment run, strictly one after another,
    from a single account: a clearing transaction, then either a contract
    creation or, for each configured pool, a factory ``deploy`` followed by the
    pool's ``initialize``.

    Any failure aborts the run. Nothing already confirmed is undone; the failure
    is reported together with the last completed step so an operator can pick
    up from there.
    """

    def __init__(
        self,
        chain: ChainAPI,
        submitter: Optional[TransactionSubmitter] = None,
        nonces: Optional[NonceManager] = None,
        autosign: bool = True,
    ):
        self.chain = chain
        self.submitter = submitter or TransactionSubmitter(chain)
        self.nonces = nonces or NonceManager(chain)
        self.autosign = autosign

        self.records: List[DeploymentRecord] = list()
        self.registry_entries: List[RegistryEntry] = list()
        self.last_completed_step: Optional[str] = None

    def _transact(self, intent: TransactionIntent, expected_event=None) -> Receipt:
        return self.submitter.submit(intent, nonces=self.nonces, expected_event=expected_event)

    def _complete(self, step: str) -> None:
        self.last_completed_step = step

    def _report_failure(self, error: DeploymentError, record: Optional[DeploymentRecord]) -> None:
        print(f"\n! Deployment failed with {error.__class__.__name__}: {error}")
        print(f"Last completed step: {self.last_completed_step or 'none'}")
        if record and record.address:
            print(
                f"Pool '{record.pool_name}' was created at {record.address} "
                "but is not fully deployed; it needs manual follow-up."
            )

    def _register(self, name: str, contract: DeployedContract, receipt: Receipt) -> None:
        """Registers ``contract`` under ``name``, with the receipt of its creation."""
        entry = registry_entry(
            chain_id=self.chain.chain_id,
            name=name,
            address=contract.address,
            abi=get_abi(contract.contract_type),
            tx_hash=receipt.txn_hash,
            block_number=receipt.block_number,
            deployer=self.chain.address,
        )
        self.registry_entries.append(entry)

    def _send_clearing_transaction(self) -> Receipt:
        intent = TransactionIntent(to=self.chain.address, value=0, nonce=self.nonces.next())
        return self._transact(intent)

    def clear_pending(self) -> Receipt:
        """
        Consumes the account's next nonce with a zero-value transfer to itself,
        flushing anything left pending by an interrupted run.
        """
        print("\nSending clearing transaction...")
        self.nonces.refresh()
        try:
            receipt = self._send_clearing_transaction()
        except SubmissionError as e:
            print(f"Clearing transaction was rejected ({e}); refreshing nonce and retrying.")
            self.nonces.refresh()
            receipt = self._send_clearing_transaction()

        self.nonces.refresh()
        self._complete(f"clearing transaction {receipt.txn_hash}")
        return receipt

    def deploy_contract(
        self, contract_type: ContractType, *args, clear: bool = True
    ) -> Tuple[DeployedContract, Receipt]:
        """Deploys a compiled contract with the given constructor arguments."""
        name = contract_type.name
        if not creation_code(contract_type):
            raise ConfigError(f"Artifact for {name} has no bytecode")
        validate_constructor_args(contract_type, args)
        if not self.autosign:
            _confirm_deployment(name)
        intent = TransactionIntent(to=None, call=ContractCall(contract_type, args=tuple(args)))
        try:
            if clear:
                self.clear_pending()
            print(f"\nDeploying {name}...")
            receipt = self._transact(intent)
            if not receipt.contract_address:
                raise DecodeError(f"No contract address in deployment receipt {receipt.txn_hash}")
        except DeploymentError as e:
            self._report_failure(e, record=None)
            raise

        contract = DeployedContract(self.chain, receipt.contract_address, contract_type)
        print(f"(i) {name} deployed to {contract.address}")
        self._register(name, contract, receipt)
        self._complete(f"deployed {name} at {contract.address}")
        return contract, receipt

    def deploy_factory(self, contract_type: ContractType) -> DeployedContract:
        factory, _ = self.deploy_contract(contract_type)
        return factory

    def get_factory(
        self, address: Optional[ChecksumAddress], contract_type: ContractType
    ) -> DeployedContract:
        """Returns the factory at ``address``; fails before any transaction if it is not deployed."""
        if not address:
            raise ConfigError(
                f"{FACTORY_CONTRACT_NAME} not found. Please deploy the factory first."
            )
        factory = DeployedContract(self.chain, address, contract_type)
        if not factory.has_event(POOL_DEPLOYED_EVENT):
            raise ConfigError(f"{contract_type.name} ABI has no {POOL_DEPLOYED_EVENT} event")
        if not factory.is_deployed():
            raise ConfigError(f"{FACTORY_CONTRACT_NAME} not found: no contract code at {address}.")
        print(f"Found factory at: {factory.address}")
        return factory

    def locate_factory(
        self, params: DeploymentParameters, factory_address: Optional[ChecksumAddress] = None
    ) -> DeployedContract:
        """Resolves the factory from an explicit address, the registry or the params file."""
        factory_address = factory_address or (
            address_from_registry(
                filepath=params.registry_filepath,
                chain_id=self.chain.chain_id,
                name=FACTORY_CONTRACT_NAME,
            )
            or params.factory_address
        )
        return self.get_factory(factory_address, params.contract_type(FACTORY_CONTRACT_NAME))

    def verify_pool(self, staking_pool: DeployedContract, pool: PoolConfig) -> None:
        """Reads back the configuration of a freshly initialized pool."""
        for accessor, expected in pool.expected_state().items():
            # addresses are checksummed on both sides
            actual = staking_pool.call(accessor)
            if actual != expected:
                raise VerificationError(
                    f"Pool '{pool.name}' at {staking_pool.address}: "
                    f"{accessor}() is {actual!r}, expected {expected!r}"
                )

    def deploy_pool(
        self,
        factory: DeployedContract,
        pool: PoolConfig,
        pool_type: ContractType,
        index: Optional[int] = None,
    ) -> DeploymentRecord:
        """
        Creates a pool through the factory, initializes it and verifies it.
        ``index`` is the position at which the factory is expected to register the pool.
        """
        print(f"\nDeploying pool: {pool.name}")
        if not self.autosign:
            _confirm_pool(pool)

        record = DeploymentRecord(pool_name=pool.name, address=None, status=DeploymentStatus.CREATED)
        try:
            print("Creating pool through factory...")
            intent = factory.intent("deploy", *pool.deploy_args())
            create_receipt = self._transact(intent, expected_event=POOL_DEPLOYED_EVENT)
            event = decode_event(create_receipt, POOL_DEPLOYED_EVENT, address=factory.address)
            if "pool" not in event:
                raise DecodeError(f"{POOL_DEPLOYED_EVENT} event has no 'pool' argument")
            record = record._replace(
                address=event["pool"],
                create_tx=create_receipt.txn_hash,
                block_number=create_receipt.block_number,
            )
            print(f"Pool deployed to: {record.address}")
            self._complete(f"created pool '{pool.name}' at {record.address}")

            print("Initializing staking pool...")
            staking_pool = DeployedContract(self.chain, record.address, pool_type)
            receipt = self._transact(staking_pool.intent("initialize", *pool.initialize_args()))
            record = record._replace(
                status=DeploymentStatus.INITIALIZED, initialize_tx=receipt.txn_hash
            )
            self._complete(f"initialized pool '{pool.name}' at {record.address}")

            self.verify_pool(staking_pool, pool)
            if index is not None:
                registered = factory.call("getPool", index)
                if registered.lower() != staking_pool.address.lower():
                    raise VerificationError(
                        f"Factory pool #{index} is {registered}, expected {staking_pool.address}"
                    )
        except DeploymentError as e:
            record = record._replace(status=DeploymentStatus.FAILED)
            self.records.append(record)
            self._report_failure(e, record)
            raise

        record = record._replace(status=DeploymentStatus.DEPLOYED)
        self.records.append(record)
        self._register(pool.name, staking_pool, create_receipt)
        self._complete(f"deployed pool '{pool.name}' at {record.address}")
        print(f"Pool {pool.name} created successfully at {record.address}")
        return record

    def deploy_pools(
        self, factory: DeployedContract, pools: Sequence[PoolConfig], pool_type: ContractType
    ) -> List[DeploymentRecord]:
        """Clears pending transactions, then deploys every pool in order."""
        initial_count = factory.call("getPoolCount")
        try:
            self.clear_pending()
        except DeploymentError as e:
            self._report_failure(e, record=None)
            raise

        records = list()
        for offset, pool in enumerate(pools):
            records.append(self.deploy_pool(factory, pool, pool_type, index=initial_count + offset))

        final_count = factory.call("getPoolCount")
        if final_count != initial_count + len(pools):
            error = VerificationError(
                f"Factory pool count went from {initial_count} to {final_count}, "
                f"expected an increase of {len(pools)}"
            )
            self._report_failure(error, record=None)
            raise error

        self.print_summary()
        return records

    def run(
        self, params: DeploymentParameters, factory_address: Optional[ChecksumAddress] = None
    ) -> List[DeploymentRecord]:
        """
        Deploys every pool of ``params`` through the factory at ``factory_address``,
        or else the one found in the registry or the params file.
        """
        factory = self.locate_factory(params, factory_address=factory_address)
        pool_type = params.contract_type(POOL_CONTRACT_NAME)
        return self.deploy_pools(factory, params.pools, pool_type)

    def print_summary(self) -> None:
        print("\nDeployment Summary:")
        print("==================")
        for record in self.records:
            print(f"{record.pool_name}: {record.address} ({record.status.value})")

    def finalize(self, registry_filepath: Path) -> Optional[Path]:
        """Writes every contract deployed in this run to the registry."""
        if not self.registry_entries:
            return None
        output_filepath = write_registry(entries=self.registry_entries, filepath=registry_filepath)
        print(f"(i) Registry written to {output_filepath}!")
        return output_filepath


def _print_deployment_info(chain: ChainAPI, params: DeploymentParameters, gas_price: int) -> None:
    print(
        f"Account: {chain.address}",
        f"Config: {params.path}",
        f"Registry: {params.registry_filepath}",
        f"Network: {chain.network_name}",
        f"Chain ID: {chain.chain_id}",
        f"Balance: {chain.get_balance(chain.address)}",
        f"Gas Price: {gas_price}",
        f"Pools: {len(params.pools)}",
        sep="\n",
    )


def prepare_deployment(
    account: AccountAPI,
    params_filepath: Optional[Path] = None,
    gas_multiplier=DEFAULT_GAS_PRICE_MULTIPLIER,
    autosign: bool = False,
) -> Tuple[PoolDeploymentSequencer, DeploymentParameters]:
    """
    Connects an ape account to the deployment machinery and loads the params of
    the active network, asking the user to confirm unless ``autosign`` is set.
    """
    if autosign:
        print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
    account.set_autosign(autosign)

    chain = ApeChain(account=account)
    params = DeploymentParameters.for_chain(chain, filepath=params_filepath)
    submitter = TransactionSubmitter(chain, gas_price_multiplier=gas_multiplier)
    sequencer = PoolDeploymentSequencer(chain, submitter=submitter, autosign=autosign)

    _print_deployment_info(chain, params, gas_price=submitter.gas_price())
    if not autosign:
        # Confirms the start of the deployment.
        _continue()
    return sequencer, params
