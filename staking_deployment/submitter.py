from decimal import ROUND_CEILING, Decimal
from typing import Optional, Union

from staking_deployment.chain import ChainAPI, Receipt, TransactionIntent
from staking_deployment.constants import DEFAULT_GAS_PRICE_MULTIPLIER
from staking_deployment.contracts import decode_event
from staking_deployment.errors import DeploymentError, RevertError
from staking_deployment.nonce import NonceManager


class TransactionSubmitter:
    """
    Submits one transaction at a time and blocks until it is confirmed.

    The gas price is always at least ``gas_price_multiplier`` times the price
    suggested by the chain at submission time, to avoid getting stuck behind
    pending transactions. Retrying is left to the caller.
    """

    def __init__(
        self,
        chain: ChainAPI,
        gas_price_multiplier: Union[int, float, Decimal] = DEFAULT_GAS_PRICE_MULTIPLIER,
    ):
        multiplier = Decimal(str(gas_price_multiplier))
        if multiplier < 1:
            raise ValueError(f"Gas price multiplier must be at least 1, got {gas_price_multiplier}")
        self.chain = chain
        self.gas_price_multiplier = multiplier

    def gas_price(self, minimum: Optional[int] = None) -> int:
        suggested = Decimal(self.chain.get_gas_price())
        gas_price = int((suggested * self.gas_price_multiplier).to_integral_value(ROUND_CEILING))
        return max(gas_price, minimum or 0)

    def submit(
        self,
        intent: TransactionIntent,
        nonces: NonceManager,
        expected_event: Optional[str] = None,
    ) -> Receipt:
        """
        Sends ``intent`` and waits for its confirmation.

        A missing nonce is taken from ``nonces``. When ``expected_event`` is given,
        a confirmed receipt without that event is treated as a revert. Any failure
        leaves ``nonces`` stale.
        """
        if intent.nonce is None:
            intent = intent._replace(nonce=nonces.next())
        intent = intent._replace(gas_price=self.gas_price(minimum=intent.gas_price))

        if intent.is_creation:
            target = f"{intent.call.contract_type.name} creation"
        elif intent.method:
            target = f"{intent.call.contract_type.name}[{intent.to[:10]}].{intent.method}"
        else:
            target = intent.to
        print(f"Sending {target} (nonce={intent.nonce}, gas_price={intent.gas_price})")
        try:
            receipt = self.chain.send_transaction(intent)
            if receipt.failed:
                raise RevertError(f"Transaction {receipt.txn_hash} reverted")
            if expected_event is not None:
                decode_event(receipt, expected_event)
        except DeploymentError:
            nonces.invalidate()
            raise

        print(f"(i) Confirmed {receipt.txn_hash} in block {receipt.block_number}")
        return receipt
