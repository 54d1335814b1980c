from typing import List, Optional

from eth_typing import ChecksumAddress

from staking_deployment.chain import ChainAPI


class NonceManager:
    """
    Hands out the nonces of a single account for one deployment run.

    The counter is read from the chain's pending-inclusive transaction count and
    then incremented locally; after a failed transaction it is stale until the
    next refresh, because the failed transaction may or may not have consumed
    its nonce.
    """

    class Stale(RuntimeError):
        """Raised when a nonce is requested from a counter that must be refreshed first"""

    def __init__(self, chain: ChainAPI, address: Optional[ChecksumAddress] = None):
        self.chain = chain
        self.address = address or chain.address
        self._nonce: Optional[int] = None
        self.issued: List[int] = list()

    @property
    def current(self) -> Optional[int]:
        return self._nonce

    @property
    def is_stale(self) -> bool:
        return self._nonce is None

    def refresh(self) -> int:
        """Re-reads the account nonce from the chain."""
        self._nonce = self.chain.get_transaction_count(self.address)
        print(f"(i) Nonce for {self.address} is {self._nonce}")
        return self._nonce

    def next(self) -> int:
        """Returns the current nonce and advances the local counter."""
        if self._nonce is None:
            raise self.Stale(f"Nonce for {self.address} must be refreshed from the chain first")
        nonce = self._nonce
        self._nonce += 1
        self.issued.append(nonce)
        return nonce

    def invalidate(self) -> None:
        self._nonce = None
