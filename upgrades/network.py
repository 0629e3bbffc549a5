from abc import ABC, abstractmethod
from typing import Any, Dict, NamedTuple, Optional

from eth_account.signers.local import LocalAccount
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.middleware import construct_sign_and_send_raw_middleware, geth_poa_middleware

from upgrades.constants import RECEIPT_POLL_LATENCY
from upgrades.errors import ConfirmationTimeout, NetworkError, TransactionError


class Receipt(NamedTuple):
    """Backend-neutral view of a confirmed transaction."""

    tx_hash: str
    block_number: int
    status: int
    gas_used: int

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class Network(ABC):
    """
    The JSON-RPC surface the upgrade engine needs.
    Read failures raise NetworkError, rejected submissions raise TransactionError,
    and an unconfirmed transaction raises ConfirmationTimeout.
    """

    @property
    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_storage_at(self, address: str, slot: int) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def get_code(self, address: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def call(self, address: str, data: bytes) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def send_transaction(self, address: str, data: bytes, signer: Any) -> str:
        raise NotImplementedError

    @abstractmethod
    def wait_for_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        raise NotImplementedError


READ_ERRORS = (Web3Exception, RequestException, ValueError)


class Web3Network(Network):
    """web3.py backed network; transactions are signed locally by the injected account."""

    def __init__(
        self,
        w3: Web3,
        max_fee: Optional[float] = None,
        max_priority_fee: Optional[float] = None,
        poll_latency: float = RECEIPT_POLL_LATENCY,
    ):
        self.w3 = w3
        self.max_fee = max_fee
        self.max_priority_fee = max_priority_fee
        self.poll_latency = poll_latency

    @classmethod
    def from_url(
        cls, provider_url: str, account: Optional[LocalAccount] = None, **kwargs
    ) -> "Web3Network":
        """Set up a Web3 connection, signing with `account` when given."""
        w3 = Web3(Web3.HTTPProvider(provider_url))
        w3.middleware_onion.inject(geth_poa_middleware, layer=0)
        if account is not None:
            w3.middleware_onion.add(construct_sign_and_send_raw_middleware(account))
        return cls(w3, **kwargs)

    @property
    def chain_id(self) -> int:
        try:
            return self.w3.eth.chain_id
        except READ_ERRORS as e:
            raise NetworkError(f"Failed to read chain id: {e}") from e

    def get_storage_at(self, address: str, slot: int) -> bytes:
        try:
            return bytes(self.w3.eth.get_storage_at(Web3.to_checksum_address(address), slot))
        except READ_ERRORS as e:
            raise NetworkError(f"Failed to read storage slot {hex(slot)} of {address}: {e}") from e

    def get_code(self, address: str) -> bytes:
        try:
            return bytes(self.w3.eth.get_code(Web3.to_checksum_address(address)))
        except READ_ERRORS as e:
            raise NetworkError(f"Failed to read code at {address}: {e}") from e

    def call(self, address: str, data: bytes) -> bytes:
        try:
            result = self.w3.eth.call({"to": Web3.to_checksum_address(address), "data": data})
        except READ_ERRORS as e:
            raise NetworkError(f"Call to {address} failed: {e}") from e
        return bytes(result)

    def _gas_params(self) -> Dict[str, int]:
        params = dict()
        if self.max_fee:
            params["maxFeePerGas"] = Web3.to_wei(self.max_fee, "gwei")
        if self.max_priority_fee:
            params["maxPriorityFeePerGas"] = Web3.to_wei(self.max_priority_fee, "gwei")
        return params

    def send_transaction(self, address: str, data: bytes, signer: LocalAccount) -> str:
        transaction = {
            "from": signer.address,
            "to": Web3.to_checksum_address(address),
            "data": data,
            **self._gas_params(),
        }
        try:
            tx_hash = self.w3.eth.send_transaction(transaction)
        except ContractLogicError as e:
            raise TransactionError(f"Transaction to {address} reverted: {e}") from e
        except READ_ERRORS as e:
            raise TransactionError(f"Transaction to {address} was rejected: {e}") from e
        return Web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(tx_hash=tx_hash, timeout=timeout) from e
        except READ_ERRORS as e:
            raise NetworkError(f"Failed to fetch receipt for {tx_hash}: {e}") from e
        return Receipt(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            status=receipt["status"],
            gas_used=receipt["gasUsed"],
        )
