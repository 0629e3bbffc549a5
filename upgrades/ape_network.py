from typing import Optional

from ape.api import AccountAPI, ProviderAPI, ReceiptAPI
from ape.exceptions import ApeException, TransactionNotFoundError
from eth_utils import to_hex

from upgrades.errors import ConfirmationTimeout, NetworkError, TransactionError
from upgrades.network import READ_ERRORS, Network, Receipt

GWEI = 10**9


def _to_receipt(receipt: ReceiptAPI) -> Receipt:
    return Receipt(
        tx_hash=receipt.txn_hash,
        block_number=receipt.block_number,
        status=int(receipt.status),
        gas_used=receipt.gas_used,
    )


class ApeNetwork(Network):
    """
    Network backed by the connected ape provider; transactions are
    signed by an ape account (keyfile, hardware or test account).

    Submission and confirmation are separate steps: the signed transaction is
    broadcast raw, so its hash is known before any waiting starts and the
    confirmation wait is bounded by the run's own timeout.
    """

    def __init__(
        self,
        provider: ProviderAPI,
        max_fee: Optional[float] = None,
        max_priority_fee: Optional[float] = None,
    ):
        self.provider = provider
        self.max_fee = max_fee
        self.max_priority_fee = max_priority_fee

    @property
    def chain_id(self) -> int:
        return self.provider.chain_id

    def get_storage_at(self, address: str, slot: int) -> bytes:
        try:
            return bytes(self.provider.get_storage(address, slot))
        except ApeException as e:
            raise NetworkError(f"Failed to read storage slot {hex(slot)} of {address}: {e}") from e

    def get_code(self, address: str) -> bytes:
        try:
            return bytes(self.provider.get_code(address))
        except ApeException as e:
            raise NetworkError(f"Failed to read code at {address}: {e}") from e

    def call(self, address: str, data: bytes) -> bytes:
        ecosystem = self.provider.network.ecosystem
        try:
            txn = ecosystem.create_transaction(receiver=address, data=data)
            return bytes(self.provider.send_call(txn))
        except ApeException as e:
            raise NetworkError(f"Call to {address} failed: {e}") from e

    def send_transaction(self, address: str, data: bytes, signer: AccountAPI) -> str:
        kwargs = dict(receiver=address, data=data, sender=signer.address)
        if self.max_fee:
            kwargs["max_fee"] = int(self.max_fee * GWEI)
        if self.max_priority_fee:
            kwargs["max_priority_fee"] = int(self.max_priority_fee * GWEI)

        ecosystem = self.provider.network.ecosystem
        try:
            txn = signer.prepare_transaction(ecosystem.create_transaction(**kwargs))
            signed = signer.sign_transaction(txn)
        except ApeException as e:
            raise TransactionError(f"Transaction to {address} failed: {e}") from e
        if signed is None:
            raise TransactionError(f"Transaction to {address} was not signed")

        try:
            tx_hash = self.provider.web3.eth.send_raw_transaction(signed.serialize_transaction())
        except (ApeException,) + READ_ERRORS as e:
            raise TransactionError(f"Transaction to {address} was rejected: {e}") from e
        return to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        try:
            receipt = self.provider.get_receipt(tx_hash, timeout=timeout)
        except TransactionNotFoundError as e:
            raise ConfirmationTimeout(tx_hash=tx_hash, timeout=timeout) from e
        except ApeException as e:
            raise NetworkError(f"Failed to fetch receipt for {tx_hash}: {e}") from e
        return _to_receipt(receipt)
