from typing import Any

from upgrades.beacon import UpgradeableContract
from upgrades.constants import DEFAULT_CONFIRMATION_TIMEOUT
from upgrades.errors import NetworkError, TransactionError
from upgrades.network import Network, Receipt


class UpgradeExecutor:
    """
    Submits the single irreversible step of an upgrade: repointing a beacon.
    Once confirmed, every proxy referencing the beacon runs the new implementation.
    """

    def __init__(
        self, network: Network, signer: Any, timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    ):
        self.network = network
        self.signer = signer
        self.timeout = timeout

    def execute(self, beacon_address: str, new_implementation_address: str) -> Receipt:
        data = UpgradeableContract.upgrade_to_calldata(new_implementation_address)
        print(
            f"\nTransacting UpgradeableBeacon[{beacon_address[:10]}].upgradeTo with arguments:"
            f"\n\tnewImplementation={new_implementation_address}"
        )
        tx_hash = self.network.send_transaction(beacon_address, data, self.signer)
        print(f"Transaction hash: {tx_hash}; waiting up to {self.timeout}s for confirmation...")

        try:
            receipt = self.network.wait_for_receipt(tx_hash, self.timeout)
        except NetworkError as e:
            raise TransactionError(
                f"Lost track of transaction {tx_hash}: {e}; check chain state manually"
            ) from e

        if not receipt.succeeded:
            raise TransactionError(
                f"Transaction {tx_hash} reverted in block {receipt.block_number}"
            )
        print(f"Confirmed in block {receipt.block_number} (gas used: {receipt.gas_used})")
        return receipt
