from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from upgrades.constants import EIP1967_BEACON_SLOT
from upgrades.errors import NetworkError, StorageReadError
from upgrades.network import Network
from upgrades.utils import address_from_word

OWNER_SELECTOR = function_signature_to_4byte_selector("owner()")
IMPLEMENTATION_SELECTOR = function_signature_to_4byte_selector("implementation()")
UPGRADE_TO_SELECTOR = function_signature_to_4byte_selector("upgradeTo(address)")
VERSION_SELECTOR = function_signature_to_4byte_selector("version()")


class StorageSlotReader:
    """Recovers the beacon a proxy delegates to from its EIP1967 beacon slot."""

    def __init__(self, network: Network, slot: int = EIP1967_BEACON_SLOT):
        self.network = network
        self.slot = slot

    def read_beacon(self, proxy_address: str) -> ChecksumAddress:
        """
        Returns the beacon address recorded by `proxy_address`.
        An unset slot yields the zero address; callers must treat that as
        "not a beacon proxy".
        """
        try:
            word = self.network.get_storage_at(proxy_address, self.slot)
        except NetworkError as e:
            raise StorageReadError(
                f"Could not read beacon slot of proxy {proxy_address}: {e}"
            ) from e
        return address_from_word(word)


class UpgradeableContract:
    """
    The handful of calls the upgrade engine makes against a beacon (or, for
    `version`, against a proxy), addressed by contract address only.
    """

    def __init__(self, network: Network, address: str):
        self.network = network
        self.address = to_checksum_address(address)

    def _call(self, selector: bytes, output_type: str):
        data = self.network.call(self.address, selector)
        try:
            (value,) = decode([output_type], data)
        except DecodingError as e:
            raise NetworkError(
                f"Unexpected return data from {self.address} for selector 0x{selector.hex()}"
            ) from e
        return value

    def owner(self) -> ChecksumAddress:
        return to_checksum_address(self._call(OWNER_SELECTOR, "address"))

    def implementation(self) -> ChecksumAddress:
        return to_checksum_address(self._call(IMPLEMENTATION_SELECTOR, "address"))

    def version(self) -> str:
        """Optional capability; raises NetworkError if the contract does not expose it."""
        return self._call(VERSION_SELECTOR, "string")

    @staticmethod
    def upgrade_to_calldata(new_implementation: str) -> bytes:
        return UPGRADE_TO_SELECTOR + encode(
            ["address"], [to_checksum_address(new_implementation)]
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.address})"
