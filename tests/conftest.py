from collections import OrderedDict

import pytest
from eth_abi import decode, encode
from eth_account import Account
from eth_utils import to_checksum_address

from upgrades.beacon import (
    IMPLEMENTATION_SELECTOR,
    OWNER_SELECTOR,
    UPGRADE_TO_SELECTOR,
    VERSION_SELECTOR,
)
from upgrades.config import ModuleConfig, UpgradeConfig
from upgrades.constants import EIP1967_BEACON_SLOT, EMPTY_BYTES32, UPGRADE_ORDER
from upgrades.errors import ConfirmationTimeout, NetworkError, TransactionError
from upgrades.network import Network, Receipt

# Common constants
SIGNER_PRIVATE_KEY = "0x" + "11" * 32
OTHER_PRIVATE_KEY = "0x" + "22" * 32
RUNTIME_CODE = bytes.fromhex("6080604052")
CHAIN_ID = 16602


# Utility functions
def make_address(n: int) -> str:
    return to_checksum_address("0x" + f"{n:040x}")


class FakeNetwork(Network):
    """In-memory chain holding beacon proxies; just enough EVM for the upgrade engine."""

    def __init__(self, chain_id: int = CHAIN_ID):
        self._chain_id = chain_id
        self.storage = dict()
        self.code = dict()
        self.beacons = dict()
        self.versions = dict()
        self.requests = 0
        self.sent = list()
        self._pending = dict()

        # fault injection, keyed by lowercase address
        self.unreadable = set()
        self.rejecting = set()
        self.reverting = set()
        self.stalling = set()
        self.hijacked = dict()

    @property
    def chain_id(self) -> int:
        return self._chain_id

    # Setup

    def deploy(self, address: str) -> str:
        self.code[address.lower()] = RUNTIME_CODE
        return address

    def deploy_beacon_proxy(self, proxy, beacon, implementation, owner, version=None):
        for address in (proxy, beacon, implementation):
            self.deploy(address)
        self.storage[(proxy.lower(), EIP1967_BEACON_SLOT)] = encode(["address"], [beacon])
        self.beacons[beacon.lower()] = {"owner": owner, "implementation": implementation}
        if version is not None:
            self.versions[proxy.lower()] = version

    def implementation_of(self, beacon: str) -> str:
        return self.beacons[beacon.lower()]["implementation"]

    # Network

    def _touch(self, address: str) -> None:
        self.requests += 1
        if address.lower() in self.unreadable:
            raise NetworkError(f"connection refused while reading {address}")

    def get_storage_at(self, address: str, slot: int) -> bytes:
        self._touch(address)
        return self.storage.get((address.lower(), slot), EMPTY_BYTES32)

    def get_code(self, address: str) -> bytes:
        self._touch(address)
        return self.code.get(address.lower(), b"")

    def call(self, address: str, data: bytes) -> bytes:
        self._touch(address)
        selector = bytes(data[:4])
        beacon = self.beacons.get(address.lower())
        if beacon and selector == OWNER_SELECTOR:
            return encode(["address"], [beacon["owner"]])
        if beacon and selector == IMPLEMENTATION_SELECTOR:
            return encode(["address"], [beacon["implementation"]])
        if selector == VERSION_SELECTOR and address.lower() in self.versions:
            return encode(["string"], [self.versions[address.lower()]])
        if address.lower() not in self.code:
            return b""
        raise NetworkError("execution reverted")

    def send_transaction(self, address: str, data: bytes, signer) -> str:
        self.requests += 1
        self.sent.append((address, bytes(data), signer.address))
        if address.lower() in self.rejecting:
            raise TransactionError(f"Transaction to {address} was rejected: nonce too low")
        tx_hash = "0x" + f"{len(self.sent):064x}"
        self._pending[tx_hash] = (address, bytes(data), signer.address)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> Receipt:
        self.requests += 1
        address, data, sender = self._pending[tx_hash]
        if address.lower() in self.stalling:
            raise ConfirmationTimeout(tx_hash=tx_hash, timeout=timeout)

        block_number = 100 + len(self.sent)
        beacon = self.beacons.get(address.lower())
        authorized = beacon is not None and beacon["owner"].lower() == sender.lower()
        is_upgrade = data[:4] == UPGRADE_TO_SELECTOR
        if address.lower() in self.reverting or not (authorized and is_upgrade):
            return Receipt(tx_hash=tx_hash, block_number=block_number, status=0, gas_used=21000)

        (new_implementation,) = decode(["address"], data[4:])
        beacon["implementation"] = to_checksum_address(new_implementation)
        if address.lower() in self.hijacked:
            # someone else repointed the beacon right after confirmation
            beacon["implementation"] = self.hijacked[address.lower()]
        return Receipt(tx_hash=tx_hash, block_number=block_number, status=1, gas_used=35000)


def build_config(fleet, enabled=UPGRADE_ORDER, **kwargs) -> UpgradeConfig:
    modules = OrderedDict()
    for name, addresses in fleet.items():
        modules[name] = ModuleConfig(
            enabled=name in enabled,
            proxy_address=addresses["proxy"],
            implementation_address=addresses["new_implementation"],
        )
    return UpgradeConfig(modules=modules, **kwargs)


# Fixtures
@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def signer():
    return Account.from_key(SIGNER_PRIVATE_KEY)


@pytest.fixture
def other_account():
    return Account.from_key(OTHER_PRIVATE_KEY)


@pytest.fixture
def fleet(network, signer):
    """Every module behind its own signer-owned beacon, with a new implementation deployed."""
    fleet = OrderedDict()
    for index, name in enumerate(UPGRADE_ORDER):
        base = 0x1000 * (index + 1)
        addresses = dict(
            proxy=make_address(base + 1),
            beacon=make_address(base + 2),
            implementation=make_address(base + 3),
            new_implementation=make_address(base + 4),
        )
        network.deploy_beacon_proxy(
            proxy=addresses["proxy"],
            beacon=addresses["beacon"],
            implementation=addresses["implementation"],
            owner=signer.address,
            version=f"{name} v1.0.0",
        )
        network.deploy(addresses["new_implementation"])
        fleet[name] = addresses
    return fleet
