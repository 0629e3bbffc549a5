from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from requests.exceptions import ConnectionError
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from tests.conftest import make_address
from upgrades.constants import EIP1967_BEACON_SLOT
from upgrades.errors import ConfirmationTimeout, NetworkError, TransactionError
from upgrades.network import Web3Network

TX_HASH = HexBytes("0x" + "ab" * 32)


@pytest.fixture
def w3():
    return MagicMock()


def test_from_url():
    network = Web3Network.from_url("http://localhost:8545", max_fee=100, poll_latency=0.1)
    assert isinstance(network.w3, Web3)
    assert network.max_fee == 100
    assert network.max_priority_fee is None
    assert network.poll_latency == 0.1


def test_reads(w3):
    address = make_address(0x1001)
    w3.eth.chain_id = 16602
    w3.eth.get_storage_at.return_value = HexBytes(b"\x00" * 31 + b"\x01")
    w3.eth.get_code.return_value = HexBytes("0x6080")
    w3.eth.call.return_value = HexBytes("0x" + "00" * 32)
    network = Web3Network(w3)

    assert network.chain_id == 16602
    assert network.get_storage_at(address.lower(), EIP1967_BEACON_SLOT) == b"\x00" * 31 + b"\x01"
    w3.eth.get_storage_at.assert_called_once_with(address, EIP1967_BEACON_SLOT)
    assert network.get_code(address) == bytes.fromhex("6080")
    assert network.call(address, b"\x8d\xa5\xcb\x5b") == b"\x00" * 32
    w3.eth.call.assert_called_once_with({"to": address, "data": b"\x8d\xa5\xcb\x5b"})


def test_read_failures(w3):
    address = make_address(0x1001)
    w3.eth.get_storage_at.side_effect = ConnectionError("connection refused")
    w3.eth.get_code.side_effect = ValueError({"code": -32000, "message": "header not found"})
    w3.eth.call.side_effect = ContractLogicError("execution reverted")
    network = Web3Network(w3)

    with pytest.raises(NetworkError, match="connection refused"):
        network.get_storage_at(address, EIP1967_BEACON_SLOT)
    with pytest.raises(NetworkError, match="header not found"):
        network.get_code(address)
    with pytest.raises(NetworkError, match="execution reverted"):
        network.call(address, b"")


def test_send_transaction(w3, signer):
    beacon = make_address(0x1002)
    w3.eth.send_transaction.return_value = TX_HASH
    network = Web3Network(w3, max_fee=120, max_priority_fee=2)

    tx_hash = network.send_transaction(beacon.lower(), b"\x36\x59\xcf\xe6", signer)
    assert tx_hash == "0x" + "ab" * 32
    w3.eth.send_transaction.assert_called_once_with(
        {
            "from": signer.address,
            "to": beacon,
            "data": b"\x36\x59\xcf\xe6",
            "maxFeePerGas": 120 * 10**9,
            "maxPriorityFeePerGas": 2 * 10**9,
        }
    )


def test_send_transaction_without_gas_settings(w3, signer):
    w3.eth.send_transaction.return_value = TX_HASH
    Web3Network(w3).send_transaction(make_address(0x1002), b"", signer)
    (transaction,), _ = w3.eth.send_transaction.call_args
    assert "maxFeePerGas" not in transaction
    assert "maxPriorityFeePerGas" not in transaction


def test_send_transaction_failures(w3, signer):
    network = Web3Network(w3)
    w3.eth.send_transaction.side_effect = ContractLogicError("Ownable: caller is not the owner")
    with pytest.raises(TransactionError, match="reverted"):
        network.send_transaction(make_address(0x1002), b"", signer)

    w3.eth.send_transaction.side_effect = ValueError({"message": "insufficient funds"})
    with pytest.raises(TransactionError, match="rejected"):
        network.send_transaction(make_address(0x1002), b"", signer)


def test_wait_for_receipt(w3):
    w3.eth.wait_for_transaction_receipt.return_value = {
        "transactionHash": TX_HASH,
        "blockNumber": 123,
        "status": 1,
        "gasUsed": 34567,
    }
    network = Web3Network(w3, poll_latency=0.5)
    receipt = network.wait_for_receipt(TX_HASH.hex(), timeout=30)

    assert receipt.succeeded
    assert receipt.tx_hash == "0x" + "ab" * 32
    assert receipt.block_number == 123
    assert receipt.gas_used == 34567
    w3.eth.wait_for_transaction_receipt.assert_called_once_with(
        TX_HASH.hex(), timeout=30, poll_latency=0.5
    )


def test_wait_for_receipt_timeout(w3):
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not in chain after 30s")
    with pytest.raises(ConfirmationTimeout) as error:
        Web3Network(w3).wait_for_receipt("0x" + "ab" * 32, timeout=30)
    assert not isinstance(error.value, TransactionError)
    assert error.value.tx_hash == "0x" + "ab" * 32
    assert error.value.timeout == 30


def test_wait_for_receipt_network_failure(w3):
    w3.eth.wait_for_transaction_receipt.side_effect = ConnectionError("reset by peer")
    with pytest.raises(NetworkError, match="reset by peer"):
        Web3Network(w3).wait_for_receipt("0x" + "ab" * 32, timeout=30)
