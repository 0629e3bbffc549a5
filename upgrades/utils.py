from pathlib import Path

import yaml
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from upgrades.constants import ZERO_ADDRESS


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def same_address(address_1: str, address_2: str) -> bool:
    """Compares two hex addresses; checksum casing is ignored."""
    if address_1 is None or address_2 is None:
        return False
    return address_1.lower() == address_2.lower()


def is_zero_address(address: str) -> bool:
    return same_address(address, ZERO_ADDRESS)


def address_from_word(word: bytes) -> ChecksumAddress:
    """Decodes the low-order 20 bytes of a 32-byte storage word or ABI return value."""
    return to_checksum_address(bytes(word)[-20:].rjust(20, b"\x00"))
