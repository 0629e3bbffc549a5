import click
from eth_utils import is_hex_address, to_checksum_address

from upgrades.utils import is_zero_address


class MinFloat(click.ParamType):
    """A number of seconds no smaller than `min_value`."""

    name = "seconds"

    def __init__(self, min_value: float):
        self.min_value = min_value

    def convert(self, value, param, ctx):
        if isinstance(value, float):
            seconds = value
        else:
            try:
                seconds = float(value)
            except (TypeError, ValueError):
                self.fail(f"{value} is not a number of seconds", param, ctx)
        if seconds < self.min_value:
            self.fail(f"{value} is below the minimum of {self.min_value} seconds", param, ctx)
        return seconds


class ChecksumAddress(click.ParamType):
    """A contract address; normalized to checksum form, never the zero address."""

    name = "address"

    def convert(self, value, param, ctx):
        if not is_hex_address(value):
            self.fail(f"Invalid ethereum address: {value}", param, ctx)
        if is_zero_address(value):
            self.fail("The zero address is not a contract", param, ctx)
        return to_checksum_address(value)
