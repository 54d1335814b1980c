from decimal import Decimal, InvalidOperation

import click
from eth_utils import to_checksum_address


class MinDecimal(click.ParamType):
    name = "mindecimal"

    def __init__(self, min_value):
        self.min_value = Decimal(str(min_value))

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal):
            dvalue = value
        else:
            try:
                dvalue = Decimal(str(value))
            except InvalidOperation:
                self.fail(f"{value} is not a valid number", param, ctx)
        if dvalue < self.min_value:
            self.fail(
                f"{value} is less than the minimum allowed value of {self.min_value}", param, ctx
            )
        return dvalue


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        try:
            value = to_checksum_address(value=value)
        except ValueError:
            self.fail("Invalid ethereum address", param, ctx)
        else:
            return value
