"""
Copyright BOOSTRY Co., Ltd.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.

You may obtain a copy of the License at
http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing,
software distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.

See the License for the specific language governing permissions and
limitations under the License.

SPDX-License-Identifier: Apache-2.0
"""

import math
from decimal import Decimal, localcontext

AMOUNT_PRECISION = 100
GAS_PRICE_DECIMALS = 8


def to_amount_str(value: Decimal | int | str) -> str:
    """Plain decimal string without exponent or trailing zeros"""
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        amount = Decimal(value)
        if amount == amount.to_integral_value():
            return str(amount.quantize(Decimal(1)))
        return format(amount.normalize(), "f")


def add_amounts(a: str, b: str) -> str:
    """Add two decimal strings without precision loss"""
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return to_amount_str(Decimal(a) + Decimal(b))


def zero_ledger(size: int) -> list[str]:
    return ["0"] * size


def increment_ledger(ledger: list[str], index: int, amount: str) -> list[str]:
    """Return a copy of the ledger with amount added at index"""
    updated = list(ledger)
    updated[index] = add_amounts(updated[index], amount)
    return updated


def gas_used_from_fee(fee: Decimal | str, gas_price: Decimal | str) -> int:
    """floor(|fee| / gas price)"""
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return math.floor(abs(Decimal(fee)) / Decimal(gas_price))


def format_gas_price(gas_price: Decimal | str) -> str:
    return f"{Decimal(gas_price):.{GAS_PRICE_DECIMALS}f}"
