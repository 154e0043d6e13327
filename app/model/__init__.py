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

import re
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import WrapValidator
from pydantic_core.core_schema import ValidatorFunctionWrapHandler

HEX_ADDRESS_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")


def qtum_hex_address_validator(
    value: Any, handler: ValidatorFunctionWrapHandler, *args, **kwargs
):
    """Validator for contract address in hex format (without 0x prefix)"""
    if value is not None:
        if not isinstance(value, str):
            raise ValueError("value must be of string")
        if not HEX_ADDRESS_PATTERN.match(value):
            raise ValueError("invalid hex address")
    return value


QtumHexAddress = Annotated[str, WrapValidator(qtum_hex_address_validator)]


def amount_string_validator(
    value: Any, handler: ValidatorFunctionWrapHandler, *args, **kwargs
):
    """Validate decimal amount string

    - Amounts are never handled as float
    """
    if value is not None:
        if not isinstance(value, str):
            raise ValueError("value must be of decimal string")
        try:
            amount = Decimal(value)
        except InvalidOperation:
            raise ValueError("value must be of decimal string")
        if not amount.is_finite() or amount < 0:
            raise ValueError("value must be a non-negative decimal")
    return value


AmountStr = Annotated[str, WrapValidator(amount_string_validator)]
