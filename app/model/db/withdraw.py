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

from enum import StrEnum

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class WithdrawType(StrEnum):
    WINNINGS = "WINNINGS"
    ESCROW = "ESCROW"


class Withdraw(Base):
    """Withdrawal of winnings or escrow"""

    __tablename__ = "withdraw"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # transaction id
    txid: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # WithdrawType
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    version: Mapped[int | None] = mapped_column(Integer)
    block_num: Mapped[int | None] = mapped_column(BigInteger)
    winner_address: Mapped[str | None] = mapped_column(String(40))
    # topic address
    contract_address: Mapped[str | None] = mapped_column(String(40), index=True)
    # decimal strings
    qtum_amount: Mapped[str | None] = mapped_column(String(80))
    bot_amount: Mapped[str | None] = mapped_column(String(80))
