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

from sqlalchemy import JSON, BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TransactionType(StrEnum):
    TRANSFER = "TRANSFER"
    APPROVE_CREATE_EVENT = "APPROVECREATEEVENT"
    CREATE_EVENT = "CREATEEVENT"
    APPROVE_SET_RESULT = "APPROVESETRESULT"
    SET_RESULT = "SETRESULT"
    APPROVE_VOTE = "APPROVEVOTE"
    VOTE = "VOTE"
    RESET_APPROVE = "RESETAPPROVE"


class TransactionStatus(StrEnum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


class Transaction(Base):
    """Transaction submitted by this server"""

    __tablename__ = "transaction"

    # transaction id
    txid: Mapped[str] = mapped_column(String(64), primary_key=True)
    # TransactionType
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    # TransactionStatus
    status: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    # contract version
    version: Mapped[int | None] = mapped_column(Integer)

    # Gas accounting
    gas_limit: Mapped[str | None] = mapped_column(String(30))
    gas_price: Mapped[str | None] = mapped_column(String(30))
    gas_used: Mapped[int | None] = mapped_column(BigInteger)

    # submitted time (unix time)
    created_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # confirmation
    block_num: Mapped[int | None] = mapped_column(BigInteger)
    block_time: Mapped[int | None] = mapped_column(BigInteger)

    # Type specific payload
    sender_address: Mapped[str | None] = mapped_column(String(40))
    receiver_address: Mapped[str | None] = mapped_column(String(40))
    topic_address: Mapped[str | None] = mapped_column(String(40))
    oracle_address: Mapped[str | None] = mapped_column(String(40))
    name: Mapped[str | None] = mapped_column(String(255))
    options: Mapped[list[str] | None] = mapped_column(JSON)
    option_idx: Mapped[int | None] = mapped_column(Integer)
    # TokenKind
    token: Mapped[str | None] = mapped_column(String(10))
    # decimal string
    amount: Mapped[str | None] = mapped_column(String(80))
    result_setter_address: Mapped[str | None] = mapped_column(String(40))
    betting_start_time: Mapped[int | None] = mapped_column(BigInteger)
    betting_end_time: Mapped[int | None] = mapped_column(BigInteger)
    result_setting_start_time: Mapped[int | None] = mapped_column(BigInteger)
    result_setting_end_time: Mapped[int | None] = mapped_column(BigInteger)
    language: Mapped[str | None] = mapped_column(String(10))
