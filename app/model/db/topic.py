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


class TokenKind(StrEnum):
    QTUM = "QTUM"
    BOT = "BOT"


class EntityStatus(StrEnum):
    """Status of Topic and Oracle"""

    CREATED = "CREATED"
    VOTING = "VOTING"
    WAIT_RESULT = "WAITRESULT"
    OPEN_RESULT_SET = "OPENRESULTSET"
    PENDING = "PENDING"
    WITHDRAW = "WITHDRAW"


class Topic(Base):
    """Prediction market event"""

    __tablename__ = "topic"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # transaction id (createTopic, or approve while speculative)
    txid: Mapped[str | None] = mapped_column(String(64), index=True)
    # topic contract address (None until confirmed)
    address: Mapped[str | None] = mapped_column(String(40), index=True)
    # contract version
    version: Mapped[int | None] = mapped_column(Integer)
    # block number
    block_num: Mapped[int | None] = mapped_column(BigInteger)
    # status (EntityStatus)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    # topic name
    name: Mapped[str | None] = mapped_column(String(255))
    # option labels
    options: Mapped[list[str] | None] = mapped_column(JSON)
    # per-option QTUM amounts (decimal strings)
    qtum_amount: Mapped[list[str] | None] = mapped_column(JSON)
    # per-option BOT amounts (decimal strings)
    bot_amount: Mapped[list[str] | None] = mapped_column(JSON)
    # final result index
    result_idx: Mapped[int | None] = mapped_column(Integer)
    # content hash
    hash_id: Mapped[str | None] = mapped_column(String(100))
    # display language
    language: Mapped[str | None] = mapped_column(String(10))
    # creator address
    creator_address: Mapped[str | None] = mapped_column(String(40))
    # escrow amount (decimal string)
    escrow_amount: Mapped[str | None] = mapped_column(String(80))
