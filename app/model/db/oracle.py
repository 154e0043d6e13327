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

from sqlalchemy import JSON, BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Oracle(Base):
    """Centralized or decentralized oracle"""

    __tablename__ = "oracle"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # transaction id
    txid: Mapped[str | None] = mapped_column(String(64), index=True)
    # oracle contract address (None until confirmed)
    address: Mapped[str | None] = mapped_column(String(40), index=True)
    # parent topic address
    topic_address: Mapped[str | None] = mapped_column(String(40), index=True)
    # contract version
    version: Mapped[int | None] = mapped_column(Integer)
    # block number
    block_num: Mapped[int | None] = mapped_column(BigInteger)
    # status (EntityStatus)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    # token kind staked on this oracle (TokenKind)
    token: Mapped[str] = mapped_column(String(10), nullable=False)
    # copied from the parent topic
    name: Mapped[str | None] = mapped_column(String(255))
    options: Mapped[list[str] | None] = mapped_column(JSON)
    # selectable option indexes
    option_idxs: Mapped[list[int] | None] = mapped_column(JSON)
    # per-option amounts (decimal strings)
    amounts: Mapped[list[str] | None] = mapped_column(JSON)
    # result index
    result_idx: Mapped[int | None] = mapped_column(Integer)
    # time bounds (unix time)
    start_time: Mapped[int | None] = mapped_column(BigInteger)
    end_time: Mapped[int | None] = mapped_column(BigInteger)
    result_set_start_time: Mapped[int | None] = mapped_column(BigInteger)
    result_set_end_time: Mapped[int | None] = mapped_column(BigInteger)
    # result setter address (centralized only)
    result_setter_address: Mapped[str | None] = mapped_column(String(40))
    # consensus threshold (decimal string)
    consensus_threshold: Mapped[str | None] = mapped_column(String(80))
    # content hash
    hash_id: Mapped[str | None] = mapped_column(String(100))
    # display language
    language: Mapped[str | None] = mapped_column(String(10))
