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


class ResultSetType(StrEnum):
    ORACLE = "ORACLE"
    FINAL = "FINAL"


class ResultSet(Base):
    """Result set by an oracle, or the final result of a topic"""

    __tablename__ = "result_set"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # transaction id
    txid: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # ResultSetType
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    version: Mapped[int | None] = mapped_column(Integer)
    block_num: Mapped[int | None] = mapped_column(BigInteger)
    # submitter
    from_address: Mapped[str | None] = mapped_column(String(40))
    topic_address: Mapped[str | None] = mapped_column(String(40), index=True)
    # None for a final result
    oracle_address: Mapped[str | None] = mapped_column(String(40), index=True)
    result_idx: Mapped[int] = mapped_column(Integer, nullable=False)
