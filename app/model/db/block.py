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

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Block(Base):
    """Synchronized block (checkpoint)"""

    __tablename__ = "block"

    # block number
    block_num: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    # block timestamp (unix time)
    block_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
