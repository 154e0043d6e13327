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

from typing import Optional

from pydantic import BaseModel, NonNegativeInt, model_validator

from app.model import AmountStr, QtumHexAddress
from app.model.db import TokenKind


############################
# REQUEST
############################
class TransferRequest(BaseModel):
    """Transfer QTUM or BOT"""

    sender_address: str
    receiver_address: str
    token: TokenKind
    amount: AmountStr


class ApproveCreateEventRequest(BaseModel):
    """Approve the escrow and create a topic once approved"""

    sender_address: str
    result_setter_address: QtumHexAddress
    name: str
    options: list[str]
    betting_start_time: NonNegativeInt
    betting_end_time: NonNegativeInt
    result_setting_start_time: NonNegativeInt
    result_setting_end_time: NonNegativeInt
    amount: AmountStr  # escrow (BOT)
    language: Optional[str] = None

    @model_validator(mode="after")
    def validate_time_window(self):
        if not (
            self.betting_start_time
            < self.betting_end_time
            <= self.result_setting_start_time
            < self.result_setting_end_time
        ):
            raise ValueError("invalid betting / result setting time window")
        if not 1 <= len(self.options) <= 10:
            raise ValueError("options must contain 1 to 10 labels")
        return self


class ApproveSetResultRequest(BaseModel):
    """Approve the consensus threshold and set the result once approved"""

    sender_address: str
    topic_address: QtumHexAddress
    oracle_address: QtumHexAddress
    option_idx: NonNegativeInt
    amount: AmountStr  # consensus threshold (BOT)


class ApproveVoteRequest(BaseModel):
    """Approve the stake and vote once approved"""

    sender_address: str
    topic_address: QtumHexAddress
    oracle_address: QtumHexAddress
    option_idx: NonNegativeInt
    amount: AmountStr  # BOT
