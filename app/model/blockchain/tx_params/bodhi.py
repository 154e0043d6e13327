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

from pydantic import BaseModel, NonNegativeInt

from app.model import AmountStr, QtumHexAddress


class CreateTopicParams(BaseModel):
    oracle_address: QtumHexAddress
    event_name: str
    result_names: list[str]
    betting_start_time: NonNegativeInt
    betting_end_time: NonNegativeInt
    result_setting_start_time: NonNegativeInt
    result_setting_end_time: NonNegativeInt


class SetResultParams(BaseModel):
    result_index: NonNegativeInt


class VoteParams(BaseModel):
    result_index: NonNegativeInt
    bot_amount: AmountStr


class ApproveParams(BaseModel):
    spender: QtumHexAddress
    value: AmountStr


class TransferParams(BaseModel):
    to_address: QtumHexAddress
    value: AmountStr
