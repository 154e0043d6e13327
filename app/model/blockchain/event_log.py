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

from app.model.blockchain.contract_metadata import ContractMetadata
from app.model.db import (
    EntityStatus,
    Oracle,
    ResultSet,
    ResultSetType,
    TokenKind,
    Topic,
    Vote,
    Withdraw,
    WithdrawType,
)
from app.utils.amount_utils import to_amount_str, zero_ledger
from app.utils.contract_utils import ContractUtils

# OracleResultVoted "_token"
VOTE_TOKEN_KIND = {0: TokenKind.QTUM, 1: TokenKind.BOT}


class EventLogKind(StrEnum):
    """Contract events synchronized into the database, in sync order"""

    TOPIC_CREATED = "TopicCreated"
    CENTRALIZED_ORACLE_CREATED = "CentralizedOracleCreated"
    DECENTRALIZED_ORACLE_CREATED = "DecentralizedOracleCreated"
    ORACLE_RESULT_VOTED = "OracleResultVoted"
    ORACLE_RESULT_SET = "OracleResultSet"
    FINAL_RESULT_SET = "FinalResultSet"
    WINNINGS_WITHDRAWN = "WinningsWithdrawn"
    ESCROW_WITHDRAWN = "EscrowWithdrawn"

    def address_filter(self, metadata: ContractMetadata) -> list[str]:
        """searchlogs address filter

        Topic and centralized oracle creation are emitted by transactions
        sent to EventFactory; every other event is searched without filter.
        """
        match self:
            case (
                EventLogKind.TOPIC_CREATED
                | EventLogKind.CENTRALIZED_ORACLE_CREATED
            ):
                return [metadata.address_of("EventFactory")]
            case _:
                return []


SYNC_ORDER: tuple[EventLogKind, ...] = tuple(EventLogKind)

TranslatedRecord = Topic | Oracle | Vote | ResultSet | Withdraw


class EventLog:
    """One decoded log entry and the receipt it came from"""

    def __init__(self, receipt: dict, entry: dict):
        self.block_num: int = receipt["blockNumber"]
        self.txid: str = receipt["transactionHash"]
        self.from_address: str | None = receipt.get("from")
        self.contract_address: str | None = receipt.get("contractAddress")
        self.entry = entry

    @property
    def kind(self) -> EventLogKind:
        return EventLogKind(self.entry["_eventName"])

    def translate(self, block_time: int) -> TranslatedRecord:
        """Translate the log entry into a database record

        :param block_time: timestamp of the block being synchronized
        :return: Topic, Oracle, Vote, ResultSet or Withdraw
        """
        args = self.entry
        match self.kind:
            case EventLogKind.TOPIC_CREATED:
                options = ContractUtils.decode_labels_bytes32_array(
                    args["_resultNames"]
                )
                return Topic(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    address=args["_topicAddress"],
                    creator_address=args["_creator"],
                    status=EntityStatus.VOTING,
                    name=ContractUtils.decode_string_bytes32_array(args["_name"]),
                    options=options,
                    qtum_amount=zero_ledger(len(options)),
                    bot_amount=zero_ledger(len(options)),
                    escrow_amount=to_amount_str(args["_escrowAmount"]),
                )
            case EventLogKind.CENTRALIZED_ORACLE_CREATED:
                num_of_results = args["_numOfResults"]
                return Oracle(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    address=args["_contractAddress"],
                    topic_address=args["_eventAddress"],
                    status=EntityStatus.VOTING,
                    token=TokenKind.QTUM,
                    option_idxs=list(range(num_of_results)),
                    amounts=zero_ledger(num_of_results),
                    start_time=args["_bettingStartTime"],
                    end_time=args["_bettingEndTime"],
                    result_set_start_time=args["_resultSettingStartTime"],
                    result_set_end_time=args["_resultSettingEndTime"],
                    result_setter_address=args["_oracle"],
                    consensus_threshold=to_amount_str(args["_consensusThreshold"]),
                )
            case EventLogKind.DECENTRALIZED_ORACLE_CREATED:
                num_of_results = args["_numOfResults"]
                last_result_index = args["_lastResultIndex"]
                return Oracle(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    address=args["_contractAddress"],
                    topic_address=args["_eventAddress"],
                    status=EntityStatus.VOTING,
                    token=TokenKind.BOT,
                    option_idxs=[
                        idx for idx in range(num_of_results) if idx != last_result_index
                    ],
                    amounts=zero_ledger(num_of_results),
                    start_time=block_time,
                    end_time=args["_arbitrationEndTime"],
                    consensus_threshold=to_amount_str(args["_consensusThreshold"]),
                )
            case EventLogKind.ORACLE_RESULT_VOTED:
                return Vote(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    voter_address=args["_participant"],
                    oracle_address=args["_oracleAddress"],
                    option_idx=args["_resultIndex"],
                    token=VOTE_TOKEN_KIND[args["_token"]],
                    amount=to_amount_str(args["_votedAmount"]),
                )
            case EventLogKind.ORACLE_RESULT_SET:
                return ResultSet(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    type=ResultSetType.ORACLE,
                    from_address=self.from_address,
                    oracle_address=args["_oracleAddress"],
                    result_idx=args["_resultIndex"],
                )
            case EventLogKind.FINAL_RESULT_SET:
                return ResultSet(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    type=ResultSetType.FINAL,
                    from_address=self.from_address,
                    topic_address=args["_eventAddress"],
                    result_idx=args["_finalResultIndex"],
                )
            case EventLogKind.WINNINGS_WITHDRAWN:
                return Withdraw(
                    txid=self.txid,
                    block_num=self.block_num,
                    version=args["_version"],
                    type=WithdrawType.WINNINGS,
                    winner_address=args["_winner"],
                    contract_address=self.contract_address,
                    qtum_amount=to_amount_str(args["_qtumTokenWon"]),
                    bot_amount=to_amount_str(args["_botTokenWon"]),
                )
            case EventLogKind.ESCROW_WITHDRAWN:
                return Withdraw(
                    txid=self.txid,
                    block_num=self.block_num,
                    type=WithdrawType.ESCROW,
                    winner_address=args["_depositer"],
                    contract_address=args["_eventAddress"],
                    qtum_amount="0",
                    bot_amount=to_amount_str(args["_escrowAmount"]),
                )
