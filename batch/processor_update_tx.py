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

import asyncio
import time
from decimal import Decimal
from typing import TypedDict

from sqlalchemy import delete, desc, select, update

from app.database import BatchAsyncSessionLocal
from app.model.blockchain.bodhi import (
    BodhiTokenContract,
    CentralizedOracleContract,
    DecentralizedOracleContract,
    EventFactoryContract,
    SentTx,
)
from app.model.blockchain.tx_params.bodhi import (
    ApproveParams,
    CreateTopicParams,
    SetResultParams,
    VoteParams,
)
from app.model.db import (
    Oracle,
    TokenKind,
    Topic,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from app.model.schema import ServerConfig
from app.utils.amount_utils import add_amounts, format_gas_price, gas_used_from_fee
from app.utils.qtum_utils import AsyncQtumRPC
from batch.utils import batch_log

"""
[PROCESSOR-Update-Tx]

Tracks transactions submitted by this server until they are confirmed,
then runs the follow-up (or compensating) transaction for their type.
"""

process_name = "PROCESSOR-Update-Tx"
LOG = batch_log.get_logger(process_name=process_name)


class Confirmation(TypedDict):
    status: TransactionStatus
    gas_used: int
    block_num: int
    block_time: int


class Processor:
    def __init__(self, config: ServerConfig, rpc: AsyncQtumRPC):
        self.config = config
        self.rpc = rpc

    async def update_pending_txs(self):
        """Sweep all pending transactions

        Transactions are processed concurrently and independently.
        """
        db_session = BatchAsyncSessionLocal()
        try:
            pending_txs = (
                await db_session.scalars(
                    select(Transaction)
                    .where(Transaction.status == TransactionStatus.PENDING)
                    .order_by(desc(Transaction.created_time))
                )
            ).all()
        finally:
            await db_session.close()

        if len(pending_txs) == 0:
            LOG.debug("No pending transactions")
            return

        await asyncio.gather(*[self.__update_tx(tx) for tx in pending_txs])

    async def __update_tx(self, tx: Transaction):
        try:
            confirmation = await self.__check_confirmation(tx)
            if confirmation is None:
                # Not yet included in a block
                return

            updated_tx = await self.__save_confirmation(tx.txid, confirmation)
            if updated_tx is None:
                LOG.debug(f"Already confirmed: txid={tx.txid}")
                return
            LOG.info(
                f"Transaction confirmed: type={updated_tx.type}, txid={updated_tx.txid}, status={updated_tx.status}"
            )

            match updated_tx.status:
                case TransactionStatus.SUCCESS:
                    await self.__on_success(updated_tx)
                case TransactionStatus.FAIL:
                    await self.__on_fail(updated_tx)
        except Exception:
            LOG.exception(f"Update Transaction {tx.type} txid:{tx.txid}")

    async def __check_confirmation(self, tx: Transaction) -> Confirmation | None:
        # sendtoaddress is not confirmed the same way as contract transactions
        if (
            tx.type == TransactionType.TRANSFER
            and tx.token == TokenKind.QTUM
            and tx.block_num is None
        ):
            return await self.__check_qtum_transfer(tx)
        return await self.__check_contract_tx(tx)

    async def __check_qtum_transfer(self, tx: Transaction) -> Confirmation | None:
        tx_info = await self.rpc.get_transaction(tx.txid)
        confirmations = tx_info.get("confirmations", 0)
        if confirmations < self.config.transfer_min_confirmations:
            return None

        block_count = await self.rpc.get_block_count()
        block_num = block_count - confirmations + 1
        block_hash = await self.rpc.get_block_hash(block_num)
        block = await self.rpc.get_block(block_hash)
        return {
            "status": TransactionStatus.SUCCESS,
            "gas_used": gas_used_from_fee(
                tx_info.get("fee", Decimal(0)), self.config.default_gas_price
            ),
            "block_num": block_num,
            "block_time": block["time"],
        }

    async def __check_contract_tx(self, tx: Transaction) -> Confirmation | None:
        receipts = await self.rpc.get_transaction_receipt(tx.txid)
        if not receipts:
            return None

        receipt = receipts[0]
        block = await self.rpc.get_block(receipt["blockHash"])
        # A reverted contract call leaves no event log
        status = (
            TransactionStatus.SUCCESS if receipt.get("log") else TransactionStatus.FAIL
        )
        return {
            "status": status,
            "gas_used": receipt["gasUsed"],
            "block_num": receipt["blockNumber"],
            "block_time": block["time"],
        }

    @staticmethod
    async def __save_confirmation(
        txid: str, confirmation: Confirmation
    ) -> Transaction | None:
        """Write the terminal status

        Only a PENDING row is updated, so the status is written once.

        :return: updated transaction, or None if it was already terminal
        """
        db_session = BatchAsyncSessionLocal()
        try:
            updated_tx = (
                await db_session.scalars(
                    update(Transaction)
                    .where(
                        Transaction.txid == txid,
                        Transaction.status == TransactionStatus.PENDING,
                    )
                    .values(
                        status=confirmation["status"],
                        gas_used=confirmation["gas_used"],
                        block_num=confirmation["block_num"],
                        block_time=confirmation["block_time"],
                    )
                    .returning(Transaction)
                )
            ).first()
            await db_session.commit()
            return updated_tx
        finally:
            await db_session.close()

    ###########################################################################
    # Chain reactions
    ###########################################################################

    async def __on_success(self, tx: Transaction):
        match tx.type:
            case TransactionType.APPROVE_CREATE_EVENT:
                await self.__execute_create_event(tx)
            case TransactionType.APPROVE_SET_RESULT:
                await self.__execute_set_result(tx)
            case TransactionType.APPROVE_VOTE:
                await self.__execute_vote(tx)
            case _:
                pass

    async def __on_fail(self, tx: Transaction):
        match tx.type:
            case TransactionType.APPROVE_CREATE_EVENT:
                # Reset allowance and delete the speculative Topic/Oracle
                await self.__reset_approve(
                    tx, spender=self.config.metadata.address_of("AddressManager")
                )
                await self.__remove_created_topic_and_oracle(tx)
            case TransactionType.CREATE_EVENT:
                # Escrow was already spent: only the speculative rows are removed
                await self.__remove_created_topic_and_oracle(tx)
            case TransactionType.APPROVE_SET_RESULT | TransactionType.APPROVE_VOTE:
                await self.__reset_approve(tx, spender=tx.topic_address)
            case _:
                pass

    async def __execute_create_event(self, tx: Transaction):
        try:
            sent = await EventFactoryContract(
                self.rpc, self.config.metadata
            ).create_topic(
                data=CreateTopicParams(
                    oracle_address=tx.result_setter_address,
                    event_name=tx.name,
                    result_names=tx.options,
                    betting_start_time=tx.betting_start_time,
                    betting_end_time=tx.betting_end_time,
                    result_setting_start_time=tx.result_setting_start_time,
                    result_setting_end_time=tx.result_setting_end_time,
                ),
                sender_address=tx.sender_address,
                gas_limit=self.config.create_coracle_gas_limit,
                gas_price=self.config.default_gas_price,
            )
        except Exception:
            LOG.exception(f"executeCreateEvent: txid={tx.txid}")
            return

        # Point the speculative Topic/Oracle at the createTopic txid
        db_session = BatchAsyncSessionLocal()
        try:
            await db_session.execute(
                update(Topic).where(Topic.txid == tx.txid).values(txid=sent["txid"])
            )
            await db_session.execute(
                update(Oracle).where(Oracle.txid == tx.txid).values(txid=sent["txid"])
            )
            await db_session.commit()
        except Exception:
            LOG.exception(f"executeCreateEvent: update txid={tx.txid}")
        finally:
            await db_session.close()

        await self.__insert_pending_tx(
            sent,
            Transaction(
                type=TransactionType.CREATE_EVENT,
                version=tx.version,
                sender_address=tx.sender_address,
                name=tx.name,
                options=tx.options,
                result_setter_address=tx.result_setter_address,
                betting_start_time=tx.betting_start_time,
                betting_end_time=tx.betting_end_time,
                result_setting_start_time=tx.result_setting_start_time,
                result_setting_end_time=tx.result_setting_end_time,
                amount=tx.amount,
                token=tx.token,
                language=tx.language,
            ),
        )

    async def __execute_set_result(self, tx: Transaction):
        try:
            sent = await CentralizedOracleContract(
                self.rpc, self.config.metadata, contract_address=tx.oracle_address
            ).set_result(
                data=SetResultParams(result_index=tx.option_idx),
                sender_address=tx.sender_address,
                gas_limit=self.config.create_doracle_gas_limit,
                gas_price=self.config.default_gas_price,
            )
        except Exception:
            LOG.exception(f"executeSetResult: txid={tx.txid}")
            return

        await self.__insert_pending_tx(
            sent,
            Transaction(
                type=TransactionType.SET_RESULT,
                version=tx.version,
                sender_address=tx.sender_address,
                topic_address=tx.topic_address,
                oracle_address=tx.oracle_address,
                option_idx=tx.option_idx,
                token=TokenKind.BOT,
                amount=tx.amount,
            ),
        )

    async def __execute_vote(self, tx: Transaction):
        try:
            gas_limit = await self.__get_voting_gas_limit(
                oracle_address=tx.oracle_address,
                option_idx=tx.option_idx,
                amount=tx.amount,
            )
            sent = await DecentralizedOracleContract(
                self.rpc, self.config.metadata, contract_address=tx.oracle_address
            ).vote(
                data=VoteParams(result_index=tx.option_idx, bot_amount=tx.amount),
                sender_address=tx.sender_address,
                gas_limit=gas_limit,
                gas_price=self.config.default_gas_price,
            )
        except Exception:
            LOG.exception(f"executeVote: txid={tx.txid}")
            return

        await self.__insert_pending_tx(
            sent,
            Transaction(
                type=TransactionType.VOTE,
                version=tx.version,
                sender_address=tx.sender_address,
                topic_address=tx.topic_address,
                oracle_address=tx.oracle_address,
                option_idx=tx.option_idx,
                token=TokenKind.BOT,
                amount=tx.amount,
            ),
        )

    async def __get_voting_gas_limit(
        self, oracle_address: str, option_idx: int, amount: str
    ) -> int:
        """Voting past the consensus threshold creates the next oracle,
        which needs the larger gas limit.
        """
        db_session = BatchAsyncSessionLocal()
        try:
            oracle: Oracle | None = (
                await db_session.scalars(
                    select(Oracle).where(Oracle.address == oracle_address).limit(1)
                )
            ).first()
        finally:
            await db_session.close()
        if oracle is None:
            raise ValueError(f"Could not find Oracle {oracle_address}")

        total = add_amounts(oracle.amounts[option_idx], amount)
        if Decimal(total) >= Decimal(oracle.consensus_threshold):
            return self.config.create_doracle_gas_limit
        return self.config.default_gas_limit

    async def __reset_approve(self, tx: Transaction, spender: str):
        """Reset the allowance to zero

        An approve for a larger amount requires the current allowance to be zero.
        """
        try:
            sent = await BodhiTokenContract(self.rpc, self.config.metadata).approve(
                data=ApproveParams(spender=spender, value="0"),
                sender_address=tx.sender_address,
                gas_limit=self.config.default_gas_limit,
                gas_price=self.config.default_gas_price,
            )
        except Exception:
            LOG.exception(f"resetApproveAmount: txid={tx.txid}")
            return

        await self.__insert_pending_tx(
            sent,
            Transaction(
                type=TransactionType.RESET_APPROVE,
                version=tx.version,
                sender_address=tx.sender_address,
                receiver_address=spender,
                topic_address=tx.topic_address,
                oracle_address=tx.oracle_address,
                name=tx.name,
                token=TokenKind.BOT,
                amount="0",
            ),
        )

    @staticmethod
    async def __remove_created_topic_and_oracle(tx: Transaction):
        db_session = BatchAsyncSessionLocal()
        try:
            await db_session.execute(delete(Topic).where(Topic.txid == tx.txid))
            await db_session.execute(delete(Oracle).where(Oracle.txid == tx.txid))
            await db_session.commit()
            LOG.info(f"Removed speculative Topic/Oracle: txid={tx.txid}")
        except Exception:
            LOG.exception(f"removeCreatedTopicAndOracle: txid={tx.txid}")
        finally:
            await db_session.close()

    @staticmethod
    async def __insert_pending_tx(sent: SentTx, record: Transaction):
        record.txid = sent["txid"]
        record.status = TransactionStatus.PENDING
        record.gas_limit = str(sent["args"]["gasLimit"])
        record.gas_price = format_gas_price(sent["args"]["gasPrice"])
        record.created_time = int(time.time())

        db_session = BatchAsyncSessionLocal()
        try:
            db_session.add(record)
            await db_session.commit()
            LOG.info(f"Inserted pending {record.type}: txid={record.txid}")
        except Exception:
            LOG.exception(f"insert Transaction {record.type}: txid={record.txid}")
        finally:
            await db_session.close()
