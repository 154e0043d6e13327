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

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import BatchAsyncSessionLocal
from app.exceptions import BlockOutOfRangeError, ServiceUnavailableError
from app.model.blockchain.event_log import SYNC_ORDER, EventLog, EventLogKind
from app.model.db import (
    Block,
    EntityStatus,
    Oracle,
    ResultSet,
    TokenKind,
    Topic,
    Vote,
    Withdraw,
)
from app.model.schema import ServerConfig, SyncInfo
from app.utils.amount_utils import increment_ledger
from app.utils.asyncio_utils import SemaphoreTaskGroup
from app.utils.notification_utils import SyncInfoPublisher
from app.utils.qtum_utils import AsyncQtumRPC
from batch.processor_update_tx import Processor as UpdateTxProcessor
from batch.utils import batch_log

"""
[INDEXER-Block-Sync]

Walks the chain one block at a time and projects Bodhi contract
events into Topic, Oracle, Vote, ResultSet and Withdraw records.
"""

process_name = "INDEXER-Block-Sync"
LOG = batch_log.get_logger(process_name=process_name)


class Processor:
    def __init__(
        self,
        config: ServerConfig,
        rpc: AsyncQtumRPC,
        publisher: SyncInfoPublisher,
        tx_processor: UpdateTxProcessor | None = None,
    ):
        self.config = config
        self.metadata = config.metadata
        self.rpc = rpc
        self.publisher = publisher
        self.tx_processor = tx_processor
        # Serializes store writes of concurrently processed log entries
        self.writer_lock = asyncio.Lock()
        self.sweep_tasks: set[asyncio.Task] = set()

    async def sync_new_block(self, update_local_txs: bool = True) -> float:
        """Synchronize the next block

        :param update_local_txs: sweep pending local transactions
        :return: seconds to wait before the next iteration
        """
        block_num = await self.__get_start_block()
        try:
            block_hash = await self.rpc.get_block_hash(block_num)
            block_time = (await self.rpc.get_block(block_hash))["time"]
        except BlockOutOfRangeError:
            # The block has not been produced yet
            LOG.debug(f"Waiting for block {block_num}")
            return self.config.sync_start_delay
        if block_time <= 0:
            raise ValueError(f"Invalid blockTime: {block_time}")

        LOG.debug(f"Syncing block {block_num}")

        if update_local_txs and self.tx_processor is not None:
            self.__start_tx_sweep()

        for kind in SYNC_ORDER:
            await self.__sync_event(kind, block_num, block_time)

        await self.__update_oracles_done_voting(block_time)
        await self.__update_coracles_done_result_set(block_time)
        await self.__insert_block(block_num, block_time)

        self.publisher.publish(SyncInfo(block_num=block_num, block_time=block_time))
        return 0

    async def run(self, is_shutdown: asyncio.Event, update_local_txs: bool = True):
        """Sync loop

        There is no delay between blocks unless the next block does not exist yet.
        """
        LOG.info("Service started successfully")

        while not is_shutdown.is_set():
            delay = 0
            try:
                delay = await self.sync_new_block(update_local_txs=update_local_txs)
            except ServiceUnavailableError:
                LOG.warning("An external service was unavailable")
            except SQLAlchemyError as sa_err:
                LOG.error(f"A database error has occurred: code={sa_err.code}\n{sa_err}")
            except Exception:
                LOG.exception("An exception occurred during block synchronization")

            await asyncio.sleep(delay)

    def __start_tx_sweep(self):
        # Not awaited: consecutive sweeps may overlap
        task = asyncio.create_task(self.tx_processor.update_pending_txs())
        self.sweep_tasks.add(task)
        task.add_done_callback(self.__on_tx_sweep_done)

    def __on_tx_sweep_done(self, task: asyncio.Task):
        self.sweep_tasks.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            LOG.error("Failed to update pending transactions", exc_info=err)

    async def __get_start_block(self) -> int:
        db_session = BatchAsyncSessionLocal()
        try:
            latest_block: Block | None = (
                await db_session.scalars(
                    select(Block).order_by(desc(Block.block_num)).limit(1)
                )
            ).first()
        finally:
            await db_session.close()

        start_block = self.metadata.contract_deployed_block
        if latest_block is not None:
            start_block = max(latest_block.block_num + 1, start_block)
        return start_block

    async def __sync_event(self, kind: EventLogKind, block_num: int, block_time: int):
        """Synchronize one event type of one block

        Log entries are processed concurrently. A failing entry is logged
        and skipped without affecting the others.
        """
        receipts = await self.rpc.search_logs(
            from_block=block_num,
            to_block=block_num,
            addresses=kind.address_filter(self.metadata),
            topics=[self.metadata.event_topic(kind)],
            metadata=self.metadata,
            remove_hex_prefix=True,
        )

        event_logs = []
        for receipt in receipts:
            for entry in reversed(receipt["log"]):
                if entry["_eventName"] == kind:
                    event_logs.append(EventLog(receipt, entry))
        if len(event_logs) == 0:
            return

        results = await SemaphoreTaskGroup.run_settled(
            *[self.__process_event_log(event_log, block_time) for event_log in event_logs],
            max_concurrency=self.config.sync_worker_concurrency,
        )
        for event_log, result in zip(event_logs, results):
            if isinstance(result, Exception):
                LOG.error(f"insert {kind}: txid={event_log.txid}", exc_info=result)

    async def __process_event_log(self, event_log: EventLog, block_time: int):
        record = event_log.translate(block_time=block_time)

        async with self.writer_lock:
            db_session = BatchAsyncSessionLocal()
            try:
                match event_log.kind:
                    case EventLogKind.TOPIC_CREATED:
                        await self.__sink_topic(db_session, record)
                    case EventLogKind.CENTRALIZED_ORACLE_CREATED:
                        await self.__sink_centralized_oracle(db_session, record)
                    case EventLogKind.DECENTRALIZED_ORACLE_CREATED:
                        await self.__sink_decentralized_oracle(db_session, record)
                    case EventLogKind.ORACLE_RESULT_VOTED:
                        await self.__sink_vote(db_session, record)
                    case EventLogKind.ORACLE_RESULT_SET:
                        await self.__sink_oracle_result_set(db_session, record)
                    case EventLogKind.FINAL_RESULT_SET:
                        await self.__sink_final_result_set(db_session, record)
                    case (
                        EventLogKind.WINNINGS_WITHDRAWN | EventLogKind.ESCROW_WITHDRAWN
                    ):
                        await self.__sink_withdraw(db_session, record)
                await db_session.commit()
            finally:
                await db_session.close()

    ###########################################################################
    # Sink
    ###########################################################################

    async def __sink_topic(self, db_session: AsyncSession, topic: Topic):
        # Merge into the speculative Topic created at submission
        _topic: Topic | None = (
            await db_session.scalars(
                select(Topic).where(Topic.txid == topic.txid).limit(1)
            )
        ).first()
        if _topic is not None:
            if _topic.language:
                topic.language = _topic.language
            _topic.merge_values(topic)
            LOG.debug(f"Updated Topic: txid={topic.txid}, address={topic.address}")
        else:
            db_session.add(topic)
            LOG.debug(f"Inserted Topic: txid={topic.txid}, address={topic.address}")

    async def __sink_centralized_oracle(self, db_session: AsyncSession, oracle: Oracle):
        topic = await self.__get_topic(db_session, oracle.topic_address)
        oracle.name = topic.name
        oracle.options = topic.options
        oracle.hash_id = topic.hash_id
        oracle.language = topic.language

        # Merge into the speculative Oracle created at submission
        _oracle: Oracle | None = (
            await db_session.scalars(
                select(Oracle).where(Oracle.txid == oracle.txid).limit(1)
            )
        ).first()
        if _oracle is not None:
            _oracle.merge_values(oracle)
            LOG.debug(f"Updated CentralizedOracle: address={oracle.address}")
        else:
            db_session.add(oracle)
            LOG.debug(f"Inserted CentralizedOracle: address={oracle.address}")

    async def __sink_decentralized_oracle(
        self, db_session: AsyncSession, oracle: Oracle
    ):
        topic = await self.__get_topic(db_session, oracle.topic_address)
        oracle.name = topic.name
        oracle.options = topic.options
        oracle.language = topic.language
        db_session.add(oracle)
        LOG.debug(f"Inserted DecentralizedOracle: address={oracle.address}")

    async def __sink_vote(self, db_session: AsyncSession, vote: Vote):
        oracle = await self.__get_oracle(db_session, vote.oracle_address)
        vote.topic_address = oracle.topic_address
        db_session.add(vote)

        topic = await self.__get_topic(db_session, oracle.topic_address)
        match vote.token:
            case TokenKind.QTUM:
                topic.qtum_amount = increment_ledger(
                    topic.qtum_amount, vote.option_idx, vote.amount
                )
            case TokenKind.BOT:
                topic.bot_amount = increment_ledger(
                    topic.bot_amount, vote.option_idx, vote.amount
                )
            case _:
                raise ValueError(f"Invalid token type: {vote.token}")

        # Setting a result also emits OracleResultVoted (with BOT) on the
        # centralized oracle, which must not be counted in its QTUM ledger.
        if oracle.token == vote.token:
            oracle.amounts = increment_ledger(
                oracle.amounts, vote.option_idx, vote.amount
            )
        LOG.debug(f"Inserted Vote: txid={vote.txid}, oracle={vote.oracle_address}")

    async def __sink_oracle_result_set(
        self, db_session: AsyncSession, result_set: ResultSet
    ):
        oracle = await self.__get_oracle(db_session, result_set.oracle_address)
        result_set.topic_address = oracle.topic_address
        db_session.add(result_set)

        await db_session.execute(
            update(Oracle)
            .where(Oracle.address == result_set.oracle_address)
            .values(result_idx=result_set.result_idx, status=EntityStatus.PENDING)
        )
        LOG.debug(f"Inserted OracleResultSet: oracle={result_set.oracle_address}")

    @staticmethod
    async def __sink_final_result_set(db_session: AsyncSession, result_set: ResultSet):
        db_session.add(result_set)

        await db_session.execute(
            update(Topic)
            .where(Topic.address == result_set.topic_address)
            .values(result_idx=result_set.result_idx, status=EntityStatus.WITHDRAW)
        )
        await db_session.execute(
            update(Oracle)
            .where(Oracle.topic_address == result_set.topic_address)
            .values(status=EntityStatus.WITHDRAW)
        )
        LOG.debug(f"Inserted FinalResultSet: topic={result_set.topic_address}")

    @staticmethod
    async def __sink_withdraw(db_session: AsyncSession, withdraw: Withdraw):
        db_session.add(withdraw)
        LOG.debug(f"Inserted Withdraw: type={withdraw.type}, txid={withdraw.txid}")

    @staticmethod
    async def __get_topic(db_session: AsyncSession, address: str) -> Topic:
        topic: Topic | None = (
            await db_session.scalars(
                select(Topic).where(Topic.address == address).limit(1)
            )
        ).first()
        if topic is None:
            raise ValueError(f"Topic not found: {address}")
        return topic

    @staticmethod
    async def __get_oracle(db_session: AsyncSession, address: str) -> Oracle:
        oracle: Oracle | None = (
            await db_session.scalars(
                select(Oracle).where(Oracle.address == address).limit(1)
            )
        ).first()
        if oracle is None:
            raise ValueError(f"Oracle not found: {address}")
        return oracle

    ###########################################################################
    # Time-driven status
    ###########################################################################

    @staticmethod
    async def __update_oracles_done_voting(block_time: int):
        """Oracles past their end time stop voting"""
        db_session = BatchAsyncSessionLocal()
        try:
            await db_session.execute(
                update(Oracle)
                .where(
                    Oracle.end_time < block_time,
                    Oracle.status == EntityStatus.VOTING,
                )
                .values(status=EntityStatus.WAIT_RESULT)
            )
            await db_session.commit()
        except Exception:
            LOG.exception("updateOraclesDoneVoting")
        finally:
            await db_session.close()

    @staticmethod
    async def __update_coracles_done_result_set(block_time: int):
        """Centralized oracles past their result setting window open result setting to everyone"""
        db_session = BatchAsyncSessionLocal()
        try:
            await db_session.execute(
                update(Oracle)
                .where(
                    Oracle.result_set_end_time < block_time,
                    Oracle.token == TokenKind.QTUM,
                    Oracle.status == EntityStatus.WAIT_RESULT,
                )
                .values(status=EntityStatus.OPEN_RESULT_SET)
            )
            await db_session.commit()
        except Exception:
            LOG.exception("updateCOraclesDoneResultSet")
        finally:
            await db_session.close()

    @staticmethod
    async def __insert_block(block_num: int, block_time: int):
        db_session = BatchAsyncSessionLocal()
        try:
            db_session.add(Block(block_num=block_num, block_time=block_time))
            await db_session.commit()
            LOG.debug(f"Inserted block {block_num}")
        except Exception:
            LOG.exception(f"insert Block: {block_num}")
        finally:
            await db_session.close()
