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

from decimal import Decimal
from unittest import mock
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from app.exceptions import SendTransactionError
from app.model.blockchain.bodhi import BodhiTokenContract, Wallet
from app.model.blockchain.tx_params.bodhi import ApproveParams, TransferParams
from app.model.db import (
    EntityStatus,
    Oracle,
    TokenKind,
    Topic,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from app.model.schema import (
    ApproveCreateEventRequest,
    ApproveSetResultRequest,
    ApproveVoteRequest,
    TransferRequest,
)
from batch.lib import submit_tx

GAS_PRICE = Decimal("0.0000004")

ADDRESS_MANAGER_ADDRESS = "b25d2d4c3f5a1e0de6fbfb9b13d1e7d5c3aa4e90"
SENDER_ADDRESS = "qKjn4fStBaAtwGiwueJf9qFxgpbAvf1xAy"
TOPIC_ADDRESS = "1111111111111111111111111111111111111111"
ORACLE_ADDRESS = "2222222222222222222222222222222222222222"
RESULT_SETTER_ADDRESS = "5555555555555555555555555555555555555555"

TXID = "e1" * 32
SENT_TX = {"txid": TXID, "args": {"gasLimit": 250000, "gasPrice": GAS_PRICE}}


@pytest.fixture(scope="function")
def rpc():
    return AsyncMock()


class TestSubmitTx:
    ###########################################################################
    # Normal Case
    ###########################################################################

    # <Normal_1>
    # transfer: QTUM
    @pytest.mark.asyncio
    @mock.patch(
        "batch.lib.submit_tx.Wallet.send_to_address",
        AsyncMock(return_value=SENT_TX),
    )
    async def test_normal_1(self, server_config, rpc, async_db):
        receiver = "qUDvDKsZQv84iS6mrA2i7ghjgM34mfUxQu"

        # Execute
        _tx = await submit_tx.transfer(
            server_config,
            rpc,
            async_db,
            TransferRequest(
                sender_address=SENDER_ADDRESS,
                receiver_address=receiver,
                token=TokenKind.QTUM,
                amount="1.5",
            ),
        )

        # Assertion
        Wallet.send_to_address.assert_awaited_once_with(
            address=receiver,
            amount="1.5",
            sender_address=SENDER_ADDRESS,
            gas_limit=250000,
            gas_price=GAS_PRICE,
        )

        tx_list = (await async_db.scalars(select(Transaction))).all()
        assert len(tx_list) == 1
        assert tx_list[0].txid == TXID
        assert tx_list[0].type == TransactionType.TRANSFER
        assert tx_list[0].status == TransactionStatus.PENDING
        assert tx_list[0].version == 0
        assert tx_list[0].gas_limit == "250000"
        assert tx_list[0].gas_price == "0.00000040"
        assert tx_list[0].created_time > 0
        assert tx_list[0].sender_address == SENDER_ADDRESS
        assert tx_list[0].receiver_address == receiver
        assert tx_list[0].token == TokenKind.QTUM
        assert tx_list[0].amount == "1.5"
        assert tx_list[0].block_num is None

    # <Normal_2>
    # transfer: BOT
    @pytest.mark.asyncio
    @mock.patch(
        "batch.lib.submit_tx.BodhiTokenContract.transfer",
        AsyncMock(return_value=SENT_TX),
    )
    async def test_normal_2(self, server_config, rpc, async_db):
        receiver = "6666666666666666666666666666666666666666"

        # Execute
        await submit_tx.transfer(
            server_config,
            rpc,
            async_db,
            TransferRequest(
                sender_address=SENDER_ADDRESS,
                receiver_address=receiver,
                token=TokenKind.BOT,
                amount="100000000",
            ),
        )

        # Assertion
        BodhiTokenContract.transfer.assert_awaited_once_with(
            data=TransferParams(to_address=receiver, value="100000000"),
            sender_address=SENDER_ADDRESS,
            gas_limit=250000,
            gas_price=GAS_PRICE,
        )

        _tx = (await async_db.scalars(select(Transaction).limit(1))).first()
        assert _tx.type == TransactionType.TRANSFER
        assert _tx.token == TokenKind.BOT
        assert _tx.amount == "100000000"

    # <Normal_3>
    # approve_create_event
    # - Topic and Oracle are recorded before confirmation
    @pytest.mark.asyncio
    @mock.patch(
        "batch.lib.submit_tx.BodhiTokenContract.approve",
        AsyncMock(return_value=SENT_TX),
    )
    async def test_normal_3(self, server_config, rpc, async_db):
        # Execute
        await submit_tx.approve_create_event(
            server_config,
            rpc,
            async_db,
            ApproveCreateEventRequest(
                sender_address=SENDER_ADDRESS,
                result_setter_address=RESULT_SETTER_ADDRESS,
                name="Who will win?",
                options=["Team A", "Team B"],
                betting_start_time=1700000000,
                betting_end_time=1700000100,
                result_setting_start_time=1700000100,
                result_setting_end_time=1700000200,
                amount="10000000000",
                language="en",
            ),
        )

        # Assertion
        BodhiTokenContract.approve.assert_awaited_once_with(
            data=ApproveParams(spender=ADDRESS_MANAGER_ADDRESS, value="10000000000"),
            sender_address=SENDER_ADDRESS,
            gas_limit=250000,
            gas_price=GAS_PRICE,
        )

        _tx = (await async_db.scalars(select(Transaction).limit(1))).first()
        assert _tx.txid == TXID
        assert _tx.type == TransactionType.APPROVE_CREATE_EVENT
        assert _tx.status == TransactionStatus.PENDING
        assert _tx.receiver_address == ADDRESS_MANAGER_ADDRESS
        assert _tx.name == "Who will win?"
        assert _tx.options == ["Team A", "Team B"]
        assert _tx.result_setter_address == RESULT_SETTER_ADDRESS
        assert _tx.betting_start_time == 1700000000
        assert _tx.result_setting_end_time == 1700000200
        assert _tx.token == TokenKind.BOT
        assert _tx.amount == "10000000000"
        assert _tx.language == "en"

        topic_list = (await async_db.scalars(select(Topic))).all()
        assert len(topic_list) == 1
        assert topic_list[0].txid == TXID
        assert topic_list[0].address is None
        assert topic_list[0].status == EntityStatus.CREATED
        assert topic_list[0].qtum_amount == ["0", "0"]
        assert topic_list[0].bot_amount == ["0", "0"]
        assert topic_list[0].creator_address == SENDER_ADDRESS
        assert topic_list[0].escrow_amount == "10000000000"
        assert topic_list[0].language == "en"

        oracle_list = (await async_db.scalars(select(Oracle))).all()
        assert len(oracle_list) == 1
        assert oracle_list[0].txid == TXID
        assert oracle_list[0].status == EntityStatus.CREATED
        assert oracle_list[0].token == TokenKind.QTUM
        assert oracle_list[0].option_idxs == [0, 1]
        assert oracle_list[0].amounts == ["0", "0"]
        assert oracle_list[0].end_time == 1700000100
        assert oracle_list[0].result_setter_address == RESULT_SETTER_ADDRESS

    # <Normal_4>
    # approve_set_result
    @pytest.mark.asyncio
    @mock.patch(
        "batch.lib.submit_tx.BodhiTokenContract.approve",
        AsyncMock(return_value=SENT_TX),
    )
    async def test_normal_4(self, server_config, rpc, async_db):
        # Execute
        await submit_tx.approve_set_result(
            server_config,
            rpc,
            async_db,
            ApproveSetResultRequest(
                sender_address=SENDER_ADDRESS,
                topic_address=TOPIC_ADDRESS,
                oracle_address=ORACLE_ADDRESS,
                option_idx=1,
                amount="10000000000",
            ),
        )

        # Assertion
        BodhiTokenContract.approve.assert_awaited_once_with(
            data=ApproveParams(spender=TOPIC_ADDRESS, value="10000000000"),
            sender_address=SENDER_ADDRESS,
            gas_limit=250000,
            gas_price=GAS_PRICE,
        )

        _tx = (await async_db.scalars(select(Transaction).limit(1))).first()
        assert _tx.type == TransactionType.APPROVE_SET_RESULT
        assert _tx.status == TransactionStatus.PENDING
        assert _tx.topic_address == TOPIC_ADDRESS
        assert _tx.oracle_address == ORACLE_ADDRESS
        assert _tx.option_idx == 1
        assert _tx.token == TokenKind.BOT

    # <Normal_5>
    # approve_vote
    @pytest.mark.asyncio
    @mock.patch(
        "batch.lib.submit_tx.BodhiTokenContract.approve",
        AsyncMock(return_value=SENT_TX),
    )
    async def test_normal_5(self, server_config, rpc, async_db):
        # Execute
        await submit_tx.approve_vote(
            server_config,
            rpc,
            async_db,
            ApproveVoteRequest(
                sender_address=SENDER_ADDRESS,
                topic_address=TOPIC_ADDRESS,
                oracle_address=ORACLE_ADDRESS,
                option_idx=2,
                amount="500000000",
            ),
        )

        # Assertion
        _tx = (await async_db.scalars(select(Transaction).limit(1))).first()
        assert _tx.type == TransactionType.APPROVE_VOTE
        assert _tx.receiver_address == TOPIC_ADDRESS
        assert _tx.option_idx == 2
        assert _tx.amount == "500000000"

    ###########################################################################
    # Error Case
    ###########################################################################

    # <Error_1>
    # Failed to send approve: nothing is recorded
    @pytest.mark.asyncio
    @mock.patch(
        "batch.lib.submit_tx.BodhiTokenContract.approve",
        AsyncMock(side_effect=SendTransactionError("approve: Insufficient funds")),
    )
    async def test_error_1(self, server_config, rpc, async_db):
        # Execute
        with pytest.raises(SendTransactionError):
            await submit_tx.approve_vote(
                server_config,
                rpc,
                async_db,
                ApproveVoteRequest(
                    sender_address=SENDER_ADDRESS,
                    topic_address=TOPIC_ADDRESS,
                    oracle_address=ORACLE_ADDRESS,
                    option_idx=2,
                    amount="500000000",
                ),
            )

        # Assertion
        assert (await async_db.scalars(select(Transaction))).all() == []
