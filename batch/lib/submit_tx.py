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

import time

from sqlalchemy.ext.asyncio import AsyncSession

from app.model.blockchain.bodhi import BodhiTokenContract, SentTx, Wallet
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
    ServerConfig,
    TransferRequest,
)
from app.utils.amount_utils import format_gas_price, zero_ledger
from app.utils.qtum_utils import AsyncQtumRPC


async def transfer(
    config: ServerConfig,
    rpc: AsyncQtumRPC,
    db_session: AsyncSession,
    data: TransferRequest,
) -> Transaction:
    """Send QTUM or BOT and track it as TRANSFER"""
    match data.token:
        case TokenKind.QTUM:
            sent = await Wallet(rpc).send_to_address(
                address=data.receiver_address,
                amount=data.amount,
                sender_address=data.sender_address,
                gas_limit=config.default_gas_limit,
                gas_price=config.default_gas_price,
            )
        case TokenKind.BOT:
            sent = await BodhiTokenContract(rpc, config.metadata).transfer(
                data=TransferParams(
                    to_address=data.receiver_address, value=data.amount
                ),
                sender_address=data.sender_address,
                gas_limit=config.default_gas_limit,
                gas_price=config.default_gas_price,
            )
        case _:
            raise ValueError(f"Invalid token type: {data.token}")

    _tx = __new_pending_tx(sent, TransactionType.TRANSFER, config)
    _tx.sender_address = data.sender_address
    _tx.receiver_address = data.receiver_address
    _tx.token = data.token
    _tx.amount = data.amount
    db_session.add(_tx)
    await db_session.commit()
    return _tx


async def approve_create_event(
    config: ServerConfig,
    rpc: AsyncQtumRPC,
    db_session: AsyncSession,
    data: ApproveCreateEventRequest,
) -> Transaction:
    """Approve the escrow for a new event

    The Topic and its centralized Oracle are recorded before confirmation,
    keyed by the approve txid. They are completed by the block sync or
    removed if the approve fails.
    """
    spender = config.metadata.address_of("AddressManager")
    sent = await BodhiTokenContract(rpc, config.metadata).approve(
        data=ApproveParams(spender=spender, value=data.amount),
        sender_address=data.sender_address,
        gas_limit=config.default_gas_limit,
        gas_price=config.default_gas_price,
    )
    txid = sent["txid"]
    version = config.metadata.version

    _tx = __new_pending_tx(sent, TransactionType.APPROVE_CREATE_EVENT, config)
    _tx.sender_address = data.sender_address
    _tx.receiver_address = spender
    _tx.name = data.name
    _tx.options = data.options
    _tx.result_setter_address = data.result_setter_address
    _tx.betting_start_time = data.betting_start_time
    _tx.betting_end_time = data.betting_end_time
    _tx.result_setting_start_time = data.result_setting_start_time
    _tx.result_setting_end_time = data.result_setting_end_time
    _tx.token = TokenKind.BOT
    _tx.amount = data.amount
    _tx.language = data.language
    db_session.add(_tx)

    _topic = Topic()
    _topic.txid = txid
    _topic.version = version
    _topic.status = EntityStatus.CREATED
    _topic.name = data.name
    _topic.options = data.options
    _topic.qtum_amount = zero_ledger(len(data.options))
    _topic.bot_amount = zero_ledger(len(data.options))
    _topic.creator_address = data.sender_address
    _topic.escrow_amount = data.amount
    _topic.language = data.language
    db_session.add(_topic)

    _oracle = Oracle()
    _oracle.txid = txid
    _oracle.version = version
    _oracle.status = EntityStatus.CREATED
    _oracle.token = TokenKind.QTUM
    _oracle.name = data.name
    _oracle.options = data.options
    _oracle.option_idxs = list(range(len(data.options)))
    _oracle.amounts = zero_ledger(len(data.options))
    _oracle.start_time = data.betting_start_time
    _oracle.end_time = data.betting_end_time
    _oracle.result_set_start_time = data.result_setting_start_time
    _oracle.result_set_end_time = data.result_setting_end_time
    _oracle.result_setter_address = data.result_setter_address
    _oracle.language = data.language
    db_session.add(_oracle)

    await db_session.commit()
    return _tx


async def approve_set_result(
    config: ServerConfig,
    rpc: AsyncQtumRPC,
    db_session: AsyncSession,
    data: ApproveSetResultRequest,
) -> Transaction:
    """Approve the consensus threshold for setting the result"""
    return await __approve_for_topic(
        config,
        rpc,
        db_session,
        data,
        TransactionType.APPROVE_SET_RESULT,
    )


async def approve_vote(
    config: ServerConfig,
    rpc: AsyncQtumRPC,
    db_session: AsyncSession,
    data: ApproveVoteRequest,
) -> Transaction:
    """Approve the stake for voting"""
    return await __approve_for_topic(
        config,
        rpc,
        db_session,
        data,
        TransactionType.APPROVE_VOTE,
    )


async def __approve_for_topic(
    config: ServerConfig,
    rpc: AsyncQtumRPC,
    db_session: AsyncSession,
    data: ApproveSetResultRequest | ApproveVoteRequest,
    tx_type: TransactionType,
) -> Transaction:
    # BOT is transferred to the topic
    sent = await BodhiTokenContract(rpc, config.metadata).approve(
        data=ApproveParams(spender=data.topic_address, value=data.amount),
        sender_address=data.sender_address,
        gas_limit=config.default_gas_limit,
        gas_price=config.default_gas_price,
    )

    _tx = __new_pending_tx(sent, tx_type, config)
    _tx.sender_address = data.sender_address
    _tx.receiver_address = data.topic_address
    _tx.topic_address = data.topic_address
    _tx.oracle_address = data.oracle_address
    _tx.option_idx = data.option_idx
    _tx.token = TokenKind.BOT
    _tx.amount = data.amount
    db_session.add(_tx)
    await db_session.commit()
    return _tx


def __new_pending_tx(
    sent: SentTx, tx_type: TransactionType, config: ServerConfig
) -> Transaction:
    _tx = Transaction()
    _tx.txid = sent["txid"]
    _tx.type = tx_type
    _tx.status = TransactionStatus.PENDING
    _tx.version = config.metadata.version
    _tx.gas_limit = str(sent["args"]["gasLimit"])
    _tx.gas_price = format_gas_price(sent["args"]["gasPrice"])
    _tx.created_time = int(time.time())
    return _tx
