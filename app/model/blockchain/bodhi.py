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
from typing import TypedDict

from eth_utils import remove_0x_prefix
from web3 import Web3

from app import log
from app.exceptions import QtumRPCError, SendTransactionError, ServiceUnavailableError
from app.model.blockchain.contract_metadata import ContractMetadata
from app.model.blockchain.tx_params.bodhi import (
    ApproveParams,
    CreateTopicParams,
    SetResultParams,
    TransferParams,
    VoteParams,
)
from app.utils.contract_utils import ContractUtils
from app.utils.qtum_utils import AsyncQtumRPC

LOG = log.get_logger()

web3 = Web3()


class SentTxArgs(TypedDict):
    gasLimit: int
    gasPrice: Decimal


class SentTx(TypedDict):
    txid: str
    args: SentTxArgs


class BodhiContractInterface:
    """Base of the Bodhi contract wrappers

    Calldata is ABI-encoded locally and submitted with sendtocontract.
    """

    contract_name: str

    def __init__(
        self,
        rpc: AsyncQtumRPC,
        metadata: ContractMetadata,
        contract_address: str | None = None,
    ):
        self.rpc = rpc
        self.metadata = metadata
        if contract_address is None:
            contract_address = metadata.address_of(self.contract_name)
        self.contract_address = contract_address

    def encode_call_data(self, fn_name: str, args: list) -> str:
        contract = web3.eth.contract(abi=self.metadata.abi_of(self.contract_name))
        return remove_0x_prefix(contract.encode_abi(fn_name, args=args))

    async def send(
        self,
        fn_name: str,
        args: list,
        sender_address: str,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        try:
            data_hex = self.encode_call_data(fn_name, args)
            result = await self.rpc.send_to_contract(
                contract_address=self.contract_address,
                data_hex=data_hex,
                amount=0,
                gas_limit=gas_limit,
                gas_price=gas_price,
                sender_address=sender_address,
            )
        except ServiceUnavailableError:
            raise
        except QtumRPCError as err:
            raise SendTransactionError(f"{fn_name}: {err.message}")
        except Exception as err:
            raise SendTransactionError(err)

        txid = result["txid"]
        LOG.info(
            f"Sent {self.contract_name}.{fn_name}: txid={txid}, sender={sender_address}"
        )
        return {"txid": txid, "args": {"gasLimit": gas_limit, "gasPrice": gas_price}}


class EventFactoryContract(BodhiContractInterface):
    contract_name = "EventFactory"

    async def create_topic(
        self,
        data: CreateTopicParams,
        sender_address: str,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        """Create a topic with its centralized oracle"""
        args = [
            ContractUtils.to_checksum(data.oracle_address),
            ContractUtils.encode_string_bytes32_array(data.event_name),
            ContractUtils.encode_labels_bytes32_array(data.result_names),
            data.betting_start_time,
            data.betting_end_time,
            data.result_setting_start_time,
            data.result_setting_end_time,
        ]
        return await self.send(
            "createTopic", args, sender_address, gas_limit, gas_price
        )


class CentralizedOracleContract(BodhiContractInterface):
    contract_name = "CentralizedOracle"

    async def set_result(
        self,
        data: SetResultParams,
        sender_address: str,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        return await self.send(
            "setResult", [data.result_index], sender_address, gas_limit, gas_price
        )


class DecentralizedOracleContract(BodhiContractInterface):
    contract_name = "DecentralizedOracle"

    async def vote(
        self,
        data: VoteParams,
        sender_address: str,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        args = [data.result_index, int(data.bot_amount)]
        return await self.send(
            "voteResult", args, sender_address, gas_limit, gas_price
        )


class BodhiTokenContract(BodhiContractInterface):
    contract_name = "BodhiToken"

    async def approve(
        self,
        data: ApproveParams,
        sender_address: str,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        args = [ContractUtils.to_checksum(data.spender), int(data.value)]
        return await self.send("approve", args, sender_address, gas_limit, gas_price)

    async def transfer(
        self,
        data: TransferParams,
        sender_address: str,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        args = [ContractUtils.to_checksum(data.to_address), int(data.value)]
        return await self.send("transfer", args, sender_address, gas_limit, gas_price)


class Wallet:
    """Native QTUM wallet operations"""

    def __init__(self, rpc: AsyncQtumRPC):
        self.rpc = rpc

    async def send_to_address(
        self,
        address: str,
        amount: str,
        sender_address: str | None,
        gas_limit: int,
        gas_price: Decimal,
    ) -> SentTx:
        try:
            txid = await self.rpc.send_to_address(
                address=address, amount=amount, sender_address=sender_address
            )
        except ServiceUnavailableError:
            raise
        except QtumRPCError as err:
            raise SendTransactionError(f"sendtoaddress: {err.message}")

        LOG.info(f"Sent QTUM: txid={txid}, sender={sender_address}")
        return {"txid": txid, "args": {"gasLimit": gas_limit, "gasPrice": gas_price}}
