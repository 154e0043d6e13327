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
import itertools
import json
from decimal import Decimal
from typing import Any

from aiohttp import BasicAuth, ClientError, ClientSession, ClientTimeout
from eth_abi import decode
from eth_utils import remove_0x_prefix

from app import log
from app.exceptions import BlockOutOfRangeError, QtumRPCError, ServiceUnavailableError
from app.model.blockchain.contract_metadata import ContractMetadata
from config import QTUM_RPC_TIMEOUT

LOG = log.get_logger()


class AsyncQtumRPC:
    """JSON-RPC client for qtumd

    qtumd answers RPC errors with HTTP 500 and a JSON error object,
    so the response body is parsed regardless of the HTTP status.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        request_timeout: int = QTUM_RPC_TIMEOUT,
    ):
        self.endpoint_uri = f"http://{host}:{port}"
        self.auth = BasicAuth(user, password)
        self.timeout = ClientTimeout(total=request_timeout)
        self._id = itertools.count(1)

    @classmethod
    def from_config(cls, config) -> "AsyncQtumRPC":
        return cls(
            host=config.rpc_host,
            port=config.rpc_port,
            user=config.rpc_user,
            password=config.rpc_password,
        )

    async def call(self, method: str, *params: Any) -> Any:
        """Send a JSON-RPC request

        :param method: RPC method name
        :param params: positional parameters
        :return: result object
        :raises QtumRPCError: the daemon returned an error object
        :raises ServiceUnavailableError: the daemon could not be reached
        """
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._id),
            "method": method,
            "params": list(params),
        }
        try:
            async with ClientSession(auth=self.auth, timeout=self.timeout) as session:
                async with session.post(
                    self.endpoint_uri,
                    data=json.dumps(payload, default=_json_default),
                    headers={"Content-Type": "application/json"},
                ) as resp:
                    status = resp.status
                    body = await resp.text()
        except (ClientError, asyncio.TimeoutError) as err:
            raise ServiceUnavailableError(f"qtumd is unavailable: {err}")

        try:
            response = json.loads(body, parse_float=Decimal)
        except json.JSONDecodeError:
            raise ServiceUnavailableError(
                f"qtumd returned an invalid response: status={status}"
            )

        error = response.get("error")
        if error:
            code = error.get("code")
            message = error.get("message")
            if message == BlockOutOfRangeError.RPC_MESSAGE:
                raise BlockOutOfRangeError(code, message)
            raise QtumRPCError(code, message)
        return response.get("result")

    ###########################################################################
    # Blockchain
    ###########################################################################

    async def get_blockchain_info(self) -> dict:
        return await self.call("getblockchaininfo")

    async def get_block_hash(self, block_num: int) -> str:
        return await self.call("getblockhash", block_num)

    async def get_block(self, block_hash: str) -> dict:
        return await self.call("getblock", block_hash)

    async def get_block_count(self) -> int:
        return await self.call("getblockcount")

    async def get_transaction_receipt(self, txid: str) -> list[dict]:
        return await self.call("gettransactionreceipt", txid)

    async def search_logs(
        self,
        from_block: int,
        to_block: int,
        addresses: list[str],
        topics: list[str],
        metadata: ContractMetadata,
        remove_hex_prefix: bool = True,
    ) -> list[dict]:
        """Search event logs and decode them with the contract metadata

        :param from_block: from block number
        :param to_block: to block number
        :param addresses: contract address filter (empty: no filter)
        :param topics: event signature filter
        :param metadata: contract metadata used to decode logs
        :param remove_hex_prefix: strip 0x from decoded addresses
        :return: receipts whose "log" holds decoded entries
        """
        receipts = await self.call(
            "searchlogs",
            from_block,
            to_block,
            {"addresses": addresses},
            {"topics": topics},
        )
        results = []
        for receipt in receipts or []:
            decoded = []
            for raw_log in receipt.get("log", []):
                entry = decode_event_log(raw_log, metadata, remove_hex_prefix)
                if entry is not None:
                    decoded.append(entry)
            results.append({**receipt, "log": decoded})
        return results

    ###########################################################################
    # Wallet
    ###########################################################################

    async def get_transaction(self, txid: str) -> dict:
        return await self.call("gettransaction", txid)

    async def get_wallet_info(self) -> dict:
        return await self.call("getwalletinfo")

    async def wallet_passphrase(self, passphrase: str, timeout: int) -> None:
        return await self.call("walletpassphrase", passphrase, timeout)

    async def send_to_address(
        self, address: str, amount: Decimal | str, sender_address: str | None = None
    ) -> str:
        if sender_address is None:
            return await self.call("sendtoaddress", address, amount)
        # comment, comment_to, subtractfeefromamount, replaceable, conf_target,
        # estimate_mode, senderaddress, changeToSender
        return await self.call(
            "sendtoaddress",
            address,
            amount,
            "",
            "",
            False,
            True,
            6,
            "UNSET",
            sender_address,
            True,
        )

    async def send_to_contract(
        self,
        contract_address: str,
        data_hex: str,
        amount: Decimal | str,
        gas_limit: int,
        gas_price: Decimal | str,
        sender_address: str,
    ) -> dict:
        return await self.call(
            "sendtocontract",
            contract_address,
            data_hex,
            amount,
            gas_limit,
            gas_price,
            sender_address,
        )


def decode_event_log(
    raw_log: dict, metadata: ContractMetadata, remove_hex_prefix: bool = True
) -> dict | None:
    """Decode one raw log entry into {"_eventName": ..., <arg>: <value>}

    Logs whose signature is not in the metadata are skipped (None).
    """
    topics = [remove_0x_prefix(topic).lower() for topic in raw_log.get("topics", [])]
    if not topics:
        return None
    event_abi = metadata.event_abis_by_topic.get(topics[0])
    if event_abi is None:
        return None

    indexed_inputs = [i for i in event_abi["inputs"] if i.get("indexed")]
    data_inputs = [i for i in event_abi["inputs"] if not i.get("indexed")]

    entry = {"_eventName": event_abi["name"]}
    for _input, topic in zip(indexed_inputs, topics[1:]):
        (value,) = decode([_input["type"]], bytes.fromhex(topic))
        entry[_input["name"]] = _normalize(_input["type"], value, remove_hex_prefix)

    data = bytes.fromhex(remove_0x_prefix(raw_log.get("data") or ""))
    values = decode([i["type"] for i in data_inputs], data)
    for _input, value in zip(data_inputs, values):
        entry[_input["name"]] = _normalize(_input["type"], value, remove_hex_prefix)
    return entry


def _json_default(obj: Any) -> Any:
    # qtumd does not accept amounts in exponent notation
    if isinstance(obj, Decimal):
        return format(obj, "f")
    return str(obj)


def _normalize(abi_type: str, value: Any, remove_hex_prefix: bool) -> Any:
    if abi_type == "address":
        value = value.lower()
        return remove_0x_prefix(value) if remove_hex_prefix else value
    return value
