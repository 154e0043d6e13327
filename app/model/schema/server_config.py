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
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from app.model.blockchain.contract_metadata import ContractMetadata
from config import (
    CREATE_CORACLE_GAS_LIMIT,
    CREATE_DORACLE_GAS_LIMIT,
    DAEMON_CHECK_INTERVAL,
    DAEMON_RESTART_DELAY,
    DAEMON_SHUTDOWN_CHECK_INTERVAL,
    DAEMON_SHUTDOWN_NOTIFY_DELAY,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE,
    ENCRYPTION_ALLOWED,
    EXIT_FLUSH_DELAY,
    QTUM_RPC_HOST,
    QTUM_RPC_PORT_MAINNET,
    QTUM_RPC_PORT_TESTNET,
    QTUM_RPC_USER,
    SYNC_START_DELAY,
    SYNC_WORKER_CONCURRENCY,
    TRANSFER_MIN_CONFIRMATIONS,
    UNLOCK_SECONDS,
    WALLET_HANDOFF_EXIT_DELAY,
)


class Network(StrEnum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    REGTEST = "regtest"


class ServerConfig(BaseModel):
    """Server configuration

    Built once at startup and passed to every core component.
    Assigning to a field raises a ValidationError.
    """

    model_config = ConfigDict(frozen=True)

    # Blockchain network
    network: Network
    # Directory of the qtumd / qtum-cli executables
    qtum_path: str
    qtum_data_dir: str | None = None

    # RPC
    rpc_host: str = QTUM_RPC_HOST
    rpc_user: str = QTUM_RPC_USER
    rpc_password: str

    # Wallet
    # Encrypted wallets are pre-approved by the host
    encryption_allowed: bool = ENCRYPTION_ALLOWED
    encrypt_ok: bool = False  # --encryptok
    passphrase: str | None = None  # --passphrase=<passphrase>
    unlock_seconds: int = UNLOCK_SECONDS

    # Contracts
    metadata: ContractMetadata
    default_gas_limit: int = DEFAULT_GAS_LIMIT
    default_gas_price: Decimal = Decimal(DEFAULT_GAS_PRICE)
    create_coracle_gas_limit: int = CREATE_CORACLE_GAS_LIMIT
    create_doracle_gas_limit: int = CREATE_DORACLE_GAS_LIMIT
    transfer_min_confirmations: int = TRANSFER_MIN_CONFIRMATIONS

    # Timing [sec]
    daemon_check_interval: float = DAEMON_CHECK_INTERVAL
    daemon_restart_delay: float = DAEMON_RESTART_DELAY
    daemon_shutdown_check_interval: float = DAEMON_SHUTDOWN_CHECK_INTERVAL
    daemon_shutdown_notify_delay: float = DAEMON_SHUTDOWN_NOTIFY_DELAY
    exit_flush_delay: float = EXIT_FLUSH_DELAY
    wallet_handoff_exit_delay: float = WALLET_HANDOFF_EXIT_DELAY
    sync_start_delay: float = SYNC_START_DELAY
    sync_worker_concurrency: int = SYNC_WORKER_CONCURRENCY

    @property
    def is_mainnet(self) -> bool:
        return self.network == Network.MAINNET

    @property
    def rpc_port(self) -> int:
        return QTUM_RPC_PORT_MAINNET if self.is_mainnet else QTUM_RPC_PORT_TESTNET

    @property
    def network_flags(self) -> list[str]:
        """qtumd / qtum-cli flag selecting the network"""
        return [] if self.is_mainnet else [f"-{self.network.value}"]
