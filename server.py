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

import argparse
import asyncio
import secrets
import sys

import uvloop

from app import log
from app.database import init_db
from app.model.blockchain.contract_metadata import ContractMetadata
from app.model.schema import Network, ServerConfig
from app.utils.notification_utils import LogHostNotifier, SyncInfoPublisher
from app.utils.qtum_utils import AsyncQtumRPC
from batch.indexer_block_sync import Processor as BlockSyncProcessor
from batch.processor_update_tx import Processor as UpdateTxProcessor
from batch.qtumd_supervisor import Supervisor
from batch.utils.signal_handler import setup_signal_handler
from config import (
    CONTRACT_METADATA_FILE,
    CONTRACT_VERSION_NUM,
    ENCRYPTION_ALLOWED,
    NETWORK,
    QTUM_DATA_DIR,
    QTUM_PATH,
    QTUM_RPC_PASSWORD,
    SERVER_NAME,
)

LOG = log.get_logger()

_bootstrapped = False


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bodhi server")
    parser.add_argument(
        "--network",
        choices=[n.value for n in Network],
        default=NETWORK,
        help="qtumd network",
    )
    parser.add_argument(
        "--qtumpath", default=QTUM_PATH, help="directory of qtumd and qtum-cli"
    )
    parser.add_argument("--datadir", default=QTUM_DATA_DIR, help="qtumd data directory")
    parser.add_argument(
        "--encryptok",
        action="store_true",
        help="wait for the host to unlock an encrypted wallet",
    )
    parser.add_argument("--passphrase", help="unlock an encrypted wallet on startup")
    parser.add_argument("--rpcpassword", help="qtumd RPC password")
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace) -> ServerConfig:
    """Build the server configuration

    The configuration is built once per process.
    """
    global _bootstrapped
    if _bootstrapped:
        raise RuntimeError("ServerConfig was already created")

    network = Network(args.network)
    metadata = ContractMetadata.load(
        CONTRACT_METADATA_FILE, network.value, CONTRACT_VERSION_NUM
    )
    # Random password for every session unless one is given
    rpc_password = args.rpcpassword or QTUM_RPC_PASSWORD or secrets.token_hex(5)

    config = ServerConfig(
        network=network,
        qtum_path=args.qtumpath,
        qtum_data_dir=args.datadir,
        rpc_password=rpc_password,
        encryption_allowed=ENCRYPTION_ALLOWED,
        encrypt_ok=args.encryptok,
        passphrase=args.passphrase,
        metadata=metadata,
    )
    _bootstrapped = True
    return config


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    notifier = LogHostNotifier()
    try:
        config = bootstrap(args)
        await init_db()
    except Exception as err:
        LOG.exception("Failed to start server")
        notifier.on_server_start_error(str(err))
        return 1

    is_shutdown = asyncio.Event()
    setup_signal_handler(logger=LOG, is_shutdown=is_shutdown)

    rpc = AsyncQtumRPC.from_config(config)
    tx_processor = UpdateTxProcessor(config=config, rpc=rpc)
    sync_processor = BlockSyncProcessor(
        config=config,
        rpc=rpc,
        publisher=SyncInfoPublisher(),
        tx_processor=tx_processor,
    )
    service_tasks: set[asyncio.Task] = set()

    async def start_services():
        if service_tasks:
            # Block sync is already running
            return
        task = asyncio.create_task(
            sync_processor.run(is_shutdown=is_shutdown, update_local_txs=True)
        )
        service_tasks.add(task)
        task.add_done_callback(service_tasks.discard)

    supervisor = Supervisor(
        config=config,
        rpc=rpc,
        notifier=notifier,
        on_ready=start_services,
        is_shutdown=is_shutdown,
    )
    LOG.info(f"Starting {SERVER_NAME} on {config.network}")
    try:
        await supervisor.start(reindex=False)
        await is_shutdown.wait()
    except Exception as err:
        LOG.exception("Failed to start qtumd")
        notifier.on_server_start_error(str(err))
        supervisor.exit_code = 1
    finally:
        LOG.info("Exiting...")
        await supervisor.stop(emit_shutdown_event=False)
        # Give some time to flush logs
        await asyncio.sleep(config.exit_flush_delay)

    return supervisor.exit_code or 0


if __name__ == "__main__":
    try:
        exit_code = uvloop.run(main())
    except KeyboardInterrupt:
        sys.exit(1)
    sys.exit(exit_code)
