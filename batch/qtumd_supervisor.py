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
import subprocess
from enum import StrEnum
from typing import Awaitable, Callable

from app.exceptions import (
    QtumRPCError,
    ServerStartError,
    ServiceUnavailableError,
    WalletEncryptedError,
    WalletUnlockError,
)
from app.model.schema import ServerConfig
from app.utils.notification_utils import HostNotifier
from app.utils.qtum_utils import AsyncQtumRPC
from batch.utils import batch_log

"""
[QTUMD-Supervisor]

Launches qtumd, waits for it to become responsive, gates startup on
the wallet encryption state and stops it with qtum-cli.
"""

process_name = "QTUMD-Supervisor"
LOG = batch_log.get_logger(process_name=process_name)

QTUMD = "qtumd"
QTUM_CLI = "qtum-cli"
QTUM_QT = "qtum-qt"

REINDEX_REQUIRED_MESSAGE = "You need to rebuild the database using -reindex-chainstate"
WALLET_ENCRYPTED_MESSAGE = (
    "Your wallet is encrypted. Please use a non-encrypted wallet for the server."
)


class DaemonState(StrEnum):
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    WALLET_LOCKED = "WALLET_LOCKED"
    RESTARTING = "RESTARTING"
    STOPPING = "STOPPING"


class Supervisor:
    """qtumd process supervisor

    - on_ready: awaited once the daemon is responsive and the wallet is usable
    - is_shutdown: set when the whole server has to exit
    """

    def __init__(
        self,
        config: ServerConfig,
        rpc: AsyncQtumRPC,
        notifier: HostNotifier,
        on_ready: Callable[[], Awaitable[None]] | None,
        is_shutdown: asyncio.Event,
    ):
        self.config = config
        self.rpc = rpc
        self.notifier = notifier
        self.on_ready = on_ready
        self.is_shutdown = is_shutdown

        self.state = DaemonState.STOPPED
        self.process: asyncio.subprocess.Process | None = None
        self.exit_code: int | None = None
        self.shutdown_task: asyncio.Task | None = None
        self.services_started = False

        self.__check_task: asyncio.Task | None = None
        self.__tasks: set[asyncio.Task] = set()

    async def start(self, reindex: bool = False):
        """Start qtumd

        :param reindex: add the -reindex flag
        """
        qtumd_path = f"{self.config.qtum_path}/{QTUMD}"
        LOG.info(f"qtumd dir: {qtumd_path}")

        try:
            process = await asyncio.create_subprocess_exec(
                qtumd_path,
                *self.__qtumd_flags(reindex),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as err:
            raise ServerStartError(f"startQtumProcess: {err}") from err

        self.process = process
        self.state = DaemonState.STARTING
        LOG.info(f"qtumd started on PID {process.pid}")

        self.__spawn(self.__watch_stdout(process))
        self.__spawn(self.__watch_stderr(process))
        self.__spawn(self.__watch_exit(process))

        # Repeatedly check if qtumd is running
        self.__check_task = self.__spawn(self.__check_qtumd_init())

    async def stop(self, emit_shutdown_event: bool = False):
        """Stop qtumd using qtum-cli

        qtum-cli runs synchronously. Errors are logged only.

        :param emit_shutdown_event: notify the host once the RPC port is closed
        """
        if self.process is None:
            return

        self.state = DaemonState.STOPPING
        qtumcli_path = f"{self.config.qtum_path}/{QTUM_CLI}"
        flags = [
            f"-rpcuser={self.config.rpc_user}",
            f"-rpcpassword={self.config.rpc_password}",
            *self.config.network_flags,
            "stop",
        ]
        try:
            res = subprocess.run(
                [qtumcli_path, *flags], capture_output=True, text=True
            )
            if res.stdout:
                LOG.debug(f"qtumd stopped with code {res.returncode}: {res.stdout}")
            elif res.stderr:
                LOG.error(f"qtumd stopped with code {res.returncode}: {res.stderr}")
        except (OSError, subprocess.SubprocessError) as err:
            LOG.error(f"Failed to stop qtumd: {err}")

        if emit_shutdown_event:
            self.shutdown_task = self.__spawn(self.__wait_for_port_closed())
        else:
            self.state = DaemonState.STOPPED

    async def unlock_wallet(self, passphrase: str):
        """Unlock the wallet and start services

        Also called by the host after on_wallet_encrypted.
        """
        await self.rpc.wallet_passphrase(passphrase, self.config.unlock_seconds)

        # Ensure wallet is unlocked
        wallet_info = await self.rpc.get_wallet_info()
        if wallet_info.get("unlocked_until", 0) > 0:
            LOG.info("Wallet unlocked")
            await self.__start_services()
        else:
            LOG.error("Wallet unlock failed")
            raise WalletUnlockError("Wallet unlock failed")

    async def start_qtum_wallet(self):
        """Hand the chain over to qtum-qt and exit

        qtumd must be stopped first. qtum-qt is detached from the server
        so it outlives the exit.
        """
        qtumqt_path = f"{self.config.qtum_path}/{QTUM_QT}"
        try:
            wallet = await asyncio.create_subprocess_exec(
                qtumqt_path,
                "-logevents",
                *self.config.network_flags,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as err:
            raise ServerStartError(f"startQtumWallet: {err}") from err
        LOG.info(f"qtum-qt started on PID {wallet.pid}")

        # Wait a few seconds to make sure qtum-qt has launched
        await asyncio.sleep(self.config.wallet_handoff_exit_delay)
        self.request_exit(0)

    def request_exit(self, exit_code: int):
        self.exit_code = exit_code
        self.is_shutdown.set()

    def __qtumd_flags(self, reindex: bool) -> list[str]:
        flags = [
            "-logevents",
            "-rpcworkqueue=32",
            f"-rpcuser={self.config.rpc_user}",
            f"-rpcpassword={self.config.rpc_password}",
            *self.config.network_flags,
        ]
        if reindex:
            flags.append("-reindex")
        if self.config.qtum_data_dir:
            flags.append(f"-datadir={self.config.qtum_data_dir}")
        return flags

    def __spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.__tasks.add(task)
        task.add_done_callback(self.__tasks.discard)
        return task

    def __cancel_check(self):
        if self.__check_task is not None and not self.__check_task.done():
            self.__check_task.cancel()
        self.__check_task = None

    async def __watch_stdout(self, process: asyncio.subprocess.Process):
        while line := await process.stdout.readline():
            LOG.debug(f"qtumd output: {line.decode('utf-8', errors='replace').rstrip()}")

    async def __watch_stderr(self, process: asyncio.subprocess.Process):
        while line := await process.stderr.readline():
            message = line.decode("utf-8", errors="replace").rstrip()
            LOG.error(f"qtumd failed with error: {message}")

            if REINDEX_REQUIRED_MESSAGE in message:
                await self.__restart_with_reindex()
            else:
                self.__cancel_check()
                self.notifier.on_qtum_error(message)
                self.request_exit(1)
            return

    async def __watch_exit(self, process: asyncio.subprocess.Process):
        code = await process.wait()
        LOG.debug(f"qtumd exited with code {code}")

    async def __restart_with_reindex(self):
        # Clean old process first
        await self.stop(emit_shutdown_event=False)
        self.__cancel_check()
        self.state = DaemonState.RESTARTING

        await asyncio.sleep(self.config.daemon_restart_delay)
        LOG.info("Restarting and reindexing Qtum blockchain")
        try:
            await self.start(reindex=True)
        except ServerStartError as err:
            self.notifier.on_server_start_error(str(err))
            self.request_exit(1)

    async def __check_qtumd_init(self):
        """Wait until qtumd responds, then check the wallet"""
        while True:
            try:
                await self.rpc.get_blockchain_info()
                break
            except (ServiceUnavailableError, QtumRPCError) as err:
                LOG.debug(f"Waiting for qtumd: {err}")
            await asyncio.sleep(self.config.daemon_check_interval)

        try:
            await self.__check_wallet_encryption()
        except Exception as err:
            LOG.error(f"Failed to start services: {err}")
            self.notifier.on_server_start_error(str(err))
            self.request_exit(1)

    async def __check_wallet_encryption(self):
        wallet_info = await self.rpc.get_wallet_info()
        if "unlocked_until" not in wallet_info:
            await self.__start_services()
            return

        if self.config.encryption_allowed or self.config.encrypt_ok:
            # Wait for the host to unlock the wallet
            self.state = DaemonState.WALLET_LOCKED
            self.notifier.on_wallet_encrypted()
            return

        if self.config.passphrase:
            await self.unlock_wallet(self.config.passphrase)
            return

        raise WalletEncryptedError(WALLET_ENCRYPTED_MESSAGE)

    async def __start_services(self):
        self.state = DaemonState.RUNNING
        if self.services_started:
            # Restarted qtumd, services keep running
            LOG.info("qtumd is ready again")
            return
        self.services_started = True
        LOG.info("qtumd is ready")
        if self.on_ready is not None:
            await self.on_ready()

    async def __wait_for_port_closed(self):
        while await self.__is_port_open():
            LOG.debug("Waiting for qtumd to shut down.")
            await asyncio.sleep(self.config.daemon_shutdown_check_interval)

        # Slight delay before sending qtumd killed signal
        await asyncio.sleep(self.config.daemon_shutdown_notify_delay)
        self.state = DaemonState.STOPPED
        self.notifier.on_qtum_killed()

    async def __is_port_open(self) -> bool:
        try:
            _, writer = await asyncio.open_connection(
                self.config.rpc_host, self.config.rpc_port
            )
        except OSError:
            return False
        writer.close()
        await writer.wait_closed()
        return True
