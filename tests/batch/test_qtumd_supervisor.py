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
from unittest import mock
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.exceptions import ServerStartError, ServiceUnavailableError
from batch.qtumd_supervisor import (
    REINDEX_REQUIRED_MESSAGE,
    WALLET_ENCRYPTED_MESSAGE,
    DaemonState,
    Supervisor,
)


def qtumd_process(stderr_lines: list[bytes] = None, pid: int = 1234):
    """qtumd process stub with already closed output streams"""
    stdout = asyncio.StreamReader()
    stdout.feed_eof()
    stderr = asyncio.StreamReader()
    for line in stderr_lines or []:
        stderr.feed_data(line)
    stderr.feed_eof()

    process = MagicMock()
    process.pid = pid
    process.stdout = stdout
    process.stderr = stderr
    process.wait = AsyncMock(return_value=0)
    return process


async def wait_until(predicate, timeout: float = 1.0):
    async def _wait():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_wait(), timeout)


@pytest.fixture(scope="function")
def rpc():
    _rpc = AsyncMock()
    _rpc.get_blockchain_info.return_value = {"chain": "test", "blocks": 95650}
    _rpc.get_wallet_info.return_value = {"walletversion": 169900}
    return _rpc


@pytest.fixture(scope="function")
def notifier():
    return MagicMock()


@pytest.fixture(scope="function")
def on_ready():
    return AsyncMock()


@pytest.fixture(scope="function")
def supervisor(server_config, rpc, notifier, on_ready, background_log):
    return Supervisor(
        config=server_config,
        rpc=rpc,
        notifier=notifier,
        on_ready=on_ready,
        is_shutdown=asyncio.Event(),
    )


class TestSupervisor:
    ###########################################################################
    # Normal Case
    ###########################################################################

    # <Normal_1>
    # Start qtumd and wait until it responds
    # - unencrypted wallet: services are started
    @pytest.mark.asyncio
    async def test_normal_1(self, supervisor, rpc, on_ready, server_config):
        rpc.get_blockchain_info.side_effect = [
            ServiceUnavailableError("qtumd is unavailable"),
            ServiceUnavailableError("qtumd is unavailable"),
            {"chain": "test", "blocks": 95650},
        ]

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=qtumd_process()),
        ) as create_subprocess_exec:
            await supervisor.start(reindex=False)
            await wait_until(lambda: on_ready.await_count > 0)

        # Assertion
        create_subprocess_exec.assert_awaited_once_with(
            "/opt/qtum/bin/qtumd",
            "-logevents",
            "-rpcworkqueue=32",
            f"-rpcuser={server_config.rpc_user}",
            "-rpcpassword=password",
            "-testnet",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        assert rpc.get_blockchain_info.await_count == 3
        on_ready.assert_awaited_once_with()
        assert supervisor.state == DaemonState.RUNNING

    # <Normal_2>
    # Chain state is corrupted
    # - qtumd is stopped and restarted once with -reindex
    @pytest.mark.asyncio
    async def test_normal_2(self, supervisor, rpc, on_ready, notifier):
        corrupted = qtumd_process(
            stderr_lines=[
                f"Error: Corrupted block database detected. {REINDEX_REQUIRED_MESSAGE}\n".encode()
            ],
            pid=1,
        )
        reindexing = qtumd_process(pid=2)

        with (
            mock.patch(
                "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
                AsyncMock(side_effect=[corrupted, reindexing]),
            ) as create_subprocess_exec,
            mock.patch("batch.qtumd_supervisor.subprocess.run") as run,
        ):
            await supervisor.start(reindex=False)
            await wait_until(lambda: on_ready.await_count > 0)

        # Assertion
        assert create_subprocess_exec.await_count == 2
        first_flags = create_subprocess_exec.await_args_list[0].args
        second_flags = create_subprocess_exec.await_args_list[1].args
        assert "-reindex" not in first_flags
        assert "-reindex" in second_flags

        run.assert_called_once()
        assert run.call_args.args[0][0] == "/opt/qtum/bin/qtum-cli"
        assert run.call_args.args[0][-1] == "stop"

        notifier.on_qtum_error.assert_not_called()
        on_ready.assert_awaited_once_with()
        assert supervisor.process is reindexing
        assert supervisor.state == DaemonState.RUNNING
        assert not supervisor.is_shutdown.is_set()

    # <Normal_3>
    # Encrypted wallet with --encryptok
    # - host is notified and services wait for the unlock
    @pytest.mark.asyncio
    async def test_normal_3(self, server_config, rpc, notifier, on_ready, background_log):
        supervisor = Supervisor(
            config=server_config.model_copy(update={"encrypt_ok": True}),
            rpc=rpc,
            notifier=notifier,
            on_ready=on_ready,
            is_shutdown=asyncio.Event(),
        )
        rpc.get_wallet_info.return_value = {"unlocked_until": 0}

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=qtumd_process()),
        ):
            await supervisor.start(reindex=False)
            await wait_until(lambda: notifier.on_wallet_encrypted.call_count > 0)

        # Assertion
        notifier.on_wallet_encrypted.assert_called_once_with()
        on_ready.assert_not_awaited()
        assert supervisor.state == DaemonState.WALLET_LOCKED
        assert not supervisor.is_shutdown.is_set()

        # Unlocked by the host
        rpc.get_wallet_info.return_value = {"unlocked_until": 1700604800}
        await supervisor.unlock_wallet("passphrase")

        rpc.wallet_passphrase.assert_awaited_once_with("passphrase", 604800)
        on_ready.assert_awaited_once_with()
        assert supervisor.state == DaemonState.RUNNING

    # <Normal_4>
    # Encrypted wallet with --passphrase
    @pytest.mark.asyncio
    async def test_normal_4(self, server_config, rpc, notifier, on_ready, background_log):
        supervisor = Supervisor(
            config=server_config.model_copy(update={"passphrase": "passphrase"}),
            rpc=rpc,
            notifier=notifier,
            on_ready=on_ready,
            is_shutdown=asyncio.Event(),
        )
        rpc.get_wallet_info.side_effect = [
            {"unlocked_until": 0},
            {"unlocked_until": 1700604800},
        ]

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=qtumd_process()),
        ):
            await supervisor.start(reindex=False)
            await wait_until(lambda: on_ready.await_count > 0)

        # Assertion
        rpc.wallet_passphrase.assert_awaited_once_with("passphrase", 604800)
        on_ready.assert_awaited_once_with()
        notifier.on_wallet_encrypted.assert_not_called()
        assert supervisor.state == DaemonState.RUNNING

    # <Normal_5>
    # stop: host is notified once the RPC port is closed
    @pytest.mark.asyncio
    async def test_normal_5(self, supervisor, notifier):
        supervisor.process = qtumd_process()
        writer = MagicMock()
        writer.wait_closed = AsyncMock()

        with (
            mock.patch(
                "batch.qtumd_supervisor.subprocess.run",
                return_value=subprocess.CompletedProcess(
                    args=[], returncode=0, stdout="Qtum server stopping\n", stderr=""
                ),
            ) as run,
            mock.patch(
                "batch.qtumd_supervisor.asyncio.open_connection",
                AsyncMock(
                    side_effect=[(MagicMock(), writer), ConnectionRefusedError()]
                ),
            ) as open_connection,
        ):
            await supervisor.stop(emit_shutdown_event=True)
            await supervisor.shutdown_task

        # Assertion
        run.assert_called_once_with(
            [
                "/opt/qtum/bin/qtum-cli",
                f"-rpcuser={supervisor.config.rpc_user}",
                "-rpcpassword=password",
                "-testnet",
                "stop",
            ],
            capture_output=True,
            text=True,
        )
        assert open_connection.await_count == 2
        open_connection.assert_awaited_with("localhost", 13889)
        notifier.on_qtum_killed.assert_called_once_with()
        assert supervisor.state == DaemonState.STOPPED

    # <Normal_6>
    # stop: qtumd has not been started
    @pytest.mark.asyncio
    async def test_normal_6(self, supervisor, notifier):
        with mock.patch("batch.qtumd_supervisor.subprocess.run") as run:
            await supervisor.stop(emit_shutdown_event=True)

        # Assertion
        run.assert_not_called()
        assert supervisor.shutdown_task is None
        notifier.on_qtum_killed.assert_not_called()

    # <Normal_7>
    # Encrypted wallet pre-approved by the host application
    # - host is notified and services wait for the unlock
    @pytest.mark.asyncio
    async def test_normal_7(self, server_config, rpc, notifier, on_ready, background_log):
        supervisor = Supervisor(
            config=server_config.model_copy(update={"encryption_allowed": True}),
            rpc=rpc,
            notifier=notifier,
            on_ready=on_ready,
            is_shutdown=asyncio.Event(),
        )
        rpc.get_wallet_info.return_value = {"unlocked_until": 0}

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=qtumd_process()),
        ):
            await supervisor.start(reindex=False)
            await wait_until(lambda: notifier.on_wallet_encrypted.call_count > 0)

        # Assertion
        notifier.on_wallet_encrypted.assert_called_once_with()
        notifier.on_server_start_error.assert_not_called()
        rpc.wallet_passphrase.assert_not_awaited()
        on_ready.assert_not_awaited()
        assert supervisor.state == DaemonState.WALLET_LOCKED
        assert not supervisor.is_shutdown.is_set()

    # <Normal_8>
    # Chain state is corrupted after services have started
    # - qtumd is restarted with -reindex but services are not started twice
    @pytest.mark.asyncio
    async def test_normal_8(self, supervisor, rpc, on_ready, notifier):
        running = qtumd_process(pid=1)
        running.stderr = asyncio.StreamReader()  # still open
        reindexing = qtumd_process(pid=2)

        with (
            mock.patch(
                "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
                AsyncMock(side_effect=[running, reindexing]),
            ) as create_subprocess_exec,
            mock.patch("batch.qtumd_supervisor.subprocess.run") as run,
        ):
            await supervisor.start(reindex=False)
            await wait_until(lambda: on_ready.await_count > 0)
            assert supervisor.services_started is True

            running.stderr.feed_data(
                f"Error: Corrupted block database detected. {REINDEX_REQUIRED_MESSAGE}\n".encode()
            )
            running.stderr.feed_eof()
            await wait_until(lambda: create_subprocess_exec.await_count == 2)
            await wait_until(lambda: rpc.get_wallet_info.await_count == 2)

        # Assertion
        assert "-reindex" in create_subprocess_exec.await_args_list[1].args
        run.assert_called_once()
        notifier.on_qtum_error.assert_not_called()
        on_ready.assert_awaited_once_with()
        assert supervisor.process is reindexing
        assert supervisor.state == DaemonState.RUNNING
        assert not supervisor.is_shutdown.is_set()

    # <Normal_9>
    # start_qtum_wallet: qtum-qt is launched detached and the server exits
    @pytest.mark.asyncio
    async def test_normal_9(self, supervisor):
        wallet = MagicMock()
        wallet.pid = 5678

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=wallet),
        ) as create_subprocess_exec:
            await supervisor.start_qtum_wallet()

        # Assertion
        create_subprocess_exec.assert_awaited_once_with(
            "/opt/qtum/bin/qtum-qt",
            "-logevents",
            "-testnet",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
        assert supervisor.is_shutdown.is_set()
        assert supervisor.exit_code == 0

    ###########################################################################
    # Error Case
    ###########################################################################

    # <Error_1>
    # Unknown error output from qtumd
    # - host is notified and the server exits
    @pytest.mark.asyncio
    async def test_error_1(self, supervisor, rpc, notifier, on_ready):
        rpc.get_blockchain_info.side_effect = ServiceUnavailableError(
            "qtumd is unavailable"
        )

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(
                return_value=qtumd_process(
                    stderr_lines=[b"Error: Cannot obtain a lock on data directory\n"]
                )
            ),
        ) as create_subprocess_exec:
            await supervisor.start(reindex=False)
            await asyncio.wait_for(supervisor.is_shutdown.wait(), 1.0)

        # Assertion
        create_subprocess_exec.assert_awaited_once()
        notifier.on_qtum_error.assert_called_once_with(
            "Error: Cannot obtain a lock on data directory"
        )
        assert supervisor.exit_code == 1
        on_ready.assert_not_awaited()

    # <Error_2>
    # Encrypted wallet without an unlock option
    @pytest.mark.asyncio
    async def test_error_2(self, supervisor, rpc, notifier, on_ready):
        rpc.get_wallet_info.return_value = {"unlocked_until": 0}

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=qtumd_process()),
        ):
            await supervisor.start(reindex=False)
            await asyncio.wait_for(supervisor.is_shutdown.wait(), 1.0)

        # Assertion
        notifier.on_server_start_error.assert_called_once_with(
            WALLET_ENCRYPTED_MESSAGE
        )
        notifier.on_wallet_encrypted.assert_not_called()
        on_ready.assert_not_awaited()
        assert supervisor.exit_code == 1

    # <Error_3>
    # Wallet is still locked after walletpassphrase
    @pytest.mark.asyncio
    async def test_error_3(self, server_config, rpc, notifier, on_ready, background_log):
        supervisor = Supervisor(
            config=server_config.model_copy(update={"passphrase": "wrong"}),
            rpc=rpc,
            notifier=notifier,
            on_ready=on_ready,
            is_shutdown=asyncio.Event(),
        )
        rpc.get_wallet_info.return_value = {"unlocked_until": 0}

        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(return_value=qtumd_process()),
        ):
            await supervisor.start(reindex=False)
            await asyncio.wait_for(supervisor.is_shutdown.wait(), 1.0)

        # Assertion
        rpc.wallet_passphrase.assert_awaited_once_with("wrong", 604800)
        notifier.on_server_start_error.assert_called_once_with("Wallet unlock failed")
        on_ready.assert_not_awaited()
        assert supervisor.exit_code == 1

    # <Error_4>
    # qtum-cli could not be executed
    # - the error is logged and stop returns
    @pytest.mark.asyncio
    async def test_error_4(self, supervisor, caplog):
        supervisor.process = qtumd_process()

        with mock.patch(
            "batch.qtumd_supervisor.subprocess.run",
            side_effect=FileNotFoundError("qtum-cli"),
        ):
            await supervisor.stop(emit_shutdown_event=False)

        # Assertion
        assert supervisor.state == DaemonState.STOPPED
        assert "Failed to stop qtumd: qtum-cli" in caplog.messages

    # <Error_5>
    # start_qtum_wallet: qtum-qt could not be executed
    @pytest.mark.asyncio
    async def test_error_5(self, supervisor):
        with mock.patch(
            "batch.qtumd_supervisor.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("qtum-qt")),
        ):
            with pytest.raises(ServerStartError) as exc_info:
                await supervisor.start_qtum_wallet()

        # Assertion
        assert "startQtumWallet: qtum-qt" in str(exc_info.value)
        assert not supervisor.is_shutdown.is_set()
        assert supervisor.exit_code is None
