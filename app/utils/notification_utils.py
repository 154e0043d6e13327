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
from typing import Protocol

from app import log
from app.model.schema import SyncInfo

LOG = log.get_logger()


class HostNotifier(Protocol):
    """Events delivered to the hosting application (UI / embedding shell)"""

    def on_qtum_error(self, message: str) -> None: ...

    def on_qtum_killed(self) -> None: ...

    def on_wallet_encrypted(self) -> None: ...

    def on_server_start_error(self, message: str) -> None: ...


class LogHostNotifier:
    """HostNotifier used when no host is attached: events are logged"""

    def on_qtum_error(self, message: str) -> None:
        LOG.error(f"qtumd error: {message}")

    def on_qtum_killed(self) -> None:
        LOG.info("qtumd has stopped")

    def on_wallet_encrypted(self) -> None:
        LOG.warning("Wallet is encrypted: waiting for unlock")

    def on_server_start_error(self, message: str) -> None:
        LOG.error(f"Server failed to start: {message}")


class SyncInfoPublisher:
    """In-process publisher of sync progress

    Every subscriber receives every message through its own queue.
    """

    def __init__(self):
        self._subscribers: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, sync_info: SyncInfo) -> None:
        for queue in self._subscribers:
            queue.put_nowait(sync_info)
