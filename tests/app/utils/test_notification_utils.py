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

from app.model.schema import SyncInfo
from app.utils.notification_utils import SyncInfoPublisher


class TestSyncInfoPublisher:
    # <Normal_1>
    # Every subscriber receives the message
    def test_normal_1(self):
        publisher = SyncInfoPublisher()
        queue_1 = publisher.subscribe()
        queue_2 = publisher.subscribe()

        publisher.publish(SyncInfo(block_num=100000, block_time=1530000000))

        for queue in (queue_1, queue_2):
            assert queue.qsize() == 1
            assert queue.get_nowait() == SyncInfo(
                block_num=100000, block_time=1530000000
            )

    # <Normal_2>
    # Unsubscribed queues receive nothing
    def test_normal_2(self):
        publisher = SyncInfoPublisher()
        queue = publisher.subscribe()
        publisher.unsubscribe(queue)

        publisher.publish(SyncInfo(block_num=100000, block_time=1530000000))

        assert queue.empty()

    # <Normal_3>
    # Publishing without subscribers
    def test_normal_3(self):
        publisher = SyncInfoPublisher()
        publisher.publish(SyncInfo(block_num=1, block_time=1))

        assert isinstance(publisher.subscribe(), asyncio.Queue)
