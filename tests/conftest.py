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

import logging
from decimal import Decimal

import pytest
import pytest_asyncio
from pytest_asyncio import is_async_test
from sqlalchemy import delete

from app.database import AsyncSessionLocal, async_engine, batch_async_engine
from app.model.blockchain.contract_metadata import ContractMetadata
from app.model.db import Base
from app.model.schema import Network, ServerConfig
from config import CONTRACT_METADATA_FILE


def pytest_collection_modifyitems(items):
    pytest_asyncio_tests = (item for item in items if is_async_test(item))
    session_scope_marker = pytest.mark.asyncio(loop_scope="session")
    for async_test in pytest_asyncio_tests:
        async_test.add_marker(session_scope_marker, append=False)


#####################################################
# DB
#####################################################
@pytest_asyncio.fixture(scope="session")
async def async_db_engine():
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_engine

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await batch_async_engine.dispose()
    await async_engine.dispose()


@pytest_asyncio.fixture(scope="function", loop_scope="session")
async def async_db(async_db_engine):
    # Create DB session
    _db = AsyncSessionLocal()

    async with _db as session:
        yield session
        await session.rollback()

        # Remove DB data
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(delete(table))
        await session.commit()


#####################################################
# Server configuration
#####################################################
@pytest.fixture(scope="session")
def contract_metadata() -> ContractMetadata:
    return ContractMetadata.load(
        CONTRACT_METADATA_FILE, Network.TESTNET.value, version=0
    )


@pytest.fixture(scope="function")
def server_config(contract_metadata) -> ServerConfig:
    return ServerConfig(
        network=Network.TESTNET,
        qtum_path="/opt/qtum/bin",
        rpc_password="password",
        metadata=contract_metadata,
        default_gas_price=Decimal("0.0000004"),
        daemon_check_interval=0.01,
        daemon_restart_delay=0.05,
        daemon_shutdown_check_interval=0.01,
        daemon_shutdown_notify_delay=0.01,
        exit_flush_delay=0,
        wallet_handoff_exit_delay=0,
        sync_start_delay=0.05,
    )


#####################################################
# Logging
#####################################################
@pytest.fixture(scope="function")
def background_log():
    """Propagate batch logs to caplog"""
    LOG = logging.getLogger("background")
    default_log_level = LOG.level
    LOG.setLevel(logging.DEBUG)
    LOG.propagate = True
    yield LOG
    LOG.propagate = False
    LOG.setLevel(default_log_level)
