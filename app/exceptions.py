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


class AppError(Exception):
    code: int | None = None


################################################
# Chain / RPC
################################################
class QtumRPCError(AppError):
    """
    Error object returned by the qtumd JSON-RPC interface
    """

    def __init__(self, code: int, message: str = None):
        self.code = code
        self.message = message
        super().__init__(message)

    def __repr__(self):
        return f"<QtumRPCError(code={self.code}, message={self.message})>"


class BlockOutOfRangeError(QtumRPCError):
    """
    The requested block height has not been produced yet
    """

    RPC_CODE = -8
    RPC_MESSAGE = "Block height out of range"


class SendTransactionError(AppError):
    code = 2


################################################
# Wallet
################################################
class WalletEncryptedError(AppError):
    """Wallet is encrypted and no unlock path is configured"""

    code = 10


class WalletUnlockError(AppError):
    """Wallet could not be unlocked with the given passphrase"""

    code = 11


################################################
# Server
################################################
class ServerStartError(AppError):
    code = 20


################################################
# SERVICE_UNAVAILABLE
################################################
class ServiceUnavailableError(AppError):
    code = 1
