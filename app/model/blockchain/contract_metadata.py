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

import json
from functools import cached_property

from eth_utils import event_abi_to_log_topic
from pydantic import BaseModel, ConfigDict


class ContractMetadata(BaseModel):
    """Versioned contract metadata for one network

    - abi: contract name -> ABI
    - addresses: contract name -> deployed address (hex, no 0x prefix)
    """

    model_config = ConfigDict(frozen=True, ignored_types=(cached_property,))

    network: str
    version: int
    contract_deployed_block: int
    addresses: dict[str, str]
    abi: dict[str, list[dict]]

    @classmethod
    def load(cls, path: str, network: str, version: int) -> "ContractMetadata":
        """Load metadata from the contract metadata file

        :param path: metadata file path
        :param network: mainnet, testnet or regtest
        :param version: contract version number
        :return: ContractMetadata
        """
        with open(path, "r") as f:
            metadata_json = json.load(f)

        try:
            abi = metadata_json["versions"][str(version)]["abi"]
            network_metadata = metadata_json["networks"][network][str(version)]
        except KeyError:
            raise ValueError(
                f"Contract metadata not found: network={network}, version={version}"
            )
        if network_metadata.get("contractDeployedBlock") is None:
            raise ValueError("Missing contractDeployedBlock in contract metadata")

        return cls(
            network=network,
            version=version,
            contract_deployed_block=network_metadata["contractDeployedBlock"],
            addresses=network_metadata["addresses"],
            abi=abi,
        )

    def address_of(self, contract_name: str) -> str:
        return self.addresses[contract_name]

    def abi_of(self, contract_name: str) -> list[dict]:
        return self.abi[contract_name]

    def event_abi(self, event_name: str) -> dict:
        """Find an event ABI by its name"""
        for contract_abi in self.abi.values():
            for item in contract_abi:
                if item.get("type") == "event" and item.get("name") == event_name:
                    return item
        raise KeyError(event_name)

    def event_topic(self, event_name: str) -> str:
        """Event signature topic (hex, no 0x prefix)"""
        return event_abi_to_log_topic(self.event_abi(event_name)).hex()

    @cached_property
    def event_abis_by_topic(self) -> dict[str, dict]:
        abis = {}
        for contract_abi in self.abi.values():
            for item in contract_abi:
                if item.get("type") == "event":
                    abis[event_abi_to_log_topic(item).hex()] = item
        return abis
