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

from eth_utils import add_0x_prefix, to_checksum_address

BYTES32_ARRAY_LENGTH = 10


class ContractUtils:
    @staticmethod
    def to_checksum(hex_address: str) -> str:
        """Convert a hex address (with or without 0x prefix) to checksum format"""
        return to_checksum_address(add_0x_prefix(hex_address.lower()))

    @staticmethod
    def encode_string_bytes32_array(
        value: str, length: int = BYTES32_ARRAY_LENGTH
    ) -> list[bytes]:
        """Split a string into a fixed length bytes32 array

        :param value: string to encode (utf-8)
        :param length: array length
        :return: list of 32 byte values
        """
        encoded = value.encode("utf-8")
        if len(encoded) > 32 * length:
            raise ValueError(f"value is too long: {len(encoded)} bytes")
        chunks = [encoded[i : i + 32] for i in range(0, len(encoded), 32)]
        chunks += [b""] * (length - len(chunks))
        return [chunk.ljust(32, b"\x00") for chunk in chunks]

    @staticmethod
    def encode_labels_bytes32_array(
        labels: list[str], length: int = BYTES32_ARRAY_LENGTH
    ) -> list[bytes]:
        """Encode each label into one bytes32 slot"""
        if len(labels) > length:
            raise ValueError(f"too many labels: {len(labels)}")
        encoded = []
        for label in labels:
            label_bytes = label.encode("utf-8")
            if len(label_bytes) > 32:
                raise ValueError(f"label is too long: {label}")
            encoded.append(label_bytes.ljust(32, b"\x00"))
        encoded += [b"\x00" * 32] * (length - len(encoded))
        return encoded

    @staticmethod
    def decode_bytes32(value: bytes) -> str:
        return value.rstrip(b"\x00").decode("utf-8", errors="replace")

    @staticmethod
    def decode_string_bytes32_array(values: list[bytes] | tuple[bytes, ...]) -> str:
        """Join a bytes32 array back into one string"""
        return b"".join(values).rstrip(b"\x00").decode("utf-8", errors="replace")

    @staticmethod
    def decode_labels_bytes32_array(values: list[bytes] | tuple[bytes, ...]) -> list[str]:
        """Decode a bytes32 array of labels, dropping empty slots"""
        labels = [ContractUtils.decode_bytes32(value) for value in values]
        return [label for label in labels if label]
