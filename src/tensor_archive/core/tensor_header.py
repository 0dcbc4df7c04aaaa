# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import dataclasses
import json
import struct
from typing import Any, Tuple

from tensor_archive.core.defaults import HEADER_LENGTH_SIZE, METADATA_KEY, HeaderField

_LENGTH_FORMAT = "<Q"


@dataclasses.dataclass
class TensorHeader:
    """Header record for one tensor stored in an archive."""

    dtype: str
    shape: list[int]
    data_offsets: Tuple[int, int]

    def to_dict(self) -> dict:
        """Returns the JSON object for this record, keys in wire order."""
        return {
            HeaderField.DTYPE.value: self.dtype,
            HeaderField.SHAPE.value: list(self.shape),
            HeaderField.DATA_OFFSETS.value: list(self.data_offsets),
        }

    @classmethod
    def from_dict(cls, value: dict) -> "TensorHeader":
        """Builds a record from an already validated header entry."""
        start, end = value[HeaderField.DATA_OFFSETS.value]
        return cls(
            dtype=value[HeaderField.DTYPE.value],
            shape=list(value[HeaderField.SHAPE.value]),
            data_offsets=(start, end),
        )


@dataclasses.dataclass
class ArchiveHeader:
    """The full JSON header of an archive: tensor records plus optional metadata."""

    tensors: dict[str, TensorHeader] = dataclasses.field(default_factory=dict)
    metadata: dict[str, str] = dataclasses.field(default_factory=dict)

    def to_json_bytes(self) -> bytes:
        """Serializes the header to compact UTF-8 JSON, without padding.

        The metadata object comes first and is omitted when empty; tensors
        follow in insertion order.
        """
        obj: dict[str, Any] = {}
        if self.metadata:
            obj[METADATA_KEY] = dict(self.metadata)
        for name, record in self.tensors.items():
            obj[name] = record.to_dict()
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")

    @classmethod
    def from_parsed(cls, parsed: dict) -> "ArchiveHeader":
        """Builds a header from a parsed JSON object that has passed validation."""
        header = cls()
        for name, value in parsed.items():
            if name == METADATA_KEY:
                header.metadata = dict(value)
            else:
                header.tensors[name] = TensorHeader.from_dict(value)
        return header


def pack_header_length(header_len: int) -> bytes:
    """Encodes the archive length field: an unsigned 64-bit little-endian integer."""
    return struct.pack(_LENGTH_FORMAT, header_len)


def read_header_length(buffer) -> int:
    """Reads the archive length field without any validation.

    Args:
        buffer: At least the first 8 bytes of an archive.

    Returns:
        The declared JSON header length.
    """
    return struct.unpack_from(_LENGTH_FORMAT, buffer[:HEADER_LENGTH_SIZE])[0]
