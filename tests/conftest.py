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

import json
import struct

import pytest

# The archive from the format's reference example: one BF16 tensor of shape [2, 3].
CANONICAL_HEADER = b'{"ten":{"dtype":"BF16","shape":[2,3],"data_offsets":[0,12]}}'
CANONICAL_ARCHIVE = (
    struct.pack("<Q", 64) + CANONICAL_HEADER + b"    " + bytes(range(1, 13)) + b"    "
)


def _build_archive(header, data: bytes = b"") -> bytes:
    """Serializes `header` (any JSON value) with a space padded length prefix, followed by `data`."""
    header_bytes = json.dumps(header, separators=(",", ":")).encode("utf-8")
    header_bytes += b" " * (-len(header_bytes) % 8)
    return struct.pack("<Q", len(header_bytes)) + header_bytes + data


@pytest.fixture
def canonical_archive() -> bytes:
    return CANONICAL_ARCHIVE


@pytest.fixture
def archive_builder():
    """Returns a function building an archive from a header object and raw data bytes."""
    return _build_archive
