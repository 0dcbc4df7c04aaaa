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

from enum import Enum
from typing import Optional

HEADER_LENGTH_SIZE = 8
"""Size in bytes of the little-endian length field at the start of an archive."""

ALIGNMENT = 8
"""Header and every tensor start offset are aligned to this many bytes."""

MAX_HEADER_SIZE = 100 * 1024 * 1024
"""Upper bound for the (padded) JSON header length."""

METADATA_KEY = "__metadata__"
"""Reserved header key holding the string to string metadata object."""

PAD_BYTE = b" "

HEADER_START_BYTE = ord("{")


class HeaderField(str, Enum):
    """The per-tensor fields recognized in an archive header."""

    DTYPE = "dtype"
    SHAPE = "shape"
    DATA_OFFSETS = "data_offsets"

    @classmethod
    def lookup(cls, key: str) -> Optional["HeaderField"]:
        """Returns the field named `key`, or None if it is not a recognized field."""
        try:
            return cls(key)
        except ValueError:
            return None
