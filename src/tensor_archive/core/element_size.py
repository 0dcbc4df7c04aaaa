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
import math
import re
from typing import Optional, Sequence

from tensor_archive.core.errors import ArchiveError, IgnorableError
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.core.utils import is_number

_LOGGER = get_logger(__name__)

_BIT_WIDTH_PATTERN = re.compile(r"[0-9]+")


def element_size(dtype: str) -> float:
    """Returns the number of bytes per element implied by a dtype tag.

    The first decimal number embedded in the tag is taken as the bit width, so
    "BF16" and "F8_E4M3" resolve to 2 and 1 bytes respectively. Sub-byte widths
    yield fractional sizes ("I4" is 0.5 bytes); no rounding is applied for
    element counts that do not fill whole bytes.

    Args:
        dtype: The dtype tag, e.g. "F32".

    Returns:
        The element size in bytes.

    Raises:
        ArchiveError: If the tag has no bit width, or the bit width is not a power of two.
    """
    match = _BIT_WIDTH_PATTERN.search(dtype)
    if match is None:
        msg = f'The element format "{dtype}" is not a valid format (must contain bit size).'
        _LOGGER.error(msg)
        raise ArchiveError(msg)
    bits = int(match.group(0))
    if bits <= 0 or bits & (bits - 1):
        msg = f'The element format "{dtype}" is not a valid format (must be power of 2).'
        _LOGGER.error(msg)
        raise ArchiveError(msg)
    return bits / 8.0


def _format_size(size: float):
    return int(size) if float(size).is_integer() else size


def check_tensor_size(
    data,
    dtype: Optional[str],
    shape: Optional[Sequence[int]],
    name: str = "created",
    lenient: bool = False,
) -> None:
    """Checks that a byte buffer holds exactly `prod(shape)` elements of `dtype`.

    An empty shape denotes a scalar and is treated as `[1]`.

    Args:
        data: A bytes-like object holding the tensor data.
        dtype: The dtype tag of the tensor.
        shape: The tensor dimensions.
        name: The tensor name used in error messages.
        lenient: If True, a size mismatch is tolerated.

    Raises:
        ArchiveError: If dtype or shape is missing, or the dtype tag is malformed.
        IgnorableError: If the shape is non-numeric or the buffer length does not match,
            and `lenient` is False.
    """
    if dtype is None or shape is None:
        msg = f'The tensor "{name}" is missing format and shape information.'
        _LOGGER.error(msg)
        raise ArchiveError(msg)
    size = element_size(dtype)
    dims = list(shape) or [1]
    actual = memoryview(data).nbytes
    if not all(is_number(dim) for dim in dims):
        if not lenient:
            msg = f'The tensor "{name}" has a non-numeric shape {dims!r}, so it cannot match its {actual} bytes.'
            _LOGGER.error(msg)
            raise IgnorableError(msg)
        return
    expected = math.prod(dims) * size
    if actual != expected and not lenient:
        msg = (
            f'The tensor "{name}" is the wrong size {actual} bytes for its shape {json.dumps(dims)} '
            f'and format "{dtype}": should be {_format_size(expected)} bytes.'
        )
        _LOGGER.error(msg)
        raise IgnorableError(msg)
