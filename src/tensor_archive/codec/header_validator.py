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

"""Validation of untrusted archive headers.

Validation happens in two stages. `validate_raw_header` only needs the first
nine bytes of an archive plus its total size, and returns the declared JSON
header length. `validate_parsed_header` checks the parsed JSON object against
the size of the data section, so that no byte offset is trusted before it has
been range and overlap checked.

Violations raise `ArchiveError` when they can never be tolerated, and
`IgnorableError` when the caller may opt into accepting them with
`lenient=True`. Tolerated values are kept exactly as found.
"""

from typing import Any, NoReturn

from tensor_archive.core.defaults import (
    HEADER_LENGTH_SIZE,
    HEADER_START_BYTE,
    MAX_HEADER_SIZE,
    METADATA_KEY,
    HeaderField,
)
from tensor_archive.core.errors import ArchiveError, IgnorableError
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.core.tensor_header import read_header_length
from tensor_archive.core.utils import is_integer, is_number

_LOGGER = get_logger(__name__)

_HIGH_WORD = slice(4, HEADER_LENGTH_SIZE)


def _reject(msg: str) -> NoReturn:
    _LOGGER.error(msg)
    raise ArchiveError(msg)


def _reject_unless_lenient(lenient: bool, msg: str) -> None:
    if lenient:
        return
    _LOGGER.error(msg)
    raise IgnorableError(msg)


def validate_raw_header(data, file_size: int, lenient: bool = False) -> int:
    """Checks the length field and the first JSON byte of an archive.

    Args:
        data: At least the first 9 bytes of the archive.
        file_size: The total size of the archive in bytes.
        lenient: If True, a header longer than the size ceiling is tolerated.

    Returns:
        The declared length of the JSON header.

    Raises:
        ArchiveError: If the length field's high 32 bits are set, the header does
            not start with '{', or the archive is shorter than its declared header.
        IgnorableError: If the header is longer than 100 MiB and `lenient` is False.
    """
    prefix = bytes(data[: HEADER_LENGTH_SIZE + 1])
    if (
        len(prefix) <= HEADER_LENGTH_SIZE
        or any(prefix[_HIGH_WORD])
        or prefix[HEADER_LENGTH_SIZE] != HEADER_START_BYTE
    ):
        _reject("The file header is not a valid tensor archive.")

    header_len = read_header_length(prefix)
    if header_len > MAX_HEADER_SIZE:
        _reject_unless_lenient(
            lenient,
            f"The file header is too long to be a valid tensor archive ({header_len} > {MAX_HEADER_SIZE} bytes).",
        )
    if file_size < HEADER_LENGTH_SIZE + header_len:
        _reject(
            f"The tensor archive seems truncated or otherwise not valid "
            f"({file_size} bytes, but the header alone needs {HEADER_LENGTH_SIZE + header_len})."
        )
    return header_len


def validate_parsed_header(header: Any, chunk_size: int, lenient: bool = False) -> None:
    """Checks every entry of a parsed JSON header.

    Tensor entries are checked in header order; each entry's data offsets are
    compared against all entries checked before it.

    Args:
        header: The parsed JSON header.
        chunk_size: The number of bytes in the archive's data section.
        lenient: If True, ignorable violations are accepted as-is.

    Raises:
        ArchiveError: On any violation that cannot be ignored.
        IgnorableError: On an ignorable violation when `lenient` is False.
    """
    if not isinstance(header, dict):
        _reject(f"The archive header is not a JSON object ({type(header).__name__}).")

    covered: list[tuple[int, int]] = []
    for name, value in header.items():
        if name == METADATA_KEY:
            _check_metadata(value, lenient)
        else:
            _TensorEntryChecker(name, chunk_size, covered, lenient).check(value)


def _check_metadata(value: Any, lenient: bool) -> None:
    if not isinstance(value, dict):
        _reject(f"The {METADATA_KEY} entry is not a JSON object ({type(value).__name__}).")
    for key, item in value.items():
        if not isinstance(item, str):
            _reject_unless_lenient(lenient, f"The metadata value {key} is not a string ({type(item).__name__}).")


class _TensorEntryChecker:
    """Validates the description of a single tensor in a parsed header."""

    def __init__(self, name: str, chunk_size: int, covered: list[tuple[int, int]], lenient: bool):
        self.name = name
        self.chunk_size = chunk_size
        # Offset pairs of previously validated entries; shared across checkers of one header.
        self.covered = covered
        self.lenient = lenient
        self._field_checks = {
            HeaderField.DTYPE: self._check_dtype,
            HeaderField.SHAPE: self._check_shape,
            HeaderField.DATA_OFFSETS: self._check_data_offsets,
        }

    def check(self, value: Any) -> None:
        if not isinstance(value, dict):
            _reject(f'The tensor description for "{self.name}" is not a JSON object ({type(value).__name__}).')

        seen: set[HeaderField] = set()
        for key, field_value in value.items():
            field = HeaderField.lookup(key)
            if field is None:
                _reject_unless_lenient(
                    self.lenient, f'The tensor description for "{self.name}" has an invalid key "{key}".'
                )
                continue
            self._field_checks[field](field_value)
            seen.add(field)

        for field in HeaderField:
            if field not in seen:
                _reject(f'The tensor "{self.name}" is missing the {field.value} key.')

    def _check_dtype(self, value: Any) -> None:
        if not isinstance(value, str):
            _reject(f"The dtype for {self.name} is not a string ({type(value).__name__}).")

    def _check_shape(self, value: Any) -> None:
        if not isinstance(value, list):
            _reject(f"The shape for {self.name} is not an array ({type(value).__name__}).")
        for dim in value:
            if not is_number(dim):
                _reject_unless_lenient(
                    self.lenient,
                    f"The shape for {self.name} is not an array of numbers ({type(dim).__name__}).",
                )

    def _check_data_offsets(self, value: Any) -> None:
        if not isinstance(value, list) or len(value) != 2 or not all(is_integer(v) for v in value):
            _reject(f"The data_offsets for {self.name} is not an array of 2 integers ({value!r}).")
        start, end = value
        if not (0 <= start <= end <= self.chunk_size):
            _reject_unless_lenient(
                self.lenient,
                f"The data_offsets for {self.name} is out of range ({start}-{end} versus {self.chunk_size}).",
            )
        for other_start, other_end in self.covered:
            # Empty ranges share no byte with anything.
            if start < end and other_start < other_end and start < other_end and other_start < end:
                _reject_unless_lenient(
                    self.lenient,
                    f"The data_offsets for {self.name} overlaps with another tensor "
                    f"({start}-{end} versus {other_start}-{other_end}).",
                )
        self.covered.append((start, end))
