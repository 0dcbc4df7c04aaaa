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

from typing import Callable, Optional, Union

from tensor_archive.core.defaults import ALIGNMENT, HEADER_LENGTH_SIZE, MAX_HEADER_SIZE
from tensor_archive.core.errors import AlignmentError, ArchiveError
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.core.tensor_header import ArchiveHeader, TensorHeader, pack_header_length
from tensor_archive.core.utils import align_up, log_execution_time, padding
from tensor_archive.model.tensor import Tensor
from tensor_archive.model.tensor_collection import TensorCollection

_LOGGER = get_logger(__name__)

Chunk = Union[bytes, memoryview]
Sink = Callable[[Chunk], None]


class ArchiveWriter:
    """Lays out and emits one archive for a TensorCollection.

    The phases must run in order: `assign_offsets`, `build_header`,
    `write_header`, `write_tensors`. Without a sink, all chunks are copied into
    a single buffer sized up front, available as `result`; with a sink, each
    chunk is handed to it as soon as it is produced.

    Layout:
    [8 bytes HEADER_LEN] [HEADER_BYTES (JSON, space padded)] [TENSOR_BYTES (each space padded)]...
    """

    def __init__(self, collection: TensorCollection, sink: Optional[Sink] = None):
        self.collection = collection
        self._sink = sink
        self._header = ArchiveHeader(metadata=dict(collection.metadata))
        self._entries: list[tuple[str, Tensor]] = []
        self._data_size = 0
        self._header_bytes = b""
        self._padded_header_len = 0
        self._buffer: Optional[bytearray] = None
        self._pos = 0

    @property
    def total_size(self) -> int:
        """The archive size in bytes; known once the header has been built."""
        return HEADER_LENGTH_SIZE + self._padded_header_len + self._data_size

    @property
    def result(self) -> Optional[bytearray]:
        return self._buffer

    def assign_offsets(self) -> int:
        """Assigns each tensor an 8-byte aligned start offset in collection order.

        The recorded end offset is start plus the unpadded byte length.

        Returns:
            The size of the padded data section.
        """
        offset = 0
        self._entries = list(self.collection.tensors.items())
        for name, tensor in self._entries:
            self._header.tensors[name] = TensorHeader(
                dtype=tensor.dtype,
                shape=list(tensor.shape),
                data_offsets=(offset, offset + tensor.nbytes),
            )
            offset += align_up(tensor.nbytes)
        self._data_size = offset
        return offset

    def build_header(self) -> int:
        """Serializes the JSON header.

        Returns:
            The header length after padding.

        Raises:
            ArchiveError: If the padded header would exceed 100 MiB, or the
                metadata is not JSON serializable.
        """
        try:
            header_bytes = self._header.to_json_bytes()
        except (TypeError, ValueError) as e:
            _LOGGER.error("Failed to serialize the archive header: %s", e)
            raise ArchiveError(f"The archive header cannot be serialized: {e}") from e
        padded_len = align_up(len(header_bytes))
        if padded_len > MAX_HEADER_SIZE:
            msg = (
                f"The metadata is too large to be saved in a tensor archive "
                f"({padded_len} > {MAX_HEADER_SIZE} bytes)."
            )
            _LOGGER.error(msg)
            raise ArchiveError(msg)
        self._header_bytes = header_bytes
        self._padded_header_len = padded_len
        return padded_len

    def write_header(self) -> None:
        """Emits the length field, the header JSON and its padding."""
        if self._sink is None:
            self._buffer = bytearray(self.total_size)
        self._emit(pack_header_length(self._padded_header_len))
        self._emit(self._header_bytes)
        if self._padded_header_len > len(self._header_bytes):
            self._emit(padding(self._padded_header_len - len(self._header_bytes)))

    def write_tensors(self) -> None:
        """Emits every tensor's bytes followed by its padding.

        Raises:
            AlignmentError: If the bytes written so far disagree with a tensor's assigned offsets.
        """
        written = 0
        for name, tensor in self._entries:
            self._emit(tensor.data)
            written += tensor.nbytes
            remainder = tensor.nbytes % ALIGNMENT
            if remainder:
                self._emit(padding(ALIGNMENT - remainder))
                written += ALIGNMENT - remainder
            end = self._header.tensors[name].data_offsets[1]
            if align_up(end) != written:
                msg = (
                    f'Internal tensor alignment problem: "{name}": end offset {end} aligns to '
                    f"{align_up(end)}, but {written} bytes were written."
                )
                _LOGGER.error(msg)
                raise AlignmentError(msg)

    def _emit(self, chunk: Chunk) -> None:
        if self._buffer is None:
            self._sink(chunk)
            return
        size = memoryview(chunk).nbytes
        self._buffer[self._pos : self._pos + size] = chunk
        self._pos += size


@log_execution_time(logger=_LOGGER, name="encode")
def encode(collection: TensorCollection, sink: Optional[Sink] = None) -> Optional[bytearray]:
    """Serializes a TensorCollection into a tensor archive.

    Every tensor starts on an 8-byte boundary; the header and each tensor are
    padded with ASCII spaces. The output is deterministic for a given
    collection order and metadata.

    Args:
        collection: The tensors and metadata to write.
        sink: Optional callable receiving the archive one chunk at a time, in
            order. Useful to stream large tensors to a file or socket without
            buffering the whole archive.

    Returns:
        The archive as a single buffer, or None when a sink was given.

    Raises:
        ArchiveError: If the header exceeds 100 MiB or cannot be serialized.
        AlignmentError: On an internal offset accounting error.
    """
    writer = ArchiveWriter(collection, sink)
    writer.assign_offsets()
    writer.build_header()
    writer.write_header()
    writer.write_tensors()
    _LOGGER.debug("Encoded %d tensors into a %d byte archive.", len(collection), writer.total_size)
    return writer.result
