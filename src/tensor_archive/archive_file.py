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

"""Reading and writing tensor archives on the local filesystem."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from tensor_archive.codec.decoder import decode
from tensor_archive.codec.encoder import encode
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.core.utils import log_execution_time
from tensor_archive.model.tensor_collection import TensorCollection

_LOGGER = get_logger(__name__)

PathLike = Union[str, os.PathLike]


@log_execution_time(logger=_LOGGER, name="save_file", level=logging.INFO)
def save_file(collection: TensorCollection, path: PathLike) -> int:
    """Writes `collection` to `path` as a tensor archive.

    The archive is streamed chunk by chunk into a temporary file in the same
    directory, which then replaces `path`. A failed encode leaves `path` untouched.

    Args:
        collection: The tensors and metadata to write.
        path: The destination file.

    Returns:
        The number of bytes written.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    written = 0
    try:
        with os.fdopen(fd, "wb") as f:

            def _sink(chunk) -> None:
                nonlocal written
                written += f.write(chunk)

            encode(collection, sink=_sink)
        os.replace(tmp_name, path)
    except BaseException:
        _LOGGER.exception("Failed to write tensor archive '%s'", path)
        Path(tmp_name).unlink(missing_ok=True)
        raise
    _LOGGER.info("Wrote %d tensors (%d bytes) to '%s'", len(collection), written, path)
    return written


@log_execution_time(logger=_LOGGER, name="load_file", level=logging.INFO)
def load_file(path: PathLike, lenient: bool = False) -> TensorCollection:
    """Reads and decodes the tensor archive at `path`.

    Args:
        path: The archive file.
        lenient: If True, ignorable header violations are accepted as-is.

    Returns:
        The decoded collection. Its tensors are views over the file contents.
    """
    data = Path(path).read_bytes()
    _LOGGER.debug("Read %d bytes from '%s'", len(data), path)
    return decode(data, lenient=lenient)
