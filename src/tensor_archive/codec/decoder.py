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

from tensor_archive.codec.header_validator import validate_parsed_header, validate_raw_header
from tensor_archive.core.defaults import HEADER_LENGTH_SIZE, METADATA_KEY
from tensor_archive.core.errors import ArchiveError
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.core.tensor_header import ArchiveHeader
from tensor_archive.core.utils import log_execution_time
from tensor_archive.model.tensor import BytesLike, as_byte_view
from tensor_archive.model.tensor_collection import TensorCollection

_LOGGER = get_logger(__name__)


def _reject_constant(token: str):
    # json accepts NaN and Infinity, which are not JSON.
    raise ValueError(f"Non-standard JSON token {token}")


@log_execution_time(logger=_LOGGER, name="decode")
def decode(data: BytesLike, lenient: bool = False) -> TensorCollection:
    """Decodes a tensor archive into a TensorCollection.

    The header is fully validated before any of its offsets is used. The
    returned tensors are views into `data`, not copies, so `data` must not be
    mutated while they are in use.

    Args:
        data: The complete archive.
        lenient: If True, ignorable header violations are accepted as-is.

    Returns:
        A new collection holding every tensor and the metadata of the archive.

    Raises:
        ArchiveError: If the archive is malformed.
        IgnorableError: If the archive has an ignorable violation and `lenient` is False.
    """
    view = as_byte_view(data)
    header_len = validate_raw_header(view, view.nbytes, lenient=lenient)
    data_start = HEADER_LENGTH_SIZE + header_len

    try:
        header_text = view[HEADER_LENGTH_SIZE:data_start].tobytes().decode("utf-8")
        parsed = json.loads(header_text, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        _LOGGER.error("Failed to parse the %d byte archive header: %s", header_len, e)
        raise ArchiveError(f"The archive header is not valid UTF-8 JSON: {e}") from e

    validate_parsed_header(parsed, view.nbytes - data_start, lenient=lenient)
    header = ArchiveHeader.from_parsed(parsed)

    collection = TensorCollection()
    for name, record in header.tensors.items():
        start, end = record.data_offsets
        # Tolerated offsets are used as declared; only keep negative positions from wrapping around.
        begin = max(data_start + start, 0)
        stop = max(data_start + end, 0)
        collection.add_tensor(name, view[begin:stop], record.dtype, record.shape)
    if METADATA_KEY in parsed:
        collection.set_all_metadata(header.metadata)

    _LOGGER.debug("Decoded %d tensors from a %d byte archive.", len(collection), view.nbytes)
    return collection
