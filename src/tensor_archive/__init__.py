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

"""Reading and writing tensor archives: a length-prefixed JSON header followed by aligned raw tensor data."""

from tensor_archive.archive_file import load_file, save_file
from tensor_archive.codec.decoder import decode
from tensor_archive.codec.encoder import ArchiveWriter, encode
from tensor_archive.codec.header_validator import validate_parsed_header, validate_raw_header
from tensor_archive.core.element_size import check_tensor_size, element_size
from tensor_archive.core.errors import AlignmentError, ArchiveError, IgnorableError
from tensor_archive.core.tensor_header import read_header_length
from tensor_archive.model.tensor import Tensor
from tensor_archive.model.tensor_collection import TensorCollection

__all__ = [
    "AlignmentError",
    "ArchiveError",
    "ArchiveWriter",
    "IgnorableError",
    "Tensor",
    "TensorCollection",
    "check_tensor_size",
    "decode",
    "element_size",
    "encode",
    "load_file",
    "read_header_length",
    "save_file",
    "validate_parsed_header",
    "validate_raw_header",
]
