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

"""Conversions between archive tensors and `torch.Tensor`."""

import math
from typing import Mapping, Optional

import torch

from tensor_archive.core.errors import ArchiveError
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.model.tensor import Tensor
from tensor_archive.model.tensor_collection import TensorCollection

_LOGGER = get_logger(__name__)

_DTYPE_TO_TORCH: dict[str, torch.dtype] = {
    "F64": torch.float64,
    "F32": torch.float32,
    "F16": torch.float16,
    "BF16": torch.bfloat16,
    "F8_E4M3": torch.float8_e4m3fn,
    "F8_E5M2": torch.float8_e5m2,
    "I64": torch.int64,
    "I32": torch.int32,
    "I16": torch.int16,
    "I8": torch.int8,
    "U8": torch.uint8,
    "BOOL": torch.bool,
}

_TORCH_TO_DTYPE: dict[torch.dtype, str] = {v: k for k, v in _DTYPE_TO_TORCH.items()}


def torch_dtype(dtype: str) -> torch.dtype:
    """Returns the torch dtype for an archive dtype tag.

    Raises:
        ArchiveError: If the tag has no torch equivalent.
    """
    try:
        return _DTYPE_TO_TORCH[dtype]
    except KeyError:
        msg = f'The element format "{dtype}" has no torch equivalent.'
        _LOGGER.error(msg)
        raise ArchiveError(msg) from None


def archive_dtype(dtype: torch.dtype) -> str:
    """Returns the archive dtype tag for a torch dtype.

    Raises:
        ArchiveError: If the torch dtype cannot be stored in an archive.
    """
    try:
        return _TORCH_TO_DTYPE[dtype]
    except KeyError:
        msg = f"The torch dtype {dtype} cannot be stored in a tensor archive."
        _LOGGER.error(msg)
        raise ArchiveError(msg) from None


def from_torch(name: str, tensor: torch.Tensor) -> Tensor:
    """Copies a torch tensor into a free-standing archive Tensor.

    The data is stored C-contiguous, so strides are not preserved. Bytes are in
    host order, which must be little-endian.

    Bool tensors are stored one byte per element under the "BOOL" tag. That tag
    carries no bit width, so `Tensor.check_size()` rejects it; the byte length
    is checked by `to_torch` instead.

    Args:
        name: The name of the new tensor.
        tensor: The tensor to copy. It is moved to the CPU if needed.

    Returns:
        The new archive Tensor.
    """
    dtype = archive_dtype(tensor.dtype)
    src = tensor.detach().to("cpu").contiguous()
    if src.numel() == 0:
        data = b""
    else:
        data = src.reshape(-1).view(torch.uint8).numpy().tobytes()
    return Tensor(name, data, dtype, list(src.shape))


def to_torch(tensor: Tensor) -> torch.Tensor:
    """Copies an archive Tensor into a new CPU torch tensor.

    Raises:
        ArchiveError: If the dtype has no torch equivalent, or the byte length
            does not match the shape.
    """
    dtype = torch_dtype(tensor.dtype)
    shape = list(tensor.shape)
    expected = math.prod(shape) * dtype.itemsize
    if tensor.nbytes != expected:
        msg = (
            f'The tensor "{tensor.name}" is the wrong size {tensor.nbytes} bytes for its shape {shape} '
            f"and dtype {dtype}: should be {expected} bytes."
        )
        _LOGGER.error(msg)
        raise ArchiveError(msg)
    if expected == 0:
        return torch.empty(shape, dtype=dtype)
    return torch.frombuffer(bytearray(tensor.data), dtype=torch.uint8).view(dtype).reshape(shape)


def collection_from_state_dict(
    state_dict: Mapping[str, torch.Tensor], metadata: Optional[Mapping[str, str]] = None
) -> TensorCollection:
    """Builds a TensorCollection from a mapping of names to torch tensors.

    Args:
        state_dict: The tensors to store, e.g. `module.state_dict()`.
        metadata: Optional string metadata for the archive.

    Returns:
        A new collection holding a copy of every tensor, in mapping order.
    """
    collection = TensorCollection()
    for name, tensor in state_dict.items():
        collection.add_existing_tensor(name, from_torch(name, tensor))
    if metadata:
        collection.set_all_metadata(metadata)
    return collection


def collection_to_state_dict(collection: TensorCollection) -> dict[str, torch.Tensor]:
    """Converts every tensor of a collection into a torch tensor, keyed by name."""
    return {tensor.name: to_torch(tensor) for tensor in collection}
