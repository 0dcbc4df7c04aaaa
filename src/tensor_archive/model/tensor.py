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

import weakref
from typing import TYPE_CHECKING, Optional, Sequence, Union

from tensor_archive.core.element_size import check_tensor_size

if TYPE_CHECKING:
    from tensor_archive.model.tensor_collection import TensorCollection

BytesLike = Union[bytes, bytearray, memoryview]


def as_byte_view(data: BytesLike) -> memoryview:
    """Returns a flat, read-only, unsigned-byte view over `data` without copying it."""
    view = memoryview(data)
    if view.ndim != 1 or view.format != "B":
        view = view.cast("B")
    return view.toreadonly()


class Tensor:
    """A named tensor: raw little-endian bytes plus a dtype tag and a shape.

    The bytes are not copied, so a Tensor may alias the caller's buffer (or the
    archive it was decoded from). Mutating that buffer indirectly mutates the
    Tensor. Neither the dtype nor the shape is checked on construction; call
    `check_size()` to verify them against the byte length.

    A Tensor may belong to at most one TensorCollection, which it references
    weakly.
    """

    def __init__(self, name: str, data: BytesLike, dtype: str, shape: Sequence[int]):
        self._name = name
        self._data = as_byte_view(data)
        self._dtype = dtype
        self._shape = tuple(shape)
        self._parent_ref: Optional[weakref.ReferenceType] = None

    @property
    def data(self) -> memoryview:
        return self._data

    @property
    def nbytes(self) -> int:
        return self._data.nbytes

    @property
    def dtype(self) -> str:
        return self._dtype

    @property
    def shape(self) -> tuple:
        return self._shape

    @property
    def parent(self) -> Optional["TensorCollection"]:
        """The collection that currently owns this tensor, if any."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str):
        """Renames the tensor, and its entry in the owning collection if there is one.

        Raises:
            ArchiveError: If the owning collection already holds another tensor named `value`.
        """
        parent = self.parent
        if parent is None:
            self._name = value
        else:
            parent._rename_tensor(self, value)

    def detach(self) -> None:
        """Removes the tensor from its owning collection. A no-op for free-standing tensors."""
        parent = self.parent
        if parent is not None:
            parent.remove_tensor(self._name)

    def check_size(self, lenient: bool = False) -> None:
        """Verifies that the byte length matches the dtype and shape.

        Raises:
            IgnorableError: On a size mismatch, unless `lenient` is True.
            ArchiveError: If the dtype tag carries no valid bit width.
        """
        check_tensor_size(self._data, self._dtype, self._shape, name=self._name, lenient=lenient)

    def __repr__(self) -> str:
        return f"Tensor(name={self._name!r}, dtype={self._dtype!r}, shape={list(self._shape)}, nbytes={self.nbytes})"
