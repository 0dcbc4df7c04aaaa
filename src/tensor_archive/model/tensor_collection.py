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
from types import MappingProxyType
from typing import Callable, Iterator, Mapping, Optional, Sequence

from tensor_archive.core.errors import ArchiveError
from tensor_archive.core.ta_logging import get_logger
from tensor_archive.model.tensor import BytesLike, Tensor

_LOGGER = get_logger(__name__)


class TensorCollection:
    """An ordered set of uniquely named tensors plus string metadata.

    A collection is either built by hand or returned by `decode()`, and is the
    input to `encode()`. Tensors are held by reference, not copied. Tensors are
    encoded in the collection's iteration order, which is insertion order;
    renaming a tensor keeps its position.

    The collection does no locking; callers sharing one across threads must
    serialize access themselves.
    """

    def __init__(self):
        self._tensors: dict[str, Tensor] = {}
        self._metadata: dict[str, str] = {}

    def get_tensor(self, name: str) -> Optional[Tensor]:
        """Returns the tensor named `name`, or None if there is none."""
        return self._tensors.get(name)

    def add_tensor(self, name: str, data: BytesLike, dtype: str, shape: Sequence[int]) -> Tensor:
        """Creates a tensor from its parts and adds it under `name`.

        Args:
            name: The unique tensor name.
            data: The raw tensor bytes; referenced, not copied.
            dtype: The dtype tag, e.g. "F32".
            shape: The tensor dimensions.

        Returns:
            The new tensor.

        Raises:
            ArchiveError: If `name` is already taken, or `dtype` or `shape` is missing.
        """
        self._check_name_free(name)
        if dtype is None or shape is None:
            msg = f'You must provide format and shape when adding tensor "{name}".'
            _LOGGER.error(msg)
            raise ArchiveError(msg)
        return self._adopt(name, Tensor(name, data, dtype, shape))

    def add_existing_tensor(self, name: str, tensor: Tensor) -> Tensor:
        """Adds a free-standing tensor under `name`, renaming it to `name`.

        Raises:
            ArchiveError: If `name` is already taken, or the tensor already belongs to a collection.
        """
        return self._adopt(name, tensor)

    def set_tensor(self, name: str, tensor: Tensor) -> Tensor:
        """Stores `tensor` under `name`, replacing any tensor currently stored there.

        Raises:
            ArchiveError: If the tensor already belongs to another collection, or to
                this one under a different name.
        """
        if self._tensors.get(name) is tensor:
            return tensor
        self._check_unparented(tensor)
        self.remove_tensor(name)
        return self._adopt(name, tensor)

    def get_or_make_tensor(self, name: str, factory: Callable[[], Tensor]) -> Tensor:
        """Returns the tensor named `name`, creating and adding it with `factory` if missing."""
        existing = self._tensors.get(name)
        if existing is not None:
            return existing
        return self._adopt(name, factory())

    def remove_tensor(self, name: str) -> Optional[Tensor]:
        """Removes the tensor named `name` and clears its owner. Missing names are ignored.

        Returns:
            The removed tensor, or None if there was nothing to remove.
        """
        tensor = self._tensors.pop(name, None)
        if tensor is not None:
            tensor._parent_ref = None
        return tensor

    def get_meta_value(self, key: str) -> Optional[str]:
        return self._metadata.get(key)

    def set_meta_value(self, key: str, value: str) -> None:
        self._metadata[key] = value

    def set_all_metadata(self, metadata: Mapping[str, str]) -> None:
        """Replaces all metadata with a copy of `metadata`."""
        replacement = dict(metadata)
        self._metadata.clear()
        self._metadata.update(replacement)

    @property
    def tensors(self) -> Mapping[str, Tensor]:
        """A read-only live view of name to tensor, in encoding order."""
        return MappingProxyType(self._tensors)

    @property
    def metadata(self) -> Mapping[str, str]:
        """A read-only live view of the metadata."""
        return MappingProxyType(self._metadata)

    def __len__(self) -> int:
        return len(self._tensors)

    def __contains__(self, name: object) -> bool:
        return name in self._tensors

    def __iter__(self) -> Iterator[Tensor]:
        return iter(list(self._tensors.values()))

    def __repr__(self) -> str:
        return f"TensorCollection(tensors={list(self._tensors)}, metadata_keys={list(self._metadata)})"

    def _check_name_free(self, name: str) -> None:
        if name in self._tensors:
            msg = f'The name "{name}" already exists in the TensorCollection.'
            _LOGGER.error(msg)
            raise ArchiveError(msg)

    def _check_unparented(self, tensor: Tensor) -> None:
        if tensor.parent is not None:
            msg = (
                f'The tensor "{tensor.name}" already belongs to a TensorCollection; '
                "detach it before adding it to another one."
            )
            _LOGGER.error(msg)
            raise ArchiveError(msg)

    def _adopt(self, name: str, tensor: Tensor) -> Tensor:
        """Stores `tensor` under `name` and makes this collection its owner.

        Every insertion goes through here, so names stay unique and a tensor is
        never owned twice. Nothing is mutated when a check fails.
        """
        self._check_name_free(name)
        self._check_unparented(tensor)
        tensor._name = name
        tensor._parent_ref = weakref.ref(self)
        self._tensors[name] = tensor
        return tensor

    def _rename_tensor(self, tensor: Tensor, new_name: str) -> None:
        """Moves `tensor` to `new_name`, keeping its position in the encoding order."""
        old_name = tensor.name
        if new_name == old_name:
            return
        self._check_name_free(new_name)
        renamed = [(new_name if key == old_name else key, value) for key, value in self._tensors.items()]
        self._tensors.clear()
        self._tensors.update(renamed)
        tensor._name = new_name
