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

import array

import pytest

from tensor_archive.core.errors import IgnorableError
from tensor_archive.model.tensor import Tensor, as_byte_view


class TestTensor:
    def test_exposes_parts(self):
        tensor = Tensor("w", b"\x00" * 8, "F32", [2])

        assert tensor.name == "w"
        assert bytes(tensor.data) == b"\x00" * 8
        assert tensor.nbytes == 8
        assert tensor.dtype == "F32"
        assert tensor.shape == (2,)
        assert tensor.parent is None

    def test_data_aliases_caller_buffer(self):
        # Given
        buf = bytearray(4)
        tensor = Tensor("w", buf, "U8", [4])

        # When
        buf[0] = 7

        # Then
        assert tensor.data[0] == 7

    def test_data_is_read_only(self):
        tensor = Tensor("w", bytearray(4), "U8", [4])

        with pytest.raises(TypeError):
            tensor.data[0] = 1

    def test_shape_is_copied(self):
        shape = [2, 2]
        tensor = Tensor("w", bytes(4), "U8", shape)

        shape.append(5)

        assert tensor.shape == (2, 2)

    def test_multibyte_views_are_flattened_to_bytes(self):
        tensor = Tensor("w", memoryview(array.array("i", [1, 2, 3])), "I32", [3])

        assert tensor.nbytes == 3 * array.array("i").itemsize
        assert tensor.data.format == "B"

    def test_free_standing_rename(self):
        tensor = Tensor("old", b"", "U8", [0])

        tensor.name = "new"

        assert tensor.name == "new"

    def test_detach_free_standing_is_noop(self):
        tensor = Tensor("w", b"", "U8", [0])

        tensor.detach()

        assert tensor.parent is None

    def test_check_size(self):
        Tensor("w", bytes(12), "BF16", [2, 3]).check_size()
        Tensor("s", bytes(4), "F32", []).check_size()

    def test_check_size_mismatch(self):
        tensor = Tensor("w", bytes(10), "BF16", [2, 3])

        with pytest.raises(IgnorableError, match='The tensor "w" is the wrong size 10 bytes'):
            tensor.check_size()
        tensor.check_size(lenient=True)

    def test_construction_does_not_check_size(self):
        tensor = Tensor("w", bytes(3), "F32", [100])

        assert tensor.nbytes == 3

    def test_repr(self):
        assert repr(Tensor("w", bytes(2), "U8", (1, 2))) == "Tensor(name='w', dtype='U8', shape=[1, 2], nbytes=2)"


def test_as_byte_view_does_not_copy():
    buf = bytearray(b"abc")
    view = as_byte_view(buf)

    buf[1] = ord("x")

    assert bytes(view) == b"axc"
    assert view.readonly
