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

import pytest
import torch

from tensor_archive.adapter.pytorch.torch_bridge import (
    archive_dtype,
    collection_from_state_dict,
    collection_to_state_dict,
    from_torch,
    to_torch,
    torch_dtype,
)
from tensor_archive.codec.decoder import decode
from tensor_archive.codec.encoder import encode
from tensor_archive.core.errors import ArchiveError
from tensor_archive.model.tensor import Tensor

_ALL_DTYPES = [
    ("F64", torch.float64),
    ("F32", torch.float32),
    ("F16", torch.float16),
    ("BF16", torch.bfloat16),
    ("F8_E4M3", torch.float8_e4m3fn),
    ("F8_E5M2", torch.float8_e5m2),
    ("I64", torch.int64),
    ("I32", torch.int32),
    ("I16", torch.int16),
    ("I8", torch.int8),
    ("U8", torch.uint8),
    ("BOOL", torch.bool),
]


class TestDtypeMapping:
    @pytest.mark.parametrize("tag, dtype", _ALL_DTYPES)
    def test_both_directions(self, tag, dtype):
        assert torch_dtype(tag) == dtype
        assert archive_dtype(dtype) == tag

    def test_unknown_tag(self):
        with pytest.raises(ArchiveError, match='"F4" has no torch equivalent'):
            torch_dtype("F4")

    def test_unsupported_torch_dtype(self):
        with pytest.raises(ArchiveError, match="cannot be stored"):
            archive_dtype(torch.complex64)


class TestFromTorch:
    @pytest.mark.parametrize("tag, dtype", _ALL_DTYPES)
    def test_round_trip_every_dtype(self, tag, dtype):
        # Given
        source = torch.tensor([[0, 1, 2], [3, 4, 5]], dtype=torch.float32).to(dtype)

        # When
        archived = from_torch("t", source)
        restored = to_torch(archived)

        # Then
        assert archived.dtype == tag
        assert archived.shape == (2, 3)
        assert archived.nbytes == 6 * dtype.itemsize
        if tag != "BOOL":
            archived.check_size()
        assert restored.dtype == dtype
        assert torch.equal(restored.to(torch.float32), source.to(torch.float32))

    def test_bool_tag_has_no_size_check(self):
        archived = from_torch("mask", torch.tensor([True, False]))

        assert archived.dtype == "BOOL"
        assert bytes(archived.data) == b"\x01\x00"
        with pytest.raises(ArchiveError, match="must contain bit size"):
            archived.check_size()

    def test_bf16_bytes_are_little_endian(self):
        archived = from_torch("one", torch.tensor([1.0], dtype=torch.bfloat16))

        assert bytes(archived.data) == b"\x80\x3f"

    def test_scalar(self):
        archived = from_torch("s", torch.tensor(7, dtype=torch.int32))

        assert archived.shape == ()
        assert bytes(archived.data) == b"\x07\x00\x00\x00"
        assert to_torch(archived).item() == 7

    def test_empty_tensor(self):
        archived = from_torch("e", torch.zeros((0, 4), dtype=torch.float32))

        assert archived.nbytes == 0
        assert archived.shape == (0, 4)
        assert to_torch(archived).shape == (0, 4)

    def test_non_contiguous_tensor_is_stored_in_logical_order(self):
        # Given
        source = torch.arange(6, dtype=torch.int16).reshape(2, 3).t()
        assert not source.is_contiguous()

        # When
        archived = from_torch("t", source)

        # Then
        assert archived.shape == (3, 2)
        assert torch.equal(to_torch(archived), source)

    def test_result_is_free_standing(self):
        archived = from_torch("t", torch.ones(2))

        assert archived.parent is None
        assert archived.name == "t"


class TestToTorch:
    def test_wrong_size(self):
        tensor = Tensor("w", b"\x00" * 6, "F32", [2])

        with pytest.raises(ArchiveError, match='The tensor "w" is the wrong size 6 bytes'):
            to_torch(tensor)

    def test_unknown_dtype(self):
        with pytest.raises(ArchiveError, match="no torch equivalent"):
            to_torch(Tensor("w", b"\x00", "U4", [2]))

    def test_does_not_alias_source_buffer(self):
        # Given
        buf = bytearray(b"\x01\x02")
        tensor = Tensor("w", buf, "U8", [2])

        # When
        restored = to_torch(tensor)
        buf[0] = 99

        # Then
        assert restored.tolist() == [1, 2]


class TestStateDict:
    def test_state_dict_through_archive(self):
        # Given
        state_dict = {
            "layer.weight": torch.randn(4, 3),
            "layer.bias": torch.zeros(4, dtype=torch.bfloat16),
            "step": torch.tensor(10, dtype=torch.int64),
        }

        # When
        archive = encode(collection_from_state_dict(state_dict, metadata={"format": "pt"}))
        decoded = decode(archive)
        restored = collection_to_state_dict(decoded)

        # Then
        assert list(restored) == list(state_dict)
        for name, tensor in state_dict.items():
            assert restored[name].dtype == tensor.dtype
            assert torch.equal(restored[name], tensor)
        assert decoded.get_meta_value("format") == "pt"

    def test_no_metadata(self):
        collection = collection_from_state_dict({"w": torch.ones(1)})

        assert dict(collection.metadata) == {}
        assert collection.get_tensor("w").parent is collection
