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

from tensor_archive.codec.decoder import decode
from tensor_archive.codec.encoder import encode
from tensor_archive.model.tensor_collection import TensorCollection


@pytest.fixture
def sample_collection():
    tc = TensorCollection()
    tc.add_tensor("snark", b"\x00\x00\x80\x3f\x00\x00\x00\x40", "F32", [2])
    tc.add_tensor("snork", b"\x01", "U8", [1])
    tc.add_tensor("snurk", b"\x00\x3c\x00\x40\x00\x42", "F16", [3, 1])
    tc.set_meta_value("foo", "bar")
    tc.set_meta_value("baz", "quux")
    return tc


class TestRoundTrip:
    def test_collection_survives_encode_and_decode(self, sample_collection):
        # When
        decoded = decode(encode(sample_collection))

        # Then
        assert list(decoded.tensors) == ["snark", "snork", "snurk"]
        for name, original in sample_collection.tensors.items():
            copy = decoded.get_tensor(name)
            assert copy.dtype == original.dtype
            assert copy.shape == original.shape
            assert bytes(copy.data) == bytes(original.data)
            copy.check_size()
        assert dict(decoded.metadata) == {"foo": "bar", "baz": "quux"}

    def test_canonical_archive_reencodes_identically(self, canonical_archive):
        assert bytes(encode(decode(canonical_archive))) == canonical_archive

    def test_encoder_output_reencodes_identically(self, sample_collection):
        first = bytes(encode(sample_collection))

        second = bytes(encode(decode(first)))

        assert second == first

    def test_non_ascii_names_and_metadata(self):
        # Given
        tc = TensorCollection()
        tc.add_tensor("gewicht_ä", b"\x07", "U8", [1])
        tc.set_meta_value("beschreibung", "größe")

        # When
        archive = bytes(encode(tc))
        decoded = decode(archive)

        # Then
        assert "größe".encode("utf-8") in archive
        assert bytes(decoded.get_tensor("gewicht_ä").data) == b"\x07"
        assert decoded.get_meta_value("beschreibung") == "größe"

    def test_empty_tensors(self):
        tc = TensorCollection()
        tc.add_tensor("a", b"", "F32", [0])
        tc.add_tensor("b", b"", "F32", [2, 0])

        decoded = decode(encode(tc))

        assert decoded.get_tensor("a").nbytes == 0
        assert decoded.get_tensor("b").shape == (2, 0)
