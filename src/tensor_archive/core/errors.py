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

"""Exception types raised while validating, decoding and encoding archives."""

_LENIENT_HINT = " You can ignore this error with lenient=True."


class ArchiveError(ValueError):
    """A violation that can never be suppressed."""


class IgnorableError(ArchiveError):
    """A violation that callers may tolerate by passing `lenient=True`."""

    def __init__(self, message: str):
        super().__init__(message + _LENIENT_HINT)


class AlignmentError(ArchiveError):
    """The encoder's running byte count disagrees with an assigned offset.

    This always indicates a defect in the encoder rather than bad input.
    """
