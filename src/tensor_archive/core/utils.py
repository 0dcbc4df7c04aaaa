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

import logging
import os
import time
from contextlib import contextmanager

from tensor_archive.core.defaults import ALIGNMENT, PAD_BYTE


def get_env_var_prefix() -> str:
    """Returns the prefix for this library's environment variables.

    Returns:
        The env var prefix string.
    """
    return "TENSOR_ARCHIVE"


def get_env_val_str(env_var_name: str, default_val: str) -> str:
    """Returns the environment variable value for the given env_var_name, prefixed with this library's prefix.

    Args:
        env_var_name: The suffix of the environment variable name.
        default_val: The default value to return if the environment variable is missing.

    Returns:
        The string value of the environment variable or the default value.
    """
    return os.environ.get(f"{get_env_var_prefix()}_{env_var_name}", default_val)


def align_up(length: int, alignment: int = ALIGNMENT) -> int:
    """Rounds `length` up to the next multiple of `alignment`."""
    return (length + alignment - 1) // alignment * alignment


def padding(length: int) -> bytes:
    """Returns `length` ASCII space bytes used to pad the header and tensor data."""
    if length < 0:
        raise ValueError(f"Padding length must be non-negative, got {length}")
    return PAD_BYTE * length


@contextmanager
def log_execution_time(logger: logging.Logger, name: str, level: int = logging.DEBUG):
    """Simple context manager for timing functions/code blocks.

    Args:
        logger: The logger to use for recording the time.
        name: The name of the operation being timed.
        level: The logging level to use. Defaults to logging.DEBUG.

    Yields:
        None.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s took %.4fs", name, time.perf_counter() - start)


def is_number(value) -> bool:
    """Returns True for JSON numbers (int or float), excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integer(value) -> bool:
    """Returns True for JSON integers, excluding booleans."""
    return isinstance(value, int) and not isinstance(value, bool)
