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

"""Logging configuration for the tensor archive library."""

import logging
import sys

from typing_extensions import override

from tensor_archive.core import utils

_MISSING_RANK = -1
"""Sentinel rank used when no process rank is known."""

_STATIC_RANK = _MISSING_RANK


def set_logging_rank(rank: int):
    """Overrides the rank reported in log records.

    Args:
        rank: The rank to log. Pass -1 to fall back to torch.distributed.
    """
    global _STATIC_RANK
    _STATIC_RANK = rank


class ArchiveContextFormatter(logging.Formatter):
    """A logging formatter that adds the process rank to every record."""

    @override
    def format(self, record):
        """Formats the log record to include the rank.

        Args:
            record: The log record to format.

        Returns:
            The formatted log record as a string.
        """
        # A process group can only exist once torch has been imported.
        torch = sys.modules.get("torch")
        if _STATIC_RANK != _MISSING_RANK:
            rank = _STATIC_RANK
        elif torch is not None and torch.distributed.is_available() and torch.distributed.is_initialized():
            rank = torch.distributed.get_rank()
        else:
            rank = _MISSING_RANK
        record.rank = rank
        return super().format(record)


def get_logger(name: str, stream=sys.stderr) -> logging.Logger:
    """Get a logger with a custom format that includes the rank.

    Args:
        name: The name of the logger.
        stream: The stream to write log records to. Defaults to sys.stderr.

    Returns:
        A logger with a custom format.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(stream=stream)
        formatter = ArchiveContextFormatter(
            "[TA %(asctime)s %(levelname)s Rank=%(rank)s %(name)s:%(lineno)d] %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        log_level_str = utils.get_env_val_str("LOG_LEVEL", "DEBUG")
        log_level = logging._nameToLevel.get(log_level_str.upper(), logging.DEBUG)
        logger.setLevel(log_level)
    logger.propagate = False
    return logger
