# ------------------------------------------------------------------------------------------------
# License
# ------------------------------------------------------------------------------------------------

# Copyright (c) 2025 LSeu-Open
#
# This code is licensed under the MIT License.
# See LICENSE file in the root directory

# ------------------------------------------------------------------------------------------------
# Description
# ------------------------------------------------------------------------------------------------

"""Logging setup for scripts that run the trust scoring pipeline directly."""

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_console_only_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Route all log records to a single console handler.

    Args:
        level (int): Log level for the root logger

    Returns:
        logging.Logger: The root logger

    Notes:
        - Existing root handlers are removed, so repeated calls do not duplicate output
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    return root
