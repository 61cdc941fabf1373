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

"""
Content identifiers for submission payloads.

A payload is first rendered to canonical JSON bytes (sorted keys, no
insignificant whitespace, UTF-8, integral floats written as integers), then
hashed with SHA-256 and wrapped as a CIDv1 (raw codec) rendered in lowercase
base32 with the ``b`` multibase prefix. Identical payloads always produce the
same CID regardless of the key order they arrived in.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import base64
import hashlib
import json
import math
from typing import Any, Union

# ------------------------------------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------------------------------------

CID_VERSION = 0x01
RAW_CODEC = 0x55
SHA2_256 = 0x12
DIGEST_LENGTH = 0x20
MULTIBASE_BASE32 = "b"

_CID_PREFIX = bytes([CID_VERSION, RAW_CODEC, SHA2_256, DIGEST_LENGTH])

# ------------------------------------------------------------------------------------------------
# Canonical encoding
# ------------------------------------------------------------------------------------------------


def _normalize(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("Non-finite numbers cannot be content-addressed")
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, dict):
        return {str(key): _normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    return value


def canonical_bytes(payload: Any) -> bytes:
    """Render ``payload`` to its canonical JSON byte encoding.

    Args:
        payload: Any JSON-compatible structure.

    Returns:
        bytes: UTF-8 JSON with sorted keys and compact separators.

    Raises:
        ValueError: If the payload contains NaN or infinite numbers.
        TypeError: If the payload holds values JSON cannot represent.
    """
    text = json.dumps(
        _normalize(payload),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


# ------------------------------------------------------------------------------------------------
# CID computation
# ------------------------------------------------------------------------------------------------


def compute_cid(payload: Union[bytes, Any]) -> str:
    """Compute the CID of a payload.

    Args:
        payload: Either raw bytes (hashed as-is) or a JSON-compatible object
            (canonicalized first).

    Returns:
        str: CIDv1 string such as ``bafkrei...``.
    """
    data = payload if isinstance(payload, (bytes, bytearray)) else canonical_bytes(payload)
    digest = hashlib.sha256(data).digest()
    encoded = base64.b32encode(_CID_PREFIX + digest).decode("ascii").lower().rstrip("=")
    return MULTIBASE_BASE32 + encoded


def verify_cid(payload: Union[bytes, Any], claimed: str) -> bool:
    """Return True when ``claimed`` equals the CID recomputed from ``payload``."""
    return bool(claimed) and compute_cid(payload) == claimed.strip()


__all__ = ["canonical_bytes", "compute_cid", "verify_cid"]
