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
Ed25519 signing and verification of submission payloads.

Signatures are computed over the canonical payload bytes and rendered as
``ed25519:<hex>``. A signer address is the hex encoded verify key. Every
signed artifact written to disk is paired with ``<name>.cid`` and
``<name>.signature`` side files so it can be verified offline.
"""

# ------------------------------------------------------------------------------------------------
# Imports
# ------------------------------------------------------------------------------------------------

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from nacl import signing
from nacl.exceptions import BadSignatureError, CryptoError

from ..core.constants import CID_SUFFIX, SIGNATURE_SUFFIX
from ..core.exceptions import MissingCredentialError
from .content_id import canonical_bytes

logger = logging.getLogger(__name__)

SIGNATURE_SCHEME = "ed25519"

KeyLike = Union[str, bytes, signing.SigningKey, None]

# ------------------------------------------------------------------------------------------------
# Keys
# ------------------------------------------------------------------------------------------------


def load_signing_key(private_key: KeyLike) -> signing.SigningKey:
    """Build a signing key from a hex seed, raw 32-byte seed or existing key.

    Args:
        private_key: Hex encoded 32-byte seed (optionally ``0x`` prefixed),
            raw seed bytes, or a ``SigningKey``.

    Returns:
        signing.SigningKey: The loaded key.

    Raises:
        MissingCredentialError: If no key is configured or it cannot be decoded.
    """
    if isinstance(private_key, signing.SigningKey):
        return private_key
    if private_key is None or (isinstance(private_key, (str, bytes)) and not private_key):
        raise MissingCredentialError("No private key configured; set PB_PRIVATE_KEY to sign submissions")
    try:
        if isinstance(private_key, str):
            text = private_key.strip()
            if text.startswith("0x"):
                text = text[2:]
            seed = bytes.fromhex(text)
        else:
            seed = bytes(private_key)
        return signing.SigningKey(seed)
    except (ValueError, TypeError, CryptoError) as exc:
        raise MissingCredentialError(f"Private key is not a valid ed25519 seed: {exc}") from exc


def generate_signing_key(seed: Optional[bytes] = None) -> signing.SigningKey:
    """Return a new key, derived from ``seed`` when given (32 bytes)."""
    if seed is not None:
        return signing.SigningKey(seed)
    return signing.SigningKey.generate()


def signer_address(key: KeyLike) -> str:
    """Return the hex encoded verify key for a signing key."""
    return load_signing_key(key).verify_key.encode().hex()


# ------------------------------------------------------------------------------------------------
# Sign / verify
# ------------------------------------------------------------------------------------------------


def _message(payload: Union[bytes, Any]) -> bytes:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return canonical_bytes(payload)


def sign(payload: Union[bytes, Any], private_key: KeyLike) -> str:
    """Sign a payload.

    Args:
        payload: Raw bytes or a JSON-compatible object (canonicalized first).
        private_key: Anything accepted by :func:`load_signing_key`.

    Returns:
        str: ``ed25519:<hex signature>``.

    Raises:
        MissingCredentialError: If no usable private key is configured.
    """
    key = load_signing_key(private_key)
    signature = key.sign(_message(payload)).signature
    return f"{SIGNATURE_SCHEME}:{signature.hex()}"


def verify(payload: Union[bytes, Any], signature: Optional[str], public_key: Optional[str]) -> bool:
    """Return True when ``signature`` is a valid signature of ``payload`` by ``public_key``.

    Malformed signatures or keys verify as False rather than raising.
    """
    if not signature or not public_key:
        return False
    scheme, _, encoded = signature.partition(":")
    if scheme != SIGNATURE_SCHEME or not encoded:
        return False
    try:
        key_text = public_key[2:] if public_key.startswith("0x") else public_key
        verify_key = signing.VerifyKey(bytes.fromhex(key_text))
        verify_key.verify(_message(payload), bytes.fromhex(encoded))
    except BadSignatureError:
        return False
    except (ValueError, TypeError, CryptoError) as exc:
        logger.debug(f"Unusable signature material: {exc}")
        return False
    return True


# ------------------------------------------------------------------------------------------------
# Side files
# ------------------------------------------------------------------------------------------------


def side_file_paths(path: Union[str, Path]) -> Tuple[Path, Path]:
    """Return the ``.cid`` and ``.signature`` paths that accompany ``path``."""
    artifact = Path(path)
    return (
        artifact.with_name(artifact.name + CID_SUFFIX),
        artifact.with_name(artifact.name + SIGNATURE_SUFFIX),
    )


def write_side_files(path: Union[str, Path], cid: str, signature: Optional[str]) -> Tuple[Path, Optional[Path]]:
    """Write the side files for an artifact.

    The signature file is only written when a signature exists; a stale one
    from an earlier run is removed so the pair never disagrees.
    """
    cid_path, signature_path = side_file_paths(path)
    cid_path.write_text(cid, encoding="utf-8")
    if signature is None:
        if signature_path.exists():
            signature_path.unlink()
        return cid_path, None
    signature_path.write_text(signature, encoding="utf-8")
    return cid_path, signature_path


def read_side_files(path: Union[str, Path]) -> Tuple[Optional[str], Optional[str]]:
    """Read ``(cid, signature)`` from the side files of ``path``; missing files read as None."""
    cid_path, signature_path = side_file_paths(path)
    cid = cid_path.read_text(encoding="utf-8").strip() if cid_path.exists() else None
    signature = signature_path.read_text(encoding="utf-8").strip() if signature_path.exists() else None
    return cid, signature


__all__ = [
    "generate_signing_key",
    "load_signing_key",
    "read_side_files",
    "side_file_paths",
    "sign",
    "signer_address",
    "verify",
    "write_side_files",
]
