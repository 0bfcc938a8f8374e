from __future__ import annotations

import hashlib
import secrets

from eth_utils import decode_hex, encode_hex, is_hex

BYTES32_LEN = 32


def to_bytes32(value: str | bytes, *, name: str = "value") -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str) and is_hex(value.strip()):
        raw = decode_hex(value.strip())
    else:
        raise ValueError(f"Invalid {name}: expected hex string or bytes, got {value!r}")
    if len(raw) != BYTES32_LEN:
        raise ValueError(f"Invalid {name}: expected 32 bytes, got {len(raw)}")
    return raw


def normalize_bytes32(value: str | bytes, *, name: str = "value") -> str:
    """Canonical lowercase ``0x``-prefixed form used for every stored key."""
    return encode_hex(to_bytes32(value, name=name)).lower()


def compute_x_hash(x: str | bytes) -> str:
    """Hash-lock for preimage ``x``: ``sha256(x)`` as bytes32 hex."""
    return encode_hex(hashlib.sha256(to_bytes32(x, name="preimage")).digest())


def generate_secret() -> tuple[str, str]:
    """Random preimage ``x`` and its hash-lock, both as hex strings."""
    x = secrets.token_bytes(BYTES32_LEN)
    return encode_hex(x), compute_x_hash(x)
