from __future__ import annotations

from eth_utils import is_address, to_checksum_address

from htlc_bridge.core.constants.bridge import ZERO_ADDRESS


def normalize_address(address: str | None) -> str:
    if address is None or str(address).strip() == "":
        return ZERO_ADDRESS
    value = str(address).strip()
    if not is_address(value):
        raise ValueError(f"Invalid address: {address}")
    return to_checksum_address(value)


def is_zero_address(address: str | None) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def same_address(a: str | None, b: str | None) -> bool:
    return normalize_address(a) == normalize_address(b)
