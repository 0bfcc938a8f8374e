from __future__ import annotations

from enum import StrEnum
from typing import Final


class TxStatus(StrEnum):
    NONE = "None"
    LOCKED = "Locked"
    REDEEMED = "Redeemed"
    REVOKED = "Revoked"
    ASSET_LOCKED = "AssetLocked"
    DEBT_LOCKED = "DebtLocked"


class TxKind(StrEnum):
    USER = "user"
    SMG = "smg"
    DEBT = "debt"


class TokenCrossType(StrEnum):
    FUNGIBLE = "Fungible"
    NFT = "NFT"
    MULTI_TOKEN = "MultiToken"


LOCK_STATUSES: Final[frozenset[TxStatus]] = frozenset(
    {TxStatus.LOCKED, TxStatus.ASSET_LOCKED, TxStatus.DEBT_LOCKED}
)
TERMINAL_STATUSES: Final[frozenset[TxStatus]] = frozenset(
    {TxStatus.REDEEMED, TxStatus.REVOKED}
)

# Namespace lookup order for hash-only queries.
LOOKUP_ORDER: Final[tuple[TxKind, ...]] = (TxKind.USER, TxKind.SMG, TxKind.DEBT)

ZERO_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"
ZERO_BYTES32: Final[str] = "0x" + "00" * 32

# Account holding custodied funds when none is configured.
DEFAULT_CUSTODY_ACCOUNT: Final[str] = "0x000000000000000000000000000000000000b71d"

DEFAULT_LOCKED_TIME_S: Final[int] = 60 * 60
DEFAULT_STATE_DIRNAME: Final[str] = ".htlc_bridge"
DEFAULT_EVENT_HISTORY: Final[int] = 1_000
