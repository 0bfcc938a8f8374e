"""Record types for the timelocked transaction tables."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from htlc_bridge.core.constants.bridge import LOCK_STATUSES, TxKind, TxStatus


@dataclass(frozen=True)
class UserTxData:
    token_pair_id: int
    value: int
    fee: int
    user_account: str


@dataclass(frozen=True)
class SmgTxData:
    token_pair_id: int
    value: int
    user_account: str


@dataclass(frozen=True)
class DebtTxData:
    source_custodian_id: str


TxPayload = UserTxData | SmgTxData | DebtTxData

_PAYLOAD_TYPES: dict[TxKind, type[TxPayload]] = {
    TxKind.USER: UserTxData,
    TxKind.SMG: SmgTxData,
    TxKind.DEBT: DebtTxData,
}


@dataclass(frozen=True)
class TxRecord:
    """One hash-locked record.

    ``custodian_id`` is the storeman group holding the lock. For debt records
    it is the destination group and ``payload.source_custodian_id`` the origin.
    """

    kind: TxKind
    x_hash: str
    custodian_id: str
    locked_time: int
    begin_locked_time: int
    status: TxStatus
    payload: TxPayload

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind} record requires {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    @property
    def deadline(self) -> int:
        return self.begin_locked_time + self.locked_time

    @property
    def is_locked(self) -> bool:
        return self.status in LOCK_STATUSES

    def left_locked_time(self, now: int) -> int:
        return max(0, self.deadline - int(now))

    def with_status(self, status: TxStatus) -> TxRecord:
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["kind"] = str(self.kind)
        out["status"] = str(self.status)
        out["deadline"] = self.deadline
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TxRecord:
        kind = TxKind(data["kind"])
        payload = _PAYLOAD_TYPES[kind](**data["payload"])
        return cls(
            kind=kind,
            x_hash=str(data["x_hash"]),
            custodian_id=str(data["custodian_id"]),
            locked_time=int(data["locked_time"]),
            begin_locked_time=int(data["begin_locked_time"]),
            status=TxStatus(data["status"]),
            payload=payload,
        )
