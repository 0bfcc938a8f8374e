"""Hash-timelock state machine over the User, Smg and Debt record tables.

Every record moves ``Locked -> Redeemed`` or ``Locked -> Revoked`` exactly once.
Redeem is only possible while ``now < begin_locked_time + locked_time`` and
revoke only once ``now >= begin_locked_time + locked_time``, so for any key and
any timestamp at most one of the two can succeed.

All operations take ``now`` (epoch seconds) from the caller; nothing here
reads a clock.
"""

from __future__ import annotations

from contextlib import AbstractContextManager

from loguru import logger

from htlc_bridge.core.constants.bridge import (
    LOCK_STATUSES,
    LOOKUP_ORDER,
    ZERO_ADDRESS,
    ZERO_BYTES32,
    TxKind,
    TxStatus,
)
from htlc_bridge.core.errors import (
    DuplicateRecord,
    InvalidHash,
    RedeemTimeout,
    RevokeNotPermitted,
    StatusNotLocked,
)
from htlc_bridge.core.htlc.records import (
    DebtTxData,
    SmgTxData,
    TxPayload,
    TxRecord,
    UserTxData,
)
from htlc_bridge.core.htlc.store import InMemoryTxStore, TxStore
from htlc_bridge.core.utils.addresses import normalize_address
from htlc_bridge.core.utils.hashing import compute_x_hash, normalize_bytes32
from htlc_bridge.core.utils.validation import (
    require_non_negative,
    require_positive,
    require_timestamp,
)


class HTLCTxLedger:
    def __init__(self, store: TxStore | None = None):
        self.store: TxStore = store if store is not None else InMemoryTxStore()
        self.logger = logger.bind(component=self.__class__.__name__)

    def atomic(self) -> AbstractContextManager[None]:
        return self.store.atomic()

    # ------------------------------------------------------------------
    # Generic transitions
    # ------------------------------------------------------------------

    def _require_absent(self, kind: TxKind, x_hash: str | bytes) -> str:
        key = normalize_bytes32(x_hash, name="x_hash")
        if self.store.get(kind, key) is not None:
            raise DuplicateRecord(key, str(kind))
        return key

    def _add(
        self,
        kind: TxKind,
        key: str,
        custodian_id: str | bytes,
        locked_time: int,
        now: int,
        payload: TxPayload,
        status: TxStatus = TxStatus.LOCKED,
    ) -> TxRecord:
        record = TxRecord(
            kind=kind,
            x_hash=key,
            custodian_id=normalize_bytes32(custodian_id, name="custodian_id"),
            locked_time=require_positive(locked_time, "locked_time"),
            begin_locked_time=require_timestamp(now),
            status=status,
            payload=payload,
        )
        self.store.insert(record)
        self.logger.debug(
            f"{kind} tx {key} {status} by {record.custodian_id} "
            f"until {record.deadline}"
        )
        return record

    def _locked_record(
        self, kind: TxKind, key: str, expected: TxStatus
    ) -> TxRecord:
        record = self.store.get(kind, key)
        current = record.status if record is not None else TxStatus.NONE
        if record is None or current != expected:
            raise StatusNotLocked(key, str(current), expected=str(expected))
        return record

    def _transition(
        self, kind: TxKind, key: str, expected: TxStatus, new: TxStatus
    ) -> None:
        if not self.store.compare_and_set_status(kind, key, expected, new):
            # Lost a race against a concurrent redeem/revoke on the same key.
            record = self.store.get(kind, key)
            current = record.status if record is not None else TxStatus.NONE
            raise StatusNotLocked(key, str(current), expected=str(expected))
        self.logger.debug(f"{kind} tx {key} {expected} -> {new}")

    def _redeem(
        self,
        kind: TxKind,
        x: str | bytes,
        now: int,
        status: TxStatus = TxStatus.LOCKED,
    ) -> str:
        now = require_timestamp(now)
        key = compute_x_hash(x)
        record = self._locked_record(kind, key, status)
        if now >= record.deadline:
            raise RedeemTimeout(key, record.deadline, now)
        self._transition(kind, key, status, TxStatus.REDEEMED)
        return key

    def _revoke(
        self,
        kind: TxKind,
        x_hash: str | bytes,
        now: int,
        status: TxStatus = TxStatus.LOCKED,
    ) -> str:
        now = require_timestamp(now)
        key = normalize_bytes32(x_hash, name="x_hash")
        record = self._locked_record(kind, key, status)
        if now < record.deadline:
            raise RevokeNotPermitted(key, record.deadline, now)
        self._transition(kind, key, status, TxStatus.REVOKED)
        return key

    # ------------------------------------------------------------------
    # User transactions (user locks, storeman redeems)
    # ------------------------------------------------------------------

    def add_user_tx(
        self,
        x_hash: str | bytes,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        fee: int,
        locked_time: int,
        user_account: str,
        now: int,
    ) -> TxRecord:
        key = self._require_absent(TxKind.USER, x_hash)
        payload = UserTxData(
            token_pair_id=require_non_negative(token_pair_id, "token_pair_id"),
            value=require_non_negative(value, "value"),
            fee=require_non_negative(fee, "fee"),
            user_account=normalize_address(user_account),
        )
        return self._add(TxKind.USER, key, custodian_id, locked_time, now, payload)

    def redeem_user_tx(self, x: str | bytes, now: int) -> str:
        return self._redeem(TxKind.USER, x, now)

    def revoke_user_tx(self, x_hash: str | bytes, now: int) -> str:
        return self._revoke(TxKind.USER, x_hash, now)

    def get_user_tx(self, x_hash: str | bytes) -> tuple[str, int, int, int, str]:
        """``(custodian_id, token_pair_id, value, fee, user_account)``; zeros if absent."""
        record = self.get_record(TxKind.USER, x_hash)
        if record is None:
            return ZERO_BYTES32, 0, 0, 0, ZERO_ADDRESS
        data: UserTxData = record.payload  # type: ignore[assignment]
        return (
            record.custodian_id,
            data.token_pair_id,
            data.value,
            data.fee,
            data.user_account,
        )

    # ------------------------------------------------------------------
    # Storeman transactions (storeman locks, user redeems)
    # ------------------------------------------------------------------

    def add_smg_tx(
        self,
        x_hash: str | bytes,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        user_account: str,
        locked_time: int,
        now: int,
    ) -> TxRecord:
        key = self._require_absent(TxKind.SMG, x_hash)
        payload = SmgTxData(
            token_pair_id=require_non_negative(token_pair_id, "token_pair_id"),
            value=require_non_negative(value, "value"),
            user_account=normalize_address(user_account),
        )
        return self._add(TxKind.SMG, key, custodian_id, locked_time, now, payload)

    def redeem_smg_tx(self, x: str | bytes, now: int) -> str:
        return self._redeem(TxKind.SMG, x, now)

    def revoke_smg_tx(self, x_hash: str | bytes, now: int) -> str:
        return self._revoke(TxKind.SMG, x_hash, now)

    def get_smg_tx(self, x_hash: str | bytes) -> tuple[str, int, int, str]:
        """``(custodian_id, token_pair_id, value, user_account)``; zeros if absent."""
        record = self.get_record(TxKind.SMG, x_hash)
        if record is None:
            return ZERO_BYTES32, 0, 0, ZERO_ADDRESS
        data: SmgTxData = record.payload  # type: ignore[assignment]
        return record.custodian_id, data.token_pair_id, data.value, data.user_account

    # ------------------------------------------------------------------
    # Debt transactions (storeman group handover)
    # ------------------------------------------------------------------

    @staticmethod
    def _require_debt_status(status: TxStatus) -> TxStatus:
        status = TxStatus(status)
        if status not in LOCK_STATUSES:
            raise ValueError(f"Invalid debt lock status: {status}")
        return status

    def add_debt_tx(
        self,
        x_hash: str | bytes,
        source_custodian_id: str | bytes,
        dest_custodian_id: str | bytes,
        locked_time: int,
        now: int,
        status: TxStatus = TxStatus.LOCKED,
    ) -> TxRecord:
        key = self._require_absent(TxKind.DEBT, x_hash)
        payload = DebtTxData(
            source_custodian_id=normalize_bytes32(
                source_custodian_id, name="source_custodian_id"
            )
        )
        return self._add(
            TxKind.DEBT,
            key,
            dest_custodian_id,
            locked_time,
            now,
            payload,
            status=self._require_debt_status(status),
        )

    def redeem_debt_tx(
        self, x: str | bytes, now: int, status: TxStatus = TxStatus.LOCKED
    ) -> str:
        return self._redeem(TxKind.DEBT, x, now, self._require_debt_status(status))

    def revoke_debt_tx(
        self, x_hash: str | bytes, now: int, status: TxStatus = TxStatus.LOCKED
    ) -> str:
        return self._revoke(
            TxKind.DEBT, x_hash, now, self._require_debt_status(status)
        )

    def get_debt_tx(self, x_hash: str | bytes) -> tuple[str, str]:
        """``(custodian_id, source_custodian_id)``; zeros if absent."""
        record = self.get_record(TxKind.DEBT, x_hash)
        if record is None:
            return ZERO_BYTES32, ZERO_BYTES32
        data: DebtTxData = record.payload  # type: ignore[assignment]
        return record.custodian_id, data.source_custodian_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, kind: TxKind, x_hash: str | bytes) -> TxRecord | None:
        return self.store.get(TxKind(kind), normalize_bytes32(x_hash, name="x_hash"))

    def tx_status(self, kind: TxKind, x_hash: str | bytes) -> TxStatus:
        record = self.get_record(kind, x_hash)
        return record.status if record is not None else TxStatus.NONE

    def find_records(self, x_hash: str | bytes) -> list[TxRecord]:
        """Every namespace holding ``x_hash``, in lookup order."""
        records = (self.get_record(kind, x_hash) for kind in LOOKUP_ORDER)
        return [r for r in records if r is not None]

    def get_left_locked_time(self, x_hash: str | bytes, now: int) -> int:
        now = require_timestamp(now)
        records = self.find_records(x_hash)
        if not records:
            raise InvalidHash(normalize_bytes32(x_hash, name="x_hash"))
        if len(records) > 1:
            self.logger.warning(
                f"Hash {records[0].x_hash} present in "
                f"{[str(r.kind) for r in records]}; using {records[0].kind}"
            )
        return records[0].left_locked_time(now)

    # ------------------------------------------------------------------
    # Rapidity replay guard
    # ------------------------------------------------------------------

    def add_rapidity_tx(self, unique_id: str | bytes) -> str:
        key = normalize_bytes32(unique_id, name="unique_id")
        self.store.consume_rapidity(key)
        self.logger.debug(f"rapidity tx {key} consumed")
        return key

    def rapidity_status(self, unique_id: str | bytes) -> TxStatus:
        return self.store.rapidity_status(
            normalize_bytes32(unique_id, name="unique_id")
        )
