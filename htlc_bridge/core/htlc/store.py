from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from htlc_bridge.core.constants.bridge import TxKind, TxStatus
from htlc_bridge.core.errors import DuplicateRecord
from htlc_bridge.core.htlc.records import TxRecord

RAPIDITY_NAMESPACE = "rapidity"


class TxStore(Protocol):
    """Keyed storage behind :class:`HTLCTxLedger`.

    Implementations own atomicity: ``insert``/``consume_rapidity`` are
    insert-if-absent and ``compare_and_set_status`` only writes when the stored
    status still equals ``expected``. ``atomic()`` groups several calls into
    one unit that either commits entirely or leaves no trace.
    """

    def get(self, kind: TxKind, x_hash: str) -> TxRecord | None: ...

    def insert(self, record: TxRecord) -> None: ...

    def compare_and_set_status(
        self, kind: TxKind, x_hash: str, expected: TxStatus, new: TxStatus
    ) -> bool: ...

    def list_records(
        self, kind: TxKind | None = None, status: TxStatus | None = None
    ) -> list[TxRecord]: ...

    def rapidity_status(self, unique_id: str) -> TxStatus: ...

    def consume_rapidity(self, unique_id: str) -> None: ...

    def atomic(self) -> AbstractContextManager[None]: ...


class InMemoryTxStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[TxKind, dict[str, TxRecord]] = {kind: {} for kind in TxKind}
        self._rapidity: dict[str, TxStatus] = {}

    def get(self, kind: TxKind, x_hash: str) -> TxRecord | None:
        with self._lock:
            return self._tables[TxKind(kind)].get(x_hash)

    def insert(self, record: TxRecord) -> None:
        with self._lock:
            table = self._tables[record.kind]
            if record.x_hash in table:
                raise DuplicateRecord(record.x_hash, str(record.kind))
            table[record.x_hash] = record

    def compare_and_set_status(
        self, kind: TxKind, x_hash: str, expected: TxStatus, new: TxStatus
    ) -> bool:
        with self._lock:
            table = self._tables[TxKind(kind)]
            current = table.get(x_hash)
            if current is None or current.status != expected:
                return False
            table[x_hash] = current.with_status(new)
            return True

    def list_records(
        self, kind: TxKind | None = None, status: TxStatus | None = None
    ) -> list[TxRecord]:
        kinds = [TxKind(kind)] if kind is not None else list(TxKind)
        with self._lock:
            return [
                rec
                for k in kinds
                for rec in self._tables[k].values()
                if status is None or rec.status == status
            ]

    def rapidity_status(self, unique_id: str) -> TxStatus:
        with self._lock:
            return self._rapidity.get(unique_id, TxStatus.NONE)

    def consume_rapidity(self, unique_id: str) -> None:
        with self._lock:
            if unique_id in self._rapidity:
                raise DuplicateRecord(unique_id, RAPIDITY_NAMESPACE)
            self._rapidity[unique_id] = TxStatus.REDEEMED

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            # Records are frozen, so shallow copies are a full snapshot.
            tables = {kind: dict(table) for kind, table in self._tables.items()}
            rapidity = dict(self._rapidity)
            try:
                yield
            except BaseException:
                self._tables = tables
                self._rapidity = rapidity
                raise
