from __future__ import annotations

import json
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any

from htlc_bridge.core.constants.bridge import TxKind, TxStatus
from htlc_bridge.core.errors import DuplicateRecord
from htlc_bridge.core.htlc.records import TxRecord
from htlc_bridge.core.htlc.store import RAPIDITY_NAMESPACE


def _utc_epoch_s() -> int:
    return int(time.time())


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str)


class SqliteTxStore:
    """Persistent :class:`TxStore`.

    Amounts live in ``payload_json`` because uint256 values overflow sqlite
    integers. Records are never deleted.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._depth = 0
        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # autocommit; transactions are explicit
        )
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._init_schema()

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _init_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS tx_records (
              kind TEXT NOT NULL,
              x_hash TEXT NOT NULL,
              custodian_id TEXT NOT NULL,
              locked_time INTEGER NOT NULL,
              begin_locked_time INTEGER NOT NULL,
              status TEXT NOT NULL,
              payload_json TEXT NOT NULL,
              updated_at INTEGER NOT NULL,
              PRIMARY KEY(kind, x_hash)
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS rapidity_txs (
              unique_id TEXT PRIMARY KEY,
              status TEXT NOT NULL,
              consumed_at INTEGER NOT NULL
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_tx_records_status ON tx_records(kind, status);"
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TxRecord:
        return TxRecord.from_dict(
            {
                "kind": row["kind"],
                "x_hash": row["x_hash"],
                "custodian_id": row["custodian_id"],
                "locked_time": row["locked_time"],
                "begin_locked_time": row["begin_locked_time"],
                "status": row["status"],
                "payload": json.loads(row["payload_json"]),
            }
        )

    def get(self, kind: TxKind, x_hash: str) -> TxRecord | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "SELECT * FROM tx_records WHERE kind = ? AND x_hash = ?",
                (str(TxKind(kind)), x_hash),
            )
            row = cur.fetchone()
        return self._row_to_record(row) if row is not None else None

    def insert(self, record: TxRecord) -> None:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO tx_records(kind, x_hash, custodian_id, locked_time,
                                           begin_locked_time, status, payload_json, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(record.kind),
                        record.x_hash,
                        record.custodian_id,
                        int(record.locked_time),
                        int(record.begin_locked_time),
                        str(record.status),
                        _json_dumps(asdict(record.payload)),
                        _utc_epoch_s(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateRecord(record.x_hash, str(record.kind)) from exc

    def compare_and_set_status(
        self, kind: TxKind, x_hash: str, expected: TxStatus, new: TxStatus
    ) -> bool:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                UPDATE tx_records
                SET status = ?, updated_at = ?
                WHERE kind = ? AND x_hash = ? AND status = ?
                """,
                (
                    str(TxStatus(new)),
                    _utc_epoch_s(),
                    str(TxKind(kind)),
                    x_hash,
                    str(TxStatus(expected)),
                ),
            )
            return int(cur.rowcount or 0) == 1

    def list_records(
        self, kind: TxKind | None = None, status: TxStatus | None = None
    ) -> list[TxRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if kind is not None:
            clauses.append("kind = ?")
            params.append(str(TxKind(kind)))
        if status is not None:
            clauses.append("status = ?")
            params.append(str(TxStatus(status)))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                f"SELECT * FROM tx_records {where} ORDER BY begin_locked_time ASC",
                params,
            )
            rows = cur.fetchall()
        return [self._row_to_record(r) for r in rows]

    def rapidity_status(self, unique_id: str) -> TxStatus:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "SELECT status FROM rapidity_txs WHERE unique_id = ?", (unique_id,)
            )
            row = cur.fetchone()
        return TxStatus(row["status"]) if row is not None else TxStatus.NONE

    def consume_rapidity(self, unique_id: str) -> None:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO rapidity_txs(unique_id, status, consumed_at)
                    VALUES (?, ?, ?)
                    """,
                    (unique_id, str(TxStatus.REDEEMED), _utc_epoch_s()),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateRecord(unique_id, RAPIDITY_NAMESPACE) from exc

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            savepoint = f"sp_{self._depth}"
            if outermost:
                self._conn.execute("BEGIN IMMEDIATE")
            else:
                self._conn.execute(f"SAVEPOINT {savepoint}")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._conn.execute("ROLLBACK")
                else:
                    self._conn.execute(f"ROLLBACK TO {savepoint}")
                    self._conn.execute(f"RELEASE {savepoint}")
                raise
            self._depth -= 1
            if outermost:
                self._conn.execute("COMMIT")
            else:
                self._conn.execute(f"RELEASE {savepoint}")
