from __future__ import annotations

import json
import sys
import time
from pathlib import Path
from typing import Any, NoReturn

import click
from loguru import logger

from htlc_bridge.core.constants.bridge import TxKind, TxStatus
from htlc_bridge.core.errors import BridgeError
from htlc_bridge.core.htlc.ledger import HTLCTxLedger
from htlc_bridge.core.htlc.sqlite_store import SqliteTxStore
from htlc_bridge.core.paths import get_bridge_paths
from htlc_bridge.core.utils.hashing import compute_x_hash, generate_secret


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _fail(error: str, details: str) -> NoReturn:
    _echo_json({"ok": False, "error": error, "details": details})
    raise click.exceptions.Exit(1)


def _open_ledger(db: Path | None) -> tuple[HTLCTxLedger, SqliteTxStore]:
    store = SqliteTxStore(db or get_bridge_paths().db_path)
    return HTLCTxLedger(store), store


_db_option = click.option(
    "--db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="State database (defaults to <project>/.htlc_bridge/state.db).",
)


@click.group(name="htlc-bridge", help="Inspect hash-timelocked bridge records.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def bridge_cli(log_level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=str(log_level).upper())


@bridge_cli.command(name="secret", help="Generate a random preimage and its hash-lock.")
def secret_cmd() -> None:
    x, x_hash = generate_secret()
    _echo_json({"ok": True, "result": {"x": x, "x_hash": x_hash}})


@bridge_cli.command(name="hash", help="Compute the hash-lock of a 32-byte preimage.")
@click.argument("x")
def hash_cmd(x: str) -> None:
    try:
        x_hash = compute_x_hash(x)
    except ValueError as exc:
        _fail("invalid_preimage", str(exc))
    _echo_json({"ok": True, "result": {"x_hash": x_hash}})


@bridge_cli.command(name="show", help="Show every record stored under a hash-lock.")
@click.argument("x_hash")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in TxKind], case_sensitive=False),
    default=None,
)
@_db_option
def show_cmd(x_hash: str, kind: str | None, db: Path | None) -> None:
    ledger, store = _open_ledger(db)
    try:
        if kind is not None:
            record = ledger.get_record(TxKind(kind.lower()), x_hash)
            records = [record] if record is not None else []
        else:
            records = ledger.find_records(x_hash)
    except ValueError as exc:
        _fail("invalid_hash", str(exc))
    finally:
        store.close()
    _echo_json({"ok": True, "result": [r.to_dict() for r in records]})


@bridge_cli.command(name="list", help="List stored records.")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in TxKind], case_sensitive=False),
    default=None,
)
@click.option(
    "--status",
    type=click.Choice([s.value for s in TxStatus if s != TxStatus.NONE]),
    default=None,
)
@_db_option
def list_cmd(kind: str | None, status: str | None, db: Path | None) -> None:
    _, store = _open_ledger(db)
    try:
        records = store.list_records(
            kind=TxKind(kind.lower()) if kind else None,
            status=TxStatus(status) if status else None,
        )
    finally:
        store.close()
    _echo_json({"ok": True, "result": [r.to_dict() for r in records]})


@bridge_cli.command(name="left-time", help="Seconds left before a record becomes revocable.")
@click.argument("x_hash")
@click.option("--now", type=int, default=None, help="Epoch seconds (default: now).")
@_db_option
def left_time_cmd(x_hash: str, now: int | None, db: Path | None) -> None:
    ledger, store = _open_ledger(db)
    ts = int(now if now is not None else time.time())
    try:
        left = ledger.get_left_locked_time(x_hash, ts)
    except BridgeError as exc:
        _fail(exc.kind, str(exc))
    except ValueError as exc:
        _fail("invalid_hash", str(exc))
    finally:
        store.close()
    _echo_json({"ok": True, "result": {"x_hash": x_hash, "now": ts, "left": left}})


@bridge_cli.command(name="rapidity", help="Replay-guard status of a rapidity unique id.")
@click.argument("unique_id")
@_db_option
def rapidity_cmd(unique_id: str, db: Path | None) -> None:
    ledger, store = _open_ledger(db)
    try:
        status = ledger.rapidity_status(unique_id)
    except ValueError as exc:
        _fail("invalid_unique_id", str(exc))
    finally:
        store.close()
    _echo_json(
        {
            "ok": True,
            "result": {
                "unique_id": unique_id,
                "status": status,
                "consumed": status != TxStatus.NONE,
            },
        }
    )


if __name__ == "__main__":
    bridge_cli()
