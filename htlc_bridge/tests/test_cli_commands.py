"""Tests for the read-only record inspection CLI."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner
from loguru import logger

from htlc_bridge.cli import bridge_cli
from htlc_bridge.core.htlc.ledger import HTLCTxLedger
from htlc_bridge.core.htlc.sqlite_store import SqliteTxStore
from htlc_bridge.core.utils.hashing import compute_x_hash, generate_secret
from htlc_bridge.testing.chains import (
    NEXT_SMG_ID,
    ORIGIN_CHAIN_ID,
    ORIGIN_TOKEN,
    PAIR_ID,
    SMG_ID,
    USER,
    make_chain_env,
)


@pytest.fixture(autouse=True)
def _restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "state.db"


def _seed(db_path: Path, x_hash: str) -> None:
    store = SqliteTxStore(db_path)
    ledger = HTLCTxLedger(store)
    ledger.add_user_tx(x_hash, SMG_ID, 7, 1_000, 0, 100, USER, 1_000)
    ledger.add_debt_tx(x_hash, SMG_ID, NEXT_SMG_ID, 500, 1_000)
    ledger.add_rapidity_tx("0x" + "99" * 32)
    store.close()


def _json(result) -> dict:
    return json.loads(result.output)


def test_secret_outputs_matching_pair(runner):
    result = runner.invoke(bridge_cli, ["secret"])

    assert result.exit_code == 0
    payload = _json(result)
    assert payload["ok"] is True
    assert compute_x_hash(payload["result"]["x"]) == payload["result"]["x_hash"]


def test_hash_command(runner):
    x, x_hash = generate_secret()
    result = runner.invoke(bridge_cli, ["hash", x])

    assert result.exit_code == 0
    assert _json(result)["result"]["x_hash"] == x_hash


def test_hash_rejects_short_preimage(runner):
    result = runner.invoke(bridge_cli, ["hash", "0x1234"])

    assert result.exit_code == 1
    payload = _json(result)
    assert payload["ok"] is False
    assert payload["error"] == "invalid_preimage"


def test_show_lists_every_namespace(runner, db_path):
    _, x_hash = generate_secret()
    _seed(db_path, x_hash)

    result = runner.invoke(bridge_cli, ["show", x_hash, "--db", str(db_path)])

    assert result.exit_code == 0
    records = _json(result)["result"]
    assert [r["kind"] for r in records] == ["user", "debt"]
    assert records[0]["payload"]["value"] == 1_000
    assert records[0]["deadline"] == 1_100


def test_show_reads_records_written_by_settlement(runner, db_path):
    x, x_hash = generate_secret()
    store = SqliteTxStore(db_path)
    env = make_chain_env(ORIGIN_CHAIN_ID, store=store)
    env.tokens.mint(ORIGIN_TOKEN, USER, 1_000)
    env.htlc.user_htlc_lock(
        x_hash, SMG_ID, PAIR_ID, 250, sender=USER, now=0, locked_time=60
    )
    env.htlc.smg_htlc_redeem(x, 30)
    store.close()

    result = runner.invoke(bridge_cli, ["show", x_hash, "--db", str(db_path)])

    assert result.exit_code == 0
    (record,) = _json(result)["result"]
    assert record["status"] == "Redeemed"
    assert record["payload"]["value"] == 250


def test_show_with_kind_filter(runner, db_path):
    _, x_hash = generate_secret()
    _seed(db_path, x_hash)

    result = runner.invoke(
        bridge_cli, ["show", x_hash, "--kind", "smg", "--db", str(db_path)]
    )

    assert result.exit_code == 0
    assert _json(result)["result"] == []


def test_list_filters_by_status(runner, db_path):
    _, x_hash = generate_secret()
    _seed(db_path, x_hash)

    locked = runner.invoke(
        bridge_cli, ["list", "--status", "Locked", "--db", str(db_path)]
    )
    redeemed = runner.invoke(
        bridge_cli, ["list", "--status", "Redeemed", "--db", str(db_path)]
    )

    assert len(_json(locked)["result"]) == 2
    assert _json(redeemed)["result"] == []


def test_left_time_uses_first_namespace(runner, db_path):
    _, x_hash = generate_secret()
    _seed(db_path, x_hash)

    # Same hash in two namespaces logs a warning; keep stderr quiet.
    result = runner.invoke(
        bridge_cli,
        ["--log-level", "ERROR", "left-time", x_hash, "--now", "1050"]
        + ["--db", str(db_path)],
    )

    assert result.exit_code == 0
    assert _json(result)["result"]["left"] == 50


def test_left_time_unknown_hash(runner, db_path):
    _, x_hash = generate_secret()

    result = runner.invoke(
        bridge_cli, ["left-time", x_hash, "--now", "0", "--db", str(db_path)]
    )

    assert result.exit_code == 1
    assert _json(result)["error"] == "InvalidHash"


def test_rapidity_status(runner, db_path):
    _, x_hash = generate_secret()
    _seed(db_path, x_hash)

    consumed = runner.invoke(
        bridge_cli, ["rapidity", "0x" + "99" * 32, "--db", str(db_path)]
    )
    fresh = runner.invoke(
        bridge_cli, ["rapidity", "0x" + "98" * 32, "--db", str(db_path)]
    )

    assert _json(consumed)["result"]["status"] == "Redeemed"
    assert _json(consumed)["result"]["consumed"] is True
    assert _json(fresh)["result"]["consumed"] is False
