from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from htlc_bridge.core.config import get_state_dir_setting


def find_repo_root(*, start: Path | None = None) -> Path:
    cur = (start or Path.cwd()).resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return cur


@dataclass(frozen=True)
class BridgePaths:
    repo_root: Path
    state_dir: Path
    db_path: Path


def get_bridge_paths(*, repo_root: Path | None = None) -> BridgePaths:
    root = (repo_root or find_repo_root()).resolve()
    state_dir_override = os.environ.get("HTLC_BRIDGE_STATE_DIR")
    sd = Path(state_dir_override or get_state_dir_setting()).expanduser()
    if not sd.is_absolute():
        sd = root / sd
    state_dir = sd.resolve()
    return BridgePaths(
        repo_root=root,
        state_dir=state_dir,
        db_path=state_dir / "state.db",
    )
