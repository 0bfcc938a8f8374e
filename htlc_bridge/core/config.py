import json
import os
from pathlib import Path
from typing import Any

from htlc_bridge.core.constants.bridge import (
    DEFAULT_CUSTODY_ACCOUNT,
    DEFAULT_EVENT_HISTORY,
    DEFAULT_LOCKED_TIME_S,
    DEFAULT_STATE_DIRNAME,
)

_CONFIG_ENV_KEYS = ("HTLC_BRIDGE_CONFIG_PATH", "HTLC_BRIDGE_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        data = json.loads(cfg_path.read_text())
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def _bridge_section() -> dict[str, Any]:
    section = CONFIG.get("bridge", {})
    return section if isinstance(section, dict) else {}


def get_default_locked_time() -> int:
    value = _bridge_section().get("default_locked_time")
    if value is None:
        return DEFAULT_LOCKED_TIME_S
    locked_time = int(value)
    if locked_time <= 0:
        raise ValueError("bridge.default_locked_time must be positive")
    return locked_time


def get_custody_account() -> str:
    account = _bridge_section().get("custody_account")
    if account:
        return str(account).strip()
    return DEFAULT_CUSTODY_ACCOUNT


def get_state_dir_setting() -> str:
    state_dir = _bridge_section().get("state_dir")
    if state_dir:
        return str(state_dir).strip()
    return DEFAULT_STATE_DIRNAME



def get_event_history_size() -> int:
    value = _bridge_section().get("event_history")
    if value is None:
        return DEFAULT_EVENT_HISTORY
    size = int(value)
    if size < 0:
        raise ValueError("bridge.event_history must be non-negative")
    return size
