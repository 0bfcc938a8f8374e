from __future__ import annotations


def _require_int(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


def require_non_negative(value: int, name: str) -> int:
    if _require_int(value, name) < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


def require_positive(value: int, name: str) -> int:
    if _require_int(value, name) <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def require_timestamp(now: int) -> int:
    return _require_int(now, "now")
