from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

from htlc_bridge.core.errors import BridgeError

T = TypeVar("T")


def status_tuple(
    fn: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., Coroutine[Any, Any, tuple[bool, T | str]]]:
    """Wrap an async adapter method to return ``(True, result)`` or ``(False, error_str)``.

    Rejected bridge calls (:class:`BridgeError`) are logged as warnings and
    reported as ``"<Kind>: <message>"``; malformed input and unexpected errors
    are logged as errors.
    """

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> tuple[bool, T | str]:
        try:
            result = await fn(self, *args, **kwargs)
            return (True, result)
        except BridgeError as exc:
            self.logger.warning(f"{fn.__name__} rejected: {exc.kind}: {exc}")
            return (False, f"{exc.kind}: {exc}")
        except Exception as exc:
            self.logger.error(f"Error in {fn.__name__}: {exc}")
            return (False, str(exc))

    return wrapper  # type: ignore[return-value]
