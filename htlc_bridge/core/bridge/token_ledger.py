from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from loguru import logger

from htlc_bridge.core.utils.addresses import normalize_address


class TokenLedger(Protocol):
    """Token balances the bridge moves custody through.

    The zero address as ``token`` denotes the chain's native coin. Return
    values are advisory: callers verify every movement via ``balance_of``.
    """

    def balance_of(self, token: str, account: str) -> int: ...

    def transfer(self, token: str, sender: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, token: str, owner: str, to: str, amount: int) -> bool: ...

    def mint(self, token: str, to: str, amount: int) -> bool: ...

    def burn(self, token: str, owner: str, amount: int) -> bool: ...

    def atomic(self) -> AbstractContextManager[None]: ...


class InMemoryTokenLedger:
    """Reference ledger used for simulation and tests."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._balances: dict[tuple[str, str], int] = {}
        self.logger = logger.bind(component=self.__class__.__name__)

    @staticmethod
    def _key(token: str, account: str) -> tuple[str, str]:
        return normalize_address(token), normalize_address(account)

    def balance_of(self, token: str, account: str) -> int:
        with self._lock:
            return self._balances.get(self._key(token, account), 0)

    def _move(self, token: str, sender: str, to: str, amount: int) -> bool:
        src = self._key(token, sender)
        dst = self._key(token, to)
        with self._lock:
            if amount < 0 or self._balances.get(src, 0) < amount:
                return False
            self._balances[src] = self._balances.get(src, 0) - amount
            self._balances[dst] = self._balances.get(dst, 0) + amount
        return True

    def transfer(self, token: str, sender: str, to: str, amount: int) -> bool:
        return self._move(token, sender, to, amount)

    def transfer_from(self, token: str, owner: str, to: str, amount: int) -> bool:
        return self._move(token, owner, to, amount)

    def mint(self, token: str, to: str, amount: int) -> bool:
        if amount < 0:
            return False
        key = self._key(token, to)
        with self._lock:
            self._balances[key] = self._balances.get(key, 0) + amount
        return True

    def burn(self, token: str, owner: str, amount: int) -> bool:
        key = self._key(token, owner)
        with self._lock:
            if amount < 0 or self._balances.get(key, 0) < amount:
                return False
            self._balances[key] -= amount
        return True

    def total_supply(self, token: str) -> int:
        token = normalize_address(token)
        with self._lock:
            return sum(v for (t, _), v in self._balances.items() if t == token)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            snapshot = dict(self._balances)
            try:
                yield
            except BaseException:
                self._balances = snapshot
                self.logger.debug("Rolled back token ledger")
                raise
