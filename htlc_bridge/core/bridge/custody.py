"""Balance-delta verified token movements.

Non-standard tokens may report success while moving less (or nothing), e.g.
fee-on-transfer tokens. Every movement here re-reads ``balance_of`` before
and after and only returns once the signed delta equals the requested amount,
so the amount recorded for a cross-chain mirror is always the amount that moved.
"""

from __future__ import annotations

from loguru import logger

from htlc_bridge.core.bridge.token_ledger import TokenLedger
from htlc_bridge.core.errors import CustodyTransferFailed
from htlc_bridge.core.utils.addresses import normalize_address, same_address


class VerifiedLedger:
    def __init__(self, ledger: TokenLedger):
        self.ledger = ledger
        self.logger = logger.bind(component=self.__class__.__name__)

    def balance_of(self, token: str, account: str) -> int:
        return int(self.ledger.balance_of(token, account))

    def _check(
        self,
        op: str,
        token: str,
        account: str,
        amount: int,
        ok: bool,
        before: int,
        after: int,
        *,
        credit: bool = True,
    ) -> int:
        # Signed: a movement in the wrong direction never matches ``amount``.
        delta = after - before if credit else before - after
        if not ok:
            raise CustodyTransferFailed(
                token,
                account,
                amount,
                delta,
                message=f"{op} of {amount} on {token} for {account} was rejected",
            )
        if delta != amount:
            raise CustodyTransferFailed(token, account, amount, delta)
        self.logger.debug(f"{op} {amount} of {token} verified for {account}")
        return delta

    @staticmethod
    def _require_distinct(
        op: str, token: str, source: str, to: str, amount: int
    ) -> None:
        if same_address(source, to):
            raise CustodyTransferFailed(
                token,
                to,
                amount,
                0,
                message=f"{op} of {amount} on {token} from {source} to itself",
            )

    def transfer(self, token: str, sender: str, to: str, amount: int) -> int:
        token, sender, to = (normalize_address(a) for a in (token, sender, to))
        if amount == 0:
            return 0
        self._require_distinct("transfer", token, sender, to, amount)
        before = self.balance_of(token, to)
        ok = self.ledger.transfer(token, sender, to, amount)
        return self._check(
            "transfer", token, to, amount, ok, before, self.balance_of(token, to)
        )

    def transfer_from(self, token: str, owner: str, to: str, amount: int) -> int:
        token, owner, to = (normalize_address(a) for a in (token, owner, to))
        if amount == 0:
            return 0
        self._require_distinct("transfer_from", token, owner, to, amount)
        before = self.balance_of(token, to)
        ok = self.ledger.transfer_from(token, owner, to, amount)
        return self._check(
            "transfer_from", token, to, amount, ok, before, self.balance_of(token, to)
        )

    def mint(self, token: str, to: str, amount: int) -> int:
        token, to = normalize_address(token), normalize_address(to)
        if amount == 0:
            return 0
        before = self.balance_of(token, to)
        ok = self.ledger.mint(token, to, amount)
        return self._check(
            "mint", token, to, amount, ok, before, self.balance_of(token, to)
        )

    def burn(self, token: str, owner: str, amount: int) -> int:
        token, owner = normalize_address(token), normalize_address(owner)
        if amount == 0:
            return 0
        before = self.balance_of(token, owner)
        ok = self.ledger.burn(token, owner, amount)
        return self._check(
            "burn",
            token,
            owner,
            amount,
            ok,
            before,
            self.balance_of(token, owner),
            credit=False,
        )
