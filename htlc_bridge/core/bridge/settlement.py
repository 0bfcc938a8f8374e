from __future__ import annotations

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager

from loguru import logger

from htlc_bridge.core.bridge.custody import VerifiedLedger
from htlc_bridge.core.bridge.events import Event, EventBus
from htlc_bridge.core.bridge.token_ledger import TokenLedger
from htlc_bridge.core.bridge.token_pairs import TokenPairRegistry
from htlc_bridge.core.config import get_custody_account
from htlc_bridge.core.constants.bridge import ZERO_ADDRESS
from htlc_bridge.core.errors import InsufficientNativeValue
from htlc_bridge.core.htlc.ledger import HTLCTxLedger
from htlc_bridge.core.utils.addresses import (
    is_zero_address,
    normalize_address,
    same_address,
)


class Settlement:
    """Shared custody plumbing for the settlement flows.

    Subclasses run each action inside :meth:`unit_of_work`, which commits the
    record store and the token ledger together and only then publishes the
    action's events.
    """

    def __init__(
        self,
        ledger: HTLCTxLedger,
        token_ledger: TokenLedger,
        token_pairs: TokenPairRegistry,
        *,
        custody_account: str | None = None,
        events: EventBus | None = None,
    ):
        self.ledger = ledger
        self.token_ledger = token_ledger
        self.custody = VerifiedLedger(token_ledger)
        self.token_pairs = token_pairs
        self.custody_account = normalize_address(
            custody_account or get_custody_account()
        )
        self.events = events if events is not None else EventBus()
        self.logger = logger.bind(component=self.__class__.__name__)

    @contextmanager
    def unit_of_work(self) -> Iterator[list[Event]]:
        pending: list[Event] = []
        with ExitStack() as stack:
            stack.enter_context(self.ledger.atomic())
            stack.enter_context(self.token_ledger.atomic())
            yield pending
        for event in pending:
            self.events.publish(event)

    @staticmethod
    def require_native_value(required: int, native_value: int) -> None:
        if native_value < required:
            raise InsufficientNativeValue(required, native_value)

    def collect_native(
        self,
        sender: str,
        native_value: int,
        required: int,
        contract_fee: int,
        fee_recipient: str | None,
    ) -> None:
        """Take ``native_value`` from ``sender``, pay the contract fee, refund the rest."""
        self.custody.transfer(ZERO_ADDRESS, sender, self.custody_account, native_value)
        payee = self.fee_payee(contract_fee, fee_recipient)
        if payee is not None:
            self.custody.transfer(
                ZERO_ADDRESS, self.custody_account, payee, contract_fee
            )
        refund = native_value - required
        if refund > 0:
            self.custody.transfer(ZERO_ADDRESS, self.custody_account, sender, refund)

    def fee_payee(self, fee: int, fee_recipient: str | None) -> str | None:
        """Account a positive fee is paid out to; ``None`` keeps it in custody."""
        if fee <= 0 or is_zero_address(fee_recipient):
            return None
        if same_address(fee_recipient, self.custody_account):
            return None
        return normalize_address(fee_recipient)

    def take_custody(self, token: str, sender: str, value: int) -> None:
        """Escrow ``value`` of ``token``; the native coin arrives via ``collect_native``."""
        if token != ZERO_ADDRESS:
            self.custody.transfer_from(token, sender, self.custody_account, value)

    def release(self, token: str, to: str, value: int) -> None:
        self.custody.transfer(token, self.custody_account, to, value)

    def lock_required_native(self, token: str, value: int, contract_fee: int) -> int:
        return value + contract_fee if token == ZERO_ADDRESS else contract_fee
