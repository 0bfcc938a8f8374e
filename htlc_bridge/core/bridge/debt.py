"""Handover of custodial obligations between storeman groups.

The source group locks its assets for the destination group
(``AssetLocked``) and the destination group acknowledges the debt
(``DebtLocked``). Both legs share ``x_hash`` across chains and resolve with the
same preimage, or are revoked after their windows close.
"""

from __future__ import annotations

from typing import TypeVar

from loguru import logger

from htlc_bridge.core.bridge.events import (
    DebtEventBase,
    EventBus,
    ReceiveDebt,
    RedeemAsset,
    RedeemDebt,
    RevokeAsset,
    RevokeDebt,
    TransferAsset,
)
from htlc_bridge.core.config import get_default_locked_time
from htlc_bridge.core.constants.bridge import TxStatus
from htlc_bridge.core.htlc.ledger import HTLCTxLedger
from htlc_bridge.core.utils.hashing import normalize_bytes32

E = TypeVar("E", bound=DebtEventBase)


class DebtTransfer:
    def __init__(self, ledger: HTLCTxLedger, *, events: EventBus | None = None):
        self.ledger = ledger
        self.events = events if events is not None else EventBus()
        self.logger = logger.bind(component=self.__class__.__name__)

    def _lock(
        self,
        x_hash: str | bytes,
        source_custodian_id: str | bytes,
        dest_custodian_id: str | bytes,
        locked_time: int | None,
        now: int,
        status: TxStatus,
        event_type: type[TransferAsset] | type[ReceiveDebt],
    ) -> TransferAsset | ReceiveDebt:
        locked_time = locked_time if locked_time is not None else get_default_locked_time()
        record = self.ledger.add_debt_tx(
            x_hash,
            source_custodian_id,
            dest_custodian_id,
            locked_time,
            now,
            status=status,
        )
        _, source = self.ledger.get_debt_tx(record.x_hash)
        event = event_type(
            x_hash=record.x_hash,
            source_custodian_id=source,
            dest_custodian_id=record.custodian_id,
            locked_time=locked_time,
        )
        self.events.publish(event)
        return event

    def _fields(self, key: str) -> dict[str, str]:
        dest, source = self.ledger.get_debt_tx(key)
        return {"x_hash": key, "source_custodian_id": source, "dest_custodian_id": dest}

    def _publish(self, event: E) -> E:
        self.events.publish(event)
        return event

    def transfer_asset(
        self,
        x_hash: str | bytes,
        source_custodian_id: str | bytes,
        dest_custodian_id: str | bytes,
        *,
        now: int,
        locked_time: int | None = None,
    ) -> TransferAsset:
        return self._lock(  # type: ignore[return-value]
            x_hash,
            source_custodian_id,
            dest_custodian_id,
            locked_time,
            now,
            TxStatus.ASSET_LOCKED,
            TransferAsset,
        )

    def redeem_asset(self, x: str | bytes, now: int) -> RedeemAsset:
        key = self.ledger.redeem_debt_tx(x, now, TxStatus.ASSET_LOCKED)
        return self._publish(
            RedeemAsset(x=normalize_bytes32(x, name="preimage"), **self._fields(key))
        )

    def revoke_asset(self, x_hash: str | bytes, now: int) -> RevokeAsset:
        key = self.ledger.revoke_debt_tx(x_hash, now, TxStatus.ASSET_LOCKED)
        return self._publish(RevokeAsset(**self._fields(key)))

    def receive_debt(
        self,
        x_hash: str | bytes,
        source_custodian_id: str | bytes,
        dest_custodian_id: str | bytes,
        *,
        now: int,
        locked_time: int | None = None,
    ) -> ReceiveDebt:
        return self._lock(  # type: ignore[return-value]
            x_hash,
            source_custodian_id,
            dest_custodian_id,
            locked_time,
            now,
            TxStatus.DEBT_LOCKED,
            ReceiveDebt,
        )

    def redeem_debt(self, x: str | bytes, now: int) -> RedeemDebt:
        key = self.ledger.redeem_debt_tx(x, now, TxStatus.DEBT_LOCKED)
        return self._publish(
            RedeemDebt(x=normalize_bytes32(x, name="preimage"), **self._fields(key))
        )

    def revoke_debt(self, x_hash: str | bytes, now: int) -> RevokeDebt:
        key = self.ledger.revoke_debt_tx(x_hash, now, TxStatus.DEBT_LOCKED)
        return self._publish(RevokeDebt(**self._fields(key)))
