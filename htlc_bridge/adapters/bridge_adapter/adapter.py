from __future__ import annotations

from pathlib import Path
from typing import Any

from htlc_bridge.core.adapters.BaseAdapter import BaseAdapter
from htlc_bridge.core.adapters.decorators import status_tuple
from htlc_bridge.core.bridge.debt import DebtTransfer
from htlc_bridge.core.bridge.events import (
    EventBus,
    ReceiveDebt,
    RedeemAsset,
    RedeemDebt,
    RevokeAsset,
    RevokeDebt,
    SmgHtlcLock,
    SmgHtlcRedeem,
    SmgHtlcRevoke,
    SmgMint,
    SmgRelease,
    TransferAsset,
    UserBurn,
    UserHtlcLock,
    UserHtlcRedeem,
    UserHtlcRevoke,
    UserLock,
)
from htlc_bridge.core.bridge.htlc import HtlcBridge
from htlc_bridge.core.bridge.rapidity import RapidityBridge
from htlc_bridge.core.bridge.token_ledger import InMemoryTokenLedger, TokenLedger
from htlc_bridge.core.bridge.token_pairs import (
    InMemoryTokenPairRegistry,
    TokenPairRegistry,
)
from htlc_bridge.core.constants.bridge import TxKind, TxStatus
from htlc_bridge.core.htlc.ledger import HTLCTxLedger
from htlc_bridge.core.htlc.sqlite_store import SqliteTxStore


class BridgeAdapter(BaseAdapter):
    """Async ``(ok, result)`` facade over the settlement flows of one chain.

    With ``config["db_path"]`` set and no explicit ``ledger``, records persist in
    a sqlite store at that path, the same file the CLI inspects.
    """

    adapter_type: str = "BRIDGE"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        ledger: HTLCTxLedger | None = None,
        token_ledger: TokenLedger | None = None,
        token_pairs: TokenPairRegistry | None = None,
        events: EventBus | None = None,
        chain_id: int | None = None,
    ):
        super().__init__("bridge_adapter", config)
        if chain_id is None:
            chain_id = self.config.get("chain_id")
        if chain_id is None:
            raise ValueError("chain_id is required")
        self.chain_id = int(chain_id)
        self._store: SqliteTxStore | None = None
        if ledger is None and self.config.get("db_path"):
            self._store = SqliteTxStore(Path(self.config["db_path"]).expanduser())
            ledger = HTLCTxLedger(self._store)
        self.ledger = ledger or HTLCTxLedger()
        self.token_ledger = token_ledger or InMemoryTokenLedger()
        self.token_pairs = token_pairs or InMemoryTokenPairRegistry()
        self.events = events or EventBus()
        custody_account = self.config.get("custody_account")
        self.rapidity = RapidityBridge(
            self.ledger,
            self.token_ledger,
            self.token_pairs,
            custody_account=custody_account,
            events=self.events,
        )
        self.htlc = HtlcBridge(
            self.ledger,
            self.token_ledger,
            self.token_pairs,
            chain_id=self.chain_id,
            custody_account=custody_account,
            events=self.events,
        )
        self.debt = DebtTransfer(self.ledger, events=self.events)

    async def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None

    # Rapidity path

    @status_tuple
    async def user_lock(
        self,
        custodian_id: str,
        token_pair_id: int,
        value: int,
        dest_user_account: str,
        *,
        sender: str,
        contract_fee: int = 0,
        fee_recipient: str | None = None,
        native_value: int = 0,
    ) -> UserLock:
        return self.rapidity.user_lock(
            custodian_id,
            token_pair_id,
            value,
            self.chain_id,
            contract_fee,
            dest_user_account,
            fee_recipient,
            sender=sender,
            native_value=native_value,
        )

    @status_tuple
    async def user_burn(
        self,
        custodian_id: str,
        token_pair_id: int,
        value: int,
        dest_user_account: str,
        *,
        sender: str,
        fee: int = 0,
        contract_fee: int = 0,
        fee_recipient: str | None = None,
        native_value: int = 0,
    ) -> UserBurn:
        return self.rapidity.user_burn(
            custodian_id,
            token_pair_id,
            value,
            self.chain_id,
            fee,
            contract_fee,
            dest_user_account,
            fee_recipient,
            sender=sender,
            native_value=native_value,
        )

    @status_tuple
    async def smg_mint(
        self,
        unique_id: str,
        custodian_id: str,
        token_pair_id: int,
        value: int,
        dest_token_account: str,
        dest_user_account: str,
        *,
        fee: int = 0,
        fee_recipient: str | None = None,
    ) -> SmgMint:
        return self.rapidity.smg_mint(
            unique_id,
            custodian_id,
            token_pair_id,
            value,
            fee,
            dest_token_account,
            dest_user_account,
            fee_recipient,
            current_chain_id=self.chain_id,
        )

    @status_tuple
    async def smg_release(
        self,
        unique_id: str,
        custodian_id: str,
        token_pair_id: int,
        value: int,
        dest_token_account: str,
        dest_user_account: str,
        *,
        fee: int = 0,
        fee_recipient: str | None = None,
    ) -> SmgRelease:
        return self.rapidity.smg_release(
            unique_id,
            custodian_id,
            token_pair_id,
            value,
            fee,
            dest_token_account,
            dest_user_account,
            fee_recipient,
            current_chain_id=self.chain_id,
        )

    # Hash-locked path

    @status_tuple
    async def user_htlc_lock(
        self,
        x_hash: str,
        custodian_id: str,
        token_pair_id: int,
        value: int,
        *,
        sender: str,
        now: int,
        locked_time: int | None = None,
        contract_fee: int = 0,
        fee_recipient: str | None = None,
        native_value: int = 0,
    ) -> UserHtlcLock:
        return self.htlc.user_htlc_lock(
            x_hash,
            custodian_id,
            token_pair_id,
            value,
            sender=sender,
            now=now,
            locked_time=locked_time,
            contract_fee=contract_fee,
            fee_recipient=fee_recipient,
            native_value=native_value,
        )

    @status_tuple
    async def smg_htlc_redeem(self, x: str, now: int) -> SmgHtlcRedeem:
        return self.htlc.smg_htlc_redeem(x, now)

    @status_tuple
    async def user_htlc_revoke(self, x_hash: str, now: int) -> UserHtlcRevoke:
        return self.htlc.user_htlc_revoke(x_hash, now)

    @status_tuple
    async def smg_htlc_lock(
        self,
        x_hash: str,
        custodian_id: str,
        token_pair_id: int,
        value: int,
        user_account: str,
        *,
        now: int,
        locked_time: int | None = None,
    ) -> SmgHtlcLock:
        return self.htlc.smg_htlc_lock(
            x_hash,
            custodian_id,
            token_pair_id,
            value,
            user_account,
            now=now,
            locked_time=locked_time,
        )

    @status_tuple
    async def user_htlc_redeem(self, x: str, now: int) -> UserHtlcRedeem:
        return self.htlc.user_htlc_redeem(x, now)

    @status_tuple
    async def smg_htlc_revoke(self, x_hash: str, now: int) -> SmgHtlcRevoke:
        return self.htlc.smg_htlc_revoke(x_hash, now)

    # Storeman handover

    @status_tuple
    async def transfer_asset(
        self,
        x_hash: str,
        source_custodian_id: str,
        dest_custodian_id: str,
        *,
        now: int,
        locked_time: int | None = None,
    ) -> TransferAsset:
        return self.debt.transfer_asset(
            x_hash, source_custodian_id, dest_custodian_id, now=now, locked_time=locked_time
        )

    @status_tuple
    async def receive_debt(
        self,
        x_hash: str,
        source_custodian_id: str,
        dest_custodian_id: str,
        *,
        now: int,
        locked_time: int | None = None,
    ) -> ReceiveDebt:
        return self.debt.receive_debt(
            x_hash, source_custodian_id, dest_custodian_id, now=now, locked_time=locked_time
        )

    @status_tuple
    async def redeem_asset(self, x: str, now: int) -> RedeemAsset:
        return self.debt.redeem_asset(x, now)

    @status_tuple
    async def revoke_asset(self, x_hash: str, now: int) -> RevokeAsset:
        return self.debt.revoke_asset(x_hash, now)

    @status_tuple
    async def redeem_debt(self, x: str, now: int) -> RedeemDebt:
        return self.debt.redeem_debt(x, now)

    @status_tuple
    async def revoke_debt(self, x_hash: str, now: int) -> RevokeDebt:
        return self.debt.revoke_debt(x_hash, now)

    # Queries

    @status_tuple
    async def get_tx_status(self, kind: TxKind | str, x_hash: str) -> TxStatus:
        return self.ledger.tx_status(TxKind(kind), x_hash)

    @status_tuple
    async def get_left_locked_time(self, x_hash: str, now: int) -> int:
        return self.ledger.get_left_locked_time(x_hash, now)

    @status_tuple
    async def get_records(self, x_hash: str) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self.ledger.find_records(x_hash)]
