"""Hash-locked escrow settlement for one chain.

User-initiated: the user escrows funds under ``x_hash`` (UserTx); the storeman
redeems with ``x`` inside the window, otherwise the user revokes afterwards
and is refunded. On the pair's destination chain a redeemed escrow of shadow
tokens is burned; on the origin chain it stays in custody.

Storeman-initiated: the storeman records a SmgTx for a user; the user redeems
with ``x`` and receives released (origin) or minted (destination) funds, or the
storeman revokes after the window.
"""

from __future__ import annotations

from htlc_bridge.core.bridge.events import (
    EventBus,
    SmgHtlcLock,
    SmgHtlcRedeem,
    SmgHtlcRevoke,
    UserHtlcLock,
    UserHtlcRedeem,
    UserHtlcRevoke,
)
from htlc_bridge.core.bridge.settlement import Settlement
from htlc_bridge.core.bridge.token_ledger import TokenLedger
from htlc_bridge.core.bridge.token_pairs import (
    PairSide,
    TokenPairRegistry,
    resolve_pair_side,
)
from htlc_bridge.core.config import get_default_locked_time
from htlc_bridge.core.constants.bridge import ZERO_ADDRESS, TxKind
from htlc_bridge.core.errors import InvalidTokenPair
from htlc_bridge.core.htlc.ledger import HTLCTxLedger
from htlc_bridge.core.htlc.records import SmgTxData, TxRecord, UserTxData
from htlc_bridge.core.utils.addresses import normalize_address
from htlc_bridge.core.utils.hashing import normalize_bytes32
from htlc_bridge.core.utils.validation import require_non_negative, require_positive


class HtlcBridge(Settlement):
    def __init__(
        self,
        ledger: HTLCTxLedger,
        token_ledger: TokenLedger,
        token_pairs: TokenPairRegistry,
        *,
        chain_id: int,
        custody_account: str | None = None,
        events: EventBus | None = None,
    ):
        super().__init__(
            ledger,
            token_ledger,
            token_pairs,
            custody_account=custody_account,
            events=events,
        )
        self.chain_id = int(chain_id)

    def _side(self, token_pair_id: int) -> PairSide:
        return resolve_pair_side(self.token_pairs, token_pair_id, self.chain_id)

    def _record(self, kind: TxKind, x_hash: str) -> TxRecord:
        record = self.ledger.get_record(kind, x_hash)
        if record is None:
            raise RuntimeError(f"{kind} record {x_hash} vanished inside a transition")
        return record

    # ------------------------------------------------------------------
    # User-initiated escrow
    # ------------------------------------------------------------------

    def user_htlc_lock(
        self,
        x_hash: str | bytes,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        *,
        sender: str,
        now: int,
        locked_time: int | None = None,
        fee: int = 0,
        contract_fee: int = 0,
        fee_recipient: str | None = None,
        native_value: int = 0,
        dest_user_account: str = "",
    ) -> UserHtlcLock:
        require_positive(value, "value")
        require_non_negative(contract_fee, "contract_fee")
        require_non_negative(native_value, "native_value")
        locked_time = locked_time if locked_time is not None else get_default_locked_time()
        sender = normalize_address(sender)
        dest_user_account = normalize_address(dest_user_account or sender)

        side = self._side(token_pair_id)
        token = side.token_account
        if not side.is_origin and token == ZERO_ADDRESS:
            raise InvalidTokenPair(token_pair_id, "native coin cannot be burned")
        required = self.lock_required_native(token, value, contract_fee)
        self.require_native_value(required, native_value)

        with self.unit_of_work() as pending:
            record = self.ledger.add_user_tx(
                x_hash,
                custodian_id,
                token_pair_id,
                value,
                fee,
                locked_time,
                sender,
                now,
            )
            self.collect_native(
                sender, native_value, required, contract_fee, fee_recipient
            )
            self.take_custody(token, sender, value)
            event = UserHtlcLock(
                x_hash=record.x_hash,
                custodian_id=record.custodian_id,
                token_pair_id=token_pair_id,
                value=value,
                token_account=token,
                fee=fee,
                contract_fee=contract_fee,
                user_account=sender,
                dest_user_account=dest_user_account,
                locked_time=locked_time,
            )
            pending.append(event)
        return event

    def smg_htlc_redeem(self, x: str | bytes, now: int) -> SmgHtlcRedeem:
        with self.unit_of_work() as pending:
            key = self.ledger.redeem_user_tx(x, now)
            record = self._record(TxKind.USER, key)
            data: UserTxData = record.payload  # type: ignore[assignment]
            side = self._side(data.token_pair_id)
            if not side.is_origin:
                if side.token_account == ZERO_ADDRESS:
                    raise InvalidTokenPair(
                        data.token_pair_id, "native coin cannot be burned"
                    )
                self.custody.burn(side.token_account, self.custody_account, data.value)
            event = SmgHtlcRedeem(
                x_hash=key,
                x=normalize_bytes32(x, name="preimage"),
                custodian_id=record.custodian_id,
                token_pair_id=data.token_pair_id,
                value=data.value,
                token_account=side.token_account,
            )
            pending.append(event)
        return event

    def user_htlc_revoke(self, x_hash: str | bytes, now: int) -> UserHtlcRevoke:
        with self.unit_of_work() as pending:
            key = self.ledger.revoke_user_tx(x_hash, now)
            record = self._record(TxKind.USER, key)
            data: UserTxData = record.payload  # type: ignore[assignment]
            side = self._side(data.token_pair_id)
            self.release(side.token_account, data.user_account, data.value)
            event = UserHtlcRevoke(
                x_hash=key,
                custodian_id=record.custodian_id,
                token_pair_id=data.token_pair_id,
                value=data.value,
                token_account=side.token_account,
                user_account=data.user_account,
            )
            pending.append(event)
        return event

    # ------------------------------------------------------------------
    # Storeman-initiated escrow
    # ------------------------------------------------------------------

    def smg_htlc_lock(
        self,
        x_hash: str | bytes,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        user_account: str,
        *,
        now: int,
        locked_time: int | None = None,
    ) -> SmgHtlcLock:
        require_positive(value, "value")
        locked_time = locked_time if locked_time is not None else get_default_locked_time()
        side = self._side(token_pair_id)
        if not side.is_origin and side.token_account == ZERO_ADDRESS:
            raise InvalidTokenPair(token_pair_id, "native coin cannot be minted")

        with self.unit_of_work() as pending:
            record = self.ledger.add_smg_tx(
                x_hash, custodian_id, token_pair_id, value, user_account, locked_time, now
            )
            data: SmgTxData = record.payload  # type: ignore[assignment]
            event = SmgHtlcLock(
                x_hash=record.x_hash,
                custodian_id=record.custodian_id,
                token_pair_id=token_pair_id,
                value=value,
                token_account=side.token_account,
                user_account=data.user_account,
                locked_time=locked_time,
            )
            pending.append(event)
        return event

    def user_htlc_redeem(self, x: str | bytes, now: int) -> UserHtlcRedeem:
        with self.unit_of_work() as pending:
            key = self.ledger.redeem_smg_tx(x, now)
            record = self._record(TxKind.SMG, key)
            data: SmgTxData = record.payload  # type: ignore[assignment]
            side = self._side(data.token_pair_id)
            if side.is_origin:
                self.release(side.token_account, data.user_account, data.value)
            else:
                self.custody.mint(side.token_account, data.user_account, data.value)
            event = UserHtlcRedeem(
                x_hash=key,
                x=normalize_bytes32(x, name="preimage"),
                custodian_id=record.custodian_id,
                token_pair_id=data.token_pair_id,
                value=data.value,
                token_account=side.token_account,
                user_account=data.user_account,
            )
            pending.append(event)
        return event

    def smg_htlc_revoke(self, x_hash: str | bytes, now: int) -> SmgHtlcRevoke:
        with self.unit_of_work() as pending:
            key = self.ledger.revoke_smg_tx(x_hash, now)
            record = self._record(TxKind.SMG, key)
            data: SmgTxData = record.payload  # type: ignore[assignment]
            event = SmgHtlcRevoke(
                x_hash=key,
                custodian_id=record.custodian_id,
                token_pair_id=data.token_pair_id,
                value=data.value,
            )
            pending.append(event)
        return event
