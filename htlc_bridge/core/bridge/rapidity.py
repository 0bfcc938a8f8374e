"""Rapidity (fast path) settlement.

Users lock or burn on one chain; the storeman group mints or releases on the
other in a single call guarded by a one-shot ``unique_id``. There is no
hash-lock and no timeout on this path.
"""

from __future__ import annotations

from htlc_bridge.core.bridge.events import SmgMint, SmgRelease, UserBurn, UserLock
from htlc_bridge.core.bridge.settlement import Settlement
from htlc_bridge.core.bridge.token_pairs import resolve_pair_side, resolve_token_account
from htlc_bridge.core.constants.bridge import ZERO_ADDRESS
from htlc_bridge.core.errors import InvalidTokenPair, UnsupportedTokenType
from htlc_bridge.core.utils.addresses import is_zero_address, normalize_address
from htlc_bridge.core.utils.hashing import normalize_bytes32
from htlc_bridge.core.utils.validation import require_non_negative, require_positive


def _require_dest_account(dest_user_account: str) -> str:
    value = str(dest_user_account or "").strip()
    if not value:
        raise ValueError("dest_user_account is required")
    return value


class RapidityBridge(Settlement):
    def user_lock(
        self,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        current_chain_id: int,
        contract_fee: int,
        dest_user_account: str,
        fee_recipient: str | None,
        *,
        sender: str,
        native_value: int = 0,
    ) -> UserLock:
        """Lock ``value`` of the pair's token on this chain for minting on the peer chain."""
        custodian_id = normalize_bytes32(custodian_id, name="custodian_id")
        require_positive(value, "value")
        require_non_negative(contract_fee, "contract_fee")
        require_non_negative(native_value, "native_value")
        dest_user_account = _require_dest_account(dest_user_account)
        sender = normalize_address(sender)

        side = resolve_pair_side(self.token_pairs, token_pair_id, current_chain_id)
        token = side.token_account
        required = self.lock_required_native(token, value, contract_fee)
        self.require_native_value(required, native_value)

        with self.unit_of_work() as pending:
            self.collect_native(
                sender, native_value, required, contract_fee, fee_recipient
            )
            self.take_custody(token, sender, value)
            event = UserLock(
                custodian_id=custodian_id,
                token_pair_id=token_pair_id,
                token_account=token,
                value=value,
                contract_fee=contract_fee,
                dest_user_account=dest_user_account,
            )
            pending.append(event)
        return event

    def user_burn(
        self,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        current_chain_id: int,
        fee: int,
        contract_fee: int,
        dest_user_account: str,
        fee_recipient: str | None,
        *,
        sender: str,
        native_value: int = 0,
    ) -> UserBurn:
        """Burn ``value`` of the shadow token for release on the peer chain."""
        custodian_id = normalize_bytes32(custodian_id, name="custodian_id")
        require_positive(value, "value")
        require_non_negative(fee, "fee")
        require_non_negative(contract_fee, "contract_fee")
        require_non_negative(native_value, "native_value")
        dest_user_account = _require_dest_account(dest_user_account)
        sender = normalize_address(sender)

        side = resolve_pair_side(self.token_pairs, token_pair_id, current_chain_id)
        token = side.token_account
        if token == ZERO_ADDRESS:
            raise UnsupportedTokenType(token_pair_id, "native coin cannot be burned")
        self.require_native_value(contract_fee, native_value)

        with self.unit_of_work() as pending:
            self.collect_native(
                sender, native_value, contract_fee, contract_fee, fee_recipient
            )
            self.custody.burn(token, sender, value)
            event = UserBurn(
                custodian_id=custodian_id,
                token_pair_id=token_pair_id,
                token_account=token,
                value=value,
                contract_fee=contract_fee,
                fee=fee,
                dest_user_account=dest_user_account,
            )
            pending.append(event)
        return event

    def smg_mint(
        self,
        unique_id: str | bytes,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        fee: int,
        dest_token_account: str,
        dest_user_account: str,
        fee_recipient: str | None,
        *,
        current_chain_id: int | None = None,
    ) -> SmgMint:
        """Mint the shadow token to ``dest_user_account`` for a lock seen on the peer chain."""
        custodian_id = normalize_bytes32(custodian_id, name="custodian_id")
        require_positive(value, "value")
        require_non_negative(fee, "fee")
        user = normalize_address(dest_user_account)

        side = resolve_token_account(
            self.token_pairs, token_pair_id, dest_token_account, current_chain_id
        )
        token = side.token_account
        if token == ZERO_ADDRESS:
            raise InvalidTokenPair(token_pair_id, "native coin cannot be minted")

        with self.unit_of_work() as pending:
            key = self.ledger.add_rapidity_tx(unique_id)
            if fee > 0 and not is_zero_address(fee_recipient):
                self.custody.mint(token, normalize_address(fee_recipient), fee)
            self.custody.mint(token, user, value)
            event = SmgMint(
                unique_id=key,
                custodian_id=custodian_id,
                token_pair_id=token_pair_id,
                value=value,
                token_account=token,
                dest_user_account=user,
            )
            pending.append(event)
        return event

    def smg_release(
        self,
        unique_id: str | bytes,
        custodian_id: str | bytes,
        token_pair_id: int,
        value: int,
        fee: int,
        dest_token_account: str,
        dest_user_account: str,
        fee_recipient: str | None,
        *,
        current_chain_id: int | None = None,
    ) -> SmgRelease:
        """Release custodied funds to ``dest_user_account`` for a burn seen on the peer chain."""
        custodian_id = normalize_bytes32(custodian_id, name="custodian_id")
        require_positive(value, "value")
        require_non_negative(fee, "fee")
        user = normalize_address(dest_user_account)

        side = resolve_token_account(
            self.token_pairs, token_pair_id, dest_token_account, current_chain_id
        )
        token = side.token_account

        with self.unit_of_work() as pending:
            key = self.ledger.add_rapidity_tx(unique_id)
            payee = self.fee_payee(fee, fee_recipient)
            if payee is not None:
                self.release(token, payee, fee)
            self.release(token, user, value)
            event = SmgRelease(
                unique_id=key,
                custodian_id=custodian_id,
                token_pair_id=token_pair_id,
                value=value,
                token_account=token,
                dest_user_account=user,
            )
            pending.append(event)
        return event
