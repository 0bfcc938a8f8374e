from __future__ import annotations

import pytest

from htlc_bridge.core.bridge.events import EventBus
from htlc_bridge.core.bridge.token_ledger import InMemoryTokenLedger
from htlc_bridge.core.constants.bridge import ZERO_ADDRESS, TxStatus
from htlc_bridge.core.errors import (
    CustodyTransferFailed,
    DuplicateRecord,
    InsufficientNativeValue,
    InvalidTokenPair,
    TokenPairNotFound,
    UnsupportedTokenType,
)
from htlc_bridge.core.utils.addresses import normalize_address
from htlc_bridge.testing.chains import (
    CUSTODY,
    DEST_CHAIN_ID,
    FEE_RECIPIENT,
    MULTI_TOKEN_PAIR_ID,
    NATIVE_PAIR_ID,
    ORIGIN_CHAIN_ID,
    ORIGIN_TOKEN,
    PAIR_ID,
    PEER_USER,
    SHADOW_TOKEN,
    SMG_ID,
    USER,
    make_chain_env,
)

UNIQUE_ID = "0x" + "01" * 32


class FeeOnTransferLedger(InMemoryTokenLedger):
    """Skims one unit from every ``transfer_from`` while reporting success."""

    def transfer_from(self, token, owner, to, amount):
        if not super().transfer_from(token, owner, to, amount):
            return False
        return self.burn(token, to, 1)


class DrainingLedger(InMemoryTokenLedger):
    """``transfer_from`` burns ``amount`` from the recipient and reports success."""

    def transfer_from(self, token, owner, to, amount):
        return self.burn(token, to, amount)


def _user_lock(env, value, **kwargs):
    kwargs.setdefault("sender", USER)
    return env.rapidity.user_lock(
        SMG_ID,
        kwargs.pop("token_pair_id", PAIR_ID),
        value,
        env.chain_id,
        kwargs.pop("contract_fee", 0),
        kwargs.pop("dest_user_account", PEER_USER),
        kwargs.pop("fee_recipient", None),
        **kwargs,
    )


class TestUserLock:
    def test_lock_moves_tokens_into_custody(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, USER, 1_000)

        event = _user_lock(origin_env, 400)

        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, USER) == 600
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 400
        assert event.type == "UserLock"
        assert event.token_account == normalize_address(ORIGIN_TOKEN)
        assert event.dest_user_account == PEER_USER
        assert list(origin_env.events.history) == [event]

    def test_native_lock_pays_fee_and_refunds_excess(self, origin_env):
        origin_env.tokens.mint(ZERO_ADDRESS, USER, 10_000)

        event = _user_lock(
            origin_env,
            1_000,
            token_pair_id=NATIVE_PAIR_ID,
            contract_fee=10,
            fee_recipient=FEE_RECIPIENT,
            native_value=1_500,
        )

        assert event.token_account == ZERO_ADDRESS
        assert origin_env.tokens.balance_of(ZERO_ADDRESS, USER) == 8_990
        assert origin_env.tokens.balance_of(ZERO_ADDRESS, CUSTODY) == 1_000
        assert origin_env.tokens.balance_of(ZERO_ADDRESS, FEE_RECIPIENT) == 10

    def test_native_lock_requires_value_plus_fee(self, origin_env):
        origin_env.tokens.mint(ZERO_ADDRESS, USER, 10_000)

        with pytest.raises(InsufficientNativeValue) as exc_info:
            _user_lock(
                origin_env,
                1_000,
                token_pair_id=NATIVE_PAIR_ID,
                contract_fee=10,
                native_value=1_009,
            )
        assert exc_info.value.required == 1_010
        assert origin_env.tokens.balance_of(ZERO_ADDRESS, USER) == 10_000

    def test_multi_token_pair_is_unsupported(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, USER, 1_000)

        with pytest.raises(UnsupportedTokenType):
            _user_lock(origin_env, 400, token_pair_id=MULTI_TOKEN_PAIR_ID)

        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, USER) == 1_000
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 0
        assert list(origin_env.events.history) == []

    def test_unknown_pair(self, origin_env):
        with pytest.raises(TokenPairNotFound):
            _user_lock(origin_env, 1, token_pair_id=999)

    def test_chain_outside_pair(self):
        env = make_chain_env(56)
        with pytest.raises(InvalidTokenPair):
            _user_lock(env, 1)

    def test_fee_on_transfer_token_aborts_whole_call(self):
        env = make_chain_env(ORIGIN_CHAIN_ID, tokens=FeeOnTransferLedger())
        env.tokens.mint(ORIGIN_TOKEN, USER, 1_000)

        with pytest.raises(CustodyTransferFailed) as exc_info:
            _user_lock(env, 400)

        assert exc_info.value.expected == 400
        assert exc_info.value.actual == 399
        assert env.tokens.balance_of(ORIGIN_TOKEN, USER) == 1_000
        assert env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 0
        assert list(env.events.history) == []

    def test_transfer_that_debits_custody_aborts_lock(self):
        env = make_chain_env(ORIGIN_CHAIN_ID, tokens=DrainingLedger())
        env.tokens.mint(ORIGIN_TOKEN, USER, 1_000)
        env.tokens.mint(ORIGIN_TOKEN, CUSTODY, 1_000)

        with pytest.raises(CustodyTransferFailed) as exc_info:
            _user_lock(env, 400)

        assert (exc_info.value.expected, exc_info.value.actual) == (400, -400)
        assert env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 1_000
        assert env.tokens.total_supply(ORIGIN_TOKEN) == 2_000
        assert list(env.events.history) == []

    def test_lock_from_custody_account_is_rejected(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, CUSTODY, 1_000)

        with pytest.raises(CustodyTransferFailed, match="to itself"):
            _user_lock(origin_env, 400, sender=CUSTODY)

        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 1_000
        assert list(origin_env.events.history) == []

    def test_rejected_transfer_is_reported(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, USER, 10)

        with pytest.raises(CustodyTransferFailed, match="rejected"):
            _user_lock(origin_env, 400)

    def test_rejects_empty_destination_and_zero_value(self, origin_env):
        with pytest.raises(ValueError):
            _user_lock(origin_env, 1, dest_user_account="")
        with pytest.raises(ValueError):
            _user_lock(origin_env, 0)


class TestUserBurn:
    def test_burn_reduces_supply(self, dest_env):
        dest_env.tokens.mint(SHADOW_TOKEN, USER, 500)

        event = dest_env.rapidity.user_burn(
            SMG_ID, PAIR_ID, 200, DEST_CHAIN_ID, 3, 0, PEER_USER, None, sender=USER
        )

        assert event.fee == 3
        assert dest_env.tokens.balance_of(SHADOW_TOKEN, USER) == 300
        assert dest_env.tokens.total_supply(SHADOW_TOKEN) == 300

    def test_burn_collects_contract_fee(self, dest_env):
        dest_env.tokens.mint(SHADOW_TOKEN, USER, 500)
        dest_env.tokens.mint(ZERO_ADDRESS, USER, 100)

        dest_env.rapidity.user_burn(
            SMG_ID,
            PAIR_ID,
            200,
            DEST_CHAIN_ID,
            0,
            7,
            PEER_USER,
            FEE_RECIPIENT,
            sender=USER,
            native_value=10,
        )

        assert dest_env.tokens.balance_of(ZERO_ADDRESS, FEE_RECIPIENT) == 7
        assert dest_env.tokens.balance_of(ZERO_ADDRESS, USER) == 93

    def test_native_coin_cannot_be_burned(self, origin_env):
        with pytest.raises(UnsupportedTokenType):
            origin_env.rapidity.user_burn(
                SMG_ID,
                NATIVE_PAIR_ID,
                1,
                ORIGIN_CHAIN_ID,
                0,
                0,
                PEER_USER,
                None,
                sender=USER,
            )

    def test_burn_beyond_balance_rolls_back_fee(self, dest_env):
        dest_env.tokens.mint(SHADOW_TOKEN, USER, 50)
        dest_env.tokens.mint(ZERO_ADDRESS, USER, 100)

        with pytest.raises(CustodyTransferFailed):
            dest_env.rapidity.user_burn(
                SMG_ID,
                PAIR_ID,
                200,
                DEST_CHAIN_ID,
                0,
                7,
                PEER_USER,
                FEE_RECIPIENT,
                sender=USER,
                native_value=7,
            )

        assert dest_env.tokens.balance_of(ZERO_ADDRESS, USER) == 100
        assert dest_env.tokens.balance_of(ZERO_ADDRESS, FEE_RECIPIENT) == 0


class TestSmgMint:
    def test_mint_with_fee_then_replay(self, dest_env):
        event = dest_env.rapidity.smg_mint(
            UNIQUE_ID,
            SMG_ID,
            PAIR_ID,
            1_000,
            10,
            SHADOW_TOKEN,
            PEER_USER,
            FEE_RECIPIENT,
            current_chain_id=DEST_CHAIN_ID,
        )

        assert event.unique_id == UNIQUE_ID
        assert dest_env.tokens.balance_of(SHADOW_TOKEN, PEER_USER) == 1_000
        assert dest_env.tokens.balance_of(SHADOW_TOKEN, FEE_RECIPIENT) == 10
        assert dest_env.ledger.rapidity_status(UNIQUE_ID) == TxStatus.REDEEMED

        with pytest.raises(DuplicateRecord):
            dest_env.rapidity.smg_mint(
                UNIQUE_ID,
                SMG_ID,
                PAIR_ID,
                1_000,
                10,
                SHADOW_TOKEN,
                PEER_USER,
                FEE_RECIPIENT,
                current_chain_id=DEST_CHAIN_ID,
            )
        assert dest_env.tokens.total_supply(SHADOW_TOKEN) == 1_010
        assert len(dest_env.events.of_type("SmgMint")) == 1

    def test_fee_without_recipient_is_not_minted(self, dest_env):
        dest_env.rapidity.smg_mint(
            UNIQUE_ID, SMG_ID, PAIR_ID, 100, 10, SHADOW_TOKEN, PEER_USER, None
        )
        assert dest_env.tokens.total_supply(SHADOW_TOKEN) == 100

    def test_token_must_belong_to_pair(self, dest_env):
        with pytest.raises(InvalidTokenPair):
            dest_env.rapidity.smg_mint(
                UNIQUE_ID, SMG_ID, PAIR_ID, 100, 0, "0x" + "de" * 20, PEER_USER, None
            )
        assert dest_env.ledger.rapidity_status(UNIQUE_ID) == TxStatus.NONE

    def test_token_must_match_current_chain(self, dest_env):
        with pytest.raises(InvalidTokenPair):
            dest_env.rapidity.smg_mint(
                UNIQUE_ID,
                SMG_ID,
                PAIR_ID,
                100,
                0,
                ORIGIN_TOKEN,
                PEER_USER,
                None,
                current_chain_id=DEST_CHAIN_ID,
            )


class TestSmgRelease:
    def test_release_from_custody(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, CUSTODY, 2_000)

        event = origin_env.rapidity.smg_release(
            UNIQUE_ID,
            SMG_ID,
            PAIR_ID,
            500,
            5,
            ORIGIN_TOKEN,
            PEER_USER,
            FEE_RECIPIENT,
            current_chain_id=ORIGIN_CHAIN_ID,
        )

        assert event.type == "SmgRelease"
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, PEER_USER) == 500
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, FEE_RECIPIENT) == 5
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 1_495

    def test_short_custody_leaves_guard_unconsumed(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, CUSTODY, 100)

        with pytest.raises(CustodyTransferFailed):
            origin_env.rapidity.smg_release(
                UNIQUE_ID,
                SMG_ID,
                PAIR_ID,
                500,
                5,
                ORIGIN_TOKEN,
                PEER_USER,
                FEE_RECIPIENT,
            )

        assert origin_env.ledger.rapidity_status(UNIQUE_ID) == TxStatus.NONE
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 100
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, FEE_RECIPIENT) == 0

    def test_release_to_custody_account_is_rejected(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, CUSTODY, 1_000)

        with pytest.raises(CustodyTransferFailed, match="to itself"):
            origin_env.rapidity.smg_release(
                UNIQUE_ID, SMG_ID, PAIR_ID, 500, 0, ORIGIN_TOKEN, CUSTODY, None
            )

        assert origin_env.ledger.rapidity_status(UNIQUE_ID) == TxStatus.NONE
        assert origin_env.events.of_type("SmgRelease") == []

    def test_fee_addressed_to_custody_stays_in_custody(self, origin_env):
        origin_env.tokens.mint(ORIGIN_TOKEN, CUSTODY, 2_000)

        origin_env.rapidity.smg_release(
            UNIQUE_ID, SMG_ID, PAIR_ID, 500, 5, ORIGIN_TOKEN, PEER_USER, CUSTODY
        )

        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, PEER_USER) == 500
        assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 1_500

    def test_native_release(self, origin_env):
        origin_env.tokens.mint(ZERO_ADDRESS, CUSTODY, 1_000)

        origin_env.rapidity.smg_release(
            UNIQUE_ID, SMG_ID, NATIVE_PAIR_ID, 300, 0, ZERO_ADDRESS, PEER_USER, None
        )
        assert origin_env.tokens.balance_of(ZERO_ADDRESS, PEER_USER) == 300


def test_subscriber_failure_does_not_undo_settlement(origin_env):
    seen = []
    origin_env.events.subscribe(seen.append)

    def boom(_event):
        raise RuntimeError("relayer down")

    origin_env.events.subscribe(boom)
    origin_env.tokens.mint(ORIGIN_TOKEN, USER, 10)

    _user_lock(origin_env, 10)

    assert [e.type for e in seen] == ["UserLock"]
    assert origin_env.tokens.balance_of(ORIGIN_TOKEN, CUSTODY) == 10


def test_event_history_keeps_only_latest_events(origin_env):
    origin_env.tokens.mint(ORIGIN_TOKEN, USER, 30)
    locks = [_user_lock(origin_env, 10) for _ in range(3)]

    bus = EventBus(history_size=2)
    seen = []
    bus.subscribe(seen.append)
    for event in locks:
        bus.publish(event)

    assert list(bus.history) == locks[1:]
    assert seen == locks
    assert bus.of_type("UserLock") == locks[1:]
