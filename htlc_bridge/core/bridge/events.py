from __future__ import annotations

from collections import deque
from collections.abc import Callable
from typing import Annotated, Literal

from loguru import logger
from pydantic import BaseModel, Field

from htlc_bridge.core.config import get_event_history_size


class EventBase(BaseModel):
    custodian_id: str
    token_pair_id: int
    value: int


class UserLock(EventBase):
    type: Literal["UserLock"] = "UserLock"
    token_account: str
    contract_fee: int
    dest_user_account: str


class UserBurn(EventBase):
    type: Literal["UserBurn"] = "UserBurn"
    token_account: str
    contract_fee: int
    fee: int
    dest_user_account: str


class SmgMint(EventBase):
    type: Literal["SmgMint"] = "SmgMint"
    unique_id: str
    token_account: str
    dest_user_account: str


class SmgRelease(EventBase):
    type: Literal["SmgRelease"] = "SmgRelease"
    unique_id: str
    token_account: str
    dest_user_account: str


class UserHtlcLock(EventBase):
    type: Literal["UserHtlcLock"] = "UserHtlcLock"
    x_hash: str
    token_account: str
    fee: int
    contract_fee: int
    user_account: str
    dest_user_account: str
    locked_time: int


class SmgHtlcRedeem(EventBase):
    type: Literal["SmgHtlcRedeem"] = "SmgHtlcRedeem"
    x_hash: str
    # Revealed preimage; lets the counterpart redeem on the other chain.
    x: str
    token_account: str


class UserHtlcRevoke(EventBase):
    type: Literal["UserHtlcRevoke"] = "UserHtlcRevoke"
    x_hash: str
    token_account: str
    user_account: str


class SmgHtlcLock(EventBase):
    type: Literal["SmgHtlcLock"] = "SmgHtlcLock"
    x_hash: str
    token_account: str
    user_account: str
    locked_time: int


class UserHtlcRedeem(EventBase):
    type: Literal["UserHtlcRedeem"] = "UserHtlcRedeem"
    x_hash: str
    x: str
    token_account: str
    user_account: str


class SmgHtlcRevoke(EventBase):
    type: Literal["SmgHtlcRevoke"] = "SmgHtlcRevoke"
    x_hash: str


class DebtEventBase(BaseModel):
    x_hash: str
    source_custodian_id: str
    dest_custodian_id: str


class TransferAsset(DebtEventBase):
    type: Literal["TransferAsset"] = "TransferAsset"
    locked_time: int


class RedeemAsset(DebtEventBase):
    type: Literal["RedeemAsset"] = "RedeemAsset"
    x: str


class RevokeAsset(DebtEventBase):
    type: Literal["RevokeAsset"] = "RevokeAsset"


class ReceiveDebt(DebtEventBase):
    type: Literal["ReceiveDebt"] = "ReceiveDebt"
    locked_time: int


class RedeemDebt(DebtEventBase):
    type: Literal["RedeemDebt"] = "RedeemDebt"
    x: str


class RevokeDebt(DebtEventBase):
    type: Literal["RevokeDebt"] = "RevokeDebt"


Event = (
    UserLock
    | UserBurn
    | SmgMint
    | SmgRelease
    | UserHtlcLock
    | SmgHtlcRedeem
    | UserHtlcRevoke
    | SmgHtlcLock
    | UserHtlcRedeem
    | SmgHtlcRevoke
    | TransferAsset
    | RedeemAsset
    | RevokeAsset
    | ReceiveDebt
    | RedeemDebt
    | RevokeDebt
)


class EventEnvelope(BaseModel):
    event: Annotated[Event, Field(discriminator="type")]


class EventBus:
    """Fan-out for settlement events observed by relayers.

    ``history`` keeps only the most recent ``history_size`` events; subscribers
    see every event.
    """

    def __init__(self, history_size: int | None = None) -> None:
        if history_size is None:
            history_size = get_event_history_size()
        self.history: deque[Event] = deque(maxlen=history_size)
        self._subscribers: list[Callable[[Event], None]] = []
        self.logger = logger.bind(component=self.__class__.__name__)

    def subscribe(self, callback: Callable[[Event], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: Event) -> None:
        self.history.append(event)
        self.logger.info(f"{event.type} {event.model_dump_json()}")
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as exc:  # noqa: BLE001
                # Settlement is already committed at this point.
                self.logger.error(f"Event subscriber failed on {event.type}: {exc}")

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.history if e.type == event_type]
