from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

from htlc_bridge.core.constants.bridge import TokenCrossType
from htlc_bridge.core.errors import (
    InvalidTokenPair,
    TokenPairNotFound,
    UnsupportedTokenType,
)
from htlc_bridge.core.utils.addresses import normalize_address


@dataclass(frozen=True)
class TokenPairInfo:
    origin_chain_id: int
    origin_token_account: str
    destination_chain_id: int
    destination_token_account: str


@dataclass(frozen=True)
class PairSide:
    """One chain's view of a token pair."""

    token_pair_id: int
    chain_id: int
    token_account: str
    peer_chain_id: int
    is_origin: bool


class TokenPairRegistry(Protocol):
    def get_token_pair_info(self, token_pair_id: int) -> TokenPairInfo | None: ...

    def get_token_cross_type(self, token_pair_id: int) -> TokenCrossType: ...


class InMemoryTokenPairRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pairs: dict[int, tuple[TokenPairInfo, TokenCrossType]] = {}

    def register(
        self,
        token_pair_id: int,
        info: TokenPairInfo,
        cross_type: TokenCrossType = TokenCrossType.FUNGIBLE,
    ) -> None:
        info = TokenPairInfo(
            origin_chain_id=int(info.origin_chain_id),
            origin_token_account=normalize_address(info.origin_token_account),
            destination_chain_id=int(info.destination_chain_id),
            destination_token_account=normalize_address(
                info.destination_token_account
            ),
        )
        with self._lock:
            self._pairs[int(token_pair_id)] = (info, TokenCrossType(cross_type))

    def get_token_pair_info(self, token_pair_id: int) -> TokenPairInfo | None:
        with self._lock:
            entry = self._pairs.get(int(token_pair_id))
        return entry[0] if entry is not None else None

    def get_token_cross_type(self, token_pair_id: int) -> TokenCrossType:
        with self._lock:
            entry = self._pairs.get(int(token_pair_id))
        if entry is None:
            raise TokenPairNotFound(token_pair_id)
        return entry[1]


def _fungible_pair(registry: TokenPairRegistry, token_pair_id: int) -> TokenPairInfo:
    info = registry.get_token_pair_info(token_pair_id)
    if info is None:
        raise TokenPairNotFound(token_pair_id)
    cross_type = TokenCrossType(registry.get_token_cross_type(token_pair_id))
    if cross_type != TokenCrossType.FUNGIBLE:
        raise UnsupportedTokenType(token_pair_id, str(cross_type))
    return info


def resolve_pair_side(
    registry: TokenPairRegistry, token_pair_id: int, current_chain_id: int
) -> PairSide:
    info = _fungible_pair(registry, token_pair_id)
    chain_id = int(current_chain_id)
    if chain_id == info.origin_chain_id:
        return PairSide(
            token_pair_id=token_pair_id,
            chain_id=chain_id,
            token_account=normalize_address(info.origin_token_account),
            peer_chain_id=info.destination_chain_id,
            is_origin=True,
        )
    if chain_id == info.destination_chain_id:
        return PairSide(
            token_pair_id=token_pair_id,
            chain_id=chain_id,
            token_account=normalize_address(info.destination_token_account),
            peer_chain_id=info.origin_chain_id,
            is_origin=False,
        )
    raise InvalidTokenPair(
        token_pair_id, f"chain {chain_id} is neither origin nor destination"
    )


def resolve_token_account(
    registry: TokenPairRegistry,
    token_pair_id: int,
    token_account: str,
    current_chain_id: int | None = None,
) -> PairSide:
    """Side of the pair whose token is ``token_account``."""
    info = _fungible_pair(registry, token_pair_id)
    account = normalize_address(token_account)
    candidates = []
    if account == normalize_address(info.origin_token_account):
        candidates.append(info.origin_chain_id)
    if account == normalize_address(info.destination_token_account):
        candidates.append(info.destination_chain_id)
    if not candidates:
        raise InvalidTokenPair(
            token_pair_id, f"token {account} does not belong to the pair"
        )
    if current_chain_id is not None:
        if int(current_chain_id) not in candidates:
            raise InvalidTokenPair(
                token_pair_id,
                f"token {account} is not the pair's token on chain {current_chain_id}",
            )
        return resolve_pair_side(registry, token_pair_id, int(current_chain_id))
    return resolve_pair_side(registry, token_pair_id, candidates[0])
