from __future__ import annotations

from typing import ClassVar


class BridgeError(RuntimeError):
    """Base class for every rejected bridge call.

    A raised ``BridgeError`` means the call was aborted as a whole: no record
    was created or transitioned and no funds moved.
    """

    kind: ClassVar[str] = "BridgeError"
    retryable: ClassVar[bool] = False


class DuplicateRecord(BridgeError):
    kind = "DuplicateRecord"

    def __init__(self, key: str, namespace: str):
        self.key = key
        self.namespace = namespace
        super().__init__(f"{namespace} record already exists: {key}")


class StatusNotLocked(BridgeError):
    kind = "StatusNotLocked"

    def __init__(self, key: str, status: str, expected: str | None = None):
        self.key = key
        self.status = status
        self.expected = expected
        msg = f"Record {key} is not locked (status={status})"
        if expected is not None:
            msg += f", expected {expected}"
        super().__init__(msg)


class RedeemTimeout(BridgeError):
    kind = "RedeemTimeout"

    def __init__(self, key: str, deadline: int, now: int):
        self.key = key
        self.deadline = deadline
        self.now = now
        super().__init__(f"Redeem window for {key} closed at {deadline} (now={now})")


class RevokeNotPermitted(BridgeError):
    kind = "RevokeNotPermitted"
    retryable = True

    def __init__(self, key: str, deadline: int, now: int):
        self.key = key
        self.deadline = deadline
        self.now = now
        super().__init__(
            f"Record {key} cannot be revoked before {deadline} (now={now})"
        )


class InvalidHash(BridgeError):
    kind = "InvalidHash"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No record found for hash {key}")


class TokenPairNotFound(BridgeError):
    kind = "TokenPairNotFound"

    def __init__(self, token_pair_id: int):
        self.token_pair_id = token_pair_id
        super().__init__(f"Token pair not found: {token_pair_id}")


class InvalidTokenPair(BridgeError):
    kind = "InvalidTokenPair"

    def __init__(self, token_pair_id: int, message: str):
        self.token_pair_id = token_pair_id
        super().__init__(f"Invalid token pair {token_pair_id}: {message}")


class UnsupportedTokenType(BridgeError):
    kind = "UnsupportedTokenType"

    def __init__(self, token_pair_id: int, cross_type: str):
        self.token_pair_id = token_pair_id
        self.cross_type = cross_type
        super().__init__(
            f"Token pair {token_pair_id} has unsupported cross type {cross_type}"
        )


class CustodyTransferFailed(BridgeError):
    kind = "CustodyTransferFailed"

    def __init__(
        self,
        token: str,
        account: str,
        expected: int,
        actual: int,
        message: str | None = None,
    ):
        self.token = token
        self.account = account
        self.expected = expected
        self.actual = actual
        super().__init__(
            message
            or f"Balance delta mismatch for {account} on {token}: "
            f"expected {expected}, got {actual}"
        )


class InsufficientNativeValue(BridgeError):
    kind = "InsufficientNativeValue"

    def __init__(self, required: int, provided: int):
        self.required = required
        self.provided = provided
        super().__init__(
            f"Native value too low: required {required}, provided {provided}"
        )
