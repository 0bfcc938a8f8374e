__version__ = "0.1.0"

from htlc_bridge.core import (
    BaseAdapter,
    BridgeError,
    DebtTransfer,
    EventBus,
    HtlcBridge,
    HTLCTxLedger,
    RapidityBridge,
    TxKind,
    TxStatus,
)

__all__ = [
    "__version__",
    "BaseAdapter",
    "BridgeError",
    "DebtTransfer",
    "EventBus",
    "HtlcBridge",
    "HTLCTxLedger",
    "RapidityBridge",
    "TxKind",
    "TxStatus",
]
