from htlc_bridge.core.adapters.BaseAdapter import BaseAdapter
from htlc_bridge.core.bridge.debt import DebtTransfer
from htlc_bridge.core.bridge.events import EventBus
from htlc_bridge.core.bridge.htlc import HtlcBridge
from htlc_bridge.core.bridge.rapidity import RapidityBridge
from htlc_bridge.core.constants.bridge import TxKind, TxStatus
from htlc_bridge.core.errors import BridgeError
from htlc_bridge.core.htlc.ledger import HTLCTxLedger

__all__ = [
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
