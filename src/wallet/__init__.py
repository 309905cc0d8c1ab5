"""
Wallet connection for private-funding.

Modules:
- connectors: connector protocol and the JSON-RPC (EIP-1193) implementation
- session: the ConnectionSession owning the Session snapshot
- preferences: remembered last-used connector
"""

from .connectors import (
    ConnectResult,
    ConnectorNotFoundError,
    JsonRpcWalletConnector,
    UserRejectedError,
    WalletConnector,
    WalletError,
    WalletNotConnectedError,
)
from .preferences import ConnectorPreferenceStore, MemoryPreferenceStore
from .session import ConnectionSession

__all__ = [
    "ConnectResult",
    "ConnectionSession",
    "ConnectorNotFoundError",
    "ConnectorPreferenceStore",
    "JsonRpcWalletConnector",
    "MemoryPreferenceStore",
    "UserRejectedError",
    "WalletConnector",
    "WalletError",
    "WalletNotConnectedError",
]
