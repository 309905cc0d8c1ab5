from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from chain.rpc import JsonRpcClient, RpcResponseError


logger = logging.getLogger(__name__)

USER_REJECTED = 4001


class WalletError(RuntimeError):
    """Base error for wallet connectors and the connection session."""

    short_message: Optional[str] = None


class ConnectorNotFoundError(WalletError):
    def __init__(self, connector_id: str) -> None:
        self.connector_id = connector_id
        self.short_message = "Connector not available"
        super().__init__(f"Connector not available: {connector_id}")


class WalletNotConnectedError(WalletError):
    def __init__(self) -> None:
        self.short_message = "Connect your wallet first"
        super().__init__("Wallet is not connected")


class UserRejectedError(WalletError):
    def __init__(self, action: str) -> None:
        self.short_message = "User rejected the request"
        super().__init__(f"User rejected {action}")


@dataclass
class ConnectResult:
    accounts: List[str] = field(default_factory=list)
    chain_id: int = 0


@runtime_checkable
class WalletConnector(Protocol):
    """What the session needs from a wallet, whatever transport sits behind it."""

    id: str
    name: str

    async def connect(self) -> ConnectResult: ...

    async def disconnect(self) -> None: ...

    async def get_chain_id(self) -> int: ...

    async def switch_chain(self, chain_id: int) -> None: ...

    async def send_transaction(self, tx: Dict[str, Any]) -> str: ...


def _hex(v: int) -> str:
    return hex(int(v))


class JsonRpcWalletConnector:
    """
    Wallet reached through EIP-1193 methods over JSON-RPC.

    Works with local signers that expose an HTTP endpoint (Frame, a dev node
    with unlocked accounts, a WalletConnect bridge). Signing happens on the
    wallet side; this class never sees key material.
    """

    def __init__(self, connector_id: str, name: str, rpc: JsonRpcClient) -> None:
        self.id = connector_id
        self.name = name
        self._rpc = rpc

    async def _call(self, action: str, method: str, params: Optional[List[Any]] = None) -> Any:
        try:
            return await self._rpc.request(method, params)
        except RpcResponseError as exc:
            if exc.code == USER_REJECTED:
                raise UserRejectedError(action) from exc
            raise

    async def connect(self) -> ConnectResult:
        accounts = await self._call("connection", "eth_requestAccounts")
        chain_id = await self.get_chain_id()
        return ConnectResult(accounts=[str(a) for a in accounts or []], chain_id=chain_id)

    async def disconnect(self) -> None:
        # Plain JSON-RPC has no session to tear down.
        return None

    async def get_chain_id(self) -> int:
        raw = await self._call("chain id", "eth_chainId")
        return int(str(raw), 16) if isinstance(raw, str) else int(raw)

    async def switch_chain(self, chain_id: int) -> None:
        await self._call("chain switch", "wallet_switchEthereumChain", [{"chainId": _hex(chain_id)}])

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        body = dict(tx)
        for k in ("value", "gas", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas", "nonce"):
            if isinstance(body.get(k), int):
                body[k] = _hex(body[k])
        h = await self._call("transaction", "eth_sendTransaction", [body])
        logger.info("wallet %s broadcast tx %s", self.id, h)
        return str(h)


__all__ = [
    "ConnectResult",
    "ConnectorNotFoundError",
    "JsonRpcWalletConnector",
    "UserRejectedError",
    "WalletConnector",
    "WalletError",
    "WalletNotConnectedError",
]
