from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from .abi import checksum, decode_result, encode_call
from .rpc import JsonRpcClient, RpcError


logger = logging.getLogger(__name__)


class TransactionRevertedError(RpcError):
    """A mined transaction reported status 0."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        self.short_message = "Transaction reverted"
        super().__init__(f"Transaction {tx_hash} reverted on-chain")


class ReceiptTimeoutError(RpcError):
    """No receipt was found before the wait deadline."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.tx_hash = tx_hash
        self.short_message = "Timed out waiting for confirmation"
        super().__init__(f"No receipt for {tx_hash} after {timeout:.0f}s")


class Receipt(BaseModel):
    transaction_hash: str
    status: int
    block_number: int
    gas_used: int = 0
    logs: list = Field(default_factory=list)

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "Receipt":
        return cls(
            transaction_hash=str(raw.get("transactionHash")),
            status=_hex_int(raw.get("status"), default=1),
            block_number=_hex_int(raw.get("blockNumber")),
            gas_used=_hex_int(raw.get("gasUsed")),
            logs=list(raw.get("logs") or []),
        )


def _hex_int(v: Any, *, default: int = 0) -> int:
    if v is None:
        return default
    if isinstance(v, int):
        return v
    return int(str(v), 16)


class ChainClient:
    """
    Read-side chain access plus broadcast and confirmation of raw transactions.

    Everything is keyed by contract address + function signature + arguments;
    callers never touch hex calldata directly.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        *,
        receipt_timeout: float = 120.0,
        poll_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rpc = rpc
        self._receipt_timeout = receipt_timeout
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    async def chain_id(self) -> int:
        return _hex_int(await self._rpc.request("eth_chainId"))

    async def call(self, to: str, data: str, *, sender: Optional[str] = None) -> str:
        tx: Dict[str, Any] = {"to": checksum(to), "data": data}
        if sender:
            tx["from"] = checksum(sender)
        result = await self._rpc.request("eth_call", [tx, "latest"])
        return str(result)

    async def read_contract(
        self,
        address: str,
        signature: str,
        args: Sequence[Any] = (),
        *,
        returns: Sequence[str],
        sender: Optional[str] = None,
    ) -> Tuple[Any, ...]:
        data = encode_call(signature, args)
        raw = await self.call(address, data, sender=sender)
        return decode_result(returns, raw)

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return _hex_int(await self._rpc.request("eth_estimateGas", [tx]))

    async def gas_price(self) -> int:
        return _hex_int(await self._rpc.request("eth_gasPrice"))

    async def transaction_count(self, address: str) -> int:
        return _hex_int(await self._rpc.request("eth_getTransactionCount", [checksum(address), "pending"]))

    async def send_raw_transaction(self, raw_tx: str | bytes) -> str:
        if isinstance(raw_tx, (bytes, bytearray)):
            raw_tx = "0x" + bytes(raw_tx).hex()
        return str(await self._rpc.request("eth_sendRawTransaction", [raw_tx]))

    async def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        raw = await self._rpc.request("eth_getTransactionReceipt", [tx_hash])
        if not raw:
            return None
        return Receipt.from_rpc(raw)

    async def wait_for_receipt(self, tx_hash: str, *, timeout: Optional[float] = None) -> Receipt:
        """
        Poll until `tx_hash` is mined.

        Raises TransactionRevertedError when the receipt reports failure and
        ReceiptTimeoutError when the deadline passes first.
        """
        limit = self._receipt_timeout if timeout is None else timeout
        deadline = self._clock() + limit
        while True:
            receipt = await self.get_receipt(tx_hash)
            if receipt is not None:
                if receipt.status == 0:
                    raise TransactionRevertedError(tx_hash)
                logger.debug("tx %s mined in block %d", tx_hash, receipt.block_number)
                return receipt
            if self._clock() >= deadline:
                raise ReceiptTimeoutError(tx_hash, limit)
            await self._sleep(self._poll_interval)


__all__ = [
    "ChainClient",
    "Receipt",
    "TransactionRevertedError",
    "ReceiptTimeoutError",
]
