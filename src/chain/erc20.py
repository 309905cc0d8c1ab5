from __future__ import annotations

import logging
from typing import Any, Dict

from .abi import checksum, encode_call
from .client import ChainClient
from .units import DEFAULT_ERC20_DECIMALS, resolve_erc20_decimals


logger = logging.getLogger(__name__)

DECIMALS = "decimals()"
ALLOWANCE = "allowance(address,address)"
APPROVE = "approve(address,uint256)"


class Erc20Token:
    """Reads and calldata builders for one ERC-20 token contract."""

    def __init__(self, chain: ChainClient, address: str) -> None:
        self._chain = chain
        self.address = checksum(address)

    async def decimals(self) -> int:
        (d,) = await self._chain.read_contract(self.address, DECIMALS, returns=["uint8"])
        return int(d)

    async def decimals_or_default(self) -> int:
        """`decimals()` or 18 when the read fails or is out of range."""
        try:
            raw = await self.decimals()
        except Exception as exc:
            logger.warning("decimals() read failed for %s (%s); defaulting to %d", self.address, exc, DEFAULT_ERC20_DECIMALS)
            return DEFAULT_ERC20_DECIMALS
        return resolve_erc20_decimals(raw)

    async def allowance(self, owner: str, spender: str) -> int:
        (v,) = await self._chain.read_contract(
            self.address, ALLOWANCE, [owner, spender], returns=["uint256"]
        )
        return int(v)

    def approve_tx(self, owner: str, spender: str, value: int) -> Dict[str, Any]:
        """Unsigned `approve(spender, value)` transaction sent from `owner`."""
        if value < 0:
            raise ValueError("approve value must be >= 0")
        return {
            "from": checksum(owner),
            "to": self.address,
            "data": encode_call(APPROVE, [spender, value]),
        }


__all__ = ["Erc20Token"]
