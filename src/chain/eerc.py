from __future__ import annotations

from typing import Any, Dict, Tuple

from .abi import checksum, encode_call
from .client import ChainClient


class EercContract:
    """Owner/auditor views of the encrypted-ERC converter and its registrar."""

    def __init__(self, chain: ChainClient, address: str) -> None:
        self._chain = chain
        self.address = checksum(address)

    async def owner(self) -> str:
        (v,) = await self._chain.read_contract(self.address, "owner()", returns=["address"])
        return checksum(v)

    async def registrar(self) -> str:
        (v,) = await self._chain.read_contract(self.address, "registrar()", returns=["address"])
        return checksum(v)

    async def auditor(self) -> str:
        (v,) = await self._chain.read_contract(self.address, "auditor()", returns=["address"])
        return checksum(v)

    async def auditor_public_key(self) -> Tuple[int, int]:
        x, y = await self._chain.read_contract(
            self.address, "auditorPublicKey()", returns=["uint256", "uint256"]
        )
        return int(x), int(y)

    async def is_auditor_key_set(self) -> bool:
        (v,) = await self._chain.read_contract(self.address, "isAuditorKeySet()", returns=["bool"])
        return bool(v)

    async def is_user_registered(self, user: str) -> bool:
        registrar = await self.registrar()
        (v,) = await self._chain.read_contract(
            registrar, "isUserRegistered(address)", [user], returns=["bool"]
        )
        return bool(v)

    async def user_public_key(self, user: str) -> Tuple[int, int]:
        registrar = await self.registrar()
        (pk,) = await self._chain.read_contract(
            registrar, "getUserPublicKey(address)", [user], returns=["uint256[2]"]
        )
        return int(pk[0]), int(pk[1])

    def set_auditor_tx(self, sender: str, auditor: str) -> Dict[str, Any]:
        return {
            "from": checksum(sender),
            "to": self.address,
            "data": encode_call("setAuditorPublicKey(address)", [auditor]),
        }


def has_auditor_key(public_key: Any) -> bool:
    """True when an auditor point is present and not the (0, 0) placeholder."""
    if not isinstance(public_key, (list, tuple)) or len(public_key) < 2:
        return False
    try:
        return int(public_key[0]) != 0 or int(public_key[1]) != 0
    except (TypeError, ValueError):
        return False


__all__ = ["EercContract", "has_auditor_key"]
