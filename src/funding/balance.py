from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from chain.units import format_units, resolve_private_decimals
from state.models import EncryptedBalance

from .sdk import EncryptedBalanceSdk


logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.3


class BalanceSynchronizer:
    """
    Freshest known decrypted private balance.

    Decrypting the on-chain ciphertext happens off-chain and can lag the
    receipt, so a refresh right after confirmation may still show the old
    value. `refetch_balance` waits one settle delay after each read; with
    `settle_polls > 0`, `resync(previous=...)` keeps polling (bounded) while
    the value equals `previous`. Neither guarantees convergence.

    The cache is replaced on every refresh, never patched.
    """

    def __init__(
        self,
        sdk: EncryptedBalanceSdk,
        *,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        settle_polls: int = 0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sdk = sdk
        self._settle_delay = settle_delay
        self._settle_polls = max(0, settle_polls)
        self._sleep = sleep
        self._cache = EncryptedBalance()
        self._refreshing = 0

    @property
    def balance(self) -> EncryptedBalance:
        return self._cache

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing > 0

    @property
    def private_decimals(self) -> int:
        return self._cache.decimals

    @property
    def display_balance(self) -> str:
        return format_units(self._cache.atomic_value, self._cache.decimals)

    def get_cached_atomic_value(self) -> int:
        return self._cache.atomic_value

    def reset(self) -> None:
        self._cache = EncryptedBalance()

    async def refetch_balance(self, *, settle_delay: Optional[float] = None) -> EncryptedBalance:
        self._refreshing += 1
        try:
            reading = await self._sdk.refetch_balance()
            self._cache = EncryptedBalance(
                atomic_value=max(0, int(reading.decrypted_atomic or 0)),
                decimals=resolve_private_decimals(reading.decimals),
            )
            delay = self._settle_delay if settle_delay is None else settle_delay
            if delay > 0:
                await self._sleep(delay)
            return self._cache
        finally:
            self._refreshing -= 1

    async def resync(self, *, previous: Optional[int] = None) -> EncryptedBalance:
        """Refresh after a state change; re-poll while unchanged from `previous` if configured."""
        balance = await self.refetch_balance()
        polls = 0
        while previous is not None and balance.atomic_value == previous and polls < self._settle_polls:
            polls += 1
            logger.debug("balance unchanged after settle; poll %d/%d", polls, self._settle_polls)
            balance = await self.refetch_balance()
        return balance


__all__ = ["BalanceSynchronizer", "DEFAULT_SETTLE_DELAY"]
