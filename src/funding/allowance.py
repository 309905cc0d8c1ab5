from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from chain.client import ChainClient
from chain.erc20 import Erc20Token
from state.models import AllowanceResult, AllowanceState

from .notifier import LoggingNotifier, Notifier


logger = logging.getLogger(__name__)

SendTransaction = Callable[[Dict[str, Any]], Awaitable[str]]


class AllowanceNegotiator:
    """
    Makes sure `spender` may pull `required_amount` of the token from `owner`.

    The allowance is read fresh on every call and never cached. When a direct
    `approve(required)` fails, the allowance is reset to zero and the approve
    is retried once (tokens that refuse a non-zero to non-zero change). If the
    reset fails too, the error of the direct attempt is raised.
    """

    def __init__(
        self,
        token: Erc20Token,
        chain: ChainClient,
        send_transaction: SendTransaction,
        *,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._token = token
        self._chain = chain
        self._send = send_transaction
        self._notify = notifier or LoggingNotifier()

    async def read_allowance(self, owner: str, spender: str) -> AllowanceState:
        current = await self._token.allowance(owner, spender)
        return AllowanceState(owner=owner, spender=spender, current_allowance=current)

    async def ensure_allowance(self, owner: str, spender: str, required_amount: int) -> AllowanceResult:
        state = await self.read_allowance(owner, spender)
        if state.current_allowance >= required_amount:
            return AllowanceResult(approved=True)

        try:
            self._notify.info("Sending ERC-20 approve…")
            tx_hash = await self._approve(owner, spender, required_amount)
        except Exception as first:
            logger.warning("approve(%s, %d) failed: %s; resetting allowance to 0", spender, required_amount, first)
            try:
                await self._approve(owner, spender, 0)
            except Exception as reset_exc:
                logger.warning("approve(%s, 0) reset also failed: %s", spender, reset_exc)
                raise first
            tx_hash = await self._approve(owner, spender, required_amount)

        self._notify.success(f"Approve sent {tx_hash}")
        return AllowanceResult(approved=True, tx_hash=tx_hash)

    async def _approve(self, owner: str, spender: str, value: int) -> str:
        tx_hash = await self._send(self._token.approve_tx(owner, spender, value))
        await self._chain.wait_for_receipt(tx_hash)
        return tx_hash


__all__ = ["AllowanceNegotiator"]
