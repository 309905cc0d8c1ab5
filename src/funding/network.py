from __future__ import annotations

import logging

from wallet.session import ConnectionSession


logger = logging.getLogger(__name__)


class NetworkGuard:
    """Keeps operations on the required chain. Never raises from `ensure_network`."""

    def __init__(self, session: ConnectionSession, required_chain_id: int) -> None:
        self._session = session
        self.required_chain_id = required_chain_id

    @property
    def is_wrong_network(self) -> bool:
        snap = self._session.snapshot
        return snap.connected and snap.chain_id != self.required_chain_id

    async def ensure_network(self) -> bool:
        """
        True when the wallet is (now) on the required chain.

        Asks the wallet for its current chain id; only when it differs is a
        switch requested. Rejection or any error yields False: the caller
        aborts and warns, it does not send anything.
        """
        if not self._session.snapshot.connected:
            return False
        try:
            current = await self._session.current_chain_id()
            if current == self.required_chain_id:
                return True
            await self._session.switch_chain(self.required_chain_id)
            return True
        except Exception as exc:
            logger.warning("ensure_network: switch to chain %d failed: %s", self.required_chain_id, exc)
            return False


__all__ = ["NetworkGuard"]
