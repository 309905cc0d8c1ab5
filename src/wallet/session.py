from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from state.models import Session

from .connectors import (
    ConnectorNotFoundError,
    WalletConnector,
    WalletNotConnectedError,
)
from .preferences import ConnectorPreferenceStore


logger = logging.getLogger(__name__)


class ConnectionSession:
    """
    Owner of the `Session` value.

    - `connect`/`disconnect`/`switch_chain` and provider events are the only
      writers; each publishes a fresh snapshot.
    - `snapshots()` is a lazy, restartable async iterator: it yields the current
      snapshot first, then the latest one after each change. Intermediate
      snapshots may be skipped when several changes land between reads.
    - The last successfully used connector id is remembered through the
      preference store; `reconnect()` only acts on that remembered id.
    """

    def __init__(
        self,
        connectors: Sequence[WalletConnector],
        *,
        preferences: Optional[ConnectorPreferenceStore] = None,
    ) -> None:
        self._connectors: Dict[str, WalletConnector] = {c.id: c for c in connectors}
        self._prefs = preferences or ConnectorPreferenceStore()
        self._snapshot = Session.disconnected()
        self._active: Optional[WalletConnector] = None
        self._version = 0
        self._changed = asyncio.Event()

    # -------- Read side --------
    @property
    def snapshot(self) -> Session:
        return self._snapshot

    @property
    def connectors(self) -> Sequence[WalletConnector]:
        return list(self._connectors.values())

    def remembered_connector(self) -> Optional[str]:
        return self._prefs.last_connector()

    async def snapshots(self) -> AsyncIterator[Session]:
        seen = -1
        while True:
            if self._version != seen:
                seen = self._version
                yield self._snapshot
                continue
            await self._changed.wait()

    def _publish(self, snapshot: Session) -> None:
        self._snapshot = snapshot
        self._version += 1
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    # -------- Capabilities --------
    async def connect(self, connector_id: str) -> Session:
        connector = self._connectors.get(connector_id)
        if connector is None:
            raise ConnectorNotFoundError(connector_id)
        result = await connector.connect()
        if not result.accounts:
            raise WalletNotConnectedError()
        self._active = connector
        self._prefs.remember_connector(connector_id)
        snap = Session(
            connected=True,
            account_address=result.accounts[0],
            chain_id=result.chain_id,
            connector_id=connector_id,
        )
        logger.info("connected %s via %s on chain %s", snap.account_address, connector_id, snap.chain_id)
        self._publish(snap)
        return snap

    async def reconnect(self) -> Optional[Session]:
        """Reconnect with the remembered connector; no-op when nothing is remembered."""
        connector_id = self._prefs.last_connector()
        if not connector_id or self._snapshot.connected:
            return None
        try:
            return await self.connect(connector_id)
        except Exception as exc:
            logger.warning("reconnect with %s failed: %s", connector_id, exc)
            return None

    async def disconnect(self) -> None:
        connector, self._active = self._active, None
        self._prefs.forget_connector()
        if connector is not None:
            try:
                await connector.disconnect()
            except Exception as exc:
                logger.warning("connector %s disconnect failed: %s", connector.id, exc)
        self._publish(Session.disconnected())

    async def current_chain_id(self) -> Optional[int]:
        """Ask the wallet for its chain id and fold any change into the snapshot."""
        if self._active is None:
            return self._snapshot.chain_id
        chain_id = await self._active.get_chain_id()
        if chain_id != self._snapshot.chain_id:
            self.on_chain_changed(chain_id)
        return chain_id

    async def switch_chain(self, chain_id: int) -> Session:
        if self._active is None:
            raise WalletNotConnectedError()
        await self._active.switch_chain(chain_id)
        self.on_chain_changed(chain_id)
        return self._snapshot

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        if self._active is None or not self._snapshot.connected:
            raise WalletNotConnectedError()
        return await self._active.send_transaction(tx)

    # -------- Provider events --------
    def on_chain_changed(self, chain_id: int) -> None:
        if not self._snapshot.connected:
            return
        self._publish(self._snapshot.model_copy(update={"chain_id": int(chain_id)}))

    def on_accounts_changed(self, accounts: Sequence[str]) -> None:
        if not accounts:
            self._active = None
            self._publish(Session.disconnected())
            return
        if not self._snapshot.connected:
            return
        self._publish(self._snapshot.model_copy(update={"account_address": accounts[0]}))


__all__ = ["ConnectionSession"]
