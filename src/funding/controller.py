from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from chain.client import ChainClient
from chain.erc20 import Erc20Token
from chain.rpc import JsonRpcClient
from chain.units import DEFAULT_ERC20_DECIMALS, short_address
from state.models import (
    ActionState,
    EncryptedBalance,
    FundingView,
    OperationKind,
    PendingOperation,
    Session,
)
from wallet.connectors import JsonRpcWalletConnector, WalletConnector
from wallet.preferences import ConnectorPreferenceStore
from wallet.session import ConnectionSession

from .allowance import AllowanceNegotiator
from .balance import BalanceSynchronizer
from .circuits import CircuitAssets, get_circuit_config
from .config import Settings
from .errors import normalize_error
from .executor import AssetOperationExecutor
from .network import NetworkGuard
from .notifier import LoggingNotifier, Notifier
from .sdk import EncryptedBalanceSdk


logger = logging.getLogger(__name__)

TRIGGERS = ("register", "generate_key", "deposit", "private_transfer", "withdraw", "refresh")


class FundingController:
    """
    Surface consumed by a presentation layer.

    Triggers: connect, disconnect, register, generate_key, deposit,
    private_transfer, withdraw, refresh. Each mutating trigger reports through
    `status(name)`; `view()` gives the read-only observables.
    """

    def __init__(
        self,
        *,
        session: ConnectionSession,
        guard: NetworkGuard,
        executor: AssetOperationExecutor,
        synchronizer: BalanceSynchronizer,
        notifier: Optional[Notifier] = None,
        network_name: str = "Avalanche C-Chain",
        closers: Sequence[JsonRpcClient] = (),
        circuits: Optional[Dict[str, CircuitAssets]] = None,
    ) -> None:
        self.session = session
        self.guard = guard
        self.executor = executor
        self.balance = synchronizer
        self._notifier = notifier or LoggingNotifier()
        self._network_name = network_name
        self._closers: List[JsonRpcClient] = list(closers)
        self._refresh_error: Optional[str] = None
        self._account: Optional[str] = None
        self.circuits = circuits or get_circuit_config()

    # -------- Construction --------
    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sdk: EncryptedBalanceSdk,
        *,
        connectors: Optional[Sequence[WalletConnector]] = None,
        notifier: Optional[Notifier] = None,
        rpc: Optional[JsonRpcClient] = None,
    ) -> "FundingController":
        notifier = notifier or LoggingNotifier()
        closers: List[JsonRpcClient] = []
        if rpc is None:
            rpc = JsonRpcClient(
                settings.rpc_url,
                retry_count=settings.rpc_retry_count,
                retry_delay=settings.rpc_retry_delay,
            )
            closers.append(rpc)
        if connectors is None:
            connectors = []
            if settings.wallet_rpc_url:
                wallet_rpc = JsonRpcClient(settings.wallet_rpc_url, retry_count=0)
                closers.append(wallet_rpc)
                connectors.append(JsonRpcWalletConnector("injected", "Injected wallet", wallet_rpc))

        chain = ChainClient(rpc)
        token = Erc20Token(chain, settings.token_address)
        prefs = ConnectorPreferenceStore(f"{settings.state_dir.rstrip('/')}/wallet_prefs.json")
        session = ConnectionSession(connectors, preferences=prefs)
        guard = NetworkGuard(session, settings.chain_id)
        negotiator = AllowanceNegotiator(token, chain, session.send_transaction, notifier=notifier)
        synchronizer = BalanceSynchronizer(
            sdk, settle_delay=settings.settle_delay, settle_polls=settings.settle_polls
        )
        executor = AssetOperationExecutor(
            session=session,
            guard=guard,
            negotiator=negotiator,
            sdk=sdk,
            chain=chain,
            token=token,
            synchronizer=synchronizer,
            spender=settings.eerc_contract,
            notifier=notifier,
        )
        return cls(
            session=session,
            guard=guard,
            executor=executor,
            synchronizer=synchronizer,
            notifier=notifier,
            closers=closers,
            circuits=get_circuit_config(settings.circuits_origin),
        )

    async def aclose(self) -> None:
        self.dispose()
        for rpc in self._closers:
            await rpc.aclose()

    def dispose(self) -> None:
        self.executor.dispose()

    # -------- Connection --------
    async def connect(self, connector_id: str) -> Optional[Session]:
        try:
            snap = await self.session.connect(connector_id)
        except Exception as exc:
            logger.warning("connect via %s failed: %r", connector_id, exc)
            self._notifier.error(normalize_error(exc, "Failed to connect wallet"))
            return None
        self._notifier.success(f"Connected: {short_address(snap.account_address)}")
        if snap.chain_id != self.guard.required_chain_id:
            if not await self.guard.ensure_network():
                self._notifier.warning(f"Please switch to {self._network_name}")
        return self.session.snapshot

    async def reconnect(self) -> Optional[Session]:
        return await self.session.reconnect()

    async def disconnect(self) -> None:
        await self.session.disconnect()
        self.executor.reset_identity()
        self.balance.reset()
        self._notifier.info("Wallet disconnected")

    async def switch_network(self) -> bool:
        ok = await self.guard.ensure_network()
        if not ok:
            self._notifier.warning(f"Please switch to {self._network_name}")
        return ok

    async def watch_session(self) -> None:
        """React to session snapshots until cancelled; only the latest snapshot matters."""
        async for snap in self.session.snapshots():
            await self._on_snapshot(snap)

    async def _on_snapshot(self, snap: Session) -> None:
        if not snap.connected:
            self._account = None
            self.executor.reset_identity()
            self.balance.reset()
            return
        if snap.account_address != self._account:
            # Cached balance and identity belong to the previous account.
            self._account = snap.account_address
            self.executor.reset_identity()
            self.balance.reset()
            self._refresh_error = None
        try:
            identity = await self.executor.refresh_identity()
        except Exception as exc:
            logger.warning("identity refresh failed: %s", exc)
            self.executor.reset_identity()
            return
        if identity.has_decryption_key and identity.is_registered:
            await self.refresh()

    # -------- Triggers --------
    async def load_token_metadata(self) -> int:
        return await self.executor.load_erc20_decimals()

    async def register(self) -> PendingOperation:
        return await self.executor.register()

    async def generate_key(self) -> PendingOperation:
        return await self.executor.generate_key()

    async def deposit(self, amount: str) -> PendingOperation:
        return await self.executor.deposit(amount)

    async def private_transfer(self, to: str, amount: str) -> PendingOperation:
        return await self.executor.private_transfer(to, amount)

    async def withdraw(self, amount: str) -> PendingOperation:
        return await self.executor.withdraw(amount)

    async def refresh(self) -> Optional[EncryptedBalance]:
        try:
            balance = await self.balance.refetch_balance(settle_delay=0.25)
        except Exception as exc:
            logger.warning("balance refresh failed: %s", exc)
            self._refresh_error = normalize_error(exc, "Refresh failed")
            return None
        self._refresh_error = None
        return balance

    # -------- Observables --------
    def status(self, trigger: str) -> ActionState:
        if trigger == "refresh":
            # Busy while any refetch is in flight, overlapping calls included.
            return ActionState(is_busy=self.balance.is_refreshing, last_error=self._refresh_error)
        if trigger not in TRIGGERS:
            raise KeyError(trigger)
        return self.executor.status(OperationKind(trigger))

    def statuses(self) -> Dict[str, ActionState]:
        return {name: self.status(name) for name in TRIGGERS}

    def view(self) -> FundingView:
        identity = self.executor.identity
        erc20_decimals = self.executor.erc20_decimals_value
        return FundingView(
            is_registered=identity.is_registered,
            has_decryption_key=identity.has_decryption_key,
            display_balance=self.balance.display_balance,
            erc20_decimals=DEFAULT_ERC20_DECIMALS if erc20_decimals is None else erc20_decimals,
            private_decimals=self.balance.private_decimals,
            is_wrong_network=self.guard.is_wrong_network,
        )


__all__ = ["FundingController", "TRIGGERS"]
