from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Dict, Optional

from eth_utils import is_address

from chain.client import ChainClient
from chain.eerc import has_auditor_key
from chain.erc20 import Erc20Token
from chain.units import parse_units
from state.models import (
    ActionState,
    IdentityState,
    OperationKind,
    OperationStatus,
    PendingOperation,
)
from wallet.session import ConnectionSession

from .allowance import AllowanceNegotiator
from .balance import BalanceSynchronizer
from .errors import PreconditionError, WrongNetworkError, normalize_error
from .network import NetworkGuard
from .notifier import LoggingNotifier, Notifier
from .sdk import EncryptedBalanceSdk


logger = logging.getLogger(__name__)

NOT_CONNECTED = "Connect your wallet first"
INVALID_AMOUNT = "Enter a valid amount"
NO_KEY = "Generate your decryption key first"
NOT_REGISTERED = "Register first"
NO_RECIPIENT = "Enter a recipient address"
BAD_RECIPIENT = "Enter a valid recipient address"
RECIPIENT_UNREGISTERED = "Recipient is not registered in eERC"
NO_AUDITOR = (
    "No auditor set yet. You can deposit, but private transfers/withdraw may be "
    "blocked until an auditor is configured."
)

FALLBACKS: Dict[OperationKind, str] = {
    OperationKind.REGISTER: "Registration failed",
    OperationKind.GENERATE_KEY: "Failed to generate key",
    OperationKind.DEPOSIT: "Deposit failed",
    OperationKind.PRIVATE_TRANSFER: "Private transfer failed",
    OperationKind.WITHDRAW: "Withdraw failed",
    OperationKind.APPROVE: "Approve failed",
}

LABELS: Dict[OperationKind, str] = {
    OperationKind.REGISTER: "Registration",
    OperationKind.GENERATE_KEY: "Key generation",
    OperationKind.DEPOSIT: "Deposit",
    OperationKind.PRIVATE_TRANSFER: "Private transfer",
    OperationKind.WITHDRAW: "Withdraw",
    OperationKind.APPROVE: "Approve",
}

Body = Callable[[PendingOperation], Awaitable[None]]


def _positive_amount(text: Optional[str]) -> Decimal:
    try:
        d = Decimal((text or "").strip())
    except InvalidOperation:
        raise PreconditionError(INVALID_AMOUNT) from None
    if not d.is_finite() or d <= 0:
        raise PreconditionError(INVALID_AMOUNT)
    return d


def _to_atomic(text: str, decimals: int) -> int:
    try:
        atomic = parse_units(text, decimals)
    except ValueError:
        raise PreconditionError(INVALID_AMOUNT) from None
    if atomic <= 0:
        raise PreconditionError(INVALID_AMOUNT)
    return atomic


class AssetOperationExecutor:
    """
    Runs register, key generation, deposit, private transfer and withdraw.

    Each run is one `PendingOperation`:
    - Preconditions are checked in order before any external call; the first
      failure ends the run with its own reason.
    - A second run of a kind that is still in flight is rejected, not queued.
    - Errors are normalized to a short user-facing message; nothing is retried.
    - Successful runs finish with a balance resync whose failure is only logged.
    """

    def __init__(
        self,
        *,
        session: ConnectionSession,
        guard: NetworkGuard,
        negotiator: AllowanceNegotiator,
        sdk: EncryptedBalanceSdk,
        chain: ChainClient,
        token: Erc20Token,
        synchronizer: BalanceSynchronizer,
        spender: str,
        notifier: Optional[Notifier] = None,
        network_name: str = "Avalanche C-Chain",
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._session = session
        self._guard = guard
        self._negotiator = negotiator
        self._sdk = sdk
        self._chain = chain
        self._token = token
        self._balance = synchronizer
        self._spender = spender
        self._notifier = notifier or LoggingNotifier()
        self._network_name = network_name
        self._clock = clock
        self._identity = IdentityState()
        self._ops: Dict[OperationKind, PendingOperation] = {}
        self._erc20_decimals: Optional[int] = None
        self._disposed = False

    # -------- Observables --------
    @property
    def identity(self) -> IdentityState:
        return self._identity

    @property
    def erc20_decimals_value(self) -> Optional[int]:
        return self._erc20_decimals

    def operation(self, kind: OperationKind) -> Optional[PendingOperation]:
        return self._ops.get(kind)

    def status(self, kind: OperationKind) -> ActionState:
        op = self._ops.get(kind)
        if op is None:
            return ActionState()
        return ActionState(is_busy=op.in_flight, last_error=op.error, last_tx_hash=op.result_tx_hash)

    def dispose(self) -> None:
        """Detach from the presentation layer; in-flight runs finish silently."""
        self._disposed = True

    def reset_identity(self) -> None:
        self._identity = IdentityState()

    async def refresh_identity(self) -> IdentityState:
        snap = self._session.snapshot
        if not snap.connected or not snap.account_address:
            self._identity = IdentityState()
            return self._identity
        reg = await self._sdk.is_address_registered(snap.account_address)
        self._identity = IdentityState(
            has_decryption_key=bool(self._sdk.has_decryption_key()),
            is_registered=bool(reg.is_registered),
        )
        return self._identity

    async def load_erc20_decimals(self) -> int:
        """Public token decimals, read once; 18 when the read fails."""
        if self._erc20_decimals is None:
            self._erc20_decimals = await self._token.decimals_or_default()
        return self._erc20_decimals

    # -------- Operations --------
    async def register(self) -> PendingOperation:
        return await self._run(OperationKind.REGISTER, self._register)

    async def generate_key(self) -> PendingOperation:
        return await self._run(OperationKind.GENERATE_KEY, self._generate_key)

    async def deposit(self, amount: str) -> PendingOperation:
        async def body(op: PendingOperation) -> None:
            await self._deposit(op, amount)

        return await self._run(OperationKind.DEPOSIT, body)

    async def private_transfer(self, to: str, amount: str) -> PendingOperation:
        async def body(op: PendingOperation) -> None:
            await self._private_transfer(op, to, amount)

        return await self._run(OperationKind.PRIVATE_TRANSFER, body)

    async def withdraw(self, amount: str) -> PendingOperation:
        async def body(op: PendingOperation) -> None:
            await self._withdraw(op, amount)

        return await self._run(OperationKind.WITHDRAW, body)

    # -------- Bodies --------
    async def _register(self, op: PendingOperation) -> None:
        self._require_connected()
        await self._require_network()
        op.advance(OperationStatus.AWAITING_SIGNATURE)
        result = await self._sdk.register()
        await self._confirm(op, result.transaction_hash)
        self._identity = self._identity.model_copy(update={"is_registered": True})
        await self._finish(op, f"Registration sent {result.transaction_hash}")

    async def _generate_key(self, op: PendingOperation) -> None:
        self._require_connected()
        await self._require_network()
        op.advance(OperationStatus.AWAITING_SIGNATURE)
        await self._sdk.generate_decryption_key()
        logger.info("decryption key generated")
        self._identity = self._identity.model_copy(update={"has_decryption_key": True})
        await self._finish(op, "Decryption key generated")

    async def _deposit(self, op: PendingOperation, amount: str) -> None:
        owner = self._require_connected()
        _positive_amount(amount)
        if not self._identity.has_decryption_key:
            raise PreconditionError(NO_KEY)
        if not self._identity.is_registered:
            raise PreconditionError(NOT_REGISTERED)

        await self._warn_if_no_auditor()
        await self._require_network()

        decimals = await self.load_erc20_decimals()
        atomic = _to_atomic(amount, decimals)
        op.required_amount = atomic
        previous = self._balance.get_cached_atomic_value()

        op.advance(OperationStatus.AWAITING_SIGNATURE)
        await self._ensure_allowance(owner, atomic)
        result = await self._sdk.deposit(atomic)
        await self._confirm(op, result.transaction_hash)
        await self._finish(op, f"Deposit submitted {result.transaction_hash}", previous=previous)

    async def _private_transfer(self, op: PendingOperation, to: str, amount: str) -> None:
        self._require_connected()
        if not self._identity.has_decryption_key:
            raise PreconditionError(NO_KEY)
        recipient = (to or "").strip()
        if not recipient:
            raise PreconditionError(NO_RECIPIENT)
        _positive_amount(amount)
        if not is_address(recipient):
            raise PreconditionError(BAD_RECIPIENT)

        reg = await self._sdk.is_address_registered(recipient)
        if not reg.is_registered:
            raise PreconditionError(RECIPIENT_UNREGISTERED)

        # Private decimals come from the refresh; an amount that rounds to zero
        # fails before any network switch is requested.
        before = await self._snapshot_before()
        atomic = _to_atomic(amount, self._balance.private_decimals)
        op.required_amount = atomic
        await self._require_network()

        op.advance(OperationStatus.AWAITING_SIGNATURE)
        result = await self._sdk.private_transfer(recipient, atomic)
        await self._confirm(op, result.transaction_hash)
        after = await self._finish(op, f"Private transfer sent {result.transaction_hash}", previous=before)
        if after is not None:
            logger.info("private transfer balance delta: %d", after - before)

    async def _withdraw(self, op: PendingOperation, amount: str) -> None:
        self._require_connected()
        if not self._identity.has_decryption_key:
            raise PreconditionError(NO_KEY)
        _positive_amount(amount)

        before = await self._snapshot_before()
        atomic = _to_atomic(amount, self._balance.private_decimals)
        op.required_amount = atomic
        await self._require_network()

        op.advance(OperationStatus.AWAITING_SIGNATURE)
        t0 = self._clock()
        result = await self._sdk.withdraw(atomic)
        logger.info("withdraw proof+send took %d ms", round((self._clock() - t0) * 1000))
        await self._confirm(op, result.transaction_hash)
        after = await self._finish(op, f"Withdraw sent {result.transaction_hash}", previous=before)
        if after is not None:
            logger.info("withdraw balance delta: %d", after - before)

    # -------- Steps --------
    async def _run(self, kind: OperationKind, body: Body) -> PendingOperation:
        current = self._ops.get(kind)
        if current is not None and current.in_flight:
            msg = f"{LABELS[kind]} already in progress"
            self._warn(msg)
            return PendingOperation(kind=kind, status=OperationStatus.FAILED, error=msg)

        op = PendingOperation(kind=kind)
        op.advance(OperationStatus.VALIDATING)
        self._ops[kind] = op
        try:
            await body(op)
        except WrongNetworkError as exc:
            self._fail(op, str(exc), warning=True)
        except PreconditionError as exc:
            self._fail(op, str(exc))
        except Exception as exc:
            logger.warning("%s failed: %r", kind.value, exc)
            self._fail(op, normalize_error(exc, FALLBACKS[kind]))
        return op

    def _fail(self, op: PendingOperation, message: str, *, warning: bool = False) -> None:
        if not op.terminal:
            op.fail(message)
        if warning:
            self._warn(message)
        else:
            self._error(message)

    def _require_connected(self) -> str:
        snap = self._session.snapshot
        if not snap.connected or not snap.account_address:
            raise PreconditionError(NOT_CONNECTED)
        return snap.account_address

    async def _require_network(self) -> None:
        if not await self._guard.ensure_network():
            raise WrongNetworkError(f"Please switch to {self._network_name}")

    async def _warn_if_no_auditor(self) -> None:
        try:
            pk = await self._sdk.auditor_public_key()
        except Exception as exc:
            logger.debug("auditor public key unavailable: %s", exc)
            pk = None
        if not has_auditor_key(pk):
            self._warn(NO_AUDITOR)

    async def _ensure_allowance(self, owner: str, atomic: int) -> None:
        approve = PendingOperation(kind=OperationKind.APPROVE, required_amount=atomic)
        approve.advance(OperationStatus.AWAITING_SIGNATURE)
        self._ops[OperationKind.APPROVE] = approve
        try:
            result = await self._negotiator.ensure_allowance(owner, self._spender, atomic)
        except Exception as exc:
            approve.fail(normalize_error(exc, FALLBACKS[OperationKind.APPROVE]))
            raise
        approve.succeed(result.tx_hash)

    async def _confirm(self, op: PendingOperation, tx_hash: str) -> None:
        op.result_tx_hash = tx_hash
        op.advance(OperationStatus.AWAITING_CONFIRMATION)
        await self._chain.wait_for_receipt(tx_hash)

    async def _snapshot_before(self) -> int:
        try:
            await self._balance.refetch_balance(settle_delay=0.2)
        except Exception as exc:
            logger.warning("pre-operation balance refresh failed: %s", exc)
        return self._balance.get_cached_atomic_value()

    async def _finish(self, op: PendingOperation, message: str, *, previous: Optional[int] = None) -> Optional[int]:
        op.succeed(op.result_tx_hash)
        self._success(message)
        if self._disposed:
            return None
        try:
            balance = await self._balance.resync(previous=previous)
        except Exception as exc:
            logger.warning("balance resync after %s failed: %s", op.kind.value, exc)
            return None
        return balance.atomic_value

    # -------- Notifications --------
    def _success(self, message: str) -> None:
        if not self._disposed:
            self._notifier.success(message)

    def _warn(self, message: str) -> None:
        if not self._disposed:
            self._notifier.warning(message)

    def _error(self, message: str) -> None:
        if not self._disposed:
            self._notifier.error(message)


__all__ = ["AssetOperationExecutor"]
