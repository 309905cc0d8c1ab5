from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OperationKind(str, Enum):
    REGISTER = "register"
    GENERATE_KEY = "generate_key"
    DEPOSIT = "deposit"
    PRIVATE_TRANSFER = "private_transfer"
    WITHDRAW = "withdraw"
    APPROVE = "approve"


class OperationStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_SIGNATURE = "awaiting_signature"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_RANK = {
    OperationStatus.IDLE: 0,
    OperationStatus.VALIDATING: 1,
    OperationStatus.AWAITING_SIGNATURE: 2,
    OperationStatus.AWAITING_CONFIRMATION: 3,
    OperationStatus.SUCCEEDED: 4,
    OperationStatus.FAILED: 4,
}

IN_FLIGHT = frozenset(
    {
        OperationStatus.VALIDATING,
        OperationStatus.AWAITING_SIGNATURE,
        OperationStatus.AWAITING_CONFIRMATION,
    }
)


class InvalidTransitionError(ValueError):
    """Raised when an operation status would move backwards or leave a terminal state."""


class Session(BaseModel):
    """
    Wallet connection as last reported by the connector.

    Replaced wholesale on connect, disconnect and provider events; never mutated in place.
    """

    connected: bool = False
    account_address: Optional[str] = None
    chain_id: Optional[int] = None
    connector_id: Optional[str] = None

    @classmethod
    def disconnected(cls) -> "Session":
        return cls()


class IdentityState(BaseModel):
    """Presence of the local decryption key and of the on-chain registration. Never the key itself."""

    has_decryption_key: bool = False
    is_registered: bool = False


class EncryptedBalance(BaseModel):
    """Last decrypted private balance, in atomic units of the private token."""

    atomic_value: int = Field(default=0, ge=0)
    decimals: int = Field(default=2, ge=1, le=36)


class AllowanceState(BaseModel):
    owner: str
    spender: str
    current_allowance: int = Field(ge=0)


class AllowanceResult(BaseModel):
    approved: bool
    tx_hash: Optional[str] = None


class PendingOperation(BaseModel):
    """
    One user-triggered action and its progress.

    Status only moves forward: idle → validating → awaiting_signature →
    awaiting_confirmation → succeeded | failed. Steps may be skipped (key
    generation never awaits confirmation) but never revisited.
    """

    kind: OperationKind
    required_amount: Optional[int] = None
    status: OperationStatus = OperationStatus.IDLE
    result_tx_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT

    @property
    def terminal(self) -> bool:
        return self.status in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)

    def advance(self, status: OperationStatus) -> None:
        if self.terminal:
            raise InvalidTransitionError(f"{self.kind.value} already {self.status.value}")
        if _RANK[status] <= _RANK[self.status]:
            raise InvalidTransitionError(
                f"{self.kind.value}: {self.status.value} -> {status.value} is not forward"
            )
        self.status = status

    def succeed(self, tx_hash: Optional[str] = None) -> None:
        self.advance(OperationStatus.SUCCEEDED)
        if tx_hash:
            self.result_tx_hash = tx_hash

    def fail(self, error: str) -> None:
        self.advance(OperationStatus.FAILED)
        self.error = error


class ActionState(BaseModel):
    """What the presentation layer sees for one trigger."""

    is_busy: bool = False
    last_error: Optional[str] = None
    last_tx_hash: Optional[str] = None


class FundingView(BaseModel):
    is_registered: bool = False
    has_decryption_key: bool = False
    display_balance: str = "0"
    erc20_decimals: int = 18
    private_decimals: int = 2
    is_wrong_network: bool = False


class TxResult(BaseModel):
    transaction_hash: str


class RegistrationStatus(BaseModel):
    is_registered: bool


class BalanceReading(BaseModel):
    """Raw answer of the encrypted-balance capability; `decimals` is unvalidated."""

    decrypted_atomic: Optional[int] = None
    decimals: Optional[int] = None
