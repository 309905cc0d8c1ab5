"""
In-memory state models for the funding session.

Nothing here is persisted; the only durable value in the project is the
remembered connector id kept by `wallet.preferences`.
"""

from .models import (
    ActionState,
    AllowanceResult,
    AllowanceState,
    BalanceReading,
    EncryptedBalance,
    FundingView,
    IdentityState,
    InvalidTransitionError,
    OperationKind,
    OperationStatus,
    PendingOperation,
    RegistrationStatus,
    Session,
    TxResult,
)

__all__ = [
    "ActionState",
    "AllowanceResult",
    "AllowanceState",
    "BalanceReading",
    "EncryptedBalance",
    "FundingView",
    "IdentityState",
    "InvalidTransitionError",
    "OperationKind",
    "OperationStatus",
    "PendingOperation",
    "RegistrationStatus",
    "Session",
    "TxResult",
]
