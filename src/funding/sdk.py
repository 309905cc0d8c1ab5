from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from state.models import BalanceReading, RegistrationStatus, TxResult


@runtime_checkable
class EncryptedBalanceSdk(Protocol):
    """
    The encrypted-ERC capability: proof generation, key handling and the
    proof-backed contract calls. Implementations own the decryption key; this
    package only learns whether one is present.

    Amounts are atomic integers. State-changing calls return once the wallet
    has broadcast the transaction; confirmation is awaited by the caller.
    """

    def has_decryption_key(self) -> bool: ...

    async def generate_decryption_key(self) -> Optional[str]: ...

    async def register(self) -> TxResult: ...

    async def is_address_registered(self, address: str) -> RegistrationStatus: ...

    async def deposit(self, amount: int) -> TxResult: ...

    async def withdraw(self, amount: int) -> TxResult: ...

    async def private_transfer(self, to: str, amount: int) -> TxResult: ...

    async def refetch_balance(self) -> BalanceReading: ...

    async def auditor_public_key(self) -> Sequence[int]: ...


__all__ = ["EncryptedBalanceSdk"]
