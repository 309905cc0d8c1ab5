"""
Orchestration core for moving value between a public ERC-20 balance and its
encrypted counterpart.

Modules:
- network: NetworkGuard (required-chain check and switch)
- allowance: AllowanceNegotiator (approve with reset-to-zero fallback)
- executor: AssetOperationExecutor (register, key, deposit, transfer, withdraw)
- balance: BalanceSynchronizer (decrypted balance cache and settle delay)
- controller: FundingController (triggers and observables for a UI)
"""

__all__ = [
    "allowance",
    "balance",
    "circuits",
    "config",
    "controller",
    "errors",
    "executor",
    "network",
    "notifier",
    "sdk",
]
