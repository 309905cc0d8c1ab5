"""
Chain access for private-funding.

Modules:
- rpc: async JSON-RPC client with retries and local throttling
- client: contract reads, raw broadcast, receipt polling
- erc20 / eerc: typed views of the token and the encrypted-ERC converter
- units: human <-> atomic amount conversion
"""

__all__ = [
    "abi",
    "client",
    "eerc",
    "erc20",
    "rate_limiter",
    "rpc",
    "units",
]
