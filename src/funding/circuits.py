from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


CIRCUITS = ("registration", "transfer", "withdraw", "mint", "burn")


@dataclass(frozen=True)
class CircuitAssets:
    wasm: str
    zkey: str


def get_circuit_config(origin: Optional[str] = None) -> Dict[str, CircuitAssets]:
    """Absolute URLs of the proof bundles, one per circuit, served under `<origin>/eerc`.

    Without an origin the paths stay rooted at `/eerc`.
    """
    base = f"{origin.rstrip('/')}/eerc" if origin else "/eerc"
    return {
        name: CircuitAssets(wasm=f"{base}/{name}.wasm", zkey=f"{base}/{name}.zkey")
        for name in CIRCUITS
    }


__all__ = ["CircuitAssets", "get_circuit_config", "CIRCUITS"]
