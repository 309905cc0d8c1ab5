from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

AVALANCHE_C_CHAIN_ID = 43114
DEFAULT_RPC_URL = "https://api.avax.network/ext/bc/C/rpc"
BURRITO_TOKEN = "0xf65645a42609f6b44E2EC158A3Dc2b6CfC97093f"
EERC_CONTRACT = "0x2f1836b1a43B49CeF81B52a0C5b850d67030c020"

# Environment variable names
ENV_RPC_URL = "FUNDING_RPC_URL"
ENV_CHAIN_ID = "FUNDING_CHAIN_ID"
ENV_TOKEN_ADDRESS = "FUNDING_TOKEN_ADDRESS"
ENV_EERC_CONTRACT = "FUNDING_EERC_CONTRACT"
ENV_CIRCUITS_ORIGIN = "FUNDING_CIRCUITS_ORIGIN"
ENV_WALLET_RPC_URL = "FUNDING_WALLET_RPC_URL"
ENV_WC_PROJECT_ID = "FUNDING_WC_PROJECT_ID"
ENV_SETTLE_DELAY = "FUNDING_SETTLE_DELAY"
ENV_SETTLE_POLLS = "FUNDING_SETTLE_POLLS"
ENV_STATE_DIR = "FUNDING_STATE_DIR"
ENV_OWNER_PRIVATE_KEY = "OWNER_PRIVATE_KEY"
ENV_PARAM_PREFIX = "PARAM_PREFIX"

# Backward-compatible fallbacks (names used by the node scripts)
FALLBACK_ENV_RPC_URL = "RPC_URL"
FALLBACK_ENV_EERC_CONTRACT = "EERC_CONTRACT"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    import boto3
    from botocore.exceptions import ClientError

    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                out[name] = None
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


class Settings(BaseModel):
    """
    Runtime configuration.

    Plain values come from the environment; secrets may also come from SSM
    Parameter Store under `PARAM_PREFIX` (`walletconnect_project_id`,
    `owner_private_key`). Environment values win over SSM.
    """

    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = AVALANCHE_C_CHAIN_ID
    token_address: str = BURRITO_TOKEN
    eerc_contract: str = EERC_CONTRACT
    circuits_origin: Optional[str] = None
    wallet_rpc_url: Optional[str] = None
    walletconnect_project_id: Optional[str] = None
    settle_delay: float = Field(default=0.3, ge=0.0)
    settle_polls: int = Field(default=0, ge=0)
    rpc_retry_count: int = Field(default=3, ge=0)
    rpc_retry_delay: float = Field(default=0.9, ge=0.0)
    state_dir: str = ".cache"
    owner_private_key: Optional[str] = Field(default=None, repr=False)

    @classmethod
    def from_env(cls, *, load_secrets: bool = True) -> "Settings":
        values: Dict[str, object] = {}
        rpc = _getenv(ENV_RPC_URL) or _getenv(FALLBACK_ENV_RPC_URL)
        if rpc:
            values["rpc_url"] = rpc
        chain = _getenv(ENV_CHAIN_ID)
        if chain:
            try:
                values["chain_id"] = int(chain, 0)
            except ValueError as exc:
                raise RuntimeError(f"Invalid {ENV_CHAIN_ID}: {chain!r}") from exc
        for env_name, field in (
            (ENV_TOKEN_ADDRESS, "token_address"),
            (ENV_CIRCUITS_ORIGIN, "circuits_origin"),
            (ENV_WALLET_RPC_URL, "wallet_rpc_url"),
            (ENV_WC_PROJECT_ID, "walletconnect_project_id"),
            (ENV_STATE_DIR, "state_dir"),
            (ENV_OWNER_PRIVATE_KEY, "owner_private_key"),
        ):
            v = _getenv(env_name)
            if v:
                values[field] = v
        contract = _getenv(ENV_EERC_CONTRACT) or _getenv(FALLBACK_ENV_EERC_CONTRACT)
        if contract:
            values["eerc_contract"] = contract
        delay = _getenv(ENV_SETTLE_DELAY)
        if delay:
            values["settle_delay"] = float(delay)
        polls = _getenv(ENV_SETTLE_POLLS)
        if polls:
            values["settle_polls"] = int(polls)

        prefix = _getenv(ENV_PARAM_PREFIX)
        if load_secrets and prefix:
            params = _load_ssm_params(prefix, ["walletconnect_project_id", "owner_private_key"])
            for name, val in params.items():
                if val and name not in values:
                    values[name] = val

        settings = cls(**values)
        if not settings.walletconnect_project_id:
            logger.warning(
                "%s is missing. WalletConnect QR pairing will not work (required for iframe/mobile).",
                ENV_WC_PROJECT_ID,
            )
        return settings

    def require_owner_key(self) -> str:
        key = _require(self.owner_private_key, f"{ENV_OWNER_PRIVATE_KEY} (or SSM owner_private_key)")
        return key if key.startswith("0x") else f"0x{key}"


__all__ = ["Settings", "AVALANCHE_C_CHAIN_ID", "BURRITO_TOKEN", "EERC_CONTRACT"]
