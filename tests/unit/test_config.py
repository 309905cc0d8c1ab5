from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from funding import config as cfg
from funding.circuits import get_circuit_config
from funding.config import Settings

_ENV = [
    "FUNDING_RPC_URL",
    "RPC_URL",
    "FUNDING_CHAIN_ID",
    "FUNDING_TOKEN_ADDRESS",
    "FUNDING_EERC_CONTRACT",
    "EERC_CONTRACT",
    "FUNDING_CIRCUITS_ORIGIN",
    "FUNDING_WALLET_RPC_URL",
    "FUNDING_WC_PROJECT_ID",
    "FUNDING_SETTLE_DELAY",
    "FUNDING_SETTLE_POLLS",
    "FUNDING_STATE_DIR",
    "OWNER_PRIVATE_KEY",
    "PARAM_PREFIX",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults_target_avalanche():
    s = Settings.from_env()
    assert s.chain_id == 43114
    assert s.settle_delay == 0.3
    assert s.settle_polls == 0
    assert s.token_address == cfg.BURRITO_TOKEN
    assert s.eerc_contract == cfg.EERC_CONTRACT


def test_env_overrides_and_fallback_names(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RPC_URL", "https://fallback.rpc")
    monkeypatch.setenv("EERC_CONTRACT", "0x" + "cd" * 20)
    monkeypatch.setenv("FUNDING_CHAIN_ID", "0xa869")
    monkeypatch.setenv("FUNDING_SETTLE_DELAY", "0.5")
    monkeypatch.setenv("FUNDING_SETTLE_POLLS", "3")

    s = Settings.from_env()

    assert s.rpc_url == "https://fallback.rpc"
    assert s.eerc_contract == "0x" + "cd" * 20
    assert s.chain_id == 43113
    assert s.settle_delay == 0.5
    assert s.settle_polls == 3

    monkeypatch.setenv("FUNDING_RPC_URL", "https://primary.rpc")
    assert Settings.from_env().rpc_url == "https://primary.rpc"


def test_invalid_chain_id(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FUNDING_CHAIN_ID", "avalanche")
    with pytest.raises(RuntimeError, match="FUNDING_CHAIN_ID"):
        Settings.from_env()


def test_ssm_secrets_fill_gaps_but_env_wins(monkeypatch: pytest.MonkeyPatch):
    calls: List[str] = []

    def fake_load_ssm_params(prefix: str, names: list[str]) -> Dict[str, Optional[str]]:
        calls.append(prefix)
        return {"walletconnect_project_id": "wc-from-ssm", "owner_private_key": "ab" * 32}

    monkeypatch.setattr(cfg, "_load_ssm_params", fake_load_ssm_params)
    monkeypatch.setenv("PARAM_PREFIX", "/eerc/dev/")
    monkeypatch.setenv("FUNDING_WC_PROJECT_ID", "wc-from-env")

    s = Settings.from_env()

    assert calls == ["/eerc/dev/"]
    assert s.walletconnect_project_id == "wc-from-env"
    assert s.require_owner_key() == "0x" + "ab" * 32
    assert "ab" * 32 not in repr(s)


def test_secrets_not_loaded_when_disabled(monkeypatch: pytest.MonkeyPatch):
    def boom(prefix: str, names: list[str]):
        raise AssertionError("SSM should not be called")

    monkeypatch.setattr(cfg, "_load_ssm_params", boom)
    monkeypatch.setenv("PARAM_PREFIX", "/eerc/dev/")
    assert Settings.from_env(load_secrets=False).owner_private_key is None


def test_missing_owner_key_is_reported():
    with pytest.raises(RuntimeError, match="Missing required configuration"):
        Settings().require_owner_key()


def test_circuit_urls():
    rooted = get_circuit_config()
    assert rooted["transfer"].wasm == "/eerc/transfer.wasm"
    hosted = get_circuit_config("https://app.example/")
    assert hosted["withdraw"].zkey == "https://app.example/eerc/withdraw.zkey"
    assert set(hosted) == {"registration", "transfer", "withdraw", "mint", "burn"}
