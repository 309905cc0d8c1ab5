from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_utils import is_address

from chain.client import ChainClient
from chain.eerc import EercContract
from chain.rpc import JsonRpcClient, RpcError
from funding.config import Settings


logger = logging.getLogger(__name__)


class AuditorSetupError(RuntimeError):
    """The auditor could not be configured; the message says which step failed."""


async def read_status(eerc: EercContract) -> Dict[str, Any]:
    """Registrar, auditor address, auditor public key and readiness flag."""
    registrar = await eerc.registrar()
    auditor = await eerc.auditor()
    ax, ay = await eerc.auditor_public_key()
    ready = await eerc.is_auditor_key_set()
    return {
        "eerc": eerc.address,
        "registrar": registrar,
        "auditor": auditor,
        "auditor_public_key": [str(ax), str(ay)],
        "is_auditor_key_set": ready,
    }


def _normalize_address(raw: str) -> str:
    addr = raw if raw.startswith("0x") else f"0x{raw}"
    if not is_address(addr):
        raise AuditorSetupError(f"AUDITOR_ADDRESS not an address: {raw}")
    return addr


async def set_auditor(chain: ChainClient, eerc: EercContract, private_key: str, auditor_address: str) -> Dict[str, Any]:
    """
    Point the converter at `auditor_address` as its auditor.

    Steps: owner check (warning only), registrar check on the auditor,
    `eth_call` simulation, signed broadcast, receipt, readiness check.
    """
    auditor = _normalize_address(auditor_address)
    account = Account.from_key(private_key)
    logger.info("owner=%s eerc=%s auditor=%s", account.address, eerc.address, auditor)

    try:
        owner = await eerc.owner()
    except RpcError as exc:
        logger.debug("owner() not readable: %s", exc)
    else:
        if owner.lower() != account.address.lower():
            logger.warning("on-chain owner is %s, not %s; the transaction will likely revert", owner, account.address)

    if not await eerc.is_user_registered(auditor):
        raise AuditorSetupError(
            "Auditor address is not registered in the registrar. Register it first (generate key + register)."
        )
    pk = await eerc.user_public_key(auditor)
    logger.info("auditor registered, public key = %d, %d", pk[0], pk[1])

    before = await read_status(eerc)
    tx = eerc.set_auditor_tx(account.address, auditor)
    try:
        await chain.call(tx["to"], tx["data"], sender=account.address)
    except RpcError as exc:
        raise AuditorSetupError(f"Simulate failed: {getattr(exc, 'short_message', None) or exc}") from exc

    tx["nonce"] = await chain.transaction_count(account.address)
    tx["gas"] = await chain.estimate_gas({k: tx[k] for k in ("from", "to", "data")})
    tx["gasPrice"] = await chain.gas_price()
    tx["chainId"] = await chain.chain_id()
    del tx["from"]
    signed = account.sign_transaction(tx)
    tx_hash = await chain.send_raw_transaction(signed.raw_transaction)
    logger.info("tx: %s", tx_hash)
    receipt = await chain.wait_for_receipt(tx_hash)

    after = await read_status(eerc)
    if not after["is_auditor_key_set"]:
        raise AuditorSetupError(
            "isAuditorKeySet is still false. Check that the owner is correct and the auditor is registered."
        )
    return {"ok": True, "tx_hash": tx_hash, "status": receipt.status, "before": before, "after": after}


async def run_once(action: str = "status", *, auditor: Optional[str] = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or Settings.from_env()
    async with JsonRpcClient(
        settings.rpc_url, retry_count=settings.rpc_retry_count, retry_delay=settings.rpc_retry_delay
    ) as rpc:
        chain = ChainClient(rpc)
        eerc = EercContract(chain, settings.eerc_contract)
        if action == "status":
            return {"ok": True, **(await read_status(eerc))}
        if action == "set-auditor":
            if not auditor:
                raise AuditorSetupError("Missing auditor address")
            return await set_auditor(chain, eerc, settings.require_owner_key(), auditor)
    raise ValueError(f"Unknown action: {action}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry. Event: {"action": "status" | "set-auditor", "auditor": "0x..."}."""
    event = event or {}
    return asyncio.run(run_once(event.get("action", "status"), auditor=event.get("auditor")))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="eerc-auditor", description="Inspect or configure the eERC auditor")
    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("status", help="print registrar, auditor and auditor key state")
    p_set = sub.add_parser("set-auditor", help="set the auditor public key from a registered address")
    p_set.add_argument("auditor", nargs="?", help="auditor address (defaults to AUDITOR_ADDRESS)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    auditor = getattr(args, "auditor", None)
    if args.action == "set-auditor" and not auditor:
        auditor = os.environ.get("AUDITOR_ADDRESS")
    try:
        result = asyncio.run(run_once(args.action, auditor=auditor))
    except (AuditorSetupError, RpcError, RuntimeError) as exc:
        logger.error("%s", exc)
        return 1
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
