from __future__ import annotations

import asyncio

import pytest

from fakes import RECIPIENT, Harness
from funding.executor import NO_AUDITOR
from state.models import OperationKind, OperationStatus
from wallet.connectors import UserRejectedError


async def _connected(**kw) -> Harness:
    h = Harness(**kw)
    await h.connect()
    return h


@pytest.mark.asyncio
async def test_deposit_end_to_end_event_order():
    h = await _connected(allowance=0, erc20_decimals=18)
    h.sdk.next_balances = [500]

    op = await h.executor.deposit("5")

    assert op.status is OperationStatus.SUCCEEDED
    assert op.result_tx_hash == "0xdeposit"
    assert op.required_amount == 5 * 10**18
    assert h.log == [
        ("read_allowance",),
        ("approve", 5 * 10**18),
        ("wait_receipt", "0xapprove0"),
        ("deposit", 5 * 10**18),
        ("wait_receipt", "0xdeposit"),
        ("refresh",),
        ("settle", 0.3),
    ]
    assert h.synchronizer.get_cached_atomic_value() == 500
    assert h.executor.status(OperationKind.DEPOSIT).is_busy is False
    assert h.executor.operation(OperationKind.APPROVE).status is OperationStatus.SUCCEEDED
    assert "Approve sent 0xapprove0" in h.notes.texts("success")
    assert "Deposit submitted 0xdeposit" in h.notes.texts("success")


@pytest.mark.asyncio
async def test_deposit_skips_approve_when_allowance_covers_amount():
    h = await _connected(allowance=10**30)
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.SUCCEEDED
    assert not [e for e in h.log if e[0] == "approve"]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["", "   ", "0", "-1", "abc", "0.0000000000000000001"])
async def test_invalid_deposit_amount_makes_no_external_calls(amount):
    h = await _connected(allowance=10**30)
    op = await h.executor.deposit(amount)
    assert op.status is OperationStatus.FAILED
    assert op.error == "Enter a valid amount"
    assert h.log == []
    assert h.notes.texts("error") == ["Enter a valid amount"]


@pytest.mark.asyncio
async def test_deposit_preconditions_checked_in_order():
    h = Harness()
    op = await h.executor.deposit("abc")
    assert op.error == "Connect your wallet first"

    h = await _connected(has_key=False, registered=False)
    assert (await h.executor.deposit("1")).error == "Generate your decryption key first"

    h = await _connected(has_key=True, registered=False)
    assert (await h.executor.deposit("1")).error == "Register first"
    assert h.log == []


@pytest.mark.asyncio
async def test_deposit_converts_with_token_decimals():
    h = await _connected(allowance=10**30, erc20_decimals=6)
    await h.executor.deposit("10")
    assert ("deposit", 10_000_000) in h.log


@pytest.mark.asyncio
async def test_deposit_falls_back_to_18_decimals_when_read_fails():
    h = await _connected(allowance=10**30, erc20_decimals=None)
    await h.executor.deposit("10")
    assert ("deposit", 10**19) in h.log
    assert h.executor.erc20_decimals_value == 18


@pytest.mark.asyncio
async def test_second_deposit_rejected_while_first_awaits_confirmation():
    h = await _connected(allowance=10**30)
    h.chain.gate = asyncio.Event()

    first = asyncio.create_task(h.executor.deposit("1"))
    while True:
        op = h.executor.operation(OperationKind.DEPOSIT)
        if op is not None and op.status is OperationStatus.AWAITING_CONFIRMATION:
            break
        await asyncio.sleep(0)

    assert h.executor.status(OperationKind.DEPOSIT).is_busy is True
    second = await h.executor.deposit("1")
    assert second.status is OperationStatus.FAILED
    assert second.error == "Deposit already in progress"
    assert "Deposit already in progress" in h.notes.texts("warning")

    h.chain.gate.set()
    done = await first
    assert done.status is OperationStatus.SUCCEEDED
    assert [e for e in h.log if e[0] == "deposit"] == [("deposit", 10**18)]
    assert h.executor.operation(OperationKind.DEPOSIT) is done


@pytest.mark.asyncio
async def test_resync_failure_does_not_fail_the_operation():
    h = await _connected(allowance=10**30)
    h.sdk.errors["refresh"] = RuntimeError("decrypt failed")
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.SUCCEEDED
    assert h.notes.texts("error") == []


@pytest.mark.asyncio
async def test_sdk_error_uses_short_message():
    h = await _connected(allowance=10**30)
    h.sdk.errors["deposit"] = UserRejectedError("transaction")
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.FAILED
    assert op.error == "User rejected the request"
    assert h.executor.status(OperationKind.DEPOSIT).last_error == "User rejected the request"


@pytest.mark.asyncio
async def test_error_without_message_uses_fallback():
    h = await _connected(allowance=10**30)
    h.sdk.errors["withdraw"] = RuntimeError()
    op = await h.executor.withdraw("1")
    assert op.error == "Withdraw failed"


@pytest.mark.asyncio
async def test_reverted_receipt_fails_with_short_message():
    h = await _connected(allowance=10**30)
    h.chain.reverted.add("0xdeposit")
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.FAILED
    assert op.error == "Transaction reverted"
    assert op.result_tx_hash == "0xdeposit"


@pytest.mark.asyncio
async def test_wrong_network_rejected_switch_aborts_with_warning():
    h = await _connected(allowance=10**30, chain_id=1)
    h.connector.reject_switch = True
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.FAILED
    assert op.error == "Please switch to Avalanche C-Chain"
    assert h.notes.texts("warning")[-1] == "Please switch to Avalanche C-Chain"
    assert not [e for e in h.log if e[0] == "deposit"]


@pytest.mark.asyncio
async def test_wrong_network_switches_then_proceeds():
    h = await _connected(allowance=10**30, chain_id=1)
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.SUCCEEDED
    assert h.connector.switch_calls == [43114]
    assert h.session.snapshot.chain_id == 43114


@pytest.mark.asyncio
async def test_missing_auditor_warns_but_deposit_proceeds():
    h = await _connected(allowance=10**30)
    h.sdk.auditor = (0, 0)
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.SUCCEEDED
    assert NO_AUDITOR in h.notes.texts("warning")


@pytest.mark.asyncio
async def test_transfer_to_unregistered_recipient_is_blocked():
    h = await _connected()
    op = await h.executor.private_transfer(RECIPIENT, "1")
    assert op.status is OperationStatus.FAILED
    assert op.error == "Recipient is not registered in eERC"
    assert h.log == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "to,amount,error",
    [
        ("", "1", "Enter a recipient address"),
        (RECIPIENT, "0", "Enter a valid amount"),
        (RECIPIENT, "", "Enter a valid amount"),
        (RECIPIENT, "-1", "Enter a valid amount"),
        (RECIPIENT, "abc", "Enter a valid amount"),
        ("0x1234", "1", "Enter a valid recipient address"),
    ],
)
async def test_transfer_preconditions(to, amount, error):
    h = await _connected()
    op = await h.executor.private_transfer(to, amount)
    assert op.error == error
    assert h.log == []


@pytest.mark.asyncio
async def test_transfer_refreshes_before_and_after():
    h = await _connected()
    h.sdk.registered.add(RECIPIENT)
    h.sdk.next_balances = [1000, 850]

    op = await h.executor.private_transfer(RECIPIENT, "1.5")

    assert op.status is OperationStatus.SUCCEEDED
    assert h.log == [
        ("refresh",),
        ("settle", 0.2),
        ("private_transfer", RECIPIENT, 150),
        ("wait_receipt", "0xtransfer"),
        ("refresh",),
        ("settle", 0.3),
    ]
    assert h.synchronizer.display_balance == "8.5"


@pytest.mark.asyncio
@pytest.mark.parametrize("reported", [0, -1, 37, None])
async def test_withdraw_uses_two_decimals_when_reported_value_is_invalid(reported):
    h = await _connected()
    h.sdk.decimals = reported
    op = await h.executor.withdraw("1.5")
    assert op.status is OperationStatus.SUCCEEDED
    assert ("withdraw", 150) in h.log
    assert h.synchronizer.private_decimals == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["", "   ", "0", "-1", "abc"])
async def test_invalid_withdraw_amount_makes_no_external_calls(amount):
    h = await _connected()
    op = await h.executor.withdraw(amount)
    assert op.status is OperationStatus.FAILED
    assert op.error == "Enter a valid amount"
    assert h.log == []
    assert h.notes.texts("error") == ["Enter a valid amount"]


@pytest.mark.asyncio
async def test_withdraw_amount_below_private_precision_fails_before_network_switch():
    h = await _connected(chain_id=1)
    op = await h.executor.withdraw("0.001")
    assert op.status is OperationStatus.FAILED
    assert op.error == "Enter a valid amount"
    assert h.connector.switch_calls == []
    assert not [e for e in h.log if e[0] == "withdraw"]


@pytest.mark.asyncio
async def test_transfer_amount_below_private_precision_fails_before_network_switch():
    h = await _connected(chain_id=1)
    h.sdk.registered.add(RECIPIENT)
    op = await h.executor.private_transfer(RECIPIENT, "0.001")
    assert op.status is OperationStatus.FAILED
    assert op.error == "Enter a valid amount"
    assert h.connector.switch_calls == []
    assert not [e for e in h.log if e[0] == "private_transfer"]


@pytest.mark.asyncio
async def test_withdraw_requires_key():
    h = await _connected(has_key=False)
    op = await h.executor.withdraw("1")
    assert op.error == "Generate your decryption key first"
    assert h.log == []


@pytest.mark.asyncio
async def test_settle_polls_repeat_refresh_while_balance_unchanged():
    h = await _connected(settle_polls=2)
    h.sdk.next_balances = [1000, 1000, 900]
    await h.executor.withdraw("1")
    assert [e for e in h.log if e[0] == "refresh"] == [("refresh",)] * 3
    assert h.synchronizer.get_cached_atomic_value() == 900


@pytest.mark.asyncio
async def test_register_and_generate_key_update_identity():
    h = await _connected(has_key=False, registered=False)

    key_op = await h.executor.generate_key()
    assert key_op.status is OperationStatus.SUCCEEDED
    assert key_op.result_tx_hash is None
    assert h.executor.identity.has_decryption_key is True

    reg_op = await h.executor.register()
    assert reg_op.status is OperationStatus.SUCCEEDED
    assert reg_op.result_tx_hash == "0xregister"
    assert h.executor.identity.is_registered is True
    assert ("wait_receipt", "0xregister") in h.log


@pytest.mark.asyncio
async def test_disposed_executor_finishes_silently():
    h = await _connected(allowance=10**30)
    h.executor.dispose()
    op = await h.executor.deposit("1")
    assert op.status is OperationStatus.SUCCEEDED
    assert h.notes.texts("success") == []
    assert ("refresh",) not in h.log


@pytest.mark.asyncio
async def test_refresh_identity_clears_when_disconnected():
    h = await _connected()
    assert h.executor.identity.is_registered is True
    await h.session.disconnect()
    identity = await h.executor.refresh_identity()
    assert identity.is_registered is False
    assert identity.has_decryption_key is False
    assert h.session.snapshot.account_address is None
