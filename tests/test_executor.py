from __future__ import annotations

from types import SimpleNamespace

import pytest
from solana.rpc.core import TransactionExpiredBlockheightExceededError
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature

from core.executor import SwapExecutor, SwapMode
from errors import ExpiryError, RejectionError, RelayScheduleWarning, SwapLogNotFoundError, ValidationError
from raydium_lib.amm_errors import AmmError, AmmErrorType
from raydium_lib.constants import RAY_LOG_PREFIX, WSOL
from raydium_lib.ray_log import SwapBaseInRayLog, SwapDirection, encode_ray_log

COMPUTE_BUDGET = "ComputeBudget111111111111111111111111111111"

SWAP_LOG = SwapBaseInRayLog(
    amount_in=10**9,
    min_amount_out=1,
    direction=SwapDirection.QUOTE_2_BASE,
    user_amount=10**9,
    base_reserve=10**15,
    quote_reserve=10**11,
    amount_out=9 * 10**12,
)
SWAP_LOGS = ["Program log: Instruction: SwapBaseIn", RAY_LOG_PREFIX + encode_ray_log(SWAP_LOG)]


class FakeJsonError:
    def __init__(self, payload):
        self.payload = payload

    def to_json(self):
        return self.payload


class FakeClient:
    def __init__(self, confirm_err=None, expire=False, tx_logs=SWAP_LOGS, simulate_err=None, simulate_logs=SWAP_LOGS):
        self.confirm_err = confirm_err
        self.expire = expire
        self.tx_logs = tx_logs
        self.simulate_err = simulate_err
        self.simulate_logs = simulate_logs
        self.sent = []
        self.simulated = []
        self.signature = Signature.new_unique()

    async def get_latest_blockhash(self, commitment=None):
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.new_unique(), last_valid_block_height=1000))

    async def send_transaction(self, transaction, opts=None):
        self.sent.append(transaction)
        return SimpleNamespace(value=self.signature)

    async def confirm_transaction(self, signature, commitment=None, sleep_seconds=0.5, last_valid_block_height=None):
        if self.expire:
            raise TransactionExpiredBlockheightExceededError("block height exceeded")
        return SimpleNamespace(value=[SimpleNamespace(err=self.confirm_err)])

    async def simulate_transaction(self, transaction, commitment=None):
        self.simulated.append(transaction)
        return SimpleNamespace(value=SimpleNamespace(err=self.simulate_err, logs=self.simulate_logs))

    async def get_transaction(self, signature, commitment=None, max_supported_transaction_version=None):
        meta = SimpleNamespace(err=None, log_messages=self.tx_logs)
        return SimpleNamespace(value=SimpleNamespace(transaction=SimpleNamespace(meta=meta)))


class FakeBundleSender:
    def __init__(self, leader=(100, 102), leader_error=None, send_error=None):
        self.leader = leader
        self.leader_error = leader_error
        self.send_error = send_error
        self.calls = []

    async def get_next_scheduled_leader(self):
        if self.leader_error is not None:
            raise self.leader_error
        return self.leader

    async def send_and_confirm(self, instructions, tip=0, commitment=None):
        self.calls.append((instructions, tip))
        if self.send_error is not None:
            raise self.send_error
        return Signature.new_unique()


def _executor(client, bundle_sender=None):
    return SwapExecutor(client, Keypair(), bundle_sender=bundle_sender, io_retry_interval=0.01)


def _program_ids(transaction):
    keys = transaction.message.account_keys
    return [str(keys[ix.program_id_index]) for ix in transaction.message.instructions]


async def test_direct_swap_returns_swap_log(pool, market):
    client = FakeClient()
    result = await _executor(client).swap(
        pool, market, WSOL, pool.coin_mint, 10**9, 1, mode=SwapMode.DIRECT, cu_price=50_000
    )

    assert result.amount_out == SWAP_LOG.amount_out
    assert result.direction == SwapDirection.QUOTE_2_BASE
    programs = _program_ids(client.sent[0])
    assert programs[:2] == [COMPUTE_BUDGET, COMPUTE_BUDGET]
    assert str(pool.program_id) in programs


async def test_direct_swap_expiry_is_its_own_error(pool, market):
    with pytest.raises(ExpiryError, match="did not land"):
        await _executor(FakeClient(expire=True)).swap(pool, market, WSOL, pool.coin_mint, 10, 1, mode="direct")


async def test_on_chain_error_is_classified(pool, market):
    client = FakeClient(confirm_err=FakeJsonError('{"InstructionError":[4,{"Custom":30}]}'))
    with pytest.raises(AmmError) as error:
        await _executor(client).swap(pool, market, WSOL, pool.coin_mint, 10, 1, mode=SwapMode.DIRECT)
    assert error.value.error_type == AmmErrorType.EXCEEDED_SLIPPAGE
    assert not isinstance(error.value, ExpiryError)


async def test_missing_swap_log_is_reported(pool, market):
    client = FakeClient(tx_logs=["Program log: Instruction: Transfer"])
    with pytest.raises(SwapLogNotFoundError):
        await _executor(client).swap(pool, market, WSOL, pool.coin_mint, 10, 1, mode=SwapMode.DIRECT)


async def test_simulation_never_broadcasts(pool, market):
    client = FakeClient()
    result = await _executor(client).swap(pool, market, pool.coin_mint, WSOL, 10, 1, mode=SwapMode.SIMULATE, cu_price=1)

    assert result.amount_in == SWAP_LOG.amount_in
    assert client.sent == []
    assert len(client.simulated) == 1
    # priority fee only applies to direct broadcast
    assert _program_ids(client.simulated[0]).count(COMPUTE_BUDGET) == 1


async def test_simulation_error_goes_through_classifier(pool, market):
    client = FakeClient(simulate_err="custom program error: 0x28", simulate_logs=[])
    with pytest.raises(AmmError) as error:
        await _executor(client).swap(pool, market, WSOL, pool.coin_mint, 10, 1, mode=SwapMode.SIMULATE)
    assert error.value.error_type == AmmErrorType.INSUFFICIENT_FUNDS


async def test_auto_mode_follows_leader_schedule():
    close = _executor(FakeClient(), FakeBundleSender(leader=(100, 103)))
    far = _executor(FakeClient(), FakeBundleSender(leader=(100, 150)))
    assert await close.resolve_mode(SwapMode.AUTO) == SwapMode.RELAY
    assert await far.resolve_mode(SwapMode.AUTO) == SwapMode.DIRECT


async def test_auto_mode_falls_back_to_direct_with_warning():
    executor = _executor(FakeClient(), FakeBundleSender(leader_error=ConnectionError("no schedule")))
    with pytest.warns(RelayScheduleWarning):
        assert await executor.resolve_mode("auto") == SwapMode.DIRECT


async def test_modes_without_relay():
    executor = _executor(FakeClient())
    assert await executor.resolve_mode(SwapMode.AUTO) == SwapMode.DIRECT
    with pytest.raises(ValidationError):
        await executor.resolve_mode(SwapMode.RELAY)


async def test_relay_swap_uses_bundle_sender(pool, market):
    client = FakeClient()
    sender = FakeBundleSender()
    result = await _executor(client, sender).swap(
        pool, market, WSOL, pool.coin_mint, 10, 1, mode=SwapMode.RELAY, cu_price=50_000, jito_tip=1000
    )

    assert result.amount_out == SWAP_LOG.amount_out
    assert client.sent == []
    instructions, tip = sender.calls[0]
    assert tip == 1000
    assert [str(ix.program_id) for ix in instructions].count(COMPUTE_BUDGET) == 1


async def test_relay_rejection_propagates(pool, market):
    sender = FakeBundleSender(send_error=RejectionError("Bundle simulation failed"))
    with pytest.raises(RejectionError):
        await _executor(FakeClient(), sender).swap(pool, market, WSOL, pool.coin_mint, 10, 1, mode=SwapMode.RELAY)
