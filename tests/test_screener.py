from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from core.screener import Screener
from raydium_lib.constants import RAY_LOG_PREFIX
from raydium_lib.ray_log import SwapBaseInRayLog, SwapDirection, encode_ray_log


def _logs_notification(amount_in, amount_out, direction=SwapDirection.QUOTE_2_BASE, err=None):
    log = SwapBaseInRayLog(
        amount_in=amount_in,
        min_amount_out=0,
        direction=direction,
        user_amount=amount_in,
        base_reserve=0,
        quote_reserve=0,
        amount_out=amount_out,
    )
    return {
        "jsonrpc": "2.0",
        "method": "logsNotification",
        "params": {
            "subscription": 5,
            "result": {
                "context": {"slot": 1},
                "value": {"signature": "sig", "err": err, "logs": [RAY_LOG_PREFIX + encode_ray_log(log)]},
            },
        },
    }


@pytest.mark.parametrize(
    "samples, median",
    [([5, 1, 3, 2, 4], 3), ([1, 2, 3, 4], 3), ([7], 7)],
)
def test_tick_emits_median_and_clears(pool, samples, median):
    emitted = []
    screener = Screener(pool, emitted.append)
    screener.prices.extend(Decimal(sample) for sample in samples)

    screener._process_prices()

    assert emitted == [Decimal(median)]
    assert not screener.prices


def test_empty_tick_does_not_call_listener(pool):
    emitted = []
    screener = Screener(pool, emitted.append)
    screener._process_prices()
    assert emitted == []


def test_sample_buffer_is_bounded(pool):
    screener = Screener(pool, lambda price: None, max_samples=3)
    screener.prices.extend(Decimal(i) for i in range(10))
    assert list(screener.prices) == [Decimal(7), Decimal(8), Decimal(9)]


def test_swap_logs_become_prices(pool):
    screener = Screener(pool, lambda price: None)

    # 2 SOL in for 4_000_000 coins (6 decimals)
    screener._handle_message(_logs_notification(2 * 10**9, 4 * 10**12))
    # failed swaps are skipped
    screener._handle_message(_logs_notification(10**9, 10**6, err={"InstructionError": [1, {"Custom": 30}]}))
    # unrelated logs
    screener._handle_message({
        "method": "logsNotification",
        "params": {"result": {"value": {"signature": "x", "err": None, "logs": ["Program log: hi"]}}},
    })

    assert list(screener.prices) == [Decimal("0.0000005")]


def test_listener_errors_are_contained(pool):
    def listener(price):
        raise RuntimeError("listener failed")

    screener = Screener(pool, listener)
    screener.prices.append(Decimal(1))
    screener._process_prices()
    assert not screener.prices


def test_subscription_ack_and_unsubscribe_request(pool):
    sent = []

    class FakeWebSocket:
        def send(self, payload):
            sent.append(payload)

    screener = Screener(pool, lambda price: None)
    screener._subscribe(FakeWebSocket())
    assert sent[0]["method"] == "logsSubscribe"
    assert sent[0]["params"] == [{"mentions": [str(pool.id)]}, {"commitment": "processed"}]

    screener._handle_message({"jsonrpc": "2.0", "id": 1, "result": 5})
    assert screener.subscription_id == 5


async def test_watch_twice_is_rejected_and_disconnect_stops_ticks(pool):
    emitted = []
    screener = Screener(pool, emitted.append, uri="ws://127.0.0.1:9", reconnect_delay=0.05)
    screener.watch(interval=0.02)
    try:
        with pytest.raises(RuntimeError):
            screener.watch()

        screener.prices.append(Decimal(2))
        await asyncio.sleep(0.05)
        assert emitted == [Decimal(2)]
    finally:
        await screener.disconnect()

    assert not screener.watching
    screener.prices.append(Decimal(3))
    await asyncio.sleep(0.05)
    assert emitted == [Decimal(2)]
