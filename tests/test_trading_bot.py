from __future__ import annotations

from solders.keypair import Keypair

from core.trading_bot import TradingBot
from raydium_lib import compute_min_amount_out


class FakeRaydiumClient:
    def __init__(self, market, coin_reserve, sol_reserve):
        self.market = market
        self.coin_reserve = coin_reserve
        self.sol_reserve = sol_reserve

    async def get_coin_reserve(self, pool):
        return self.coin_reserve

    async def get_sol_reserve(self, pool):
        return self.sol_reserve

    async def get_market_state(self, pool):
        return self.market


class FakeExecutor:
    def __init__(self):
        self.calls = []

    async def swap(self, pool, market, mint_in, mint_out, amount_in, min_amount_out, **kwargs):
        self.calls.append((mint_in, mint_out, amount_in, min_amount_out, kwargs))
        return "swap-log"


def _bot(market, strategy=None):
    bot = TradingBot(Keypair(), strategy=strategy, jito_block_engine_url="")
    bot.raydium_client = FakeRaydiumClient(market, coin_reserve=10**12, sol_reserve=10**10)
    bot.executor = FakeExecutor()
    return bot


async def test_buy_and_sell_use_pool_reserves(pool, market):
    bot = _bot(market)

    assert await bot.buy(pool, 10**8, mode="direct", slippage=5) == "swap-log"
    await bot.sell(pool, 10**9, slippage=5)

    buy, sell = bot.executor.calls
    assert buy[:4] == (pool.sol_mint, pool.coin_mint, 10**8, compute_min_amount_out(10**8, 10**10, 10**12, 5))
    assert buy[4]["mode"] == "direct"
    assert sell[:4] == (pool.coin_mint, pool.sol_mint, 10**9, compute_min_amount_out(10**9, 10**12, 10**10, 5))


async def test_new_pools_go_to_strategy(pool, market):
    seen = []
    bot = _bot(market, strategy=lambda bot, pool: seen.append((bot, pool)))

    bot.on_new_pool(pool)
    assert seen == [(bot, pool)]

    # no strategy, only logged
    assert _bot(market).on_new_pool(pool) is None


async def test_token_metadata_is_looked_up_for_the_coin(pool, market):
    requested = []

    class FakeMetadataClient:
        async def get_token_metadata(self, mint):
            requested.append(mint)
            return "metadata"

    bot = _bot(market)
    bot.metadata_client = FakeMetadataClient()
    assert await bot.get_token_metadata(pool) == "metadata"
    assert requested == [pool.coin_mint]


async def test_stop_before_start_is_safe():
    await TradingBot(Keypair(), jito_block_engine_url="").stop()
