import asyncio
from decimal import Decimal
from typing import Any, Callable, List, Optional, Union

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from config import (
    JITO_BLOCK_ENGINE_URL,
    JITO_TIP,
    PRICE_UPDATE_INTERVAL,
    RPC_URL,
    SLIPPAGE_PERCENT,
    SOLANA_PRIORITY_FEE,
    STREAM_WS_URL,
)
from jito_lib import BundleSender
from market_api import TokenMetadata, TokenMetadataClient
from raydium_lib import Pool, RaydiumClient, SwapRayLogCommon, compute_min_amount_out
from utils import get_logger
from .executor import SwapExecutor, SwapMode
from .observer import Observer
from .screener import Screener

Strategy = Callable[["TradingBot", Pool], Any]


class TradingBot:
    """
    Wires the rpc client, bundle sender, executor and pool observer together.

    Every discovered pool goes to `strategy(bot, pool)`, the strategy then uses
    `watch_price`, `buy` and `sell` to act on it.
    """

    def __init__(
        self,
        keypair: Keypair,
        jito_auth_keypair: Optional[Keypair] = None,
        strategy: Optional[Strategy] = None,
        rpc_url: str = RPC_URL,
        stream_ws_url: str = STREAM_WS_URL,
        jito_block_engine_url: str = JITO_BLOCK_ENGINE_URL,
    ):
        self.logger = get_logger("BOT")
        self.keypair = keypair
        self.jito_auth_keypair = jito_auth_keypair
        self.strategy = strategy
        self.rpc_url = rpc_url
        self.stream_ws_url = stream_ws_url
        self.jito_block_engine_url = jito_block_engine_url

        self.client: Optional[AsyncClient] = None
        self.raydium_client: Optional[RaydiumClient] = None
        self.metadata_client: Optional[TokenMetadataClient] = None
        self.bundle_sender: Optional[BundleSender] = None
        self.executor: Optional[SwapExecutor] = None
        self.observer: Optional[Observer] = None
        self.screeners: List[Screener] = []

    async def _init_bundle_sender(self):
        if not self.jito_block_engine_url:
            self.logger.info("Jito block engine is not configured, relay mode disabled")
            return
        # needs the optional jito extra
        from jito_lib.block_engine import BlockEngineClient

        relay = await BlockEngineClient.create(self.jito_block_engine_url, self.jito_auth_keypair)
        self.bundle_sender = await BundleSender.create(relay, self.client, self.keypair)

    def on_new_pool(self, pool: Pool):
        self.logger.info(f"New pool found: {pool.id} | coin: {pool.coin_mint} | open time: {pool.open_time}")
        if self.strategy is not None:
            return self.strategy(self, pool)

    def watch_price(
        self,
        pool: Pool,
        listener: Callable[[Decimal], None],
        interval: float = PRICE_UPDATE_INTERVAL,
    ) -> Screener:
        screener = Screener(pool, listener)
        screener.watch(interval)
        self.screeners.append(screener)
        return screener

    async def unwatch_price(self, screener: Screener):
        await screener.disconnect()
        if screener in self.screeners:
            self.screeners.remove(screener)

    async def get_token_metadata(self, pool: Pool) -> TokenMetadata:
        return await self.metadata_client.get_token_metadata(pool.coin_mint)

    async def buy(
        self,
        pool: Pool,
        sol_amount: int,
        mode: Union[SwapMode, str] = SwapMode.AUTO,
        slippage: float = SLIPPAGE_PERCENT,
    ) -> SwapRayLogCommon:
        """Swaps `sol_amount` lamports for the pool coin."""
        return await self._swap(pool, pool.sol_mint, pool.coin_mint, sol_amount, mode, slippage)

    async def sell(
        self,
        pool: Pool,
        coin_amount: int,
        mode: Union[SwapMode, str] = SwapMode.AUTO,
        slippage: float = SLIPPAGE_PERCENT,
    ) -> SwapRayLogCommon:
        return await self._swap(pool, pool.coin_mint, pool.sol_mint, coin_amount, mode, slippage)

    async def _swap(self, pool: Pool, mint_in, mint_out, amount_in: int, mode, slippage) -> SwapRayLogCommon:
        (coin_reserve, sol_reserve), market = await asyncio.gather(
            asyncio.gather(
                self.raydium_client.get_coin_reserve(pool),
                self.raydium_client.get_sol_reserve(pool),
            ),
            self.raydium_client.get_market_state(pool),
        )
        if mint_in == pool.sol_mint:
            in_reserve, out_reserve = sol_reserve, coin_reserve
        else:
            in_reserve, out_reserve = coin_reserve, sol_reserve

        min_amount_out = compute_min_amount_out(amount_in, in_reserve, out_reserve, slippage)
        return await self.executor.swap(
            pool,
            market,
            mint_in,
            mint_out,
            amount_in,
            min_amount_out,
            mode=mode,
            cu_price=SOLANA_PRIORITY_FEE,
            jito_tip=JITO_TIP,
        )

    async def start(self):
        self.client = AsyncClient(self.rpc_url)
        self.raydium_client = RaydiumClient(self.client)
        self.metadata_client = TokenMetadataClient(self.client)
        await self._init_bundle_sender()
        self.executor = SwapExecutor(self.client, self.keypair, self.bundle_sender)

        self.observer = Observer(self.on_new_pool, uri=self.stream_ws_url)
        self.logger.info(f"Bot started | wallet: {self.keypair.pubkey()}")

        #blocks until the observer is disconnected
        await self.observer.observe()

    async def stop(self):
        if self.observer is not None:
            await self.observer.disconnect()
        for screener in list(self.screeners):
            await self.unwatch_price(screener)
        if self.bundle_sender is not None:
            await self.bundle_sender.close()
        if self.client is not None:
            await self.client.close()
        self.logger.info("Bot stopped")
