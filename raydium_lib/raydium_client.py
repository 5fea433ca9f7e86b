import asyncio
import struct
from decimal import Decimal
from typing import Union

from construct import ConstructError
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Processed
from solders.pubkey import Pubkey

from errors import AccountNotFoundError, DecodeError
from utils import get_logger
from .constants import AMM_AUTHORITY_SEED, RAYDIUM_AMM_V4
from .layouts import LIQUIDITY_STATE_LAYOUT_V4, MARKET_STATE_LAYOUT_V3
from .pool_keys import MarketState, Pool


def get_associated_authority(program_id: Pubkey = RAYDIUM_AMM_V4) -> Pubkey:
    authority, _ = Pubkey.find_program_address([AMM_AUTHORITY_SEED], program_id)
    return authority


def get_market_authority(market_id: Pubkey, vault_signer_nonce: int, market_program_id: Pubkey) -> Pubkey:
    return Pubkey.create_program_address(
        seeds=[bytes(market_id), struct.pack("<Q", vault_signer_nonce)],
        program_id=market_program_id,
    )


class RaydiumClient:
    """
    Reads pool and market state from the chain.

    Nothing is cached: every call re-queries the account at `commitment`.
    """

    def __init__(self, client: AsyncClient, commitment: Commitment = Processed):
        self.logger = get_logger("RAYDIUM")
        self.client = client
        self.commitment = commitment

    async def _get_account_data(self, pubkey: Pubkey, name: str) -> bytes:
        resp = await self.client.get_account_info(pubkey, commitment=self.commitment)
        if resp.value is None:
            raise AccountNotFoundError(f"{name} account {pubkey} not found")
        return bytes(resp.value.data)

    async def _get_pool_state(self, pool_id: Pubkey):
        data = await self._get_account_data(pool_id, "Pool info")
        try:
            return LIQUIDITY_STATE_LAYOUT_V4.parse(data)
        except ConstructError as e:
            raise DecodeError(f"Failed to decode pool {pool_id}: {e}") from e

    async def fetch_pool(self, pool_id: Union[str, Pubkey]) -> Pool:
        if isinstance(pool_id, str):
            pool_id = Pubkey.from_string(pool_id)
        state = await self._get_pool_state(pool_id)

        pool = Pool(
            id=pool_id,
            program_id=RAYDIUM_AMM_V4,
            market_program_id=Pubkey.from_bytes(state.serumProgramId),
            market_id=Pubkey.from_bytes(state.serumMarket),
            open_orders=Pubkey.from_bytes(state.ammOpenOrders),
            target_orders=Pubkey.from_bytes(state.ammTargetOrders),
            base_mint=Pubkey.from_bytes(state.coinMintAddress),
            quote_mint=Pubkey.from_bytes(state.pcMintAddress),
            base_vault=Pubkey.from_bytes(state.poolCoinTokenAccount),
            quote_vault=Pubkey.from_bytes(state.poolPcTokenAccount),
            lp_mint=Pubkey.from_bytes(state.lpMintAddress),
            base_decimals=state.coinDecimals,
            quote_decimals=state.pcDecimals,
            open_time=state.poolOpenTime * 1000,
        )
        self.logger.debug(f"Fetched pool {pool_id} | coin: {pool.coin_mint}")
        return pool

    async def get_token_balance(self, token_account: Pubkey) -> int:
        resp = await self.client.get_token_account_balance(token_account, commitment=self.commitment)
        return int(resp.value.amount)

    async def get_base_reserve(self, pool: Pool) -> int:
        return await self.get_token_balance(pool.base_vault)

    async def get_quote_reserve(self, pool: Pool) -> int:
        return await self.get_token_balance(pool.quote_vault)

    async def get_coin_reserve(self, pool: Pool) -> int:
        return await self.get_token_balance(pool.coin_vault)

    async def get_sol_reserve(self, pool: Pool) -> int:
        return await self.get_token_balance(pool.sol_vault)

    async def get_lp_reserve(self, pool: Pool) -> int:
        state = await self._get_pool_state(pool.id)
        return state.lpReserve

    async def get_market_state(self, pool: Pool) -> MarketState:
        data = await self._get_account_data(pool.market_id, "Market info")
        try:
            market = MARKET_STATE_LAYOUT_V3.parse(data)
        except ConstructError as e:
            raise DecodeError(f"Failed to decode market {pool.market_id}: {e}") from e

        return MarketState(
            market_id=pool.market_id,
            base_mint=Pubkey.from_bytes(market.base_mint),
            quote_mint=Pubkey.from_bytes(market.quote_mint),
            base_vault=Pubkey.from_bytes(market.base_vault),
            quote_vault=Pubkey.from_bytes(market.quote_vault),
            event_queue=Pubkey.from_bytes(market.event_queue),
            bids=Pubkey.from_bytes(market.bids),
            asks=Pubkey.from_bytes(market.asks),
            vault_signer_nonce=market.vault_signer_nonce,
            authority=get_market_authority(pool.market_id, market.vault_signer_nonce, pool.market_program_id),
        )

    async def get_price(self, pool: Pool) -> Decimal:
        """SOL per coin from the current vault balances."""
        coin_reserve, sol_reserve = await asyncio.gather(
            self.get_coin_reserve(pool),
            self.get_sol_reserve(pool),
        )
        coin = Decimal(coin_reserve).scaleb(-pool.coin_decimals)
        sol = Decimal(sol_reserve).scaleb(-pool.sol_decimals)
        return sol / coin
