from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from raydium_lib.constants import OPENBOOK_PROGRAM, RAYDIUM_AMM_V4, WSOL
from raydium_lib.pool_keys import MarketState, Pool


def make_pool(base_mint=None, quote_mint=WSOL, base_decimals=6, quote_decimals=9, **kwargs) -> Pool:
    params = dict(
        id=Pubkey.new_unique(),
        program_id=RAYDIUM_AMM_V4,
        market_program_id=OPENBOOK_PROGRAM,
        market_id=Pubkey.new_unique(),
        open_orders=Pubkey.new_unique(),
        target_orders=Pubkey.new_unique(),
        base_mint=base_mint or Pubkey.new_unique(),
        quote_mint=quote_mint,
        base_vault=Pubkey.new_unique(),
        quote_vault=Pubkey.new_unique(),
        lp_mint=Pubkey.new_unique(),
        base_decimals=base_decimals,
        quote_decimals=quote_decimals,
    )
    params.update(kwargs)
    return Pool(**params)


def make_market(pool: Pool) -> MarketState:
    return MarketState(
        market_id=pool.market_id,
        base_mint=pool.base_mint,
        quote_mint=pool.quote_mint,
        base_vault=Pubkey.new_unique(),
        quote_vault=Pubkey.new_unique(),
        event_queue=Pubkey.new_unique(),
        bids=Pubkey.new_unique(),
        asks=Pubkey.new_unique(),
        vault_signer_nonce=0,
        authority=Pubkey.new_unique(),
    )


@pytest.fixture
def pool() -> Pool:
    return make_pool()


@pytest.fixture
def market(pool) -> MarketState:
    return make_market(pool)
