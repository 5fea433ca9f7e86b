from fractions import Fraction
from typing import List, Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.instructions import (
    CloseAccountParams,
    SyncNativeParams,
    close_account,
    create_idempotent_associated_token_account,
    get_associated_token_address,
    sync_native,
)

from .constants import SWAP_BASE_IN_INSTRUCTION, TOKEN_PROGRAM_ID, WSOL
from .layouts import SWAP_BASE_IN_ARGS_LAYOUT
from .pool_keys import MarketState, Pool
from .raydium_client import get_associated_authority


def _make_swap_base_in_instruction(
    pool: Pool,
    market: MarketState,
    amount_in: int,
    min_amount_out: int,
    token_account_in: Pubkey,
    token_account_out: Pubkey,
    owner: Pubkey,
) -> Instruction:
    keys = [
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        # amm
        AccountMeta(pubkey=pool.id, is_signer=False, is_writable=True),
        AccountMeta(pubkey=get_associated_authority(pool.program_id), is_signer=False, is_writable=False),
        AccountMeta(pubkey=pool.open_orders, is_signer=False, is_writable=True),
        AccountMeta(pubkey=pool.target_orders, is_signer=False, is_writable=True),
        AccountMeta(pubkey=pool.base_vault, is_signer=False, is_writable=True),
        AccountMeta(pubkey=pool.quote_vault, is_signer=False, is_writable=True),
        # market
        AccountMeta(pubkey=pool.market_program_id, is_signer=False, is_writable=False),
        AccountMeta(pubkey=pool.market_id, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market.bids, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market.asks, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market.event_queue, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market.base_vault, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market.quote_vault, is_signer=False, is_writable=True),
        AccountMeta(pubkey=market.authority, is_signer=False, is_writable=False),
        # user
        AccountMeta(pubkey=token_account_in, is_signer=False, is_writable=True),
        AccountMeta(pubkey=token_account_out, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=True, is_writable=False),
    ]

    data = SWAP_BASE_IN_ARGS_LAYOUT.build(
        dict(instruction=SWAP_BASE_IN_INSTRUCTION, amount_in=amount_in, min_amount_out=min_amount_out)
    )
    return Instruction(pool.program_id, data, keys)


def make_swap_instructions(
    pool: Pool,
    market: MarketState,
    amount_in: int,
    min_amount_out: int,
    mint_in: Pubkey,
    mint_out: Pubkey,
    owner: Pubkey,
) -> List[Instruction]:
    """
    Instructions of one swap-base-in through associated token accounts.

    Both token accounts are created idempotently, a WSOL input account is funded with
    `amount_in` lamports and synced. The input account is closed afterwards, the
    output one only when it holds WSOL.
    """
    token_account_in = get_associated_token_address(owner, mint_in)
    token_account_out = get_associated_token_address(owner, mint_out)

    instructions = [create_idempotent_associated_token_account(owner, owner, mint_in)]
    if mint_in == WSOL:
        instructions.append(
            transfer(TransferParams(from_pubkey=owner, to_pubkey=token_account_in, lamports=amount_in))
        )
        instructions.append(sync_native(SyncNativeParams(program_id=TOKEN_PROGRAM_ID, account=token_account_in)))
    instructions.append(create_idempotent_associated_token_account(owner, owner, mint_out))

    instructions.append(
        _make_swap_base_in_instruction(
            pool, market, amount_in, min_amount_out, token_account_in, token_account_out, owner
        )
    )

    instructions.append(
        close_account(
            CloseAccountParams(program_id=TOKEN_PROGRAM_ID, account=token_account_in, dest=owner, owner=owner)
        )
    )
    if mint_out == WSOL:
        instructions.append(
            close_account(
                CloseAccountParams(program_id=TOKEN_PROGRAM_ID, account=token_account_out, dest=owner, owner=owner)
            )
        )

    return instructions


def compute_amount_out(amount_in: int, in_reserve: int, out_reserve: int) -> int:
    """Constant product quote, no fee."""
    return amount_in * out_reserve // (in_reserve + amount_in)


def compute_min_amount_out(
    amount_in: int,
    in_reserve: int,
    out_reserve: int,
    slippage: Union[int, float, str, Fraction],
) -> int:
    """
    Constant product quote discounted by 1 / (1 + slippage / 100).

    Kept in integers, the discount is applied as multiply-then-floor-divide so the
    result never rounds up.
    """
    slippage = Fraction(str(slippage)) if isinstance(slippage, float) else Fraction(slippage)
    if slippage < 0:
        raise ValueError("Slippage can not be negative")

    amount_out = compute_amount_out(amount_in, in_reserve, out_reserve)
    ratio = Fraction(100) / (100 + slippage)
    return amount_out * ratio.numerator // ratio.denominator
