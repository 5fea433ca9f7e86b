from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

from solders.pubkey import Pubkey

from errors import ValidationError
from .constants import WSOL


@dataclass(frozen=True)
class Pool:
    """
    On-chain identity of an AMM v4 pool paired with WSOL.

    `coin_side` tells which side holds the traded coin, the coin_*/sol_* accessors
    resolve through it so callers never check base/quote themselves. Live state
    (reserves, lp supply, market) is never stored here, see RaydiumClient.
    """
    id: Pubkey
    program_id: Pubkey
    market_program_id: Pubkey
    market_id: Pubkey
    open_orders: Pubkey
    target_orders: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey
    lp_mint: Pubkey
    base_decimals: int
    quote_decimals: int
    open_time: Optional[int] = None  # ms
    init_base_amount: Optional[int] = None
    init_quote_amount: Optional[int] = None
    create_signers: Optional[Tuple[Pubkey, ...]] = None
    coin_side: Literal["base", "quote"] = field(init=False)

    def __post_init__(self):
        if self.quote_mint == WSOL and self.base_mint != WSOL:
            coin_side = "base"
        elif self.base_mint == WSOL and self.quote_mint != WSOL:
            coin_side = "quote"
        else:
            raise ValidationError(f"Pair {self.base_mint}/{self.quote_mint} does not include WSOL once")
        object.__setattr__(self, "coin_side", coin_side)
        object.__setattr__(self, "open_time", self.open_time or None)
        if self.create_signers is not None:
            object.__setattr__(self, "create_signers", tuple(self.create_signers))

    @property
    def coin_mint(self) -> Pubkey:
        return self.base_mint if self.coin_side == "base" else self.quote_mint

    @property
    def sol_mint(self) -> Pubkey:
        return self.quote_mint if self.coin_side == "base" else self.base_mint

    @property
    def coin_decimals(self) -> int:
        return self.base_decimals if self.coin_side == "base" else self.quote_decimals

    @property
    def sol_decimals(self) -> int:
        return self.quote_decimals if self.coin_side == "base" else self.base_decimals

    @property
    def coin_vault(self) -> Pubkey:
        return self.base_vault if self.coin_side == "base" else self.quote_vault

    @property
    def sol_vault(self) -> Pubkey:
        return self.quote_vault if self.coin_side == "base" else self.base_vault

    @property
    def init_coin_amount(self) -> Optional[int]:
        return self.init_base_amount if self.coin_side == "base" else self.init_quote_amount

    @property
    def init_sol_amount(self) -> Optional[int]:
        return self.init_quote_amount if self.coin_side == "base" else self.init_base_amount


@dataclass(frozen=True)
class MarketState:
    market_id: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey
    event_queue: Pubkey
    bids: Pubkey
    asks: Pubkey
    vault_signer_nonce: int
    authority: Pubkey
