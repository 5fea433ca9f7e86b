from dataclasses import dataclass, fields
from typing import Sequence

from solders.pubkey import Pubkey

from errors import ValidationError
from .constants import INITIALIZE2_ACCOUNTS_LEN


@dataclass(frozen=True)
class Initialize2InstructionAccounts:
    token_program: Pubkey
    associated_token_program: Pubkey
    system_program: Pubkey
    rent: Pubkey
    id: Pubkey
    authority: Pubkey
    open_orders: Pubkey
    lp_mint: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey
    target_orders: Pubkey
    config_id: Pubkey
    fee_destination_id: Pubkey
    market_program_id: Pubkey
    market_id: Pubkey
    user_wallet: Pubkey
    user_base_vault: Pubkey
    user_quote_vault: Pubkey
    user_lp_vault: Pubkey


def parse_initialize2_instruction_accounts(accounts: Sequence[str]) -> Initialize2InstructionAccounts:
    """Maps the positional account list of an initialize2 instruction onto names."""
    if len(accounts) != INITIALIZE2_ACCOUNTS_LEN:
        raise ValidationError(
            f"initialize2 expects {INITIALIZE2_ACCOUNTS_LEN} accounts, got {len(accounts)}"
        )
    try:
        keys = [account if isinstance(account, Pubkey) else Pubkey.from_string(account) for account in accounts]
    except ValueError as e:
        raise ValidationError(f"Invalid account in initialize2 instruction: {e}") from e

    names = [field.name for field in fields(Initialize2InstructionAccounts)]
    return Initialize2InstructionAccounts(**dict(zip(names, keys)))
