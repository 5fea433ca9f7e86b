from .raydium_client import RaydiumClient
from .pool_keys import Pool, MarketState
from .constants import WSOL, RAYDIUM_AMM_V4
from .ray_log import SwapRayLogCommon, find_init_ray_log, find_swap_ray_log
from .swap import make_swap_instructions, compute_min_amount_out

__all__ = [
    'RaydiumClient',
    'Pool',
    'MarketState',
    'WSOL',
    'RAYDIUM_AMM_V4',
    'SwapRayLogCommon',
    'find_init_ray_log',
    'find_swap_ray_log',
    'make_swap_instructions',
    'compute_min_amount_out',
]
