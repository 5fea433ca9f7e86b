"""
ray_log codec

The AMM program prints its events as `Program log: ray_log: <base64>`. The payload is a
tagged union: the first byte is the log type, the rest is a fixed little endian layout
chosen by it.

Lookups return None when the wanted event is simply not there and raise DecodeError
when a ray_log line is present but malformed.
"""
import base64
import binascii
from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import IntEnum
from typing import Iterable, Literal, Optional, Sequence, Union

from construct import ConstructError
from solders.pubkey import Pubkey

from errors import DecodeError
from .constants import INITIALIZE2_LOG_MARKER, RAY_LOG_PREFIX
from .layouts import INIT_RAY_LOG_LAYOUT, SWAP_BASE_IN_RAY_LOG_LAYOUT, SWAP_BASE_OUT_RAY_LOG_LAYOUT


class RayLogType(IntEnum):
    INIT = 0
    DEPOSIT = 1
    WITHDRAW = 2
    SWAP_BASE_IN = 3
    SWAP_BASE_OUT = 4


class SwapDirection(IntEnum):
    QUOTE_2_BASE = 1
    BASE_2_QUOTE = 2


@dataclass(frozen=True)
class InitRayLog:
    open_time: int
    quote_decimals: int
    base_decimals: int
    quote_lot_size: int
    base_lot_size: int
    quote_amount: int
    base_amount: int
    market_account: Pubkey


@dataclass(frozen=True)
class SwapBaseInRayLog:
    amount_in: int
    min_amount_out: int
    direction: int
    user_amount: int
    base_reserve: int
    quote_reserve: int
    amount_out: int


@dataclass(frozen=True)
class SwapBaseOutRayLog:
    max_amount_in: int
    amount_out: int
    direction: int
    user_amount: int
    base_reserve: int
    quote_reserve: int
    amount_in: int


@dataclass(frozen=True)
class PaddingRayLog:
    """Deposit/withdraw logs, not used by the bot."""
    log_type: RayLogType


@dataclass(frozen=True)
class SwapRayLogCommon:
    direction: int
    amount_in: int
    amount_out: int
    base_reserve: int
    quote_reserve: int


RayLog = Union[InitRayLog, SwapBaseInRayLog, SwapBaseOutRayLog, PaddingRayLog]

_VARIANTS = {
    RayLogType.INIT: (INIT_RAY_LOG_LAYOUT, InitRayLog),
    RayLogType.SWAP_BASE_IN: (SWAP_BASE_IN_RAY_LOG_LAYOUT, SwapBaseInRayLog),
    RayLogType.SWAP_BASE_OUT: (SWAP_BASE_OUT_RAY_LOG_LAYOUT, SwapBaseOutRayLog),
}

_LOG_TYPES = {
    InitRayLog: RayLogType.INIT,
    SwapBaseInRayLog: RayLogType.SWAP_BASE_IN,
    SwapBaseOutRayLog: RayLogType.SWAP_BASE_OUT,
}


def decode_ray_log(payload: str) -> RayLog:
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid ray_log base64: {e}") from e

    if not data:
        raise DecodeError("Empty ray_log payload")

    try:
        log_type = RayLogType(data[0])
    except ValueError:
        raise DecodeError(f"Unknown ray_log type: {data[0]}") from None

    if log_type in (RayLogType.DEPOSIT, RayLogType.WITHDRAW):
        return PaddingRayLog(log_type)

    layout, cls = _VARIANTS[log_type]
    body = data[1:]
    if len(body) < layout.sizeof():
        raise DecodeError(f"ray_log {log_type.name} too short: {len(body)} < {layout.sizeof()} bytes")

    try:
        parsed = layout.parse(body)
    except ConstructError as e:
        raise DecodeError(f"Failed to parse ray_log {log_type.name}: {e}") from e

    fields = {key: value for key, value in parsed.items() if not key.startswith("_")}
    if cls is InitRayLog:
        fields["market_account"] = Pubkey.from_bytes(fields["market_account"])
    return cls(**fields)


def encode_ray_log(log: RayLog) -> str:
    if isinstance(log, PaddingRayLog):
        return base64.b64encode(bytes([log.log_type])).decode()

    log_type = _LOG_TYPES[type(log)]
    layout, _ = _VARIANTS[log_type]
    fields = asdict(log)
    if isinstance(log, InitRayLog):
        fields["market_account"] = bytes(log.market_account)
    return base64.b64encode(bytes([log_type]) + layout.build(fields)).decode()


def _iter_ray_logs(logs: Sequence[str]) -> Iterable[str]:
    for log in reversed(logs):
        if log.startswith(RAY_LOG_PREFIX):
            yield log[len(RAY_LOG_PREFIX):]


def find_init_ray_log(logs: Sequence[str]) -> Optional[InitRayLog]:
    if not any(log.startswith(INITIALIZE2_LOG_MARKER) for log in logs):
        return None

    for payload in _iter_ray_logs(logs):
        parsed = decode_ray_log(payload)
        if isinstance(parsed, InitRayLog):
            return parsed
        return None

    return None


def find_swap_ray_log(logs: Sequence[str]) -> Optional[SwapRayLogCommon]:
    for payload in _iter_ray_logs(logs):
        parsed = decode_ray_log(payload)
        if isinstance(parsed, (SwapBaseInRayLog, SwapBaseOutRayLog)):
            return SwapRayLogCommon(
                direction=parsed.direction,
                amount_in=parsed.amount_in,
                amount_out=parsed.amount_out,
                base_reserve=parsed.base_reserve,
                quote_reserve=parsed.quote_reserve,
            )
        return None

    return None


def compute_price_from_ray_log(
    swap_ray_log: SwapRayLogCommon,
    base_decimals: int,
    quote_decimals: int,
    coin_side: Literal["base", "quote"],
) -> Optional[Decimal]:
    """
    Price of one coin in SOL as seen by a single swap.

    Takes the amounts that actually moved on each side of the pool, scales them by
    their own decimals and divides the SOL side by the coin side. Returns None when
    the coin side did not move.
    """
    direction = swap_ray_log.direction
    base_amount = swap_ray_log.amount_in if direction == SwapDirection.BASE_2_QUOTE else swap_ray_log.amount_out
    quote_amount = swap_ray_log.amount_in if direction == SwapDirection.QUOTE_2_BASE else swap_ray_log.amount_out

    if coin_side == "base":
        coin_amount, coin_decimals = base_amount, base_decimals
        sol_amount, sol_decimals = quote_amount, quote_decimals
    else:
        coin_amount, coin_decimals = quote_amount, quote_decimals
        sol_amount, sol_decimals = base_amount, base_decimals

    if not coin_amount:
        return None

    coin = Decimal(coin_amount).scaleb(-coin_decimals)
    sol = Decimal(sol_amount).scaleb(-sol_decimals)
    return sol / coin
