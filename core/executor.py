import warnings
from enum import Enum
from typing import Any, List, Optional, Union

import ujson
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Processed
from solana.rpc.core import TransactionExpiredBlockheightExceededError
from solana.rpc.types import TxOpts
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from config import AUTO_MODE_SLOT_GAP, COMPUTE_UNIT_LIMIT, IO_RETRIES, IO_RETRY_INTERVAL
from errors import (
    ExpiryError,
    ProtocolExecutionError,
    RelayScheduleWarning,
    SwapLogNotFoundError,
    TransportError,
    ValidationError,
)
from jito_lib import BundleSender
from raydium_lib import MarketState, Pool, SwapRayLogCommon, find_swap_ray_log, make_swap_instructions
from raydium_lib.amm_errors import parse_error_from_transaction_error
from utils import get_logger, retry


class SwapMode(str, Enum):
    DIRECT = "direct"
    RELAY = "relay"
    AUTO = "auto"
    SIMULATE = "simulate"


def _error_to_json(error: Any) -> str:
    to_json = getattr(error, "to_json", None)
    if callable(to_json):
        return to_json()
    try:
        return ujson.dumps(error)
    except (TypeError, OverflowError):
        return str(error)


class SwapExecutor:
    """
    Builds, sends and confirms swap-base-in transactions.

    DIRECT broadcasts through the rpc node, RELAY goes through the jito bundle sender,
    SIMULATE only runs the transaction on the node. AUTO picks RELAY when a jito
    leader is a few slots away and DIRECT otherwise.
    """

    def __init__(
        self,
        client: AsyncClient,
        keypair: Keypair,
        bundle_sender: Optional[BundleSender] = None,
        compute_unit_limit: int = COMPUTE_UNIT_LIMIT,
        auto_mode_slot_gap: int = AUTO_MODE_SLOT_GAP,
        io_retries: int = IO_RETRIES,
        io_retry_interval: float = IO_RETRY_INTERVAL,
    ):
        self.logger = get_logger("EXECUTOR")
        self.client = client
        self.keypair = keypair
        self.bundle_sender = bundle_sender
        self.compute_unit_limit = compute_unit_limit
        self.auto_mode_slot_gap = auto_mode_slot_gap
        self.io_retries = io_retries
        self.io_retry_interval = io_retry_interval

    async def resolve_mode(self, mode: Union[SwapMode, str], pool_id: Optional[Pubkey] = None) -> SwapMode:
        mode = SwapMode(mode)
        if mode == SwapMode.RELAY and self.bundle_sender is None:
            raise ValidationError("Relay mode requires a jito bundle sender")
        if mode != SwapMode.AUTO:
            return mode
        if self.bundle_sender is None:
            return SwapMode.DIRECT

        try:
            current_slot, next_leader_slot = await self.bundle_sender.get_next_scheduled_leader()
        except Exception as e:
            self.logger.warning(f"Failed to get jito leader schedule {pool_id}: {e!r}, falling back to direct mode")
            warnings.warn(f"Jito leader schedule unavailable: {e}", RelayScheduleWarning, stacklevel=2)
            return SwapMode.DIRECT

        self.logger.debug(f"Fetched jito leader schedule {pool_id} | current: {current_slot} | next leader: {next_leader_slot}")
        if next_leader_slot - current_slot < self.auto_mode_slot_gap:
            return SwapMode.RELAY
        return SwapMode.DIRECT

    def _build_instructions(
        self,
        mode: SwapMode,
        pool: Pool,
        market: MarketState,
        mint_in: Pubkey,
        mint_out: Pubkey,
        amount_in: int,
        min_amount_out: int,
        cu_price: Optional[int],
    ) -> List[Instruction]:
        instructions = [set_compute_unit_limit(self.compute_unit_limit)]
        if mode == SwapMode.DIRECT and cu_price:
            instructions.append(set_compute_unit_price(cu_price))
        instructions.extend(
            make_swap_instructions(pool, market, amount_in, min_amount_out, mint_in, mint_out, self.keypair.pubkey())
        )
        return instructions

    async def _get_transaction(self, signature: Signature):
        resp = await self.client.get_transaction(signature, commitment=Confirmed, max_supported_transaction_version=0)
        if resp.value is None:
            raise TransportError(f"Transaction {signature} not found")
        return resp.value.transaction.meta

    async def swap(
        self,
        pool: Pool,
        market: MarketState,
        mint_in: Pubkey,
        mint_out: Pubkey,
        amount_in: int,
        min_amount_out: int,
        mode: Union[SwapMode, str] = SwapMode.AUTO,
        cu_price: Optional[int] = None,
        jito_tip: int = 0,
        commitment: Commitment = Confirmed,
    ) -> SwapRayLogCommon:
        mode = await self.resolve_mode(mode, pool.id)
        self.logger.debug(f"Start swapping {pool.id} in {mode.value} mode | {mint_in} -> {mint_out} | in: {amount_in}")

        instructions = self._build_instructions(mode, pool, market, mint_in, mint_out, amount_in, min_amount_out, cu_price)

        signature: Optional[Signature] = None
        error: Any = None
        logs: Optional[List[str]] = None

        if mode == SwapMode.RELAY:
            try:
                signature = await self.bundle_sender.send_and_confirm(instructions, jito_tip, commitment)
            except Exception as e:
                self.logger.debug(f"Failed to send or confirm swap jito bundle {pool.id}: {e!r}")
                error = e
        else:
            blockhash = (await self.client.get_latest_blockhash(Confirmed)).value
            message = MessageV0.try_compile(self.keypair.pubkey(), instructions, [], blockhash.blockhash)
            transaction = VersionedTransaction(message, [self.keypair])

            if mode == SwapMode.SIMULATE:
                try:
                    resp = await retry(
                        lambda: self.client.simulate_transaction(transaction, commitment=Processed),
                        retries=self.io_retries,
                        min_interval=self.io_retry_interval,
                    )
                except Exception as e:
                    self.logger.debug(f"Failed to simulate swap transaction {pool.id}: {e!r}")
                    raise
                error, logs = resp.value.err, resp.value.logs
            else:
                try:
                    resp = await retry(
                        lambda: self.client.send_transaction(
                            transaction, opts=TxOpts(preflight_commitment=Processed)
                        ),
                        retries=self.io_retries,
                        min_interval=self.io_retry_interval,
                    )
                    signature = resp.value
                except Exception as e:
                    self.logger.debug(f"Failed to send swap transaction {pool.id}: {e!r}")
                    error = e

                if signature is not None:
                    try:
                        resp = await self.client.confirm_transaction(
                            signature,
                            commitment,
                            sleep_seconds=0.5,
                            last_valid_block_height=blockhash.last_valid_block_height,
                        )
                    except TransactionExpiredBlockheightExceededError:
                        self.logger.debug(f"Swap transaction expired {pool.id} | sig: {signature}")
                        raise ExpiryError() from None
                    status = resp.value[0]
                    if status is not None and status.err:
                        error = status.err

        if signature is not None and error is None and logs is None:
            try:
                meta = await retry(
                    lambda: self._get_transaction(signature),
                    retries=self.io_retries,
                    min_interval=self.io_retry_interval,
                )
            except Exception as e:
                self.logger.debug(f"Failed to get swap transaction {pool.id} | sig: {signature}: {e!r}")
                raise
            if meta is not None:
                error = meta.err
                logs = meta.log_messages

        if error:
            if not isinstance(error, Exception):
                error = ProtocolExecutionError(f"Transaction error: {_error_to_json(error)}", error)
            error = parse_error_from_transaction_error(error) or error
            self.logger.warning(f"Failed to swap {pool.id} in {mode.value} mode | {mint_in} -> {mint_out}: {error}")
            raise error

        swap_ray_log = find_swap_ray_log(logs) if logs else None
        if swap_ray_log is None:
            raise SwapLogNotFoundError()

        self.logger.success(
            f"Swapped {pool.id} in {mode.value} mode | in: {amount_in} | out: {swap_ray_log.amount_out} | sig: {signature}"
        )
        return swap_ray_log
