import asyncio
import random
import sys
import time
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Protocol, Sequence, Tuple

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Finalized
from solana.rpc.core import TransactionExpiredBlockheightExceededError
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from config import (
    BLOCKHASH_UPDATE_INTERVAL,
    BUNDLE_RESULTS_RESUBSCRIBE_INTERVAL,
    IO_RETRIES,
    IO_RETRY_INTERVAL,
    SEND_BUNDLE_TIMEOUT,
)
from errors import DeadlineExceededError, ExpiryError, ProtocolExecutionError, RejectionError, TransportError
from utils import RetryOptions, get_logger, refresh, retry, timeout


@dataclass(frozen=True)
class BundleResult:
    bundle_id: str
    accepted: bool = False
    rejected_reason: Optional[str] = None


class BundleRelay(Protocol):
    async def get_tip_accounts(self) -> List[str]: ...

    async def get_next_scheduled_leader(self) -> Tuple[int, int]: ...

    async def send_bundle(self, transactions: Sequence[VersionedTransaction]) -> str: ...

    def subscribe_bundle_results(self) -> AsyncIterator[BundleResult]: ...


class _BundleWaiter:
    """Fails with RejectionError once a fatal rejection for the bundle arrives."""

    def __init__(self):
        self.future: asyncio.Future = asyncio.get_running_loop().create_future()
        self.accepted = False


class BundleSender:
    """
    Sends single-transaction bundles through a block engine and waits for them to land.

    One instance lives for the whole process: it owns the tip account list (fetched once
    on first use), a blockhash kept fresh in the background and the bundle results
    subscription which feeds per-bundle waiters.
    """

    def __init__(
        self,
        relay: BundleRelay,
        client: AsyncClient,
        keypair: Keypair,
        blockhash_update_interval: float = BLOCKHASH_UPDATE_INTERVAL,
        results_resubscribe_interval: float = BUNDLE_RESULTS_RESUBSCRIBE_INTERVAL,
        send_timeout: float = SEND_BUNDLE_TIMEOUT,
        io_retries: int = IO_RETRIES,
        io_retry_interval: float = IO_RETRY_INTERVAL,
    ):
        self.logger = get_logger("JITO")
        self.relay = relay
        self.client = client
        self.keypair = keypair
        self.blockhash_update_interval = blockhash_update_interval
        self.results_resubscribe_interval = results_resubscribe_interval
        self.send_timeout = send_timeout
        self.io_retries = io_retries
        self.io_retry_interval = io_retry_interval

        self._tip_accounts_task: Optional[asyncio.Task] = None
        self._blockhash = None
        self._bundle_results_task: Optional[asyncio.Task] = None
        self._waiters: Dict[str, _BundleWaiter] = {}

    @classmethod
    async def create(cls, relay: BundleRelay, client: AsyncClient, keypair: Keypair, **kwargs):
        instance = cls(relay, client, keypair, **kwargs)
        instance.start()
        return instance

    def start(self):
        if self._bundle_results_task is not None:
            return
        self._blockhash = refresh(
            lambda: self.client.get_latest_blockhash(Finalized),
            self.blockhash_update_interval,
            retry_options=RetryOptions(retries=self.io_retries, min_interval=self.io_retry_interval),
        )
        self._bundle_results_task = asyncio.create_task(self._bundle_results_loop())
        self.logger.info("Bundle sender started")

    async def close(self):
        if self._blockhash is not None:
            self._blockhash.stop()

        tasks_to_cancel = [
            task for task in (self._bundle_results_task, self._tip_accounts_task)
            if task is not None and not task.done()
        ]
        for task in tasks_to_cancel:
            task.cancel()
        if tasks_to_cancel:
            await asyncio.gather(*tasks_to_cancel, return_exceptions=True)

        for waiter in self._waiters.values():
            if not waiter.future.done():
                waiter.future.cancel()
        self._waiters.clear()
        self._bundle_results_task = None
        self.logger.info("Bundle sender closed")

    #===========================TIP ACCOUNTS===========================

    async def _fetch_tip_accounts(self) -> List[Pubkey]:
        try:
            accounts = await self.relay.get_tip_accounts()
        except Exception as e:
            self.logger.error(f"Failed to get jito tip accounts: {e}")
            raise
        if not accounts:
            raise TransportError("Block engine returned no tip accounts")
        return [Pubkey.from_string(account) for account in accounts]

    async def get_tip_accounts(self) -> List[Pubkey]:
        # fetched once, a failed fetch is re-raised to every later caller
        if self._tip_accounts_task is None:
            self._tip_accounts_task = asyncio.ensure_future(self._fetch_tip_accounts())
        return await asyncio.shield(self._tip_accounts_task)

    async def get_random_tip_account(self) -> Pubkey:
        return random.choice(await self.get_tip_accounts())

    async def get_next_scheduled_leader(self) -> Tuple[int, int]:
        return await self.relay.get_next_scheduled_leader()

    #===========================BUNDLE RESULTS===========================

    async def _subscribe_bundle_results(self):
        async for result in self.relay.subscribe_bundle_results():
            self.logger.debug(f"Received jito bundle result: {result}")
            self._dispatch(result)
        raise TransportError("Bundle results stream ended")

    async def _bundle_results_loop(self):
        await retry(
            self._subscribe_bundle_results,
            retries=sys.maxsize,
            min_interval=self.results_resubscribe_interval,
            on_reject=lambda e: self.logger.warning(f"Jito bundle result subscription error: {e}"),
        )

    def _dispatch(self, result: BundleResult):
        waiter = self._waiters.get(result.bundle_id)
        if waiter is None or waiter.future.done() or waiter.accepted:
            return
        if result.accepted:
            waiter.accepted = True
            return
        if result.rejected_reason is None:
            return

        reason = result.rejected_reason
        if "processed" in reason:
            self.logger.debug(f"Ignoring rejection of bundle {result.bundle_id}: {reason}")
            return
        waiter.future.set_exception(RejectionError(reason))

    #===========================SUBMISSION===========================

    async def _confirm(self, signature: Signature, last_valid_block_height: int, commitment: Commitment):
        try:
            resp = await self.client.confirm_transaction(
                signature,
                commitment,
                sleep_seconds=0.5,
                last_valid_block_height=last_valid_block_height,
            )
        except TransactionExpiredBlockheightExceededError:
            raise ExpiryError() from None

        status = resp.value[0]
        if status is not None and status.err:
            raise ProtocolExecutionError(f"Transaction error: {status.err}", status.err)

    async def send_and_confirm(
        self,
        instructions: Sequence[Instruction],
        tip: int = 0,
        commitment: Commitment = Confirmed,
    ) -> Signature:
        prepare_time = time.monotonic()
        payer = self.keypair.pubkey()

        instructions = list(instructions)
        if tip:
            instructions.append(
                transfer(TransferParams(from_pubkey=payer, to_pubkey=await self.get_random_tip_account(), lamports=tip))
            )

        blockhash = (await self._blockhash.get()).value
        message = MessageV0.try_compile(payer, instructions, [], blockhash.blockhash)
        transaction = VersionedTransaction(message, [self.keypair])
        signature = transaction.signatures[0]

        self.logger.debug(f"Sending jito bundle | sig: {signature} | prepared in {time.monotonic() - prepare_time:.3f}s")

        send_time = time.monotonic()
        bundle_id = await retry(
            lambda: timeout(
                lambda: self.relay.send_bundle([transaction]),
                self.send_timeout,
                DeadlineExceededError("Send jito bundle timeout"),
            ),
            retries=self.io_retries,
            min_interval=self.io_retry_interval,
            on_reject=lambda e: self.logger.debug(f"Failed to send jito bundle | sig: {signature} | {e!r}"),
        )
        self.logger.debug(f"Sent jito bundle {bundle_id} | sig: {signature} | {time.monotonic() - send_time:.3f}s")

        confirm_time = time.monotonic()
        waiter = _BundleWaiter()
        self._waiters[bundle_id] = waiter
        confirm_task = asyncio.ensure_future(
            self._confirm(signature, blockhash.last_valid_block_height, commitment)
        )
        try:
            done, _ = await asyncio.wait({waiter.future, confirm_task}, return_when=asyncio.FIRST_COMPLETED)
            if confirm_task in done:
                confirm_task.result()
            else:
                waiter.future.result()
            self.logger.debug(
                f"Confirmed transaction in jito bundle {bundle_id} | sig: {signature} | "
                f"{commitment} in {time.monotonic() - confirm_time:.3f}s"
            )
        except Exception as e:
            self.logger.debug(f"Failed to confirm jito bundle {bundle_id} | sig: {signature} | {e!r}")
            raise
        finally:
            self._waiters.pop(bundle_id, None)
            if not confirm_task.done():
                confirm_task.cancel()
            elif not confirm_task.cancelled():
                confirm_task.exception()
            if not waiter.future.done():
                waiter.future.cancel()
            elif not waiter.future.cancelled():
                waiter.future.exception()

        return signature
