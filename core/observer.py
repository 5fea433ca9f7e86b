import asyncio
import inspect
import time
from enum import Enum
from typing import Any, Callable, Optional

from solders.pubkey import Pubkey

from config import RECONNECT_ATTEMPTS, RECONNECT_DELAY, STREAM_WS_URL
from errors import DecodeError, ValidationError
from raydium_lib import RAYDIUM_AMM_V4, WSOL, Pool, find_init_ray_log
from raydium_lib.constants import CREATE_FEE_ACCOUNT
from raydium_lib.initialize import parse_initialize2_instruction_accounts
from utils import get_logger
from .websocket_client import ConnectionState, WebSocketClient


class ObserverState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


class Observer:
    """
    Watches the transaction stream for new AMM v4 pools paired with WSOL.

    Every initialize2 transaction that passes the checks becomes a Pool handed to
    `listener`. Bad transactions are logged and dropped, they never break the stream.
    """

    def __init__(
        self,
        listener: Callable[[Pool], Any],
        uri: str = STREAM_WS_URL,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_attempts: int = RECONNECT_ATTEMPTS,
    ):
        self.logger = get_logger("OBSERVER")
        self.listener = listener
        self.uri = uri
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts

        self._ws: Optional[WebSocketClient] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._subscribed = False
        self._listener_tasks = set()

    @property
    def state(self) -> ObserverState:
        if self._listen_task is None or self._listen_task.done():
            return ObserverState.DISCONNECTED
        if self._subscribed and self._ws.state == ConnectionState.CONNECTED:
            return ObserverState.SUBSCRIBED
        return ObserverState.CONNECTING

    def observe(self) -> asyncio.Task:
        if self.state != ObserverState.DISCONNECTED:
            raise RuntimeError("Already in observing")

        self._subscribed = False
        self._ws = WebSocketClient(
            name="OBSERVER_WS",
            uri=self.uri,
            on_message_callback_handler=self._handle_message,
            on_connected_callback_handler=self._subscribe,
            reconnect_delay=self.reconnect_delay,
            max_reconnect_attempts=self.max_reconnect_attempts,
        )
        self._listen_task = asyncio.create_task(self._ws.listen())
        return self._listen_task

    async def disconnect(self):
        if self._ws is not None:
            await self._ws.close()
        if self._listen_task is not None and not self._listen_task.done():
            self._listen_task.cancel()
            await asyncio.gather(self._listen_task, return_exceptions=True)
        for task in list(self._listener_tasks):
            task.cancel()
        self._subscribed = False
        self.logger.info("Observer disconnected")

    def _subscribe(self, ws: WebSocketClient):
        self._subscribed = False
        ws.send({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "transactionSubscribe",
            "params": [
                {
                    "accountRequired": [str(CREATE_FEE_ACCOUNT), str(RAYDIUM_AMM_V4)],
                    "failed": False,
                },
                {
                    "commitment": "processed",
                    "encoding": "jsonParsed",
                    "transactionDetails": "full",
                    "showRewards": False,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        })

    def _handle_message(self, message: dict):
        if not isinstance(message, dict):
            self.logger.trace(f"Received unknown message: {message}")
            return

        if message.get("method") == "transactionNotification":
            try:
                transaction = message["params"]["result"]["transaction"]
            except (KeyError, TypeError):
                self.logger.debug(f"Malformed transaction notification: {message}")
                return
            pool = self._process_transaction(transaction)
            if pool is not None:
                self._emit(pool)
        elif "result" in message and "id" in message:
            self._subscribed = True
            self.logger.debug("Start observing for new pool")
        else:
            self.logger.trace(f"Received unknown message: {message}")

    def _process_transaction(self, transaction: dict) -> Optional[Pool]:
        start_time = time.monotonic()
        tx = transaction.get("transaction") or {}
        signatures = tx.get("signatures") or [None]
        signature = signatures[0]

        self.logger.trace(f"Processing transaction {signature}")

        meta = transaction.get("meta")
        if not meta:
            self.logger.trace(f"Ignored {signature}: missing transaction meta")
            return None
        if meta.get("err"):
            self.logger.trace(f"Ignored {signature}: transaction error {meta['err']}")
            return None
        logs = meta.get("logMessages")
        if not logs:
            self.logger.trace(f"Ignored {signature}: missing transaction logs")
            return None

        try:
            init_ray_log = find_init_ray_log(logs)
        except DecodeError as e:
            self.logger.debug(f"Failed to parse init ray log {signature}: {e}")
            return None
        if init_ray_log is None:
            self.logger.trace(f"Ignored {signature}: init ray log not found")
            return None

        message = tx.get("message") or {}
        amm_program = str(RAYDIUM_AMM_V4)
        instruction = next(
            (ins for ins in message.get("instructions", []) if ins.get("programId") == amm_program),
            None,
        )
        if instruction is None:
            self.logger.trace(f"Ignored {signature}: initialize2 instruction not found")
            return None
        if "accounts" not in instruction:
            self.logger.trace(f"Ignored {signature}: unexpected instruction format")
            return None

        try:
            accounts = parse_initialize2_instruction_accounts(instruction["accounts"])
        except ValidationError as e:
            self.logger.debug(f"Failed to parse initialize2 accounts {signature}: {e}")
            return None

        if accounts.base_mint != WSOL and accounts.quote_mint != WSOL:
            self.logger.trace(f"Ignored {signature}: pair {accounts.base_mint}/{accounts.quote_mint} does not include WSOL")
            return None

        create_signers = [
            Pubkey.from_string(account["pubkey"])
            for account in message.get("accountKeys", [])
            if isinstance(account, dict) and account.get("signer")
        ]

        try:
            pool = Pool(
                id=accounts.id,
                program_id=RAYDIUM_AMM_V4,
                market_program_id=accounts.market_program_id,
                market_id=accounts.market_id,
                open_orders=accounts.open_orders,
                target_orders=accounts.target_orders,
                base_mint=accounts.base_mint,
                quote_mint=accounts.quote_mint,
                base_vault=accounts.base_vault,
                quote_vault=accounts.quote_vault,
                lp_mint=accounts.lp_mint,
                base_decimals=init_ray_log.base_decimals,
                quote_decimals=init_ray_log.quote_decimals,
                open_time=init_ray_log.open_time * 1000,
                init_base_amount=init_ray_log.base_amount,
                init_quote_amount=init_ray_log.quote_amount,
                create_signers=create_signers,
            )
        except ValidationError as e:
            self.logger.debug(f"Ignored {signature}: {e}")
            return None

        self.logger.trace(
            f"Got init pool info: {pool.id} | coin: {pool.coin_mint} | "
            f"{(time.monotonic() - start_time) * 1000:.2f}ms"
        )
        return pool

    def _emit(self, pool: Pool):
        try:
            result = self.listener(pool)
        except Exception as e:
            self.logger.error(f"Pool listener error {pool.id}: {e!r}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._listener_tasks.add(task)
            task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task):
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Pool listener task error: {task.exception()!r}")
