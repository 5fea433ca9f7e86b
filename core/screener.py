import asyncio
from collections import deque
from decimal import Decimal
from typing import Callable, Optional

from config import MAX_PRICE_SAMPLES, PRICE_UPDATE_INTERVAL, RECONNECT_ATTEMPTS, RECONNECT_DELAY, WS_RPC_URL
from errors import DecodeError
from raydium_lib import Pool, find_swap_ray_log
from raydium_lib.ray_log import compute_price_from_ray_log
from utils import get_logger
from .websocket_client import ConnectionState, WebSocketClient


class Screener:
    """
    Median price of one pool, emitted once per interval.

    Swap logs of the pool are turned into prices as they arrive, each tick takes the
    collected samples and passes their median to `listener`. Ticks without swaps emit
    nothing.
    """

    def __init__(
        self,
        pool: Pool,
        listener: Callable[[Decimal], None],
        uri: str = WS_RPC_URL,
        max_samples: int = MAX_PRICE_SAMPLES,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_attempts: int = RECONNECT_ATTEMPTS,
    ):
        self.logger = get_logger("SCREENER")
        self.pool_id = pool.id
        self.base_decimals = pool.base_decimals
        self.quote_decimals = pool.quote_decimals
        self.coin_side = pool.coin_side
        self.listener = listener
        self.uri = uri
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts

        self.prices = deque(maxlen=max_samples)
        self.subscription_id: Optional[int] = None
        self._ws: Optional[WebSocketClient] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def watching(self) -> bool:
        return self._tick_task is not None

    def watch(self, interval: float = PRICE_UPDATE_INTERVAL):
        if self.watching:
            raise RuntimeError("Already in watching")

        self._ws = WebSocketClient(
            name="SCREENER_WS",
            uri=self.uri,
            on_message_callback_handler=self._handle_message,
            on_connected_callback_handler=self._subscribe,
            reconnect_delay=self.reconnect_delay,
            max_reconnect_attempts=self.max_reconnect_attempts,
        )
        self._listen_task = asyncio.create_task(self._ws.listen())
        self._tick_task = asyncio.create_task(self._tick_loop(interval))
        self.logger.debug(f"Start watching screen: {self.pool_id}")

    async def disconnect(self):
        tasks_to_cancel = [task for task in (self._tick_task, self._listen_task) if task is not None]
        if self._tick_task is not None:
            self._tick_task.cancel()

        if self._ws is not None:
            if self.subscription_id is not None and self._ws.state == ConnectionState.CONNECTED:
                try:
                    self._ws.send({
                        "jsonrpc": "2.0",
                        "id": 2,
                        "method": "logsUnsubscribe",
                        "params": [self.subscription_id],
                    })
                except Exception as e:
                    self.logger.warning(f"Failed to unsubscribe from {self.pool_id} logs: {e}")
            await self._ws.close()

        if self._listen_task is not None:
            self._listen_task.cancel()
        await asyncio.gather(*tasks_to_cancel, return_exceptions=True)

        self._tick_task = None
        self._listen_task = None
        self.subscription_id = None
        self.logger.debug(f"Stop watching screen: {self.pool_id}")

    def _subscribe(self, ws: WebSocketClient):
        self.subscription_id = None
        ws.send({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            # processed is what the deprecated "recent" level is called now
            "params": [{"mentions": [str(self.pool_id)]}, {"commitment": "processed"}],
        })

    def _handle_message(self, message: dict):
        if not isinstance(message, dict):
            self.logger.trace(f"Received unknown message: {message}")
            return

        if message.get("method") == "logsNotification":
            try:
                value = message["params"]["result"]["value"]
            except (KeyError, TypeError):
                self.logger.debug(f"Malformed logs notification: {message}")
                return
            self._process_logs(value)
        elif message.get("id") == 1 and "result" in message:
            self.subscription_id = message["result"]
            self.logger.debug(f"Subscribed to {self.pool_id} logs: {self.subscription_id}")
        else:
            self.logger.trace(f"Received unknown message: {message}")

    def _process_logs(self, value: dict):
        signature = value.get("signature")
        if value.get("err"):
            return

        try:
            swap_ray_log = find_swap_ray_log(value.get("logs") or [])
        except DecodeError as e:
            self.logger.debug(f"Failed to parse swap ray log {signature}: {e}")
            return
        if swap_ray_log is None:
            self.logger.trace(f"Ignored {signature}: swap ray log not found")
            return

        price = compute_price_from_ray_log(swap_ray_log, self.base_decimals, self.quote_decimals, self.coin_side)
        if price is None:
            self.logger.trace(f"Ignored {signature}: coin amount is zero")
            return

        self.logger.trace(f"Got new price {self.pool_id}: {price}")
        self.prices.append(price)

    def _process_prices(self):
        if not self.prices:
            return

        prices = sorted(self.prices)
        self.prices.clear()
        median = prices[len(prices) // 2]

        try:
            self.listener(median)
        except Exception as e:
            self.logger.error(f"Price listener error {self.pool_id}: {e!r}")

    async def _tick_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            self._process_prices()
