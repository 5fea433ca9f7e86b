import asyncio
import inspect
import traceback
from enum import Enum
from typing import Any, Callable, Optional

import ujson
from picows import WSCloseCode, WSFrame, WSListener, WSMsgType, WSTransport, ws_connect

from config import RECONNECT_ATTEMPTS, RECONNECT_DELAY
from utils import get_logger


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class WebSocketClient:
    """
    JSON websocket that keeps itself connected until `close()`.

    `on_connected_callback_handler` runs on every (re)connect and is where callers send
    their subscription requests. Every text frame is parsed and passed to
    `on_message_callback_handler` in delivery order, coroutines it returns are scheduled
    as tasks.
    """

    def __init__(
        self,
        name: str,
        uri: str,
        on_message_callback_handler: Callable[[Any], Any],
        on_connected_callback_handler: Optional[Callable[["WebSocketClient"], Any]] = None,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_attempts: int = RECONNECT_ATTEMPTS,
    ):
        self.logger = get_logger(name)
        self.name = name
        self.uri = uri
        self.on_message_callback_handler = on_message_callback_handler
        self.on_connected_callback_handler = on_connected_callback_handler
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.state = ConnectionState.DISCONNECTED
        self._transport: Optional[WSTransport] = None
        self._should_reconnect = True
        self._tasks = set()

    def _run_callback(self, callback: Callable, *args):
        try:
            result = callback(*args)
        except Exception:
            self.logger.error(f"Callback error: {traceback.format_exc()}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Callback task error: {task.exception()!r}")

    def handle_text(self, text: str):
        try:
            data = ujson.loads(text)
        except ValueError as e:
            self.logger.warning(f"Failed to parse websocket message: {e} | {text[:200]}")
            return
        self._run_callback(self.on_message_callback_handler, data)

    def send(self, payload: dict):
        if self._transport is None:
            raise ConnectionError(f"{self.name} websocket is not connected")
        self._transport.send(WSMsgType.TEXT, ujson.dumps(payload).encode())

    async def listen(self):
        client = self
        logger = self.logger
        reconnect_attempts = 0
        self._should_reconnect = True

        while self._should_reconnect:
            try:
                class ClientListener(WSListener):
                    def on_ws_connected(self, transport: WSTransport):
                        logger.info("WebSocket connected!")
                        client._transport = transport
                        client.state = ConnectionState.CONNECTED
                        if client.on_connected_callback_handler is not None:
                            client._run_callback(client.on_connected_callback_handler, client)

                    def on_ws_frame(self, transport: WSTransport, frame: WSFrame):
                        if frame.msg_type == WSMsgType.TEXT:
                            client.handle_text(frame.get_payload_as_utf8_text())
                        elif frame.msg_type == WSMsgType.CLOSE:
                            logger.warning(f"Received CLOSE frame: {frame.get_close_code()}")
                            transport.send_close(frame.get_close_code())
                            transport.disconnect()
                        elif frame.msg_type == WSMsgType.PING:
                            transport.send_pong(frame.get_payload_as_bytes())

                    def on_ws_disconnected(self, transport: WSTransport):
                        if client._transport is transport:
                            client._transport = None

                self.state = ConnectionState.CONNECTING
                transport, _ = await ws_connect(ClientListener, self.uri)
                reconnect_attempts = 0
                await transport.wait_disconnected()

                if not self._should_reconnect:
                    self.logger.info("WebSocket closed gracefully")
                    break

                self.logger.warning("WebSocket disconnected, attempting to reconnect")

            except asyncio.CancelledError:
                self._should_reconnect = False
                raise
            except Exception:
                self.logger.error(f"WebSocket error: {traceback.format_exc()}")

            if self.max_reconnect_attempts and reconnect_attempts >= self.max_reconnect_attempts:
                self.logger.error(f"Max reconnection attempts ({self.max_reconnect_attempts}) reached, giving up")
                break

            if self._should_reconnect:
                reconnect_attempts += 1
                self.state = ConnectionState.CONNECTING
                if self.reconnect_delay:
                    self.logger.info(f"[{reconnect_attempts}] Reconnecting in {self.reconnect_delay} seconds...")
                    await asyncio.sleep(self.reconnect_delay)

        self.state = ConnectionState.DISCONNECTED

    async def close(self):
        self.logger.info("Closing WebSocket connection")
        self._should_reconnect = False
        if self._transport is not None:
            try:
                self._transport.send_close(WSCloseCode.OK)
                self._transport.disconnect()
                self.logger.info("WebSocket disconnected")
            except Exception as e:
                self.logger.warning(f"Error disconnecting: {e}")
            self._transport = None
        for task in list(self._tasks):
            task.cancel()
        self.state = ConnectionState.DISCONNECTED
