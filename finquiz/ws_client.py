# finquiz/ws_client.py
# =====================================================================================
# PURPOSE
#   Request/reply WebSocket client (no UI code) that:
#     - Maintains ONE persistent connection to the scoring service
#     - Auto-reconnects with backoff if the connection drops
#     - Replies to 'ping' with 'pong' (heartbeat)
#     - Exposes `request(type, **params)`, which sends one JSON frame tagged with a
#       request_id and waits for the matching 'reply' / 'error' frame
#     - Forwards any other server message to an optional async `on_event(msg)`
#
# KEY TECHNOLOGIES
#   - websockets: lightweight WS library for asyncio
#   - asyncio: Queue for outbound messages; Futures for pending requests
# =====================================================================================

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.exceptions import WebSocketException

from .common import logger


class RequestError(Exception):
    """The service answered a request with an 'error' frame."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class WSClient:
    """Transport-only WebSocket client.

    Parameters
    ----------
    url : str
        Full ws:// or wss:// URL of the scoring service.
    on_event : Callable[[dict], Awaitable[None]] | None
        Async callback for server messages that are not replies or heartbeats.
    request_timeout : float | None
        Seconds to wait for a reply. None waits forever.
    """

    def __init__(
        self,
        url: str,
        on_event: Optional[Callable[[dict], Awaitable[None]]] = None,
        request_timeout: Optional[float] = None,
    ):
        self.url = url
        self.on_event = on_event
        self.request_timeout = request_timeout
        # all outbound frames go through one queue so sends never interleave
        self.send_q: asyncio.Queue[dict] = asyncio.Queue()
        self._pending: Dict[str, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._connected = asyncio.Event()
        self._stop = False

    # ---------- connection loop ----------

    async def start(self):
        """Run until stop() is called, keeping a live connection.

        Attempts to connect, runs the receiver & sender tasks until either
        finishes, then reconnects with exponential backoff (1s doubling to 15s).
        """
        backoff = 1
        while not self._stop:
            try:
                async with websockets.connect(
                    self.url,
                    ping_interval=20,
                    ping_timeout=10,
                    close_timeout=5,
                    max_size=2**23,
                ) as ws:
                    logger.info(f"[WSClient] connected to {self.url}")
                    self._connected.set()
                    backoff = 1
                    sender = asyncio.create_task(self._sender(ws))
                    receiver = asyncio.create_task(self._receiver(ws))
                    pending = set()

                    try:
                        done, pending = await asyncio.wait(
                            {sender, receiver},
                            return_when=asyncio.FIRST_COMPLETED,
                        )
                        for task in done:
                            if not task.cancelled() and task.exception() is not None:
                                logger.warning(f"[WSClient] task failed: {task.exception()}")
                    finally:
                        for t in pending:
                            t.cancel()
                        await asyncio.gather(*pending, return_exceptions=True)
                        self._connected.clear()
                        self._fail_pending("connection to scoring service lost")
                        await ws.close()

            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"[WSClient] connection error: {e}")
                self._connected.clear()
                self._fail_pending(f"cannot reach scoring service: {e}")
                if not self._stop:
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, 15)

    async def wait_until_connected(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def stop(self):
        """Signal the reconnect loop to exit (used on UI shutdown)."""
        self._stop = True
        self._fail_pending("client stopped")

    # ---------- request / reply ----------

    async def request(self, msg_type: str, **params: Any) -> Any:
        """Send one request and return the `data` of its reply.

        Raises RequestError for an 'error' reply, ConnectionError if the
        connection drops first, asyncio.TimeoutError if request_timeout passes.
        Requests are never re-sent on reconnect.
        """
        request_id = str(next(self._ids))
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        await self.send_q.put({"type": msg_type, "request_id": request_id, **params})
        try:
            if self.request_timeout is None:
                return await future
            return await asyncio.wait_for(future, self.request_timeout)
        finally:
            self._pending.pop(request_id, None)

    async def send(self, payload: dict):
        """Enqueue a fire-and-forget message."""
        await self.send_q.put(payload)

    # ---------- loops ----------

    async def _receiver(self, ws):
        async for raw in ws:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"[WSClient] dropping non-JSON frame: {raw!r:.80}")
                continue

            msg_type = msg.get("type")
            if msg_type == "ping":
                await ws.send(json.dumps({"type": "pong", "ts": msg.get("ts")}))
                continue

            if msg_type in ("reply", "error") and msg.get("request_id") is not None:
                self._resolve(msg)
                continue

            if self.on_event is not None:
                await self.on_event(msg)
            else:
                logger.debug(f"[WSClient] unhandled message type: {msg_type}")

    async def _sender(self, ws):
        while True:
            payload = await self.send_q.get()
            try:
                await ws.send(json.dumps(payload))
            finally:
                self.send_q.task_done()

    def _resolve(self, msg: dict) -> None:
        future = self._pending.get(str(msg["request_id"]))
        if future is None or future.done():
            logger.debug(f"[WSClient] reply for unknown request {msg['request_id']}")
            return
        if msg["type"] == "error":
            future.set_exception(RequestError(str(msg.get("detail", "unknown error"))))
        else:
            future.set_result(msg.get("data"))

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ConnectionError(reason))
        # unsent frames belong to requests that just failed; never replay them
        while not self.send_q.empty():
            self.send_q.get_nowait()
            self.send_q.task_done()
