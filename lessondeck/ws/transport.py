"""Transport connection: one persistent WebSocket to the generation backend.

The transport knows nothing about retries or sessions. It opens the socket,
reads messages one at a time in arrival order, and reports open / message /
close / error through plain callbacks.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from ..logger import logger
from .retry_config import ABNORMAL_CLOSURE, NORMAL_CLOSURE
from .utils import close_websocket_safely, get_close_info, is_websocket_closed, send_websocket_message

OpenCallback = Callable[[], None]
MessageCallback = Callable[[str], None]
CloseCallback = Callable[[int, str], None]
ErrorCallback = Callable[[Exception], None]


def _noop(*_args: Any) -> None:
    return None


class TransportConnection:
    """Single WebSocket client connection with callback-style events."""

    def __init__(
        self,
        url: str,
        *,
        on_open: OpenCallback = _noop,
        on_message: MessageCallback = _noop,
        on_close: CloseCallback = _noop,
        on_error: ErrorCallback = _noop,
        connector: Callable[..., Awaitable[Any]] | None = None,
        open_timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_close = on_close
        self.on_error = on_error
        self._connector = connector or websockets.connect
        self._open_timeout = open_timeout
        self.websocket: Any = None
        self._reader_task: Optional[asyncio.Task] = None
        self._close_reported = False

    @property
    def is_open(self) -> bool:
        return self.websocket is not None and not is_websocket_closed(self.websocket)

    async def open(self) -> bool:
        """Perform the handshake and start the reader task.

        Returns:
            True once the connection is open. On failure ``on_error`` and
            ``on_close(1006)`` are reported and False is returned.
        """
        self._close_reported = False
        try:
            self.websocket = await asyncio.wait_for(self._connector(self.url), self._open_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"WebSocket connect to {self.url} failed: {e}")
            self.websocket = None
            self.on_error(e)
            self._report_close(ABNORMAL_CLOSURE, str(e))
            return False

        logger.info("WebSocket connected: %s", self.url)
        self.on_open()
        self._reader_task = asyncio.create_task(self._reader(), name="lessondeck-transport-reader")
        return True

    async def send(self, message: str | dict[str, Any]) -> bool:
        if self.websocket is None:
            return False
        return await send_websocket_message(self.websocket, message)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "User closed") -> None:
        websocket = self.websocket
        if websocket is None:
            return
        await close_websocket_safely(websocket, code=code, reason=reason)
        if self._reader_task is not None and self._reader_task is not asyncio.current_task():
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        # Reader may not have observed the close (e.g. never started)
        self._report_close(code, reason)

    async def _reader(self) -> None:
        """Deliver inbound messages one at a time, then report the closure."""
        websocket = self.websocket
        try:
            async for raw in websocket:
                text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                try:
                    self.on_message(text)
                except Exception as e:
                    logger.exception(f"Error handling WebSocket message: {e}")
        except ConnectionClosed as e:
            logger.debug(f"WebSocket reader stopped: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"WebSocket error: {e}")
            self.on_error(e)
        finally:
            code, reason = get_close_info(websocket)
            self._report_close(code, reason)

    def _report_close(self, code: int, reason: str) -> None:
        if self._close_reported:
            return
        self._close_reported = True
        self.websocket = None
        logger.info("WebSocket closed: %s %s", code, reason)
        self.on_close(code, reason)
