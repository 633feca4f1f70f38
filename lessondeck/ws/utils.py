"""WebSocket utility functions for cross-version compatibility."""

import json
from typing import Any, Dict, Union

from ..logger import logger


def is_websocket_closed(websocket: Any) -> bool:
    """Check if a WebSocket connection is closed in a version-compatible way.

    This function handles the differences between websockets library versions:
    - Older (legacy) protocols expose a ``closed`` property
    - Newer connections only expose ``close_code`` once closed

    Args:
        websocket: The WebSocket connection to check

    Returns:
        True if the connection is closed (or missing), False otherwise
    """
    if websocket is None:
        return True

    # For older versions of websockets library
    closed = getattr(websocket, "closed", None)
    if isinstance(closed, bool):
        return closed

    # For newer versions of websockets library
    return getattr(websocket, "close_code", None) is not None


async def send_websocket_message(
    websocket: Any,
    message: Union[str, Dict[str, Any]],
) -> bool:
    """Send a message via WebSocket with error handling.

    Args:
        websocket: The WebSocket connection
        message: Pre-serialised text or a dict (JSON-encoded here)

    Returns:
        True if message was sent successfully, False otherwise
    """
    try:
        if is_websocket_closed(websocket):
            logger.debug("WebSocket connection is closed, cannot send message")
            return False
        payload = message if isinstance(message, str) else json.dumps(message, ensure_ascii=False)
        await websocket.send(payload)
        return True
    except Exception as e:
        logger.error(f"Failed to send WebSocket message: {e}")
        return False


async def close_websocket_safely(websocket: Any, code: int = 1000, reason: str = "") -> None:
    """Close a WebSocket connection safely with error handling.

    Args:
        websocket: The WebSocket connection to close
        code: Close code sent to the peer
        reason: Close reason sent to the peer
    """
    try:
        if not is_websocket_closed(websocket):
            await websocket.close(code=code, reason=reason)
    except Exception as e:
        logger.debug(f"Error closing websocket: {e}")


def get_close_info(websocket: Any, default_code: int = 1006) -> tuple[int, str]:
    """Return ``(close_code, close_reason)`` of a finished connection."""
    code = getattr(websocket, "close_code", None)
    reason = getattr(websocket, "close_reason", None)
    return (code if isinstance(code, int) else default_code, reason or "")

