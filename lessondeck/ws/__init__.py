"""WebSocket client side of lessondeck."""

from .events import InboundKind
from .events import InboundMessage
from .events import OutboundRequest
from .events import UserEvents
from .events import parse_inbound
from .host import HostBridge
from .retry_config import ReconnectPolicy
from .session import SessionCorrelator
from .supervisor import ReconnectionSupervisor
from .transport import TransportConnection
from .utils import close_websocket_safely
from .utils import is_websocket_closed
from .utils import send_websocket_message

__all__ = [
    "HostBridge",
    "InboundKind",
    "InboundMessage",
    "OutboundRequest",
    "ReconnectPolicy",
    "ReconnectionSupervisor",
    "SessionCorrelator",
    "TransportConnection",
    "UserEvents",
    "close_websocket_safely",
    "is_websocket_closed",
    "parse_inbound",
    "send_websocket_message",
]
