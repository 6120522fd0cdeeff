"""Push Channel - Module Exports"""

from .router import router
from .subscriber import WebSocketSubscriber

__all__ = [
    "router",
    "WebSocketSubscriber",
]
