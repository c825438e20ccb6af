from .protocol import CloseReason, EventListener, ListenerState
from .tokens import parse_header, payload_length

__all__ = [
    "EventListener",
    "ListenerState",
    "CloseReason",
    "parse_header",
    "payload_length",
]
