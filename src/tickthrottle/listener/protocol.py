"""
Supervisord event listener protocol.

    listener -> supervisord   READY\\n
    supervisord -> listener   <header line>\\n<payload of `len` bytes>
    listener -> supervisord   RESULT 2\\nOK   or   RESULT 4\\nFAIL
    ... and READY again

See http://supervisord.org/events.html#event-listener-notification-protocol

Any desync (closed input, a header without eventname, an event we did not
subscribe to, or a handler asking to stop) ends the loop without a result.
supervisord then restarts the listener, which is the recovery path.
"""

import logging
import sys
from enum import Enum
from typing import Callable, Iterable, Optional, TextIO

from tickthrottle.listener.tokens import parse_header, payload_length
from tickthrottle.throttle.engine import Outcome

logger = logging.getLogger(__name__)

READY = "READY\n"
RESULT_OK = "RESULT 2\nOK"
RESULT_FAIL = "RESULT 4\nFAIL"


class ListenerState(str, Enum):
    WAIT_TOKEN = "WAIT_TOKEN"
    DISPATCH = "DISPATCH"
    REPORT = "REPORT"
    CLOSED = "CLOSED"


class CloseReason(str, Enum):
    INPUT_CLOSED = "INPUT_CLOSED"
    MISSING_EVENTNAME = "MISSING_EVENTNAME"
    UNSUPPORTED_EVENT = "UNSUPPORTED_EVENT"
    ENGINE_TERMINATED = "ENGINE_TERMINATED"


class EventListener:
    """
    Blocking, single-threaded listener loop

    One event is read, handled (task launch included) and reported before
    the next one is read.
    """

    def __init__(
        self,
        handler: Callable[[str], Outcome],
        supported_events: Iterable[str],
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None
    ):
        """
        Args:
            handler: Maps an event name to an Outcome (ThrottleEngine.handle)
            supported_events: Event names accepted; anything else closes the loop
            stdin: Stream supervisord writes events to (default sys.stdin)
            stdout: Stream supervisord reads results from (default sys.stdout)
        """
        self.handler = handler
        self.supported_events = frozenset(supported_events)
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.state = ListenerState.WAIT_TOKEN
        self.events_handled = 0

    def run(self) -> CloseReason:
        """Serve events until the protocol closes; returns why it closed"""
        self._write(READY)

        while True:
            reason = self._step()
            if reason is not None:
                self.state = ListenerState.CLOSED
                logger.info(
                    f"Listener closed: {reason.value} "
                    f"(events handled: {self.events_handled})"
                )
                return reason

    def _step(self) -> Optional[CloseReason]:
        self.state = ListenerState.WAIT_TOKEN

        try:
            line = self.stdin.readline()
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot read from supervisord: {e}")
            return CloseReason.INPUT_CLOSED

        token = line.strip()
        if not token:
            return CloseReason.INPUT_CLOSED

        headers = parse_header(token)

        # Payload is not used, but must be consumed to stay aligned with the next header
        length = payload_length(headers)
        if length:
            self.stdin.read(length)

        event_name = headers.get('eventname')
        if event_name is None:
            logger.error(f"Event header without eventname: {token!r}")
            return CloseReason.MISSING_EVENTNAME

        if event_name not in self.supported_events:
            logger.error(
                f"Unsupported event {event_name}; subscribed to {sorted(self.supported_events)}"
            )
            return CloseReason.UNSUPPORTED_EVENT

        self.state = ListenerState.DISPATCH
        outcome = self.handler(event_name)

        self.state = ListenerState.REPORT
        if outcome == Outcome.SUCCESS:
            self._write(RESULT_OK)
        elif outcome == Outcome.BUSINESS_FAILURE:
            self._write(RESULT_FAIL)
        else:
            return CloseReason.ENGINE_TERMINATED

        self.events_handled += 1
        self._write(READY)
        return None

    def _write(self, message: str) -> None:
        self.stdout.write(message)
        self.stdout.flush()
