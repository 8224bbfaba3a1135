from enum import Enum, auto
from typing import Any, Callable, Optional

from chat.message_log import MessageLog
from chat.types import Message, Sender
from util.config import CHANNEL_LABEL
from util.log import log
from util.metrics import incr


class ChannelState(Enum):
    OPENING = auto()
    READY   = auto()
    CLOSED  = auto()
    ERROR   = auto()


class ChannelBinding:
    """
    Text-session resource: one ordered, reliable data channel.

    The initiator creates the channel before its offer; the responder binds
    the first channel the peer opens. A closed channel is never reopened.
    """

    def __init__(
        self,
        messages: MessageLog,
        label: str = CHANNEL_LABEL,
        on_state: Optional[Callable[[ChannelState], None]] = None,
        on_message: Optional[Callable[[Message], None]] = None,
    ):
        self.messages = messages
        self.label = label
        self.state = ChannelState.OPENING
        self._channel: Any = None
        self._handlers: list = []
        self._on_state = on_state
        self._on_message = on_message

    @property
    def ready(self) -> bool:
        return self._channel is not None and self.state is ChannelState.READY

    def attach_outgoing(self, connection: Any, subscribe: Callable[[str, Callable], None]) -> None:
        self._bind(connection.createDataChannel(self.label, ordered=True))

    def accept_incoming(self, connection: Any, subscribe: Callable[[str, Callable], None]) -> None:
        def _on_datachannel(channel: Any) -> None:
            if self._channel is not None:
                log("datachannel_ignored", label=getattr(channel, "label", None))
                return
            self._bind(channel)

        subscribe("datachannel", _on_datachannel)

    def send(self, text: str) -> Optional[Message]:
        """Send and echo locally. No-op unless the channel is ready and text is non-blank."""
        text = (text or "").strip()
        if not text or not self.ready:
            return None
        self._channel.send(text)
        msg = self.messages.append(text, Sender.LOCAL)
        incr("messages_sent", 1)
        return msg

    def disable(self) -> None:
        """Make the channel unusable without closing it (session failed)."""
        if self.state is not ChannelState.CLOSED:
            self.state = ChannelState.ERROR

    def release(self, connection: Any = None) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            for event, handler in self._handlers:
                try:
                    channel.remove_listener(event, handler)
                except Exception:
                    pass
            try:
                channel.close()
            except Exception as e:
                log("channel_close_error", label=self.label, error=str(e))
        self._handlers.clear()
        self.state = ChannelState.CLOSED

    # ------------- internals -------------
    def _bind(self, channel: Any) -> None:
        self._channel = channel
        for event, handler in (
            ("open", self._handle_open),
            ("close", self._handle_close),
            ("error", self._handle_error),
            ("message", self._handle_message),
        ):
            channel.on(event, handler)
            self._handlers.append((event, handler))
        log("datachannel_bound", label=channel.label, ready_state=channel.readyState)
        # a channel announced by the peer may already be open
        if channel.readyState == "open":
            self._handle_open()

    def _set_state(self, state: ChannelState) -> None:
        if self.state is state:
            return
        self.state = state
        if self._on_state:
            self._on_state(state)

    def _handle_open(self) -> None:
        if self.state is ChannelState.OPENING:
            self._set_state(ChannelState.READY)

    def _handle_close(self) -> None:
        self._set_state(ChannelState.CLOSED)

    def _handle_error(self, *args: Any) -> None:
        log("datachannel_error", label=self.label, error=str(args[0]) if args else None)
        if self.state is not ChannelState.CLOSED:
            self._set_state(ChannelState.ERROR)

    def _handle_message(self, data: Any) -> None:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8", "replace")
        msg = self.messages.append(str(data), Sender.REMOTE)
        incr("messages_received", 1)
        if self._on_message:
            self._on_message(msg)
