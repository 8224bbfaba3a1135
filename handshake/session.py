from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional


class Role(Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


class SessionKind(Enum):
    TEXT = "text"
    CALL = "call"


class HandshakeState(Enum):
    NEW              = auto()
    LOCAL_DESCRIBING = auto()
    AWAITING_REMOTE  = auto()
    ANSWERING        = auto()
    CONNECTED        = auto()
    FAILED           = auto()


class CallPhase(Enum):
    IDLE            = "idle"
    AWAITING_OFFER  = "await-offer"
    AWAITING_ANSWER = "await-answer"
    CONNECTED       = "connected"
    ERROR           = "error"


# narrative status lines shown for text sessions
MSG_CHOOSE_ROLE     = "Choose a role to begin."
MSG_PREPARING       = "Preparing the connection..."
MSG_CODE_READY      = "Connection code ready. Give it to the other side."
MSG_PASTE_CODE      = "Paste the other side's connection code."
MSG_ANSWER_READY    = "Your code is ready. Give it to the other side."
MSG_FINALIZING      = "Finalizing the connection..."
MSG_CHANNEL_READY   = "Connection ready. You can send messages now."
MSG_CHANNEL_CLOSED  = "Channel closed. Start again."
MSG_CHANNEL_ERROR   = "The channel ran into a problem. Try again."
MSG_CONN_FAILED     = "Connection failed. Start again."
MSG_INVALID_CODE    = "The code is not valid. Try again."

ERR_MEDIA_ACCESS    = "Could not access the camera/microphone."
ERR_CALL_FAILED     = "The call failed."
ERR_INVALID_CODE    = "The code is not valid or the exchange was interrupted."


@dataclass(frozen=True)
class SessionStatus:
    phase: CallPhase = CallPhase.IDLE
    message: str = MSG_CHOOSE_ROLE
    error: Optional[str] = None


INITIAL_STATUS = SessionStatus()


@dataclass
class Session:
    """
    One live negotiation. Owns the connection and the resource binding; both
    are released only through SessionLifecycle.teardown().
    """
    generation: int
    kind: SessionKind
    role: Role
    connection: Any = None
    binding: Any = None
    state: HandshakeState = HandshakeState.NEW
    local_descriptor: str = ""
    remote_descriptor: str = ""
    # set before awaiting so a re-entrant submission sees them
    local_described: bool = False
    remote_applied: bool = False
    closed: bool = False
    handlers: list = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.state is HandshakeState.FAILED
