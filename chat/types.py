from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid


class Sender(Enum):
    LOCAL = "local"
    REMOTE = "remote"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    text: str
    sender: Sender
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_utcnow)
