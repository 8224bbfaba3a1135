from typing import List

from chat.types import Message, Sender


class MessageLog:
    """
    Append-only chat history for one session.

    Each side stamps its own entries; there is no cross-side ordering.
    Local entries are recorded when a send is attempted, not when the peer
    receives them.
    """

    def __init__(self) -> None:
        self._entries: List[Message] = []

    def append(self, text: str, sender: Sender) -> Message:
        msg = Message(text=text, sender=sender)
        self._entries.append(msg)
        return msg

    def entries(self) -> List[Message]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
