# nat/gathering.py
import asyncio
from typing import Any, Optional

from handshake.errors import GatheringTimeout
from util.log import log

GATHERING_EVENT = "icegatheringstatechange"


async def wait_for_completion(connection: Any, timeout: Optional[float] = None) -> None:
    """
    Resolve once the connection has finished gathering local candidates.

    Returns at once if gathering is already complete; otherwise listens for
    ``icegatheringstatechange`` and drops the listener after the first
    "complete" (or when the wait is cancelled / times out). With no timeout
    a transport that never completes gathering keeps the caller suspended.
    """
    if connection.iceGatheringState == "complete":
        return

    loop = asyncio.get_running_loop()
    done: asyncio.Future = loop.create_future()
    subscribed = True

    def _on_change() -> None:
        nonlocal subscribed
        if connection.iceGatheringState != "complete":
            return
        if subscribed:
            connection.remove_listener(GATHERING_EVENT, _on_change)
            subscribed = False
        if not done.done():
            done.set_result(None)

    connection.on(GATHERING_EVENT, _on_change)
    try:
        if timeout is None:
            await done
        else:
            await asyncio.wait_for(done, timeout)
    except asyncio.TimeoutError:
        log("gathering_timeout", timeout_s=timeout)
        raise GatheringTimeout(f"candidate gathering did not complete within {timeout}s")
    finally:
        if subscribed:
            connection.remove_listener(GATHERING_EVENT, _on_change)
            subscribed = False


class GatheringWaiter:
    """Binds a configured timeout to wait_for_completion()."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def wait(self, connection: Any) -> None:
        await wait_for_completion(connection, self.timeout)
