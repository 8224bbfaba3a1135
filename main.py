# main.py
import asyncio

from handshake.controller import PeerSessionController
from handshake.session import Role, SessionKind
from util.log import set_log_enabled


async def wait_until(predicate, timeout: float = 15.0, interval: float = 0.05) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise TimeoutError("condition not reached")
        await asyncio.sleep(interval)


async def main():
    """
    Two text sessions in one process; the codes are handed over in code
    instead of by a human.
    """
    set_log_enabled(False)
    alice = PeerSessionController(SessionKind.TEXT)
    bob = PeerSessionController(SessionKind.TEXT)

    try:
        await alice.start(Role.INITIATOR)
        print("A code:", alice.local_descriptor[:48] + "...")

        await bob.start(Role.RESPONDER)
        await bob.apply_remote_descriptor(alice.local_descriptor)
        print("B code:", bob.local_descriptor[:48] + "...")

        await alice.apply_remote_descriptor(bob.local_descriptor)
        await wait_until(lambda: alice.channel_ready and bob.channel_ready)
        print("A status:", alice.status.message)

        alice.send("hi")
        await wait_until(lambda: len(bob.messages) == 1)
        msg = bob.messages[0]
        print(f"B received {msg.text!r} from {msg.sender.value}")
    finally:
        await asyncio.gather(alice.reset(), bob.reset())


if __name__ == "__main__":
    asyncio.run(main())
