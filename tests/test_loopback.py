# tests/test_loopback.py
import asyncio
import pytest

from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack

from chat.types import Sender
from handshake import descriptor
from handshake.controller import PeerSessionController
from handshake.errors import DecodeError
from handshake.session import CallPhase, HandshakeState, Role, SessionKind, MSG_CHANNEL_READY, MSG_INVALID_CODE
from util.config import Settings

pytestmark = pytest.mark.asyncio


async def wait_until(predicate, timeout: float = 20.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.05)


async def test_text_session_between_two_peers():
    a = PeerSessionController(SessionKind.TEXT, settings=Settings())
    b = PeerSessionController(SessionKind.TEXT, settings=Settings())
    try:
        # Step 1: A starts and produces L1
        await a.start(Role.INITIATOR)
        l1 = a.local_descriptor
        assert descriptor.decode(l1).type == "offer"
        assert "a=candidate" in descriptor.decode(l1).sdp

        # Step 2: B starts, applies L1, produces L2
        await b.start(Role.RESPONDER)
        assert b.local_descriptor == ""
        await b.apply_remote_descriptor(l1)
        l2 = b.local_descriptor
        assert descriptor.decode(l2).type == "answer"

        # Step 3: A applies L2 -> ready
        await a.apply_remote_descriptor(l2)
        await wait_until(lambda: a.channel_ready and b.channel_ready)
        assert a.status.message == MSG_CHANNEL_READY
        await wait_until(lambda: b.state is HandshakeState.CONNECTED)

        # Step 4: A -> B
        a.send("hi")
        await wait_until(lambda: len(b.messages) == 1)
        assert (b.messages[0].text, b.messages[0].sender) == ("hi", Sender.REMOTE)
        assert [(m.text, m.sender) for m in a.messages] == [("hi", Sender.LOCAL)]

        # B -> A
        b.send("hello back")
        await wait_until(lambda: len(a.messages) == 2)
        assert a.messages[-1].sender is Sender.REMOTE
    finally:
        await asyncio.gather(a.reset(), b.reset())


async def test_invalid_code_leaves_live_session_usable():
    a = PeerSessionController(SessionKind.TEXT, settings=Settings())
    b = PeerSessionController(SessionKind.TEXT, settings=Settings())
    try:
        await a.start(Role.INITIATOR)
        await b.start(Role.RESPONDER)

        with pytest.raises(DecodeError):
            await b.apply_remote_descriptor("not-base64!!")
        assert b.status.message == MSG_INVALID_CODE
        assert b.state is HandshakeState.AWAITING_REMOTE

        await b.apply_remote_descriptor(a.local_descriptor)
        await a.apply_remote_descriptor(b.local_descriptor)
        await wait_until(lambda: a.channel_ready and b.channel_ready)
    finally:
        await asyncio.gather(a.reset(), b.reset())


async def test_call_session_binds_remote_media():
    settings = Settings(call_stun_urls=[])

    def capture():
        return [AudioStreamTrack(), VideoStreamTrack()]

    a = PeerSessionController(SessionKind.CALL, settings=settings, capture=capture)
    b = PeerSessionController(SessionKind.CALL, settings=settings, capture=capture)
    try:
        await a.start(Role.INITIATOR)
        sdp = descriptor.decode(a.local_descriptor).sdp
        assert "m=audio" in sdp and "m=video" in sdp

        await b.start(Role.RESPONDER)
        await b.apply_remote_descriptor(a.local_descriptor)
        await a.apply_remote_descriptor(b.local_descriptor)

        await wait_until(lambda: a.status.phase is CallPhase.CONNECTED and b.status.phase is CallPhase.CONNECTED)
        assert {t.kind for t in a.remote_stream.tracks} == {"audio", "video"}
        assert {t.kind for t in b.remote_stream.tracks} == {"audio", "video"}

        local_tracks = list(a.local_stream.tracks)
    finally:
        await asyncio.gather(a.reset(), b.reset())

    assert all(t.readyState == "ended" for t in local_tracks)
    assert a.local_stream is None and a.remote_stream is None
