import base64
import json
import pytest

from aiortc import RTCSessionDescription

from handshake import descriptor
from handshake.errors import DecodeError, EncodeError

SDP = (
    "v=0\r\n"
    "o=- 3918288930 3918288930 IN IP4 0.0.0.0\r\n"
    "s=-\r\n"
    "t=0 0\r\n"
    "a=group:BUNDLE 0\r\n"
    "m=application 9 DTLS/SCTP 5000\r\n"
    "a=candidate:1 1 UDP 2130706431 192.168.1.20 50523 typ host\r\n"
    "a=end-of-candidates\r\n"
)


@pytest.mark.parametrize("kind", ["offer", "answer"])
def test_descriptor_round_trip(kind):
    desc = RTCSessionDescription(sdp=SDP, type=kind)
    text = descriptor.encode(desc)
    assert descriptor.decode(text) == desc


def test_descriptor_is_browser_compatible():
    # what btoa(JSON.stringify(desc)) produces on the web side
    browser = base64.b64encode(json.dumps({"type": "offer", "sdp": SDP}).encode()).decode()
    assert descriptor.decode(browser) == RTCSessionDescription(sdp=SDP, type="offer")

    ours = json.loads(base64.b64decode(descriptor.encode(RTCSessionDescription(sdp=SDP, type="answer"))))
    assert ours == {"type": "answer", "sdp": SDP}


def test_absent_description_encodes_to_empty_text():
    assert descriptor.encode(None) == ""


def test_encode_rejects_non_descriptions():
    with pytest.raises(EncodeError):
        descriptor.encode(object())


def test_decode_strips_surrounding_whitespace():
    text = descriptor.encode(RTCSessionDescription(sdp=SDP, type="offer"))
    assert descriptor.decode(f"\n  {text}\t\n").type == "offer"


@pytest.mark.parametrize("text", [
    "not-base64!!",
    "",
    base64.b64encode(b"{not json").decode(),
    base64.b64encode(b"\xff\xfe").decode(),
    base64.b64encode(b"[1, 2]").decode(),
    base64.b64encode(json.dumps({"type": "hello", "sdp": SDP}).encode()).decode(),
    base64.b64encode(json.dumps({"type": "offer"}).encode()).decode(),
    base64.b64encode(json.dumps({"type": "offer", "sdp": 42}).encode()).decode(),
])
def test_decode_rejects_malformed_text(text):
    with pytest.raises(DecodeError):
        descriptor.decode(text)


def test_decode_error_is_a_value_error():
    with pytest.raises(ValueError):
        descriptor.decode("###")
