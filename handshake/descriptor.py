# handshake/descriptor.py
import base64
import binascii
import json
from typing import Optional

from aiortc import RTCSessionDescription

from handshake.errors import DecodeError, EncodeError

DESCRIPTION_TYPES = ("offer", "pranswer", "answer", "rollback")


def encode(description: Optional[RTCSessionDescription]) -> str:
    """
    Turn a session description into copy-pasteable text: base64 of the
    JSON object ``{"type", "sdp"}``, the same shape a browser produces with
    ``btoa(JSON.stringify(desc))``.

    ``None`` encodes to ``""``, which callers read as "not yet available".
    """
    if description is None:
        return ""
    sdp = getattr(description, "sdp", None)
    kind = getattr(description, "type", None)
    if not isinstance(sdp, str) or not isinstance(kind, str):
        raise EncodeError(f"not a session description: {description!r}")
    payload = json.dumps({"type": kind, "sdp": sdp}, separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode(text: str) -> RTCSessionDescription:
    try:
        raw = base64.b64decode(text.strip(), validate=True)
        obj = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"malformed descriptor: {e}") from e

    if not isinstance(obj, dict):
        raise DecodeError("descriptor payload is not an object")
    kind, sdp = obj.get("type"), obj.get("sdp")
    if kind not in DESCRIPTION_TYPES:
        raise DecodeError(f"unknown description type: {kind!r}")
    if not isinstance(sdp, str) or not sdp:
        raise DecodeError("descriptor has no sdp")
    return RTCSessionDescription(sdp=sdp, type=kind)
