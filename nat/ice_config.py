# nat/ice_config.py
from typing import List, Optional

from aiortc import RTCConfiguration, RTCIceServer

from handshake.session import SessionKind
from util.config import Settings


def ice_server_urls(kind: SessionKind, settings: Optional[Settings] = None) -> List[str]:
    """Text sessions use host candidates only; calls add public STUN servers."""
    if kind is SessionKind.TEXT:
        return []
    settings = settings or Settings()
    return list(settings.call_stun_urls)


def build_configuration(kind: SessionKind, settings: Optional[Settings] = None) -> RTCConfiguration:
    servers = [RTCIceServer(urls=url) for url in ice_server_urls(kind, settings)]
    return RTCConfiguration(iceServers=servers)
