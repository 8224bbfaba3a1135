# nat/stun_client.py
import asyncio
from typing import List, Optional, Tuple

import aioice


def _stun_host_port(url: str) -> Optional[Tuple[str, int]]:
    # "stun:host:port" -> (host, port)
    if not url.startswith("stun:"):
        return None
    host, _, port = url[len("stun:"):].rpartition(":")
    if not host:
        return url[len("stun:"):], 3478
    try:
        return host, int(port)
    except ValueError:
        return None


async def discover_candidates(stun_url: Optional[str] = None) -> List[aioice.Candidate]:
    """
    Gather local ICE candidates once and return them. Host candidates only
    unless a STUN url is given, in which case a server-reflexive candidate
    appears when the server answers.
    """
    stun_server = _stun_host_port(stun_url) if stun_url else None
    connection = aioice.Connection(ice_controlling=True, stun_server=stun_server)
    try:
        await connection.gather_candidates()
        return list(connection.local_candidates)
    finally:
        await connection.close()


async def run_stun_discovery(stun_url: Optional[str] = None):
    for candidate in await discover_candidates(stun_url):
        print(f"[STUN] Found candidate: {candidate}")


if __name__ == "__main__":
    asyncio.run(run_stun_discovery("stun:stun.l.google.com:19302"))
