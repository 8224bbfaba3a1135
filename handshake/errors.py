class MeshError(Exception):
    """Base class for handshake and session errors."""


class EncodeError(MeshError, ValueError):
    pass


class DecodeError(MeshError, ValueError):
    """The pasted descriptor is not a valid encoded session description."""


class NegotiationError(MeshError):
    """The connection rejected a well-formed remote description."""


class MediaAccessError(MeshError):
    """Camera or microphone could not be opened."""


class ConnectionFailure(MeshError):
    """The transport reported a failed connection. Only reset() recovers."""


class GatheringTimeout(MeshError):
    pass
