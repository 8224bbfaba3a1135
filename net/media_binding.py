from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import av.error
from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer

from handshake.errors import MediaAccessError
from util.config import Settings
from util.log import log
from util.metrics import incr

CaptureSource = Callable[[], List[MediaStreamTrack]]


@dataclass
class MediaStream:
    """A group of tracks rendered together (local preview or remote peer)."""
    tracks: List[MediaStreamTrack] = field(default_factory=list)

    @property
    def audio(self) -> Optional[MediaStreamTrack]:
        return next((t for t in self.tracks if t.kind == "audio"), None)

    @property
    def video(self) -> Optional[MediaStreamTrack]:
        return next((t for t in self.tracks if t.kind == "video"), None)


def _stop_all(tracks: List[MediaStreamTrack]) -> None:
    for track in tracks:
        try:
            track.stop()
        except Exception:
            pass


def open_device_capture(settings: Settings) -> List[MediaStreamTrack]:
    """
    Open the webcam and microphone described by settings with MediaPlayer.
    Raises MediaAccessError unless both an audio and a video track come up.
    """
    tracks: List[MediaStreamTrack] = []
    try:
        if settings.video_device:
            player = MediaPlayer(
                settings.video_device,
                format=settings.video_format,
                options={"framerate": "30", "video_size": "640x480"},
            )
            tracks += [t for t in (player.video, player.audio) if t is not None]
        if settings.audio_device and settings.audio_format:
            mic = MediaPlayer(settings.audio_device, format=settings.audio_format)
            if mic.audio is not None:
                tracks.append(mic.audio)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        _stop_all(tracks)
        raise MediaAccessError(f"capture device unavailable: {e}") from e

    kinds = {t.kind for t in tracks}
    if not {"audio", "video"} <= kinds:
        _stop_all(tracks)
        raise MediaAccessError(f"capture is missing {sorted({'audio', 'video'} - kinds)}")
    return tracks


class MediaBinding:
    """
    Call-session resource: local capture attached to the connection and the
    remote stream it reports back.
    """

    def __init__(self, capture: Optional[CaptureSource] = None, settings: Optional[Settings] = None):
        self._capture = capture or (lambda: open_device_capture(settings or Settings()))
        self.local_stream: Optional[MediaStream] = None
        self.remote_stream: Optional[MediaStream] = None
        self._on_remote: Optional[Callable[[MediaStream], None]] = None

    def set_on_remote(self, cb: Callable[[MediaStream], None]) -> None:
        self._on_remote = cb

    async def acquire_local_media(self) -> MediaStream:
        try:
            # device open blocks
            tracks = await asyncio.get_running_loop().run_in_executor(None, self._capture)
        except MediaAccessError:
            incr("media_access_errors", 1)
            raise
        except (av.error.FFmpegError, OSError, ValueError) as e:
            incr("media_access_errors", 1)
            raise MediaAccessError(str(e)) from e
        self.local_stream = MediaStream(list(tracks))
        log("media_acquired", kinds=[t.kind for t in self.local_stream.tracks])
        return self.local_stream

    def attach_outgoing(self, connection: Any, subscribe: Callable[[str, Callable], None]) -> None:
        self._attach(connection, subscribe)

    def accept_incoming(self, connection: Any, subscribe: Callable[[str, Callable], None]) -> None:
        self._attach(connection, subscribe)

    def _attach(self, connection: Any, subscribe: Callable[[str, Callable], None]) -> None:
        # tracks must be on the connection before any description is created
        if self.local_stream is not None:
            for track in self.local_stream.tracks:
                connection.addTrack(track)
        subscribe("track", self._handle_track)

    def _handle_track(self, track: MediaStreamTrack) -> None:
        first = self.remote_stream is None
        if first:
            self.remote_stream = MediaStream()
        self.remote_stream.tracks.append(track)
        log("remote_track", kind=track.kind, first=first)
        if self._on_remote:
            self._on_remote(self.remote_stream)

    def release(self, connection: Any = None) -> None:
        """Stop every local track and detach senders; the connection is closed afterwards."""
        if connection is not None:
            for sender in connection.getSenders():
                track = sender.track
                if track is not None:
                    _stop_all([track])
                try:
                    sender.replaceTrack(None)
                except Exception:
                    pass
        if self.local_stream is not None:
            _stop_all(self.local_stream.tracks)
        self.local_stream = None
        self.remote_stream = None
