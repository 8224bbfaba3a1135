import threading

import pytest

from handshake.errors import MediaAccessError
from net.media_binding import MediaBinding, MediaStream, open_device_capture
from util.config import Settings

pytestmark = pytest.mark.asyncio


class Track:
    def __init__(self, kind):
        self.kind = kind
        self.stopped = False

    def stop(self):
        self.stopped = True


async def test_missing_device_is_media_access_error():
    settings = Settings(video_device="/nonexistent/video-device", video_format=None)
    binding = MediaBinding(settings=settings)
    with pytest.raises(MediaAccessError):
        await binding.acquire_local_media()
    assert binding.local_stream is None


async def test_no_configured_devices_is_media_access_error():
    with pytest.raises(MediaAccessError):
        open_device_capture(Settings())


async def test_os_errors_from_capture_are_wrapped():
    def capture():
        raise PermissionError("camera busy")

    with pytest.raises(MediaAccessError):
        await MediaBinding(capture).acquire_local_media()


async def test_release_stops_tracks_and_clears_streams():
    tracks = [Track("audio"), Track("video")]
    binding = MediaBinding(lambda: tracks)
    stream = await binding.acquire_local_media()
    assert stream.audio is tracks[0] and stream.video is tracks[1]

    binding._handle_track(Track("video"))
    assert isinstance(binding.remote_stream, MediaStream)

    binding.release()
    assert all(t.stopped for t in tracks)
    assert binding.local_stream is None and binding.remote_stream is None


async def test_capture_runs_off_the_event_loop_thread():
    seen = []

    def capture():
        seen.append(threading.get_ident())
        return [Track("audio"), Track("video")]

    await MediaBinding(capture).acquire_local_media()
    assert seen and seen[0] != threading.get_ident()
