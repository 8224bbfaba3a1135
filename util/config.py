import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

CHANNEL_LABEL = "mesh-chat"

# public STUN only; text sessions stay on the local network
CALL_STUN_URLS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
]


def _parse_bool_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _parse_float_env(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def _default_capture() -> Tuple[str, str, Optional[str], Optional[str]]:
    """
    (video format, video device, audio format, audio device) for the platform's
    default webcam and microphone. On macOS and Windows one device string
    carries both tracks.
    """
    if sys.platform == "darwin":
        return "avfoundation", "default:default", None, None
    if sys.platform.startswith("win"):
        return "dshow", "video=Integrated Camera:audio=Microphone", None, None
    return "v4l2", "/dev/video0", "pulse", "default"


@dataclass
class Settings:
    channel_label: str = CHANNEL_LABEL
    call_stun_urls: List[str] = field(default_factory=lambda: list(CALL_STUN_URLS))
    gather_timeout: Optional[float] = None
    video_format: Optional[str] = None
    video_device: Optional[str] = None
    audio_format: Optional[str] = None
    audio_device: Optional[str] = None
    log_events: bool = False


def load_settings() -> Settings:
    """Build settings from ``MESH_*`` environment variables over built-in defaults."""
    v_fmt, v_dev, a_fmt, a_dev = _default_capture()
    settings = Settings(video_format=v_fmt, video_device=v_dev, audio_format=a_fmt, audio_device=a_dev)

    label = os.getenv("MESH_CHANNEL_LABEL")
    if label:
        settings.channel_label = label

    urls_raw = os.getenv("MESH_CALL_STUN_URLS")
    if urls_raw is not None:
        settings.call_stun_urls = [u.strip() for u in urls_raw.split(",") if u.strip()]

    settings.gather_timeout = _parse_float_env(os.getenv("MESH_GATHER_TIMEOUT"))

    for attr, env in (
        ("video_format", "MESH_VIDEO_FORMAT"),
        ("video_device", "MESH_VIDEO_DEVICE"),
        ("audio_format", "MESH_AUDIO_FORMAT"),
        ("audio_device", "MESH_AUDIO_DEVICE"),
    ):
        if env in os.environ:
            setattr(settings, attr, os.getenv(env) or None)

    settings.log_events = _parse_bool_env(os.getenv("MESH_LOG_EVENTS"), default=False)
    return settings
