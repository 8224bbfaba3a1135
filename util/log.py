import json
import logging
import sys
from typing import Any, Optional
from util.metrics import now_ms

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"

_enabled = True


def set_log_enabled(enabled: bool) -> None:
    global _enabled
    _enabled = enabled


def log(event: str, **fields: Any) -> None:
    # stderr: stdout carries descriptors the user copies
    if not _enabled:
        return
    record = {"ts_ms": now_ms(), "event": event}
    record.update(fields)
    print(json.dumps(record, separators=(",", ":"), default=str), file=sys.stderr, flush=True)


def configure_logging(level: int = logging.WARNING, format: Optional[str] = None) -> None:
    """
    Configure stdlib logging once, for the aiortc/aioice loggers.
    """
    if logging.getLogger().handlers:
        return
    logging.basicConfig(
        level=level,
        format=format or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
