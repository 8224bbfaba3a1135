import pytest

from util import metrics


def test_snapshot_lists_every_known_counter():
    snap = metrics.snapshot()
    assert set(metrics.KNOWN_COUNTERS) <= set(snap)
    assert all(isinstance(v, int) for v in snap.values())


def test_incr_and_get():
    store = metrics.SessionCounters()
    store.bump("messages_sent")
    store.bump("messages_sent", 2)
    assert store.value("messages_sent") == 3
    assert store.value("decode_errors") == 0


def test_unknown_counter_is_rejected():
    with pytest.raises(KeyError):
        metrics.incr("mesages_sent")
