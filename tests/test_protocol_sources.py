from __future__ import annotations

import io
import json
import logging
import socket
import threading
import time

import numpy as np
import pytest

from walkstate.streaming.errors import PayloadError
from walkstate.streaming.protocol import AccelSample, parse_payload, sample_to_dict
from walkstate.streaming.sources import IterableSource, JsonLinesSource, UdpSource


def test_parse_single_sample():
    (s,) = parse_payload(b'{"t": 12.5, "x": 0.1, "y": -0.2, "z": 0.98, "label": "walk"}')
    assert s == AccelSample(x=0.1, y=-0.2, z=0.98, t=12.5, label="walk")


def test_parse_batch_and_list_forms():
    batch = {"samples": [{"x": 0, "y": 0, "z": 1}, {"x": 1, "y": 0, "z": 0}]}
    assert [s.x for s in parse_payload(json.dumps(batch))] == [0.0, 1.0]
    assert len(parse_payload(json.dumps(batch["samples"]))) == 2


def test_parse_accepts_ax_aliases_and_millisecond_timestamps():
    (s,) = parse_payload('{"timestamp": 1700000000123, "ax": 0.5, "ay": 0.25, "az": 1}')
    assert (s.x, s.y, s.z) == (0.5, 0.25, 1.0)
    assert s.t == pytest.approx(1700000000.123)


def test_parse_keeps_zero_timestamp():
    (s,) = parse_payload('{"t": 0, "timestamp": 99.0, "x": 0, "y": 0, "z": 1}')
    assert s.t == 0.0

    (s,) = parse_payload('{"t": null, "ts": 0, "x": 0, "y": 0, "z": 1}')
    assert s.t == 0.0


def test_parse_empty_payload():
    assert parse_payload(b"  \n") == []


@pytest.mark.parametrize(
    "payload",
    [
        b'{"x": 0.1, "y": 0.2}',
        b'{"x": "abc", "y": 0.2, "z": 1}',
        b"not json",
        b"42",
        b"[1, 2, 3]",
    ],
)
def test_parse_rejects_bad_payloads(payload):
    with pytest.raises(PayloadError):
        parse_payload(payload)


def test_sample_to_dict_roundtrip():
    s = AccelSample(x=0.1, y=0.2, z=0.3, t=1.0, label="still")
    assert parse_payload(json.dumps(sample_to_dict(s))) == [s]
    assert sample_to_dict(AccelSample(x=0.0, y=0.0, z=1.0)) == {"x": 0.0, "y": 0.0, "z": 1.0}


def test_iterable_source_accepts_numpy_rows():
    xyz = np.array([[0.0, 0.0, 1.0], [0.1, 0.2, 0.3]])
    received: list[AccelSample] = []
    src = IterableSource(xyz)
    src.start(received.append)
    assert [(s.x, s.y, s.z) for s in received] == [(0.0, 0.0, 1.0), (0.1, 0.2, 0.3)]
    assert src.samples_delivered == 2


def test_iterable_source_stop_from_handler():
    received: list[AccelSample] = []
    src = IterableSource([(0.0, 0.0, float(i)) for i in range(10)])

    def handler(s: AccelSample) -> None:
        received.append(s)
        if len(received) == 3:
            src.stop()

    src.start(handler)
    assert len(received) == 3


def test_json_lines_source_raises_on_bad_payload_by_default():
    stream = io.StringIO('{"x": 0, "y": 0, "z": 1}\nbroken\n{"x": 0, "y": 0, "z": 1}\n')
    received: list[AccelSample] = []
    with pytest.raises(PayloadError):
        JsonLinesSource(stream).start(received.append)
    assert len(received) == 1


def test_json_lines_source_can_skip_bad_payloads(caplog):
    stream = io.StringIO('{"x": 0, "y": 0, "z": 1}\nbroken\n\n[{"x": 1, "y": 0, "z": 0}, {"x": 2, "y": 0, "z": 0}]\n')
    received: list[AccelSample] = []
    src = JsonLinesSource(stream, skip_bad_payloads=True)
    with caplog.at_level(logging.WARNING, logger="walkstate.streaming.sources"):
        src.start(received.append)
    assert [s.x for s in received] == [0.0, 1.0, 2.0]
    assert src.bad_payloads == 1
    assert "Bad payload skipped" in caplog.text


def test_udp_source_delivers_datagrams():
    src = UdpSource("127.0.0.1", 0, timeout=0.05)
    received: list[AccelSample] = []

    def handler(s: AccelSample) -> None:
        received.append(s)
        if len(received) == 3:
            src.stop()

    worker = threading.Thread(target=src.start, args=(handler,), daemon=True)
    worker.start()

    deadline = time.monotonic() + 5
    while src.bound_port is None and time.monotonic() < deadline:
        time.sleep(0.01)
    assert src.bound_port is not None

    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.sendto(b"garbage", ("127.0.0.1", src.bound_port))
        sender.sendto(b'{"x": 0, "y": 0, "z": 1}', ("127.0.0.1", src.bound_port))
        sender.sendto(b'{"samples": [{"x": 1, "y": 0, "z": 0}, {"x": 2, "y": 0, "z": 0}]}', ("127.0.0.1", src.bound_port))
    finally:
        sender.close()

    worker.join(timeout=5)
    assert not worker.is_alive()
    assert [s.x for s in received] == [0.0, 1.0, 2.0]
    assert src.bad_payloads == 1
