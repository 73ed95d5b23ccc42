"""Acquisition collaborators that push accelerometer samples into a handler.

A source owns its input (a socket, a file, an in-memory recording) and reports
its own failures to whoever called `start`. The classifier never sees them.
"""

from __future__ import annotations

import logging
import socket
from typing import Callable, Iterable, Protocol, Sequence, TextIO

from walkstate.streaming.errors import PayloadError
from walkstate.streaming.protocol import AccelSample, parse_payload

logger = logging.getLogger(__name__)

SampleHandler = Callable[[AccelSample], None]


class AccelerometerSource(Protocol):
    def start(self, handler: SampleHandler) -> None: ...

    def stop(self) -> None: ...


class _StoppableSource:
    def __init__(self) -> None:
        self._stopped = False
        self.samples_delivered = 0

    def stop(self) -> None:
        self._stopped = True

    def _deliver(self, handler: SampleHandler, samples: Iterable[AccelSample]) -> bool:
        for s in samples:
            if self._stopped:
                return False
            handler(s)
            self.samples_delivered += 1
        return not self._stopped


class IterableSource(_StoppableSource):
    """Replay an in-memory sequence of samples or (x, y, z) rows."""

    def __init__(self, samples: Iterable[AccelSample | Sequence[float]]):
        super().__init__()
        self._samples = samples

    def start(self, handler: SampleHandler) -> None:
        self._stopped = False
        rows = (s if isinstance(s, AccelSample) else AccelSample.from_xyz(s) for s in self._samples)
        self._deliver(handler, rows)


class _PayloadSource(_StoppableSource):
    def __init__(self, *, skip_bad_payloads: bool):
        super().__init__()
        self.skip_bad_payloads = skip_bad_payloads
        self.bad_payloads = 0

    def _parse(self, payload: bytes | str) -> list[AccelSample]:
        try:
            return parse_payload(payload)
        except PayloadError as e:
            if not self.skip_bad_payloads:
                raise
            self.bad_payloads += 1
            logger.warning("Bad payload skipped: %s", e)
            return []


class JsonLinesSource(_PayloadSource):
    """One JSON payload per line (stdin, a file, or any text stream)."""

    def __init__(self, stream: TextIO, *, skip_bad_payloads: bool = False):
        super().__init__(skip_bad_payloads=skip_bad_payloads)
        self._stream = stream

    def start(self, handler: SampleHandler) -> None:
        self._stopped = False
        for line in self._stream:
            if not self._deliver(handler, self._parse(line)):
                break


class UdpSource(_PayloadSource):
    """Bind a UDP socket and treat every datagram as one payload."""

    def __init__(self, host: str = "0.0.0.0", port: int = 5500, *, skip_bad_payloads: bool = True, timeout: float = 0.5):
        super().__init__(skip_bad_payloads=skip_bad_payloads)
        self.host = host
        self.port = int(port)
        self.timeout = timeout
        self.bound_port: int | None = None

    def start(self, handler: SampleHandler) -> None:
        self._stopped = False
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((self.host, self.port))
            sock.settimeout(self.timeout)
            self.bound_port = sock.getsockname()[1]
            logger.info("Listening UDP on %s:%d", self.host, self.bound_port)

            while not self._stopped:
                try:
                    payload, _addr = sock.recvfrom(65535)
                except socket.timeout:
                    continue
                if not self._deliver(handler, self._parse(payload)):
                    break
        finally:
            sock.close()
