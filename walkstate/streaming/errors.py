from __future__ import annotations


class WalkstateError(Exception):
    """Base class for errors raised by the walkstate package."""


class InvalidConfigError(WalkstateError, ValueError):
    pass


class NonFiniteSampleError(WalkstateError, ValueError):
    pass


class ConcurrentIngestError(WalkstateError, RuntimeError):
    """`ingest` was entered while another call on the same classifier was still running."""


class PayloadError(WalkstateError, ValueError):
    pass
