"""Shared opentray exceptions."""

from __future__ import annotations


class OpenTrayError(Exception):
    """Base class for all opentray errors."""


class TransportError(OpenTrayError):
    """Raised inside the instance client when a call cannot be completed.

    Never leaves a client method; callers receive a failure value instead.
    """

    def __init__(self, method: str, path: str, reason: str):
        self.method = method
        self.path = path
        self.reason = reason
        super().__init__(f"{method} {path} failed: {reason}")


class FrameDecodeError(OpenTrayError):
    """Raised when a push-channel frame cannot be decoded."""

    def __init__(self, reason: str, raw: str):
        self.raw = raw
        super().__init__(f"Malformed event frame: {reason}")


class ConfigValidationError(OpenTrayError, ValueError):
    """Raised when locally edited structured input is invalid."""


class EngineNotStartedError(RuntimeError):
    """Raised when the sync engine is used outside its async context."""

    def __init__(self):
        super().__init__("Engine not started - use async context manager")
