"""Exception hierarchy shared by the core and adapters."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error raised by eqrelay."""


class ConfigError(BridgeError):
    """Configuration is missing a required field or cannot be compiled."""


class TransportError(BridgeError):
    """A transport failed to dial, authenticate, read or write."""


class NotConnectedError(TransportError):
    def __init__(self, endpoint: str) -> None:
        super().__init__(f"{endpoint}: not connected")
        self.endpoint = endpoint


class PumpError(BridgeError):
    """A call through a pump did not produce a handler result."""


class PumpTimeoutError(PumpError):
    """The pump did not accept or answer a request in time.

    ``phase`` is ``"request"`` when the request could not be enqueued and
    ``"response"`` when it was enqueued but no answer arrived. In the latter
    case the handler may still have run.
    """

    def __init__(self, pump: str, phase: str, timeout: float) -> None:
        super().__init__(f"{pump}: timed out during {phase} after {timeout:g}s")
        self.pump = pump
        self.phase = phase
        self.timeout = timeout


class PumpClosedError(PumpError):
    def __init__(self, pump: str, phase: str) -> None:
        super().__init__(f"{pump}: pump closed during {phase}")
        self.pump = pump
        self.phase = phase


class UnknownRequestError(PumpError):
    def __init__(self, pump: str, request_type: str) -> None:
        super().__init__(f"{pump}: unhandled request type {request_type}")
        self.pump = pump
        self.request_type = request_type
