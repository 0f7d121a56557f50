from __future__ import annotations


class DialogueError(RuntimeError):
    """Base for every failure the dialogue subsystem absorbs into a fallback reply."""

    kind = "dialogue_error"


class GatewayError(DialogueError):
    kind = "gateway_error"


class UnconfiguredError(GatewayError):
    kind = "unconfigured"


class TransportError(GatewayError):
    kind = "transport_error"

    def __init__(self, detail: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(detail)
        self.status = status
        self.code = code


class EmptyResponseError(GatewayError):
    kind = "empty_response"


class BusyError(DialogueError):
    kind = "busy"


class RequestCancelledError(DialogueError):
    kind = "cancelled"
