"""Error taxonomy shared by the DNS and ping diagnostics."""


class DiagnosticsError(Exception):
    """Base class; ``status_code`` is what the API layer answers with."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidInput(DiagnosticsError):
    """Malformed target for the requested operation."""


class UnsupportedType(DiagnosticsError):
    """Unknown DNS record type."""


class ResolutionFailure(DiagnosticsError):
    """Name could not be resolved to a usable answer (includes NXDOMAIN)."""

    status_code = 502


class TransientQueryError(DiagnosticsError):
    """Timeout or network failure talking to a name server."""

    status_code = 504


class LaunchError(DiagnosticsError):
    """The ping process could not be started."""

    status_code = 500


class StreamUnsupported(DiagnosticsError):
    """The client connection cannot receive incremental events."""

    status_code = 406
