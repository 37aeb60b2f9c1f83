from __future__ import annotations

from typing import Dict


class ScanError(Exception):
    """Base class for failures surfaced by the scan pipeline."""

    kind = "scan_error"
    recoverable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class InvalidCoordinate(ScanError, ValueError):
    kind = "invalid_coordinate"


class FetchFailed(ScanError):
    """Transient transport failure talking to the weather provider."""

    kind = "fetch_failed"
    recoverable = True


class MalformedResponse(ScanError):
    """The provider broke the response contract (shape, length or field ranges)."""

    kind = "malformed_response"


class NoDataAvailable(MalformedResponse):
    kind = "no_data"


class ScanSuperseded(ScanError):
    """A newer scan for the same context cancelled this one."""

    kind = "superseded"


__all__ = [
    "ScanError",
    "InvalidCoordinate",
    "FetchFailed",
    "MalformedResponse",
    "NoDataAvailable",
    "ScanSuperseded",
]
