"""
Error taxonomy for Markup Printer.

Compilation never raises for malformed markup; only empty input is rejected.
Delivery problems surface as TransmissionTimeout / TransmissionFailure and are
the terminal result of a single job, never of the process.
"""

from __future__ import annotations

from typing import Optional


class PrinterError(Exception):
    """Base class for all Markup Printer errors."""


class ValidationError(PrinterError, ValueError):
    """Empty or missing payload, rejected before compilation begins."""


class TransmissionTimeout(PrinterError):
    """The endpoint did not finish accepting the job before the deadline."""

    def __init__(self, endpoint: str, timeout: float, message: Optional[str] = None) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        super().__init__(message or f"Print to {endpoint} timed out after {timeout:g}s")


class TransmissionFailure(PrinterError):
    """The endpoint write reported an error."""

    def __init__(self, endpoint: str, reason: str) -> None:
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Print to {endpoint} failed: {reason}")


class UnsupportedRender(PrinterError):
    """QR rasterization is not possible; callers fall back to native QR commands."""


class PayloadTooLarge(UserWarning):
    """QR data exceeded the configured maximum and was truncated."""

    def __init__(self, original_length: int, truncated_length: int) -> None:
        self.original_length = original_length
        self.truncated_length = truncated_length
        super().__init__(f"QR data truncated from {original_length} to {truncated_length} bytes")


__all__ = [
    "PayloadTooLarge",
    "PrinterError",
    "TransmissionFailure",
    "TransmissionTimeout",
    "UnsupportedRender",
    "ValidationError",
]
