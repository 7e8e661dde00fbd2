"""
QR code jobs for Markup Printer.

Native QR uses the printer's GS ( k function family (model 2). The stored
payload is truncated to the configured maximum before its length prefix is
computed, so the prefix always matches the bytes sent.

Three presentations share the same frame:
- bare:     QR, fixed feed, alignment reset
- caption:  QR, caption text, configurable feed, alignment reset
- image:    QR rasterized with `qrcode` and sent as a raster image through
            python-escpos; when the symbol cannot be rasterized within the
            printable width it falls back to the native caption/bare path
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

from markup_printer.core.config import PrinterSettings
from markup_printer.core.errors import PayloadTooLarge, UnsupportedRender
from markup_printer.printing import commands as cmd

logger = logging.getLogger(__name__)

QR_ENCODING = "utf-8"
BARE_FEED = cmd.LF * 3
# Quiet zone in modules around a rasterized symbol.
RASTER_BORDER = 4


@dataclass(frozen=True)
class QrRequest:
    data: str
    size: int = 6
    error_level: int = cmd.QR_EC_L
    max_length: int = 300

    @classmethod
    def from_settings(cls, data: str, settings: PrinterSettings) -> "QrRequest":
        return cls(
            data=data,
            size=settings.qr_size,
            error_level=settings.qr_error_level,
            max_length=settings.max_qr_length,
        )


@dataclass(frozen=True)
class QrFrame:
    commands: bytes
    payload: bytes
    truncated: bool
    original_length: int


@dataclass(frozen=True)
class QrJob:
    """Bytes ready for delivery plus how they were produced."""

    data: bytes
    frame: QrFrame
    mode: str
    fallback: bool = False


def truncate_payload(data: str, max_length: int) -> tuple[bytes, int]:
    """
    Encode `data` and cut it to at most `max_length` bytes.

    A multi-byte character straddling the limit is dropped whole. Returns the
    payload and the original encoded length.
    """
    encoded = data.encode(QR_ENCODING)
    if len(encoded) <= max_length:
        return encoded, len(encoded)
    cut = encoded[:max_length].decode(QR_ENCODING, errors="ignore").encode(QR_ENCODING)
    return cut, len(encoded)


def build_qr_frame(request: QrRequest) -> QrFrame:
    """
    Model select, module size, error correction, store and print commands.

    Raises ValueError for a module size or error level outside the protocol
    range. Oversized data is truncated and reported with a PayloadTooLarge
    warning.
    """
    payload, original_length = truncate_payload(request.data, request.max_length)
    truncated = len(payload) < original_length
    if truncated:
        logger.warning("QR data truncated from %d to %d bytes", original_length, len(payload))
        warnings.warn(PayloadTooLarge(original_length, len(payload)), stacklevel=2)
    commands = (
        cmd.qr_select_model()
        + cmd.qr_module_size(request.size)
        + cmd.qr_error_correction(request.error_level)
        + cmd.qr_store(payload)
        + cmd.qr_print()
    )
    return QrFrame(commands=commands, payload=payload, truncated=truncated, original_length=original_length)


def _caption_bytes(caption: Optional[str], encoding: str) -> bytes:
    if not caption or not caption.strip():
        return b""
    text = caption.replace("\r\n", "\n").replace("\n", "\r\n")
    return text.encode(encoding, errors="replace") + cmd.CRLF


def build_bare_qr_job(request: QrRequest) -> QrJob:
    frame = build_qr_frame(request)
    data = cmd.INIT + cmd.ALIGN_CENTER + frame.commands + BARE_FEED + cmd.ALIGN_LEFT
    return QrJob(data=data, frame=frame, mode="bare")


def _captioned(frame: QrFrame, symbol: bytes, caption: Optional[str], bottom_feed: int, encoding: str) -> bytes:
    return (
        cmd.INIT
        + cmd.ALIGN_CENTER
        + symbol
        + cmd.LF
        + _caption_bytes(caption, encoding)
        + cmd.blank_lines(bottom_feed)
        + cmd.ALIGN_LEFT
    )


def build_captioned_qr_job(
    request: QrRequest,
    caption: Optional[str] = None,
    bottom_feed: int = 4,
    encoding: str = "cp437",
) -> QrJob:
    """QR followed by caption text (if not blank) and `bottom_feed` blank lines."""
    frame = build_qr_frame(request)
    data = _captioned(frame, frame.commands, caption, bottom_feed, encoding)
    return QrJob(data=data, frame=frame, mode="caption")


def _qrcode_error_correction(level: int) -> int:
    from qrcode import constants

    return {
        cmd.QR_EC_L: constants.ERROR_CORRECT_L,
        cmd.QR_EC_M: constants.ERROR_CORRECT_M,
        cmd.QR_EC_Q: constants.ERROR_CORRECT_Q,
        cmd.QR_EC_H: constants.ERROR_CORRECT_H,
    }[level]


def rasterize_qr(payload: bytes, size: int, error_level: int, max_width: int, profile: Optional[str] = None) -> bytes:
    """
    Render the payload as a QR image and return ESC/POS raster bytes.

    Raises UnsupportedRender when the encoder cannot build the symbol or the
    image is wider than `max_width` dots.
    """
    import qrcode
    from escpos.printer import Dummy

    try:
        qr = qrcode.QRCode(
            error_correction=_qrcode_error_correction(error_level),
            box_size=size,
            border=RASTER_BORDER,
        )
        qr.add_data(payload)
        qr.make(fit=True)
    except Exception as e:
        raise UnsupportedRender(f"QR encoder rejected payload: {e}") from e

    width = (qr.modules_count + 2 * RASTER_BORDER) * size
    if width > max_width:
        raise UnsupportedRender(f"QR image {width}px wider than printable {max_width}px")

    img = qr.make_image(fill_color="black", back_color="white").get_image().convert("L")
    try:
        printer = Dummy(profile=profile) if profile else Dummy()
        printer.image(img)
    except Exception as e:
        raise UnsupportedRender(f"Raster conversion failed: {e}") from e
    return printer.output


def build_image_qr_job(
    request: QrRequest,
    caption: Optional[str] = None,
    bottom_feed: int = 4,
    encoding: str = "cp437",
    max_width: int = 384,
    profile: Optional[str] = None,
) -> QrJob:
    """
    Image-mode QR. Rasterization failure is not an error: the job falls back
    to native QR commands carrying the same (already truncated) payload.
    """
    frame = build_qr_frame(request)
    try:
        raster = rasterize_qr(frame.payload, request.size, request.error_level, max_width, profile)
    except UnsupportedRender as e:
        logger.info("QR image unavailable (%s); using native QR commands", e)
        if caption and caption.strip():
            data = _captioned(frame, frame.commands, caption, bottom_feed, encoding)
            return QrJob(data=data, frame=frame, mode="caption", fallback=True)
        data = cmd.INIT + cmd.ALIGN_CENTER + frame.commands + BARE_FEED + cmd.ALIGN_LEFT
        return QrJob(data=data, frame=frame, mode="bare", fallback=True)
    data = _captioned(frame, raster, caption, bottom_feed, encoding)
    return QrJob(data=data, frame=frame, mode="image")


__all__ = [
    "QrFrame",
    "QrJob",
    "QrRequest",
    "build_bare_qr_job",
    "build_captioned_qr_job",
    "build_image_qr_job",
    "build_qr_frame",
    "rasterize_qr",
    "truncate_payload",
]
