"""
ESC/POS byte sequences used by the compiler and the QR frame builder.

Only the commands this service emits are defined here:
  ESC @            initialize printer
  ESC a n          alignment (0 left, 1 center, 2 right)
  ESC E n          emphasis off/on
  GS ! n           character size (0x00 normal, 0x11 double width+height)
  ESC 3 n          line spacing in 1/180 inch units
  ESC d n          feed n lines
  GS ( k ...       QR code function family (cn = 49)
"""

from __future__ import annotations

ESC = b"\x1b"
GS = b"\x1d"
LF = b"\n"
CRLF = b"\r\n"

INIT = ESC + b"@"

ALIGN_LEFT = ESC + b"a\x00"
ALIGN_CENTER = ESC + b"a\x01"
ALIGN_RIGHT = ESC + b"a\x02"

BOLD_ON = ESC + b"E\x01"
BOLD_OFF = ESC + b"E\x00"

SIZE_NORMAL = GS + b"!\x00"
SIZE_DOUBLE = GS + b"!\x11"

# QR error correction levels (function 169)
QR_EC_L = 48
QR_EC_M = 49
QR_EC_Q = 50
QR_EC_H = 51
QR_EC_LEVELS = {"L": QR_EC_L, "M": QR_EC_M, "Q": QR_EC_Q, "H": QR_EC_H}

QR_MODEL_2 = 50
# pL/pH of the store function count the cn, fn and m bytes along with the data.
QR_STORE_HEADER_LEN = 3
QR_MAX_DATA_LEN = 0xFFFF - QR_STORE_HEADER_LEN

_QR_FUNCTION = GS + b"(k"


def _byte(n: int, what: str) -> bytes:
    if not 0 <= n <= 255:
        raise ValueError(f"{what} out of range 0-255: {n}")
    return bytes((n,))


def line_spacing(n: int) -> bytes:
    """ESC 3 n"""
    return ESC + b"3" + _byte(n, "line spacing")


def feed(n: int) -> bytes:
    """ESC d n. With n=0 this prints the buffer without advancing paper."""
    return ESC + b"d" + _byte(n, "feed lines")


def blank_lines(n: int) -> bytes:
    return CRLF * max(0, n)


def length_prefix(length: int) -> bytes:
    """Little-endian pL pH for a QR command parameter block of `length` bytes."""
    if not 0 <= length <= 0xFFFF:
        raise ValueError(f"QR parameter length out of range: {length}")
    return bytes((length % 256, length // 256))


def decode_length_prefix(p_l: int, p_h: int) -> int:
    return p_l + p_h * 256


def qr_select_model(model: int = QR_MODEL_2) -> bytes:
    """GS ( k 04 00 49 65 n 0"""
    return _QR_FUNCTION + b"\x04\x00" + bytes((49, 65)) + _byte(model, "QR model") + b"\x00"


def qr_module_size(size: int) -> bytes:
    """GS ( k 03 00 49 67 n"""
    if not 1 <= size <= 16:
        raise ValueError(f"QR module size must be 1-16: {size}")
    return _QR_FUNCTION + b"\x03\x00" + bytes((49, 67, size))


def qr_error_correction(level: int) -> bytes:
    """GS ( k 03 00 49 69 n"""
    if level not in QR_EC_LEVELS.values():
        raise ValueError(f"QR error correction must be one of 48-51: {level}")
    return _QR_FUNCTION + b"\x03\x00" + bytes((49, 69, level))


def qr_store(data: bytes) -> bytes:
    """GS ( k pL pH 49 80 48 d1...dk"""
    if len(data) > QR_MAX_DATA_LEN:
        raise ValueError(f"QR data too long: {len(data)}")
    return _QR_FUNCTION + length_prefix(len(data) + QR_STORE_HEADER_LEN) + bytes((49, 80, 48)) + data


def qr_print() -> bytes:
    """GS ( k 03 00 49 81 48"""
    return _QR_FUNCTION + b"\x03\x00" + bytes((49, 81, 48))


__all__ = [
    "ALIGN_CENTER",
    "ALIGN_LEFT",
    "ALIGN_RIGHT",
    "BOLD_OFF",
    "BOLD_ON",
    "CRLF",
    "ESC",
    "GS",
    "INIT",
    "LF",
    "QR_EC_LEVELS",
    "QR_STORE_HEADER_LEN",
    "SIZE_DOUBLE",
    "SIZE_NORMAL",
    "blank_lines",
    "decode_length_prefix",
    "feed",
    "length_prefix",
    "line_spacing",
    "qr_error_correction",
    "qr_module_size",
    "qr_print",
    "qr_select_model",
    "qr_store",
]
