import pytest

from markup_printer.core.config import PrinterSettings
from markup_printer.core.errors import PayloadTooLarge, UnsupportedRender
from markup_printer.printing import commands as cmd
from markup_printer.printing import qr as qr_mod
from markup_printer.printing.qr import (
    QrRequest,
    build_bare_qr_job,
    build_captioned_qr_job,
    build_image_qr_job,
    build_qr_frame,
    truncate_payload,
)

HELLO_FRAME = (
    b"\x1d(k\x04\x001A2\x00"  # model 2
    b"\x1d(k\x03\x001C\x06"  # module size 6
    b"\x1d(k\x03\x001E0"  # error correction L
    b"\x1d(k\x08\x001P0hello"  # store 5 bytes
    b"\x1d(k\x03\x001Q0"  # print
)


def test_frame_bytes_for_short_payload():
    frame = build_qr_frame(QrRequest("hello"))
    assert frame.commands == HELLO_FRAME
    assert frame.payload == b"hello"
    assert not frame.truncated


def test_store_length_prefix_counts_header_bytes():
    store = cmd.qr_store(b"x" * 300)
    assert store[3:5] == bytes((47, 1))
    assert cmd.decode_length_prefix(store[3], store[4]) == 303


def test_length_prefix_is_little_endian():
    assert cmd.length_prefix(0) == b"\x00\x00"
    assert cmd.length_prefix(255) == b"\xff\x00"
    assert cmd.length_prefix(256) == b"\x00\x01"
    with pytest.raises(ValueError):
        cmd.length_prefix(0x10000)


@pytest.mark.parametrize("size", [0, 17])
def test_module_size_out_of_range(size):
    with pytest.raises(ValueError):
        build_qr_frame(QrRequest("x", size=size))


def test_error_level_out_of_range():
    with pytest.raises(ValueError):
        build_qr_frame(QrRequest("x", error_level=52))


def test_settings_drive_request():
    s = PrinterSettings(qr_size=8, qr_error_level=cmd.QR_EC_H, max_qr_length=10)
    req = QrRequest.from_settings("abc", s)
    assert (req.size, req.error_level, req.max_length) == (8, 51, 10)
    frame = build_qr_frame(req)
    assert b"\x1d(k\x03\x001C\x08" in frame.commands
    assert b"\x1d(k\x03\x001E3" in frame.commands


def test_oversized_payload_truncated_with_matching_prefix():
    with pytest.warns(PayloadTooLarge):
        frame = build_qr_frame(QrRequest("A" * 350, max_length=300))
    assert frame.truncated
    assert frame.original_length == 350
    assert frame.payload == b"A" * 300
    store = cmd.qr_store(frame.payload)
    assert store in frame.commands
    assert cmd.decode_length_prefix(store[3], store[4]) == 303


def test_truncation_never_splits_a_character():
    payload, original = truncate_payload("é" * 200, 301)
    assert original == 400
    assert len(payload) == 300
    assert payload.decode("utf-8") == "é" * 150


def test_payload_at_limit_is_not_truncated():
    payload, original = truncate_payload("z" * 300, 300)
    assert len(payload) == original == 300


def test_bare_job_layout():
    job = build_bare_qr_job(QrRequest("hello"))
    assert job.mode == "bare"
    assert job.data == cmd.INIT + cmd.ALIGN_CENTER + HELLO_FRAME + b"\n\n\n" + cmd.ALIGN_LEFT


def test_captioned_job_layout():
    job = build_captioned_qr_job(QrRequest("hello"), "Line1\nLine2", bottom_feed=2)
    assert job.mode == "caption"
    assert job.data == (
        cmd.INIT
        + cmd.ALIGN_CENTER
        + HELLO_FRAME
        + b"\n"
        + b"Line1\r\nLine2\r\n"
        + b"\r\n" * 2
        + cmd.ALIGN_LEFT
    )


def test_blank_caption_is_omitted():
    job = build_captioned_qr_job(QrRequest("hello"), "   ", bottom_feed=1)
    assert job.data == cmd.INIT + cmd.ALIGN_CENTER + HELLO_FRAME + b"\n" + b"\r\n" + cmd.ALIGN_LEFT


def test_image_job_for_small_symbol():
    job = build_image_qr_job(QrRequest("hello"), "caption", bottom_feed=1)
    assert job.mode == "image"
    assert not job.fallback
    assert job.data.startswith(cmd.INIT + cmd.ALIGN_CENTER)
    assert HELLO_FRAME not in job.data
    assert job.data.endswith(b"caption\r\n" + b"\r\n" + cmd.ALIGN_LEFT)


def test_image_job_falls_back_when_symbol_too_wide():
    # 300 bytes need a version 11 symbol: (61 + 8) * 6 = 414 dots
    job = build_image_qr_job(QrRequest("x" * 300), "cap", bottom_feed=1, max_width=384)
    assert job.fallback
    assert job.mode == "caption"
    assert cmd.qr_store(b"x" * 300) in job.data


def test_image_job_falls_back_to_bare_without_caption(monkeypatch):
    def _unsupported(*a, **k):
        raise UnsupportedRender("no raster support")

    monkeypatch.setattr(qr_mod, "rasterize_qr", _unsupported)
    job = build_image_qr_job(QrRequest("hello"), "")
    assert job.fallback
    assert job.mode == "bare"
    assert job.data == build_bare_qr_job(QrRequest("hello")).data


def test_rasterize_rejects_wide_symbol():
    with pytest.raises(UnsupportedRender):
        qr_mod.rasterize_qr(b"x" * 300, 6, cmd.QR_EC_L, 384)


def test_truncation_warning_reports_bytes_kept():
    with pytest.warns(PayloadTooLarge, match="from 400 to 300 bytes") as record:
        frame = build_qr_frame(QrRequest("é" * 200, max_length=301))
    assert len(frame.payload) == 300
    assert record[0].message.truncated_length == 300
