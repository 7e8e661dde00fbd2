import json

import pytest
from pydantic import ValidationError

from markup_printer.core.config import (
    PrinterSettings,
    default_config_path,
    get_config_path,
    load_config,
    resolve_settings,
    save_config,
)


def test_defaults():
    s = PrinterSettings()
    assert s.line_width == 32
    assert s.line_spacing == 34
    assert s.top_margin_lines == 3
    assert s.auto_feed_lines == 4
    assert s.max_qr_length == 300
    assert s.qr_size == 6
    assert s.qr_error_level == 48
    assert s.encoding == "cp437"
    assert s.print_timeout == 10.0
    assert s.raster_width == 384


def test_wide_paper_raster_width():
    assert PrinterSettings(line_width=48).raster_width == 576
    assert PrinterSettings(line_width=48, raster_max_width=512).raster_width == 512


@pytest.mark.parametrize(
    "bad",
    [
        {"line_width": 40},
        {"qr_size": 0},
        {"qr_error_level": 52},
        {"encoding": "no-such-codec"},
        {"print_timeout": 0},
        {"printer_type": "parallel"},
    ],
)
def test_invalid_values_rejected(bad):
    with pytest.raises(ValidationError):
        PrinterSettings(**bad)


def test_settings_are_frozen():
    s = PrinterSettings()
    with pytest.raises(ValidationError):
        s.line_width = 48


def test_endpoint_identity():
    assert PrinterSettings(port_name="/dev/usb/lp1").endpoint_id == "file:/dev/usb/lp1"
    assert PrinterSettings(printer_type="serial", port_name="COM3").endpoint_id == "serial:COM3"
    assert PrinterSettings(printer_type="usb", usb_vendor_id="0x04B8").endpoint_id == "usb:0x04b8:0x0e28"


def test_blank_optional_strings_become_none():
    s = PrinterSettings(printer_profile="  ", spool_dir="")
    assert s.printer_profile is None
    assert s.spool_dir is None


def test_config_path_resolution(monkeypatch, tmp_path):
    monkeypatch.delenv("MARKUPPRINTER_CONFIG_PATH", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert default_config_path() == str(tmp_path / "markupprinter" / "config.json")
    monkeypatch.setenv("MARKUPPRINTER_CONFIG_PATH", "/etc/mp.json")
    assert get_config_path() == "/etc/mp.json"


def test_save_and_load_roundtrip(tmp_path):
    path = tmp_path / "nested" / "config.json"
    save_config({"line_width": 48}, path=str(path))
    assert load_config(str(path)) == {"line_width": 48}
    assert not (tmp_path / "nested" / "config.json.tmp").exists()


def test_load_missing_returns_none(tmp_path):
    assert load_config(str(tmp_path / "absent.json")) is None


def test_resolve_precedence(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"line_width": 48, "qr_size": 4, "auto_feed_lines": 2}), encoding="utf-8")
    env = {"MARKUPPRINTER_QR_SIZE": "8", "MARKUPPRINTER_PRINT_TIMEOUT": "3.5", "UNRELATED": "x"}
    s = resolve_settings(overrides={"auto_feed_lines": 6}, path=str(path), environ=env)
    assert s.line_width == 48  # file
    assert s.qr_size == 8  # env beats file
    assert s.print_timeout == 3.5
    assert s.auto_feed_lines == 6  # overrides beat everything


def test_resolve_env_validation_error(tmp_path):
    with pytest.raises(ValidationError):
        resolve_settings(path=str(tmp_path / "none.json"), environ={"MARKUPPRINTER_LINE_WIDTH": "40"})
