"""
Config utilities for Markup Printer.

Responsibilities:
- Resolve the config path with environment and XDG support
- Provide JSON load/save helpers for the on-disk config
- Merge defaults, config file, environment and explicit overrides into one
  immutable PrinterSettings value that is handed to the compiler and transport
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "MARKUPPRINTER_"

# Printable dots per line for common paper widths (58mm / 80mm heads).
RASTER_WIDTH_BY_LINE_WIDTH = {32: 384, 48: 576}


def _default_port_name() -> str:
    return "COM1" if os.name == "nt" else "/dev/usb/lp0"


class PrinterSettings(BaseModel):
    """
    Fully resolved printer configuration.

    Instances are frozen; build a new one with model_copy(update=...) instead
    of mutating.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Endpoint
    printer_type: Literal["file", "serial", "usb", "network"] = "file"
    port_name: str = Field(default_factory=_default_port_name, min_length=1)
    serial_baudrate: int = 19200
    usb_vendor_id: str = "0x04b8"
    usb_product_id: str = "0x0e28"
    network_ip: str = ""
    network_port: int = 9100
    printer_profile: Optional[str] = None

    # Layout
    line_width: int = 32
    line_spacing: int = Field(default=34, ge=0, le=255)
    top_margin_lines: int = Field(default=3, ge=0, le=50)
    auto_feed_lines: int = Field(default=4, ge=0, le=50)
    encoding: str = "cp437"

    # QR
    max_qr_length: int = Field(default=300, ge=1, le=7089)
    qr_size: int = Field(default=6, ge=1, le=16)
    qr_error_level: int = Field(default=48, ge=48, le=51)
    raster_max_width: Optional[int] = Field(default=None, ge=8)

    # Delivery
    print_timeout: float = Field(default=10.0, gt=0)
    spool_dir: Optional[str] = None

    @field_validator("line_width")
    @classmethod
    def _supported_width(cls, v: int) -> int:
        if v not in RASTER_WIDTH_BY_LINE_WIDTH:
            raise ValueError("line_width must be 32 or 48")
        return v

    @field_validator("encoding")
    @classmethod
    def _known_codec(cls, v: str) -> str:
        import codecs

        try:
            codecs.lookup(v)
        except LookupError as e:
            raise ValueError(f"unknown encoding: {v}") from e
        return v

    @field_validator("printer_profile", "spool_dir", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def endpoint_id(self) -> str:
        """Stable identity of the target endpoint, used as the delivery lock key."""
        if self.printer_type == "network":
            return f"network:{self.network_ip}:{self.network_port}"
        if self.printer_type == "usb":
            return f"usb:{self.usb_vendor_id.lower()}:{self.usb_product_id.lower()}"
        return f"{self.printer_type}:{self.port_name}"

    @property
    def raster_width(self) -> int:
        if self.raster_max_width:
            return self.raster_max_width
        return RASTER_WIDTH_BY_LINE_WIDTH[self.line_width]

    @property
    def spool_path(self) -> str:
        return self.spool_dir or tempfile.gettempdir()


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/markupprinter/config.json
    2) ~/.config/markupprinter/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "markupprinter" / "config.json")
    return str(Path.home() / ".config" / "markupprinter" / "config.json")


def get_config_path() -> str:
    """
    Return the config path honoring MARKUPPRINTER_CONFIG_PATH override.
    """
    return os.environ.get(ENV_PREFIX + "CONFIG_PATH", default_config_path())


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: Mapping[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(dict(data), f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def _env_values(environ: Mapping[str, str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for name in PrinterSettings.model_fields:
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is not None:
            values[name] = raw
    return values


def resolve_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PrinterSettings:
    """
    Merge configuration sources into a PrinterSettings value.

    Later sources win: defaults < config file < MARKUPPRINTER_* env < overrides.
    Raises pydantic.ValidationError for out-of-range values.
    """
    merged: dict[str, Any] = {}
    file_cfg = load_config(path)
    if file_cfg:
        merged.update(file_cfg)
    merged.update(_env_values(os.environ if environ is None else environ))
    if overrides:
        merged.update(overrides)
    return PrinterSettings.model_validate(merged)


__all__ = [
    "ENV_PREFIX",
    "PrinterSettings",
    "default_config_path",
    "get_config_path",
    "load_config",
    "resolve_settings",
    "save_config",
]
