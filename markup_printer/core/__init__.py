"""
Core utilities for Markup Printer.

This package groups non-Flask helpers used across the app:
- config: config path resolution, JSON load/save, PrinterSettings
- errors: exception and warning taxonomy
- logging: request ID aware logging filters/formatters and root logger config

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    PrinterSettings,
    default_config_path,
    get_config_path,
    load_config,
    resolve_settings,
    save_config,
)
from .errors import (
    PayloadTooLarge,
    PrinterError,
    TransmissionFailure,
    TransmissionTimeout,
    UnsupportedRender,
    ValidationError,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "PrinterSettings",
    "default_config_path",
    "get_config_path",
    "load_config",
    "resolve_settings",
    "save_config",
    # errors
    "PayloadTooLarge",
    "PrinterError",
    "TransmissionFailure",
    "TransmissionTimeout",
    "UnsupportedRender",
    "ValidationError",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
