"""
Markup Printer package

Renders a small tag vocabulary into ESC/POS bytes and delivers them to a
thermal printer with a bounded wait. This module provides the Flask
application factory:
- Configures logging via markup_printer.core.logging
- Resolves PrinterSettings once and builds the PrintService the routes use
- Assigns a request ID per request and allows cross-origin callers
- Registers the print API and health blueprints
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Mapping
from typing import Any, Optional

from flask import Flask, g

from markup_printer.core.config import PrinterSettings, resolve_settings
from markup_printer.core.logging import configure_logging
from markup_printer.printing.service import PrintService


def _set_request_id() -> None:
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def _allow_any_origin(response):
    response.headers.setdefault("Access-Control-Allow-Origin", "*")
    response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
    response.headers.setdefault("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
    return response


def create_app(
    settings: Optional[PrinterSettings] = None,
    config_overrides: Optional[Mapping[str, Any]] = None,
    service: Optional[PrintService] = None,
    setup_logging: bool = True,
) -> Flask:
    """
    Application factory.

    Parameters:
    - settings: resolved PrinterSettings; when None they are resolved from
      defaults, the config file and MARKUPPRINTER_* environment variables
    - config_overrides: values to inject into app.config after defaults
    - service: a prebuilt PrintService (tests inject one with a fake transport)
    - setup_logging: configure root logging

    Returns:
    - Flask app instance with the service at app.extensions["markup_printer"]
    """
    if setup_logging:
        configure_logging()

    if service is None:
        service = PrintService(settings or resolve_settings())

    app = Flask("markup_printer")
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MARKUPPRINTER_MAX_CONTENT_LENGTH", 1024 * 1024))  # 1 MiB
    app.url_map.strict_slashes = False
    app.extensions["markup_printer"] = service

    @app.before_request
    def _before_request():
        _set_request_id()

    @app.after_request
    def _after_request(response):
        return _allow_any_origin(response)

    from markup_printer.web import api_bp, health_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(health_bp)

    if config_overrides:
        app.config.update(config_overrides)

    app.logger.info("Markup Printer app created (printer %s)", service.settings.endpoint_id)
    return app


__all__ = ["create_app"]
