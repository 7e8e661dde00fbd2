#!/usr/bin/env python3
"""
Markup Printer - HTTP print server for ESC/POS thermal printers.

Usage:
    python app.py [--host 0.0.0.0] [--port 3000] [--config path/to/config.json]
"""

import argparse
import logging
import os

from markup_printer import create_app
from markup_printer.core.config import resolve_settings
from markup_printer.core.logging import configure_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Markup Printer HTTP server")
    parser.add_argument("--host", default=os.environ.get("MARKUPPRINTER_HOST", "0.0.0.0"), help="Interface to bind")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("MARKUPPRINTER_HTTP_PORT", "3000")),
        help="HTTP port (default 3000)",
    )
    parser.add_argument("--config", default=None, help="Path to config.json (overrides MARKUPPRINTER_CONFIG_PATH)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO)

    settings = resolve_settings(path=args.config)
    app = create_app(settings=settings, setup_logging=False)

    log = logging.getLogger("markup_printer")
    log.info("Host: http://%s:%d", args.host, args.port)
    log.info("Printer: %s (line width %d, timeout %.1fs)", settings.endpoint_id, settings.line_width, settings.print_timeout)
    log.info("Endpoints: GET / | GET /health | POST /print | POST /printqr | POST /test-qr | POST /test-print | GET /test-printqr | GET /test-qris")

    app.run(host=args.host, port=args.port, threaded=True)


if __name__ == "__main__":
    main()
