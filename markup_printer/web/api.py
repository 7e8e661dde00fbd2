from __future__ import annotations

"""
Print API for Markup Printer.

Endpoints:
- GET  /                : Service info and endpoint catalogue
- POST /print           : Print markup text, or a bare QR when `data_b64` is given
- POST /printqr         : Print a QR code with caption text
- POST /test-qr         : Print a small QR to check native QR support
- POST /test-print      : Print a banner with the port and time
- GET  /test-printqr    : Captioned QR from query parameters (browser-friendly)
- GET  /test-qris       : Image-mode QR for long payloads (falls back to native)
- GET  /jobs/<job_id>   : Status of a recent job

Every print request blocks until the job is delivered, fails, or times out.
Responses use {"success": bool, ...}; failures carry an "error" message.
"""

import json
from typing import Any, Callable, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError as SchemaError

from markup_printer.core.errors import TransmissionFailure, TransmissionTimeout, ValidationError
from markup_printer.printing.service import PrintService

from . import schemas

api_bp = Blueprint("api", __name__)

SERVICE_NAME = "Markup Printer"
SERVICE_VERSION = "1.0.0"


def get_service() -> PrintService:
    return current_app.extensions["markup_printer"]


def _json_error(msg: str, code: int = 400):
    return jsonify({"success": False, "error": msg}), code


def _print_response(action: Callable[[], Dict[str, Any]], message: str, data: Callable[[Dict[str, Any]], Dict[str, Any]]):
    """
    Run a print action and map its outcome to an HTTP response.

    ValidationError -> 400, TransmissionTimeout -> 504, anything else -> 500.
    """
    try:
        job = action()
    except ValidationError as e:
        return _json_error(str(e), 400)
    except TransmissionTimeout as e:
        current_app.logger.error("Print timed out: %s", e)
        return _json_error(str(e), 504)
    except TransmissionFailure as e:
        current_app.logger.error("Print failed: %s", e)
        return _json_error(str(e), 500)
    except Exception as e:
        current_app.logger.exception("Unexpected print error: %s", e)
        return _json_error(str(e), 500)

    body: Dict[str, Any] = {"success": True, "message": message, "job_id": job.get("id"), "data": data(job)}
    if job.get("warning"):
        body["warning"] = job["warning"]
    return jsonify(body)


@api_bp.post("/print")
def print_document():
    """
    Print text or a bare QR code.

    Accepts a plain-text body, or a JSON or form body with `data_b64` (QR),
    `text` or `message`. Any other object is printed as its serialized form.
    """
    service = get_service()
    port = service.settings.port_name

    fields: Optional[Dict[str, Any]] = None
    if request.is_json:
        raw = request.get_json(silent=True)
        if raw is None:
            return _json_error("Invalid JSON body", 400)
        if isinstance(raw, dict):
            fields = raw
        else:
            text = raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False)
    elif request.form:
        fields = request.form.to_dict()
    else:
        text = request.get_data(as_text=True)

    if fields is not None:
        try:
            req = schemas.PrintRequest.model_validate(fields)
        except SchemaError as e:
            return _json_error(schemas.first_error_message(e), 400)

        if req.is_qr:
            qr_data = req.data_b64 or ""
            return _print_response(
                lambda: service.print_qr(qr_data),
                "QR code printed",
                lambda job: {"type": "qrcode", "data": qr_data, "port": port, "truncated": job.get("truncated", False)},
            )
        text = req.document(fields)

    return _print_response(
        lambda: service.print_text(text),
        "Document printed",
        lambda job: {"type": "text", "text": text, "port": port},
    )


def _print_captioned(payload: Dict[str, Any], mode: str = "caption"):
    service = get_service()
    try:
        req = schemas.PrintQrRequest.model_validate(payload)
    except SchemaError as e:
        return _json_error(schemas.first_error_message(e), 400)

    action = service.print_qr_image if mode == "image" else service.print_qr_with_text
    return _print_response(
        lambda: action(req.qr_string, req.text),
        "QR code printed",
        lambda job: {
            "qr_string": req.qr_string,
            "text": req.text,
            "mode": job.get("mode"),
            "qr_length": job.get("qr_length"),
            "port": service.settings.port_name,
        },
    )


@api_bp.post("/printqr")
def print_qr():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = request.form.to_dict() if request.form else {}
    return _print_captioned(payload)


@api_bp.get("/test-printqr")
def test_print_qr():
    return _print_captioned({"qr_string": request.args.get("data", ""), "text": request.args.get("text", "")})


@api_bp.get("/test-qris")
def test_qris():
    return _print_captioned(
        {"qr_string": request.args.get("data", ""), "text": request.args.get("text", "")},
        mode="image",
    )


@api_bp.post("/test-qr")
def test_qr():
    service = get_service()
    resp = _print_response(
        service.test_qr_capability,
        "QR capability test sent",
        lambda job: {"test_data": job.get("test_data"), "port": service.settings.port_name},
    )
    if isinstance(resp, tuple):
        return resp
    body = resp.get_json()
    body["instructions"] = {
        "step1": "Check the printer output",
        "step2": "QR symbol above 'QR Test: TEST' means native QR is supported",
        "step3": "Only the text 'QR Test: TEST' means native QR is NOT supported; try /test-qris",
    }
    return jsonify(body)


@api_bp.post("/test-print")
def test_print():
    service = get_service()
    return _print_response(
        service.test_print,
        "Test print sent",
        lambda job: {"type": "text", "port": service.settings.port_name},
    )


@api_bp.get("/jobs/<job_id>")
def job_status(job_id: str):
    job = get_service().get_job(job_id)
    if job:
        return job
    return _json_error("not_found", 404)


@api_bp.get("/")
def index():
    service = get_service()
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "port": service.settings.port_name,
        "line_width": service.settings.line_width,
        "endpoints": {
            "print": {
                "method": "POST",
                "path": "/print",
                "description": "Print markup text or a QR code",
                "examples": {
                    "text": {"text": "<center><b>Hello Printer</b></center>"},
                    "columns": {"text": "<tr><td>Item</td><td>9.99</td></tr>"},
                    "qrcode": {"data_b64": "https://example.com"},
                },
            },
            "printqr": {
                "method": "POST",
                "path": "/printqr",
                "description": "Print a QR code with text underneath",
                "examples": {
                    "qr_only": {"qr_string": "https://example.com"},
                    "qr_with_text": {"qr_string": "https://example.com", "text": "Scan for details"},
                },
            },
            "testqr": {
                "method": "POST",
                "path": "/test-qr",
                "description": "Print a small QR to check native QR support",
            },
            "testprint": {"method": "POST", "path": "/test-print", "description": "Print a banner with the port and time"},
            "testprintqr": {
                "method": "GET",
                "path": "/test-printqr",
                "examples": {"short": "/test-printqr?data=TEST", "with_text": "/test-printqr?data=TEST&text=Hello"},
            },
            "testqris": {
                "method": "GET",
                "path": "/test-qris",
                "description": "Long QR payloads printed as a raster image when it fits",
                "examples": {"qris": "/test-qris?data=LONG_PAYLOAD&text=Scan to pay"},
            },
            "jobs": {"method": "GET", "path": "/jobs/<job_id>"},
            "health": {"method": "GET", "path": "/health"},
        },
    }


__all__ = ["api_bp", "get_service"]
