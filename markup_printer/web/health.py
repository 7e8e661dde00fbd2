from __future__ import annotations

"""
Health endpoints for Markup Printer.

- `/health`  liveness only: status, timestamp and configured port
- `/healthz` adds printer reachability (connect + close) and recent job count
"""

from datetime import datetime, timezone
from typing import Any, Dict

from flask import Blueprint

from .api import get_service

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "port": get_service().settings.port_name,
    }


@health_bp.get("/healthz")
def healthz():
    service = get_service()
    status: Dict[str, Any] = {
        "status": "ok",
        "endpoint": service.settings.endpoint_id,
        "recent_jobs": len(service.list_jobs()),
    }
    ok, reason = service.printer_status()
    status["printer_ok"] = ok
    if not ok:
        status["status"] = "degraded"
        if reason:
            status["reason"] = reason
    return status, 200
