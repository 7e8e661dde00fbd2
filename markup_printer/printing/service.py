"""
Print orchestration for Markup Printer.

PrintService ties the compiler, the QR builders and the delivery transport
together for one resolved configuration, and keeps a bounded in-memory
registry of recent jobs (queued -> running -> success | timeout | error).

It is Flask-agnostic so it can be used from web routes, the CLI and tests.
Each print call blocks until the job is delivered, fails, or times out.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from markup_printer.core.config import PrinterSettings
from markup_printer.core.errors import TransmissionTimeout, ValidationError
from markup_printer.core.logging import job_context
from markup_printer.printing.markup import MarkupCompiler, strip_tags
from markup_printer.printing.qr import (
    QrJob,
    QrRequest,
    build_bare_qr_job,
    build_captioned_qr_job,
    build_image_qr_job,
)
from markup_printer.printing.transport import DeliveryResult, DeliveryTransport, PrintJob

logger = logging.getLogger(__name__)

JOBS_MAX = int(os.environ.get("MARKUPPRINTER_JOBS_MAX", "200"))
PREVIEW_LEN = 100

TEST_QR_DATA = "TEST"
TEST_QR_CAPTION = "QR Test: TEST"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def preview(text: str, limit: int = PREVIEW_LEN) -> str:
    """Log-friendly preview: markup stripped, truncated with an ellipsis."""
    clean = strip_tags(text)
    return clean if len(clean) <= limit else clean[:limit] + "..."


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} must not be empty")
    return str(value)


class PrintService:
    """
    Compile and deliver print jobs for one printer configuration.

    Parameters:
    - settings: resolved PrinterSettings
    - transport: optional DeliveryTransport (tests pass one with a fake connect)
    """

    def __init__(self, settings: PrinterSettings, transport: Optional[DeliveryTransport] = None) -> None:
        self.settings = settings
        self.compiler = MarkupCompiler(settings)
        self.transport = transport or DeliveryTransport(settings)
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._jobs_lock = threading.RLock()

    # Job registry

    def _prune_jobs_if_needed(self) -> None:
        with self._jobs_lock:
            while len(self._jobs) > JOBS_MAX:
                oldest_id = min(self._jobs.values(), key=lambda j: j["created_at"])["id"]
                self._jobs.pop(oldest_id, None)

    def _create_job(self, kind: str, meta: Optional[Dict[str, Any]] = None) -> str:
        job_id = uuid.uuid4().hex
        now = _utc_now_iso()
        job: Dict[str, Any] = {
            "id": job_id,
            "type": kind,
            "status": "queued",
            "port": self.settings.port_name,
            "created_at": now,
            "updated_at": now,
        }
        if meta:
            job.update(meta)
        with self._jobs_lock:
            self._jobs[job_id] = job
            self._prune_jobs_if_needed()
        return job_id

    def _update_job(self, job_id: str, **updates: Any) -> None:
        with self._jobs_lock:
            job = self._jobs.get(job_id)
            if not job:
                return
            job.update(updates)
            job["updated_at"] = _utc_now_iso()

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self._jobs_lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def list_jobs(self) -> List[Dict[str, Any]]:
        """Recent jobs, newest first."""
        with self._jobs_lock:
            items = [dict(v) for v in self._jobs.values()]
        items.sort(key=lambda j: j["created_at"], reverse=True)
        return items

    # Delivery

    def _run(self, kind: str, build: Callable[[], bytes], timeout: Optional[float], meta: Dict[str, Any]) -> Dict[str, Any]:
        job_id = self._create_job(kind, meta)
        limit = self.settings.print_timeout if timeout is None else timeout
        label = f"{kind}-{job_id[:8]}"
        with job_context(label):
            try:
                payload = build()
                self._update_job(job_id, status="running", bytes=len(payload))
                logger.debug("Compiled %d bytes", len(payload))
                result: DeliveryResult = self.transport.deliver(PrintJob(payload, limit, label=label))
            except TransmissionTimeout as e:
                self._update_job(job_id, status="timeout", error=str(e))
                raise
            except Exception as e:
                self._update_job(job_id, status="error", error=str(e))
                raise
        self._update_job(job_id, status="success", elapsed=round(result.elapsed, 3))
        return self.get_job(job_id) or {"id": job_id, "status": "success"}

    def print_text(
        self,
        document: Optional[str],
        top_margin: Optional[int] = None,
        bottom_feed: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Compile a markup document and print it. Raises ValidationError when blank."""
        text = _require_text(document, "text")
        logger.info('Print request (%d lines): "%s"', len(text.split("\n")), preview(text))
        return self._run(
            "text",
            lambda: self.compiler.build_job(text, top_margin, bottom_feed),
            timeout,
            {"preview": preview(text)},
        )

    def _run_qr(self, kind: str, build: Callable[[], QrJob], timeout: Optional[float], meta: Dict[str, Any]) -> Dict[str, Any]:
        built: Dict[str, QrJob] = {}

        def _build() -> bytes:
            built["job"] = build()
            return built["job"].data

        record = self._run(kind, _build, timeout, meta)
        qr_job = built["job"]
        extra = {
            "mode": qr_job.mode,
            "fallback": qr_job.fallback,
            "qr_length": len(qr_job.frame.payload),
            "truncated": qr_job.frame.truncated,
        }
        if qr_job.frame.truncated:
            extra["warning"] = (
                f"QR data truncated from {qr_job.frame.original_length} to {len(qr_job.frame.payload)} bytes"
            )
        self._update_job(record["id"], **extra)
        return self.get_job(record["id"]) or {**record, **extra}

    def print_qr(self, data: Optional[str], timeout: Optional[float] = None) -> Dict[str, Any]:
        """Bare QR code."""
        qr_data = _require_text(data, "data_b64")
        logger.info('QR request: "%s"', preview(qr_data, 50))
        request = QrRequest.from_settings(qr_data, self.settings)
        return self._run_qr("qrcode", lambda: build_bare_qr_job(request), timeout, {})

    def print_qr_with_text(self, data: Optional[str], text: str = "", timeout: Optional[float] = None) -> Dict[str, Any]:
        """QR code with caption text underneath."""
        qr_data = _require_text(data, "qr_string")
        logger.info('QR request: "%s" text="%s"', preview(qr_data, 50), preview(text or "", 50))
        request = QrRequest.from_settings(qr_data, self.settings)
        return self._run_qr(
            "qrcode_text",
            lambda: build_captioned_qr_job(request, text, self.settings.auto_feed_lines, self.settings.encoding),
            timeout,
            {"text": text or ""},
        )

    def print_qr_image(self, data: Optional[str], text: str = "", timeout: Optional[float] = None) -> Dict[str, Any]:
        """QR code as a raster image, falling back to native commands."""
        qr_data = _require_text(data, "data")
        logger.info('QR image request (%d chars): "%s"', len(qr_data), preview(qr_data, 50))
        request = QrRequest.from_settings(qr_data, self.settings)
        return self._run_qr(
            "qrcode_image",
            lambda: build_image_qr_job(
                request,
                text,
                self.settings.auto_feed_lines,
                self.settings.encoding,
                self.settings.raster_width,
                self.settings.printer_profile,
            ),
            timeout,
            {"text": text or ""},
        )

    def test_qr_capability(self) -> Dict[str, Any]:
        """
        Print a tiny captioned QR. If the caption appears without a symbol the
        printer does not support native QR.
        """
        logger.info("QR capability test requested")
        record = self.print_qr_with_text(TEST_QR_DATA, TEST_QR_CAPTION)
        record["test_data"] = TEST_QR_DATA
        return record

    def test_print(self) -> Dict[str, Any]:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        document = (
            "<center><b>TEST PRINT</b></center>\n"
            f"Printer: {self.settings.port_name}\n"
            f"Time: {timestamp}\n"
            "Status: Online"
        )
        return self.print_text(document)

    def printer_status(self) -> tuple[bool, Optional[str]]:
        return self.transport.probe()


__all__ = ["JOBS_MAX", "PrintService", "preview"]
