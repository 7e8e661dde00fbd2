"""
Delivery transport for Markup Printer.

This module owns:
- Staging compiled bytes in a transient spool file (TransientBuffer)
- Connecting to the printer endpoint with python-escpos (file, serial, usb, network)
- Bounded delivery: the caller waits at most `timeout` seconds for a job

A job moves Idle -> Staged -> Transmitting -> Completed | TimedOut | Failed.
The transmission runs on its own daemon thread which holds the endpoint lock
and the spool file until the printer write returns, so a job the caller gave
up on still releases both exactly once when the write finally unwinds.
"""

from __future__ import annotations

import contextvars
import enum
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from markup_printer.core.config import PrinterSettings
from markup_printer.core.errors import TransmissionFailure, TransmissionTimeout
from markup_printer.printing import commands as cmd

logger = logging.getLogger(__name__)

# Sent after every job so buffered data is printed before the job resolves.
FLUSH_BARRIER = cmd.feed(0)

ConnectFn = Callable[[PrinterSettings], Any]

_ENDPOINT_LOCKS: Dict[str, threading.Lock] = {}
_ENDPOINT_LOCKS_GUARD = threading.Lock()


def endpoint_lock(endpoint_id: str) -> threading.Lock:
    """
    Return the process-wide lock for an endpoint identity.

    A plain Lock (not RLock) because it is acquired and released on the
    transmission thread, which is never re-entered.
    """
    with _ENDPOINT_LOCKS_GUARD:
        lock = _ENDPOINT_LOCKS.get(endpoint_id)
        if lock is None:
            lock = _ENDPOINT_LOCKS[endpoint_id] = threading.Lock()
        return lock


class DeliveryState(enum.Enum):
    IDLE = "idle"
    STAGED = "staged"
    TRANSMITTING = "transmitting"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class PrintJob:
    payload: bytes
    timeout: float
    label: str = "job"


@dataclass(frozen=True)
class DeliveryResult:
    state: DeliveryState
    endpoint: str
    bytes_sent: int
    elapsed: float


class TransientBuffer:
    """
    Job bytes staged in a uniquely named spool file.

    Use as a context manager; release() deletes the file and is idempotent.
    `releases` counts effective releases and is at most 1.
    """

    def __init__(self, data: bytes, spool_dir: Optional[str] = None) -> None:
        self.data = data
        self.spool_dir = spool_dir
        self.path: Optional[str] = None
        self.releases = 0
        self._lock = threading.Lock()

    def stage(self) -> str:
        fd, path = tempfile.mkstemp(prefix="markup_printer_", suffix=".bin", dir=self.spool_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(self.data)
        except BaseException:
            os.unlink(path)
            raise
        self.path = path
        return path

    def read(self) -> bytes:
        if self.path is None:
            raise RuntimeError("Buffer is not staged")
        with open(self.path, "rb") as f:
            return f.read()

    def release(self) -> None:
        with self._lock:
            if self.path is None:
                return
            path, self.path = self.path, None
            self.releases += 1
        try:
            os.unlink(path)
        except FileNotFoundError:
            logger.warning("Spool file already gone: %s", path)

    def __enter__(self) -> "TransientBuffer":
        self.stage()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def connect_printer(settings: PrinterSettings):
    """
    Create and return an ESC/POS printer instance for the configured endpoint.
    Supports device files (including COM ports), Serial, USB and Network with
    an optional printer profile.
    """
    profile = settings.printer_profile
    kwargs: Dict[str, Any] = {"profile": profile} if profile else {}
    ptype = settings.printer_type

    if ptype == "file":
        from escpos.printer import File

        return File(settings.port_name, **kwargs)
    if ptype == "serial":
        from escpos.printer import Serial

        return Serial(settings.port_name, baudrate=settings.serial_baudrate, **kwargs)
    if ptype == "usb":
        from escpos.printer import Usb

        vendor = int(settings.usb_vendor_id, 16)
        product = int(settings.usb_product_id, 16)
        return Usb(vendor, product, **kwargs)
    if ptype == "network":
        from escpos.printer import Network

        return Network(settings.network_ip, settings.network_port, **kwargs)
    raise TransmissionFailure(settings.endpoint_id, f"unsupported printer type: {ptype}")


class Delivery:
    """A single job's trip through the transport; tracks its state."""

    def __init__(self, job: PrintJob, settings: PrinterSettings, connect: ConnectFn) -> None:
        self.job = job
        self.settings = settings
        self.endpoint = settings.endpoint_id
        self.connect = connect
        self.state = DeliveryState.IDLE
        self.buffer = TransientBuffer(job.payload, settings.spool_path)
        self.future: Future = Future()

    @contextmanager
    def _endpoint(self) -> Iterator[None]:
        lock = endpoint_lock(self.endpoint)
        if not lock.acquire(timeout=self.job.timeout):
            raise TransmissionTimeout(self.endpoint, self.job.timeout, f"Printer {self.endpoint} busy")
        try:
            yield
        finally:
            lock.release()

    def _transmit(self) -> int:
        with self._endpoint(), self.buffer:
            self.state = DeliveryState.STAGED
            data = self.buffer.read()
            printer = self.connect(self.settings)
            self.state = DeliveryState.TRANSMITTING
            try:
                printer._raw(data)
                printer._raw(FLUSH_BARRIER)
            finally:
                printer.close()
            return len(data)

    def run(self) -> None:
        """Thread target. Never raises; the outcome lands on self.future."""
        if not self.future.set_running_or_notify_cancel():
            return
        try:
            sent = self._transmit()
        except BaseException as e:
            if self.state is not DeliveryState.TIMED_OUT:
                self.state = DeliveryState.FAILED
            self.future.set_exception(e)
        else:
            if self.state is not DeliveryState.TIMED_OUT:
                self.state = DeliveryState.COMPLETED
            self.future.set_result(sent)


class DeliveryTransport:
    """
    Send finished byte buffers to one configured endpoint.

    `connect` builds a printer object exposing `_raw(bytes)` and `close()`;
    it defaults to python-escpos via connect_printer().
    """

    def __init__(self, settings: PrinterSettings, connect: Optional[ConnectFn] = None) -> None:
        self.settings = settings
        self.connect = connect or connect_printer

    @property
    def endpoint(self) -> str:
        return self.settings.endpoint_id

    def start(self, job: PrintJob) -> Delivery:
        delivery = Delivery(job, self.settings, self.connect)
        # Records logged on the thread carry the caller's job label.
        ctx = contextvars.copy_context()
        t = threading.Thread(target=ctx.run, args=(delivery.run,), daemon=True, name=f"markup-printer-{job.label}")
        t.start()
        return delivery

    def deliver(self, job: PrintJob) -> DeliveryResult:
        """
        Transmit a job and wait for it, at most job.timeout seconds.

        Raises:
            TransmissionTimeout when the deadline passes first. The write may
                still be running; it keeps the endpoint until it returns.
            TransmissionFailure when connecting or writing fails.
        """
        started = time.monotonic()
        logger.info("Sending %d bytes to %s (%s, timeout %.1fs)", len(job.payload), self.endpoint, job.label, job.timeout)
        delivery = self.start(job)
        try:
            sent = delivery.future.result(timeout=job.timeout)
        except FutureTimeout:
            delivery.state = DeliveryState.TIMED_OUT
            logger.error("Print to %s timed out after %.1fs (%s)", self.endpoint, job.timeout, job.label)
            raise TransmissionTimeout(self.endpoint, job.timeout) from None
        except TransmissionTimeout:
            logger.error("Printer %s still busy after %.1fs (%s)", self.endpoint, job.timeout, job.label)
            raise
        except TransmissionFailure:
            raise
        except Exception as e:
            logger.error("Print to %s failed (%s): %s", self.endpoint, job.label, e)
            raise TransmissionFailure(self.endpoint, f"{type(e).__name__}: {e}") from e
        elapsed = time.monotonic() - started
        logger.info("Sent %d bytes to %s in %.2fs", sent, self.endpoint, elapsed)
        return DeliveryResult(DeliveryState.COMPLETED, self.endpoint, sent, elapsed)

    def probe(self) -> tuple[bool, Optional[str]]:
        """
        Connect to the endpoint and close immediately.

        Returns (ok, reason); reason is a short code string on failure.
        """
        try:
            printer = self.connect(self.settings)
            try:
                printer.close()
            except Exception as e:
                logger.debug("Ignoring close error during probe: %s", e)
            return True, None
        except Exception as e:
            return False, f"printer_unreachable: {type(e).__name__}"


__all__ = [
    "FLUSH_BARRIER",
    "Delivery",
    "DeliveryResult",
    "DeliveryState",
    "DeliveryTransport",
    "PrintJob",
    "TransientBuffer",
    "connect_printer",
    "endpoint_lock",
]
