# Ensure the repository root is on sys.path so `markup_printer` can be imported in tests.

import sys
import threading
from pathlib import Path
from typing import List

import pytest


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

from markup_printer.core.config import PrinterSettings  # noqa: E402


class FakePrinter:
    """Stands in for an escpos printer: records raw writes and close calls."""

    def __init__(self, gate: "threading.Event | None" = None, fail_with: "Exception | None" = None):
        self.written: List[bytes] = []
        self.closed = False
        self.gate = gate
        self.fail_with = fail_with

    def _raw(self, data: bytes) -> None:
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail_with is not None:
            raise self.fail_with
        self.written.append(data)

    def close(self) -> None:
        self.closed = True

    @property
    def output(self) -> bytes:
        return b"".join(self.written)


@pytest.fixture
def spool_dir(tmp_path):
    d = tmp_path / "spool"
    d.mkdir()
    return d


@pytest.fixture
def settings(tmp_path, spool_dir) -> PrinterSettings:
    # Unique device path per test so endpoint locks never collide across tests.
    return PrinterSettings(port_name=str(tmp_path / "lp0"), spool_dir=str(spool_dir), print_timeout=2.0)


@pytest.fixture
def fake_printer() -> FakePrinter:
    return FakePrinter()
