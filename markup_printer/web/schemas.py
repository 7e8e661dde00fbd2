from __future__ import annotations

"""
Pydantic schemas for the Markup Printer HTTP API.

These models validate incoming print requests. Blank payloads are rejected
here so the compiler never sees them; length limits on QR data are not
enforced because oversized data is truncated downstream, not refused.
"""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _not_blank(v: Optional[str], name: str) -> str:
    if v is None or not v.strip():
        raise ValueError(f"{name} must not be empty")
    return v


class PrintRequest(BaseModel):
    """
    Body of POST /print.

    `data_b64` selects a bare QR job; the value is encoded as given. Otherwise
    the text comes from `text`, then `message`, then the whole JSON object.
    """

    model_config = ConfigDict(extra="allow")

    data_b64: Optional[str] = Field(default=None, description="QR payload; selects a QR job", examples=["https://example.com"])
    text: Optional[str] = Field(default=None, description="Markup document to print", examples=["<center><b>Hello</b></center>"])
    message: Optional[str] = Field(default=None, description="Alias of text")

    @property
    def is_qr(self) -> bool:
        return self.data_b64 is not None and self.data_b64 != ""

    def document(self, raw: Dict[str, Any]) -> str:
        if self.text:
            return self.text
        if self.message:
            return self.message
        return json.dumps(raw, ensure_ascii=False)


class PrintQrRequest(BaseModel):
    """Body of POST /printqr and query of GET /test-printqr."""

    qr_string: str = Field(description="QR payload", examples=["https://example.com"])
    text: str = Field(default="", description="Caption printed under the symbol", examples=["Scan for details"])

    @field_validator("qr_string")
    @classmethod
    def _qr_not_blank(cls, v: str) -> str:
        return _not_blank(v, "qr_string")

    @field_validator("text", mode="before")
    @classmethod
    def _text_default(cls, v: Any) -> Any:
        return "" if v is None else v


def first_error_message(exc: Exception) -> str:
    """Concise message from a pydantic ValidationError (or any exception)."""
    errors = getattr(exc, "errors", None)
    if callable(errors):
        try:
            err = errors()[0]
            if err.get("type") == "missing" and err.get("loc"):
                return f"{err['loc'][0]} is required"
            msg = str(err.get("msg") or exc)
            return msg.removeprefix("Value error, ")
        except (IndexError, TypeError):
            pass
    return str(exc)


__all__ = ["PrintQrRequest", "PrintRequest", "first_error_message"]
