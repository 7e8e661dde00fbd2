"""
Printing subsystem for Markup Printer.

- commands: ESC/POS byte sequences
- markup: markup tokenizer, column layout and style compiler
- qr: QR frame builder and presentation modes
- transport: bounded delivery to the printer endpoint
- service: orchestration and recent job registry
"""

from .markup import MarkupCompiler, build_text_job, compile_markup
from .qr import QrRequest, build_bare_qr_job, build_captioned_qr_job, build_image_qr_job, build_qr_frame
from .service import PrintService
from .transport import DeliveryTransport, PrintJob, TransientBuffer

__all__ = [
    "DeliveryTransport",
    "MarkupCompiler",
    "PrintJob",
    "PrintService",
    "QrRequest",
    "TransientBuffer",
    "build_bare_qr_job",
    "build_captioned_qr_job",
    "build_image_qr_job",
    "build_qr_frame",
    "build_text_job",
    "compile_markup",
]
