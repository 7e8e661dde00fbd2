"""
Markup to ESC/POS compiler for Markup Printer.

Pipeline for a text job:
- tokenize(): one pass over the document producing a tagged token stream
- split_rows(): row boundaries at <tr> and literal newlines; </tr> is dropped
- layout_row(): <td> cells flattened into a single padded line
- rewrite(): style tokens replaced by protocol bytes, text encoded

Everything here is pure. Malformed or unknown tags are never an error: they
print as literal text.

Vocabulary (case-insensitive):
  <tr> </tr>            row start / row end
  <br> <br/> <br />     line break (expanded after column layout)
  <td> </td>            column (first two per row are laid out, rest dropped)
  <center> <left> <right>  alignment; closing tags accepted and ignored
  <b> </b>              emphasis on / off
  <h1> </h1>            double width+height on / off
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import List, Optional, Union

from markup_printer.core.config import PrinterSettings
from markup_printer.printing import commands as cmd

logger = logging.getLogger(__name__)

Document = Union[str, bytes]


class TokenKind(enum.Enum):
    TEXT = "text"
    NEWLINE = "newline"
    ROW_START = "row_start"
    ROW_END = "row_end"
    BREAK = "break"
    CELL_OPEN = "cell_open"
    CELL_CLOSE = "cell_close"
    ALIGN_LEFT = "align_left"
    ALIGN_CENTER = "align_center"
    ALIGN_RIGHT = "align_right"
    ALIGN_CLOSE = "align_close"
    BOLD_ON = "bold_on"
    BOLD_OFF = "bold_off"
    DOUBLE_ON = "double_on"
    DOUBLE_OFF = "double_off"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    raw: str

    def as_text(self) -> "Token":
        return self if self.kind is TokenKind.TEXT else Token(TokenKind.TEXT, self.raw)


Row = List[Token]

_TAG_RE = re.compile(r"<(/?)(tr|td|b|h1|center|left|right)>|<br\s*/?>", re.IGNORECASE)
# Anything that looks like a tag, recognized or not; used for rendered width.
_ANY_TAG_RE = re.compile(r"<[^>]*>")

_TAG_KINDS = {
    ("", "tr"): TokenKind.ROW_START,
    ("/", "tr"): TokenKind.ROW_END,
    ("", "td"): TokenKind.CELL_OPEN,
    ("/", "td"): TokenKind.CELL_CLOSE,
    ("", "b"): TokenKind.BOLD_ON,
    ("/", "b"): TokenKind.BOLD_OFF,
    ("", "h1"): TokenKind.DOUBLE_ON,
    ("/", "h1"): TokenKind.DOUBLE_OFF,
    ("", "center"): TokenKind.ALIGN_CENTER,
    ("", "left"): TokenKind.ALIGN_LEFT,
    ("", "right"): TokenKind.ALIGN_RIGHT,
    ("/", "center"): TokenKind.ALIGN_CLOSE,
    ("/", "left"): TokenKind.ALIGN_CLOSE,
    ("/", "right"): TokenKind.ALIGN_CLOSE,
}

_ALIGN_KINDS = frozenset(
    {TokenKind.ALIGN_LEFT, TokenKind.ALIGN_CENTER, TokenKind.ALIGN_RIGHT, TokenKind.ALIGN_CLOSE}
)


def strip_tags(text: str) -> str:
    """Remove everything that looks like an HTML tag."""
    return _ANY_TAG_RE.sub("", text)


def visible_length(text_or_tokens: Union[str, Iterable[Token]]) -> int:
    """Number of characters left once all tag-like markers are stripped."""
    if isinstance(text_or_tokens, str):
        text = text_or_tokens
    else:
        text = "".join(t.raw for t in text_or_tokens)
    return len(strip_tags(text))


def _split_text(text: str) -> Iterable[Token]:
    first = True
    for part in text.split("\n"):
        if not first:
            yield Token(TokenKind.NEWLINE, "\n")
        first = False
        if part:
            yield Token(TokenKind.TEXT, part)


def tokenize(document: str) -> List[Token]:
    """
    Split a markup document into tokens in a single regex pass.

    CRLF pairs count as one newline. Text between recognized tags becomes
    TEXT tokens, so unknown tags like <i> survive as literal text.
    """
    document = document.replace("\r\n", "\n")
    tokens: List[Token] = []
    pos = 0
    for m in _TAG_RE.finditer(document):
        if m.start() > pos:
            tokens.extend(_split_text(document[pos : m.start()]))
        if m.group(2) is None:
            kind = TokenKind.BREAK
        else:
            kind = _TAG_KINDS[(m.group(1), m.group(2).lower())]
        tokens.append(Token(kind, m.group(0)))
        pos = m.end()
    if pos < len(document):
        tokens.extend(_split_text(document[pos:]))
    return tokens


def split_rows(tokens: Sequence[Token]) -> List[Row]:
    """
    Group tokens into rows.

    A row starts at every <tr> and every literal newline. </tr> is consumed
    without a boundary so "<tr>a</tr><tr>b</tr>" gives two rows, not four.
    <br> is left inside the row; it is only expanded after column layout.
    """
    rows: List[Row] = [[]]
    for tok in tokens:
        if tok.kind in (TokenKind.ROW_START, TokenKind.NEWLINE):
            rows.append([])
        elif tok.kind is TokenKind.ROW_END:
            continue
        else:
            rows[-1].append(tok)
    # Each <tr> the document opens with leaves an empty row in front.
    for tok in tokens:
        if tok.kind is not TokenKind.ROW_START or len(rows) < 2 or rows[0]:
            break
        rows.pop(0)
    return rows


def _extract_cells(row: Sequence[Token]) -> tuple[List[Row], Row]:
    """
    Pull <td>...</td> pairs out of a row.

    Pairing follows the first </td> after an opening <td>; a nested <td> is
    cell content and an unpaired marker is literal text. Returns the cells and
    the remaining tokens of the row in their original order.
    """
    cells: List[Row] = []
    rest: Row = []
    current: Optional[Row] = None
    opener: Optional[Token] = None
    for tok in row:
        if current is None:
            if tok.kind is TokenKind.CELL_OPEN:
                current, opener = [], tok
            else:
                rest.append(tok.as_text() if tok.kind is TokenKind.CELL_CLOSE else tok)
        elif tok.kind is TokenKind.CELL_CLOSE:
            cells.append(current)
            current = None
        else:
            current.append(tok.as_text() if tok.kind is TokenKind.CELL_OPEN else tok)
    if current is not None and opener is not None:
        rest.append(opener.as_text())
        rest.extend(current)
    return cells, rest


def _without_alignment(cell: Row) -> Row:
    return [t for t in cell if t.kind not in _ALIGN_KINDS]


def column_spacing(left: Iterable[Token], right: Iterable[Token], line_width: int) -> int:
    """Spaces between two columns; never less than one."""
    return max(1, line_width - (visible_length(left) + visible_length(right)))


def layout_row(row: Sequence[Token], line_width: int) -> Row:
    """
    Flatten the <td> columns of a row into one physical line.

    - no cells: the row is returned unchanged
    - one cell: alignment tags stripped, content centered
    - two or more: first cell left, second pushed right by padding computed
      on rendered width; further cells are dropped
    Tokens outside the cells follow the laid out columns verbatim.
    """
    cells, rest = _extract_cells(row)
    if not cells:
        return list(row)
    if len(cells) > 2:
        logger.debug("Dropping %d extra column(s) beyond the second", len(cells) - 2)
    if len(cells) == 1:
        return [Token(TokenKind.ALIGN_CENTER, "<center>"), *_without_alignment(cells[0]), *rest]
    left = _without_alignment(cells[0])
    right = _without_alignment(cells[1])
    padding = Token(TokenKind.TEXT, " " * column_spacing(left, right, line_width))
    return [*left, padding, *right, *rest]


@dataclass
class StyleState:
    """Printer style as implied by the tokens emitted so far."""

    bold: bool = False
    double: bool = False
    align: TokenKind = TokenKind.ALIGN_LEFT

    def apply(self, kind: TokenKind) -> None:
        if kind is TokenKind.BOLD_ON:
            self.bold = True
        elif kind is TokenKind.BOLD_OFF:
            self.bold = False
        elif kind is TokenKind.DOUBLE_ON:
            self.double = True
        elif kind is TokenKind.DOUBLE_OFF:
            self.double = False
        elif kind in (TokenKind.ALIGN_LEFT, TokenKind.ALIGN_CENTER, TokenKind.ALIGN_RIGHT):
            self.align = kind

    def restore_sequence(self) -> bytes:
        """Commands bringing the printer back to plain left-aligned text."""
        out = b""
        if self.bold:
            out += cmd.BOLD_OFF
        if self.double:
            out += cmd.SIZE_NORMAL
        if self.align is not TokenKind.ALIGN_LEFT:
            out += cmd.ALIGN_LEFT
        return out


_STYLE_BYTES = {
    TokenKind.NEWLINE: cmd.CRLF,
    TokenKind.ROW_START: cmd.CRLF,
    TokenKind.BREAK: cmd.CRLF,
    TokenKind.ROW_END: b"",
    TokenKind.ALIGN_CLOSE: b"",
    TokenKind.ALIGN_LEFT: cmd.ALIGN_LEFT,
    TokenKind.ALIGN_CENTER: cmd.ALIGN_CENTER,
    TokenKind.ALIGN_RIGHT: cmd.ALIGN_RIGHT,
    TokenKind.BOLD_ON: cmd.BOLD_ON,
    TokenKind.BOLD_OFF: cmd.BOLD_OFF,
    TokenKind.DOUBLE_ON: cmd.SIZE_DOUBLE,
    TokenKind.DOUBLE_OFF: cmd.SIZE_NORMAL,
}


def rewrite(rows: Sequence[Row], encoding: str = "cp437", state: Optional[StyleState] = None) -> bytes:
    """
    Replace style tokens with protocol bytes and encode everything else.

    Rows are joined with CRLF, which is also what every newline and <br>
    becomes. Characters the codepage cannot represent are replaced.
    """
    state = state if state is not None else StyleState()
    out = bytearray()
    for i, row in enumerate(rows):
        if i:
            out += cmd.CRLF
        for tok in row:
            seq = _STYLE_BYTES.get(tok.kind)
            if seq is None:
                out += tok.raw.encode(encoding, errors="replace")
            else:
                state.apply(tok.kind)
                out += seq
    return bytes(out)


@dataclass
class MarkupCompiler:
    """
    Compile markup documents for one printer configuration.

    The compiler holds no per-job state; a fresh StyleState is created for
    every document, so styles never leak from one job into the next.
    """

    settings: PrinterSettings = field(default_factory=PrinterSettings)

    def _decode(self, document: Document) -> str:
        if isinstance(document, bytes):
            return document.decode(self.settings.encoding, errors="replace")
        return document

    def layout(self, document: Document) -> List[Row]:
        rows = split_rows(tokenize(self._decode(document)))
        return [layout_row(r, self.settings.line_width) for r in rows]

    def compile(self, document: Document, state: Optional[StyleState] = None) -> bytes:
        """Styled body of a document with no margins or feeds."""
        return rewrite(self.layout(document), self.settings.encoding, state)

    def build_job(
        self,
        document: Document,
        top_margin: Optional[int] = None,
        bottom_feed: Optional[int] = None,
    ) -> bytes:
        """
        Full text job: line spacing, top margin, body, style restore, feed.

        The line spacing command comes first so the margin lines use the
        configured pitch as well.
        """
        top = self.settings.top_margin_lines if top_margin is None else top_margin
        bottom = self.settings.auto_feed_lines if bottom_feed is None else bottom_feed
        state = StyleState()
        body = self.compile(document, state)
        return (
            cmd.line_spacing(self.settings.line_spacing)
            + cmd.blank_lines(top)
            + body
            + state.restore_sequence()
            + cmd.blank_lines(bottom)
        )


def compile_markup(document: Document, settings: Optional[PrinterSettings] = None) -> bytes:
    """Convenience wrapper around MarkupCompiler(settings).compile()."""
    return MarkupCompiler(settings or PrinterSettings()).compile(document)


def build_text_job(
    document: Document,
    settings: Optional[PrinterSettings] = None,
    top_margin: Optional[int] = None,
    bottom_feed: Optional[int] = None,
) -> bytes:
    return MarkupCompiler(settings or PrinterSettings()).build_job(document, top_margin, bottom_feed)


__all__ = [
    "MarkupCompiler",
    "StyleState",
    "Token",
    "TokenKind",
    "build_text_job",
    "column_spacing",
    "compile_markup",
    "layout_row",
    "rewrite",
    "split_rows",
    "strip_tags",
    "tokenize",
    "visible_length",
]
