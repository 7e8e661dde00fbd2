import pytest

from markup_printer.core.config import PrinterSettings
from markup_printer.printing import commands as cmd
from markup_printer.printing.markup import (
    MarkupCompiler,
    TokenKind,
    build_text_job,
    compile_markup,
    split_rows,
    strip_tags,
    tokenize,
    visible_length,
)


def test_center_bold_scenario():
    out = compile_markup("<center><b>HI</b></center>")
    assert out == cmd.ALIGN_CENTER + cmd.BOLD_ON + b"HI" + cmd.BOLD_OFF


def test_two_columns_scenario():
    out = compile_markup("<td>A</td><td>B</td>", PrinterSettings(line_width=32))
    assert out == b"A" + b" " * 30 + b"B"


@pytest.mark.parametrize(
    "doc,expected",
    [
        ("plain text", b"plain text"),
        ("Hello <b>World</b>", b"Hello " + cmd.BOLD_ON + b"World" + cmd.BOLD_OFF),
        ("<h1>Big</h1>", cmd.SIZE_DOUBLE + b"Big" + cmd.SIZE_NORMAL),
        (
            "<left>L</left><right>R</right><center>C",
            cmd.ALIGN_LEFT + b"L" + cmd.ALIGN_RIGHT + b"R" + cmd.ALIGN_CENTER + b"C",
        ),
        ("<B>loud</B>", cmd.BOLD_ON + b"loud" + cmd.BOLD_OFF),
        ("one\ntwo", b"one\r\ntwo"),
    ],
)
def test_tags_replaced_and_nothing_else_changed(doc, expected):
    assert compile_markup(doc) == expected


def test_rows_do_not_double_newlines():
    assert compile_markup("<tr>a</tr><tr>b</tr>") == b"a\r\nb"


def test_leading_row_marker_does_not_print_blank_line():
    out = compile_markup("<tr>first</tr>")
    assert out == b"first"


@pytest.mark.parametrize("br", ["<br>", "<br/>", "<BR />", "<br  >"])
def test_break_variants(br):
    assert compile_markup(f"x{br}y") == b"x\r\ny"


def test_crlf_input_counts_as_one_newline():
    assert compile_markup("a\r\nb\nc") == b"a\r\nb\r\nc"


def test_unknown_and_unpaired_tags_pass_through_as_text():
    assert compile_markup("<i>x</i>") == b"<i>x</i>"
    assert compile_markup("</td>stray") == b"</td>stray"
    assert compile_markup("open<td>never closed") == b"open<td>never closed"
    assert compile_markup("<b") == b"<b"


def test_unencodable_characters_are_replaced():
    assert compile_markup("Price €5") == b"Price ?5"


def test_bytes_document_is_decoded_with_codepage():
    assert compile_markup(b"<b>caf\x82</b>") == cmd.BOLD_ON + b"caf\x82" + cmd.BOLD_OFF


def test_tokenize_kinds():
    kinds = [t.kind for t in tokenize("<tr><td><b>x</b></td></tr><br>")]
    assert kinds == [
        TokenKind.ROW_START,
        TokenKind.CELL_OPEN,
        TokenKind.BOLD_ON,
        TokenKind.TEXT,
        TokenKind.BOLD_OFF,
        TokenKind.CELL_CLOSE,
        TokenKind.ROW_END,
        TokenKind.BREAK,
    ]


def test_split_rows_keeps_breaks_inside_rows():
    rows = split_rows(tokenize("<tr>a<br>b</tr><tr>c</tr>"))
    assert len(rows) == 2
    assert [t.kind for t in rows[0]] == [TokenKind.TEXT, TokenKind.BREAK, TokenKind.TEXT]


def test_strip_tags_and_visible_length():
    assert strip_tags("<b>Qty</b> <foo>2") == "Qty 2"
    assert visible_length("<h1>9</h1>") == 1
    assert visible_length(tokenize("<b>ab</b><br>c")) == 3


def test_build_job_frames_body_with_spacing_margins_and_restore():
    s = PrinterSettings(line_spacing=34, top_margin_lines=3, auto_feed_lines=4)
    out = build_text_job("<center><b>HI</b></center>", s)
    assert out == (
        b"\x1b3\x22"
        + b"\r\n" * 3
        + cmd.ALIGN_CENTER
        + cmd.BOLD_ON
        + b"HI"
        + cmd.BOLD_OFF
        + cmd.ALIGN_LEFT
        + b"\r\n" * 4
    )


def test_build_job_margin_overrides():
    s = PrinterSettings(line_spacing=30)
    out = build_text_job("x", s, top_margin=0, bottom_feed=1)
    assert out == cmd.line_spacing(30) + b"x" + b"\r\n"


def test_unterminated_styles_are_reset_at_end_of_job():
    out = build_text_job("<b><h1>x", PrinterSettings(top_margin_lines=0, auto_feed_lines=0))
    assert out.endswith(b"x" + cmd.BOLD_OFF + cmd.SIZE_NORMAL)


def test_no_style_carry_over_between_jobs():
    compiler = MarkupCompiler(PrinterSettings())
    first = compiler.build_job("<b>open bold")
    second = compiler.build_job("plain")
    assert cmd.BOLD_ON not in second
    assert second == compiler.build_job("plain")
    assert first != second


@pytest.mark.parametrize(
    "doc,expected",
    [
        ("<tr><tr>x</tr>", b"x"),
        ("<TR><tr><tr>a</tr><tr>b</tr>", b"a\r\nb"),
        ("<tr>", b""),
    ],
)
def test_repeated_leading_row_markers_print_no_blank_line(doc, expected):
    assert compile_markup(doc) == expected


def test_leading_newline_is_kept():
    assert compile_markup("\nx") == b"\r\nx"
