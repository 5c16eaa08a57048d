# pdf_service.py
import io
import logging
import os
import tempfile
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib import colors
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfbase.ttfonts import TTFont

from config import Config
from models import Invoice, RenderError

logger = logging.getLogger(__name__)

# Page geometry, all in mm
PAGE_W = 210.0
PAGE_H = 297.0
MARGIN_LEFT = 15.0
MARGIN_TOP = 20.0
MARGIN_RIGHT = 15.0
CELL_PADDING = 1.0

# Embedded TrueType faces, loaded from Config.FONT_DIR
FONT = "DejaVuSans"
FONT_BOLD = "DejaVuSans-Bold"
FONT_FILES = {FONT: "DejaVuSans.ttf", FONT_BOLD: "DejaVuSans-Bold.ttf"}

BLACK = (0, 0, 0)
TITLE_GREEN = (34, 139, 34)
TOTAL_PINK = (255, 0, 128)
RULE_GREY = (200, 200, 200)
HEADER_FILL = (230, 230, 230)

DATE_OUTPUT_FORMAT = "%d/%m/%Y"

# (label, width, header align, row align)
ITEM_COLUMNS = (
    ("Description", 100, "L", "L"),
    ("Qty", 20, "C", "C"),
    ("Unit price", 30, "C", "C"),
    ("Total price", 30, "C", "C"),
)
PAYMENT_WIDTH = 120
PAYMENT_LABEL_WIDTH = 40
PAYMENT_VALUE_WIDTH = 80
PROJECT_LABEL_WIDTH = 30
PROJECT_VALUE_WIDTH = 60


def _money(x, symbol: str | None = None) -> str:
    sym = Config.CURRENCY_SYMBOL if symbol is None else symbol
    value = Decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{sym}{value}"


def output_filename(inv: Invoice, ext: str = "pdf") -> str:
    safe_name = inv.sender.name.replace(" ", "_")
    return f"{safe_name}_{inv.month:02d}_{inv.year:04d}.{ext}"


# -----------------------------
# Layout model
# -----------------------------
@dataclass(frozen=True)
class Cell:
    """
    A text box, top-left anchored at (x, y) mm from the page's top-left corner.
    border is "" (none), "1" (full box) or any mix of "LRTB".
    """
    x: float
    y: float
    w: float
    h: float
    text: str = ""
    font: str = FONT
    size: float = 10
    align: str = "L"
    border: str = ""
    fill: tuple | None = None
    color: tuple = BLACK
    draw_color: tuple = BLACK


@dataclass(frozen=True)
class Rule:
    x1: float
    x2: float
    y: float
    color: tuple = BLACK


@dataclass(frozen=True)
class Block:
    name: str
    elements: tuple

    def texts(self) -> list[str]:
        return [el.text for el in self.elements if isinstance(el, Cell) and el.text]


class _Cursor:
    """
    Flowing write position. A cell either stays on the line (x advances)
    or breaks it (x returns to the left margin, y moves down by its height).
    """

    def __init__(self):
        self.x = MARGIN_LEFT
        self.y = MARGIN_TOP
        self.last_h = 0.0
        self.font = FONT
        self.size = 10.0
        self.color = BLACK
        self.draw_color = BLACK
        self.fill = None
        self._elements = []

    def set_font(self, font, size):
        self.font, self.size = font, float(size)

    def cell(self, w, h, text="", *, align="L", border="", fill=False, ln=False):
        width = w or (PAGE_W - MARGIN_RIGHT - self.x)
        self._elements.append(
            Cell(
                x=self.x, y=self.y, w=width, h=h, text=text,
                font=self.font, size=self.size, align=align, border=border,
                fill=self.fill if fill else None,
                color=self.color, draw_color=self.draw_color,
            )
        )
        self.last_h = h
        if ln:
            self.x = MARGIN_LEFT
            self.y += h
        else:
            self.x += width

    def rule(self):
        self._elements.append(Rule(MARGIN_LEFT, PAGE_W - MARGIN_RIGHT, self.y, self.draw_color))

    def newline(self, h=None):
        self.x = MARGIN_LEFT
        self.y += self.last_h if h is None else h

    def block(self, name) -> Block:
        out = Block(name, tuple(self._elements))
        self._elements = []
        return out


# -----------------------------
# Layout sections
# -----------------------------
def _header(cur: _Cursor, inv: Invoice) -> Block:
    cur.set_font(FONT_BOLD, 20)
    cur.color = TITLE_GREEN
    cur.cell(100, 10, "INVOICE")

    cur.set_font(FONT, 10)
    cur.color = BLACK
    cur.x, cur.y = 140, 20
    cur.cell(0, 5, f"Invoice # {inv.invoice_number}", align="R", ln=True)
    cur.cell(0, 5, f"Date: {inv.invoice_date.strftime(DATE_OUTPUT_FORMAT)}", align="R", ln=True)
    cur.cell(0, 5, f"Due date: {inv.due_date.strftime(DATE_OUTPUT_FORMAT)}", align="R", ln=True)
    cur.newline(10)
    return cur.block("header")


def _sender(cur: _Cursor, inv: Invoice) -> Block:
    s = inv.sender
    cur.set_font(FONT_BOLD, 11)
    cur.cell(0, 6, "From", ln=True)
    cur.set_font(FONT, 10)
    for line in (s.name, s.city, s.address, f"Reg Nr: {s.reg_nr}", f"Phone: {s.phone}"):
        cur.cell(0, 5, line, ln=True)
    cur.newline(8)
    return cur.block("sender")


def _recipient(cur: _Cursor, inv: Invoice) -> Block:
    cur.set_font(FONT_BOLD, 11)
    cur.cell(0, 6, "Bill To", ln=True)
    cur.set_font(FONT, 10)
    cur.cell(0, 5, inv.bill_to.name, ln=True)
    for line in inv.bill_to.address:
        cur.cell(0, 5, line, ln=True)
    cur.newline(5)
    return cur.block("recipient")


def _project(cur: _Cursor, inv: Invoice) -> Block:
    for label, value in (("Project:", inv.project_name), ("Period:", inv.period)):
        cur.set_font(FONT_BOLD, 10)
        cur.cell(PROJECT_LABEL_WIDTH, 5, label)
        cur.set_font(FONT, 10)
        cur.cell(PROJECT_VALUE_WIDTH, 5, value, ln=True)
    cur.newline(5)

    cur.draw_color = RULE_GREY
    cur.rule()
    cur.newline(7)
    return cur.block("project")


def _items(cur: _Cursor, inv: Invoice, currency: str) -> Block:
    cur.set_font(FONT_BOLD, 10)
    cur.fill = HEADER_FILL
    for label, width, align, _ in ITEM_COLUMNS:
        cur.cell(width, 8, label, align=align, border="1", fill=True)
    cur.newline()

    cur.set_font(FONT, 10)
    cur.fill = None
    for item in inv.items:
        values = (
            item.description,
            str(item.quantity),
            _money(item.unit_price, currency),
            _money(item.total, currency),
        )
        for (_, width, _, align), value in zip(ITEM_COLUMNS, values):
            cur.cell(width, 8, value, align=align, border="LRB")
        cur.newline()
    cur.newline(5)
    return cur.block("items")


def _payment(cur: _Cursor, inv: Invoice) -> Block:
    cur.set_font(FONT_BOLD, 10)
    cur.fill = HEADER_FILL
    cur.cell(PAYMENT_WIDTH, 8, "Payment details", border="1", fill=True, ln=True)

    cur.set_font(FONT, 10)
    cur.fill = None
    rows = (
        ("Account holder:", inv.sender.name),
        ("BIC:", inv.payment.bic),
        ("IBAN:", inv.payment.iban),
        ("Address:", inv.payment.address),
    )
    for label, value in rows:
        cur.cell(PAYMENT_LABEL_WIDTH, 8, label, border="1")
        cur.cell(PAYMENT_VALUE_WIDTH, 8, value, border="1", ln=True)
    cur.newline(5)
    return cur.block("payment")


def _total(cur: _Cursor, inv: Invoice, currency: str) -> Block:
    subtotal = _money(inv.subtotal, currency)

    cur.set_font(FONT_BOLD, 10)
    cur.cell(100, 6)
    cur.cell(20, 6)
    cur.cell(30, 6, "Subtotal:", align="R")
    cur.set_font(FONT, 10)
    cur.cell(30, 6, subtotal, align="R")
    cur.newline(10)

    cur.set_font(FONT_BOLD, 14)
    cur.color = TOTAL_PINK
    cur.cell(0, 8, subtotal, align="R")
    return cur.block("total")


def build_layout(inv: Invoice, currency: str | None = None) -> list[Block]:
    """
    The whole page as an ordered list of blocks. Pure: depends only on `inv`
    and the currency symbol.
    """
    sym = Config.CURRENCY_SYMBOL if currency is None else currency
    cur = _Cursor()
    return [
        _header(cur, inv),
        _sender(cur, inv),
        _recipient(cur, inv),
        _project(cur, inv),
        _items(cur, inv, sym),
        _payment(cur, inv),
        _total(cur, inv, sym),
    ]


# -----------------------------
# reportlab drawing
# -----------------------------
def _register_fonts():
    registered = set(pdfmetrics.getRegisteredFontNames())
    for name, filename in FONT_FILES.items():
        if name in registered:
            continue
        path = Path(Config.FONT_DIR) / filename
        try:
            pdfmetrics.registerFont(TTFont(name, str(path)))
        except Exception as exc:
            raise RenderError(f"loading font {path}: {exc}") from exc
        logger.debug("Registered font %s from %s", name, path)


def _rgb(c):
    return colors.Color(c[0] / 255.0, c[1] / 255.0, c[2] / 255.0)


def _draw_cell(pdf, c: Cell):
    left = c.x * mm
    right = (c.x + c.w) * mm
    top = (PAGE_H - c.y) * mm
    bottom = (PAGE_H - c.y - c.h) * mm

    if c.fill is not None:
        pdf.setFillColor(_rgb(c.fill))
        pdf.rect(left, bottom, c.w * mm, c.h * mm, stroke=0, fill=1)

    if c.border:
        pdf.setStrokeColor(_rgb(c.draw_color))
        if c.border == "1":
            pdf.rect(left, bottom, c.w * mm, c.h * mm, stroke=1, fill=0)
        else:
            if "L" in c.border:
                pdf.line(left, top, left, bottom)
            if "R" in c.border:
                pdf.line(right, top, right, bottom)
            if "T" in c.border:
                pdf.line(left, top, right, top)
            if "B" in c.border:
                pdf.line(left, bottom, right, bottom)

    if not c.text:
        return

    text_w = stringWidth(c.text, c.font, c.size)
    if c.align == "R":
        tx = right - CELL_PADDING * mm - text_w
    elif c.align == "C":
        tx = left + (c.w * mm - text_w) / 2
    else:
        tx = left + CELL_PADDING * mm
    # vertically centred baseline
    ty = top - (c.h * mm) / 2 - 0.3 * c.size

    pdf.setFont(c.font, c.size)
    pdf.setFillColor(_rgb(c.color))
    pdf.drawString(tx, ty, c.text)


def _draw_rule(pdf, r: Rule):
    y = (PAGE_H - r.y) * mm
    pdf.setStrokeColor(_rgb(r.color))
    pdf.line(r.x1 * mm, y, r.x2 * mm, y)


def render_blocks(blocks: list[Block], out, title: str = "", author: str = ""):
    _register_fonts()
    pdf = canvas.Canvas(out, pagesize=A4, invariant=1)
    pdf.setTitle(title)
    pdf.setAuthor(author)
    pdf.setLineWidth(0.2 * mm)
    for block in blocks:
        for el in block.elements:
            if isinstance(el, Cell):
                _draw_cell(pdf, el)
            else:
                _draw_rule(pdf, el)
    pdf.showPage()
    pdf.save()


def render_pdf(inv: Invoice, currency: str | None = None) -> bytes:
    buf = io.BytesIO()
    render_blocks(
        build_layout(inv, currency),
        buf,
        title=f"Invoice {inv.invoice_number}",
        author=inv.sender.name,
    )
    return buf.getvalue()


def generate_and_store_pdf(inv: Invoice, exports_dir: str | None = None, currency: str | None = None) -> str:
    """
    Renders the invoice and writes it to exports_dir/<sender>_<MM>_<YYYY>.pdf.
    The file is written under a temporary name and moved into place, so a
    failed run never leaves a half-written PDF behind.

    Returns: the pdf path on disk.
    """
    target_dir = Path(exports_dir or Config.EXPORTS_DIR)
    pdf_path = target_dir / output_filename(inv)

    try:
        data = render_pdf(inv, currency)
    except Exception as exc:
        raise RenderError(f"rendering PDF: {exc}") from exc

    tmp_path = None
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".invoice-", suffix=".pdf", dir=target_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, pdf_path)
    except OSError as exc:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise RenderError(f"saving PDF: {exc}") from exc

    logger.info("Saved %s (%d bytes)", pdf_path, len(data))
    return str(pdf_path)
