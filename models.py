# models.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

DATE_INPUT_FORMAT = "%Y-%m-%d"
DATE_INPUT_SHAPE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
DEFAULT_QUANTITY = 1
DUE_DAY = 10


# -----------------------------
# Errors
# -----------------------------
class InvoiceError(Exception):
    """Base class for every failure the invoice tool reports to the user."""


class ConfigError(InvoiceError):
    pass


class QuantityError(InvoiceError):
    pass


class RenderError(InvoiceError):
    pass


# -----------------------------
# Billing configuration
# -----------------------------
@dataclass(frozen=True)
class LineItem:
    """
    One billable row. In a config template quantity 0 means "not set yet";
    build_invoice() always fills it in.
    """
    description: str
    unit_price: Decimal
    quantity: int = 0

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class SenderInfo:
    name: str
    city: str = ""
    address: str = ""
    reg_nr: str = ""
    phone: str = ""


@dataclass(frozen=True)
class RecipientInfo:
    name: str
    address: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaymentInfo:
    bic: str = ""
    iban: str = ""
    address: str = ""


@dataclass(frozen=True)
class BillingConfig:
    """
    Everything read from config.yaml. Loaded once per run, never mutated.
    """
    sender: SenderInfo
    bill_to: RecipientInfo
    project_name: str = ""
    payment: PaymentInfo = field(default_factory=PaymentInfo)
    items: tuple[LineItem, ...] = ()

    def validate(self) -> None:
        if not self.sender.name:
            raise ConfigError("sender name is required")
        if not self.bill_to.name:
            raise ConfigError("bill to name is required")
        if not self.items:
            raise ConfigError("at least one item is required")


# -----------------------------
# Computed invoice
# -----------------------------
@dataclass(frozen=True)
class Invoice:
    year: int
    month: int
    period: str
    invoice_number: str
    invoice_date: date
    due_date: date
    items: tuple[LineItem, ...]
    subtotal: Decimal
    sender: SenderInfo
    bill_to: RecipientInfo
    project_name: str
    payment: PaymentInfo


# -----------------------------
# Quantities / items
# -----------------------------
def reconcile_quantities(item_count: int, quantities: Sequence[int]) -> list[int]:
    """
    One quantity per configured item, in item order.
    Missing entries default to 1, extra entries are ignored.
    """
    return [
        quantities[i] if i < len(quantities) else DEFAULT_QUANTITY
        for i in range(item_count)
    ]


def materialize_items(items: Sequence[LineItem], quantities: Sequence[int]) -> tuple[LineItem, ...]:
    resolved = reconcile_quantities(len(items), quantities)
    return tuple(replace(item, quantity=qty) for item, qty in zip(items, resolved))


def calculate_subtotal(items: Sequence[LineItem]) -> Decimal:
    return sum((item.total for item in items), Decimal("0"))


# -----------------------------
# Dates
# -----------------------------
def parse_date(value) -> Optional[date]:
    """
    Accepts a date or a zero-padded YYYY-MM-DD string. Anything else
    (empty, "2024-4-2", padded with spaces, junk) gives None so the caller
    falls back to computed dates.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    if not DATE_INPUT_SHAPE.fullmatch(value):
        logger.debug("Ignoring malformed date %r", value)
        return None
    try:
        return datetime.strptime(value, DATE_INPUT_FORMAT).date()
    except ValueError:
        logger.debug("Ignoring unparseable date %r", value)
        return None


def _first_of_next_month(year: int, month: int) -> date:
    if month >= 12:
        return date(year + 1, 1, 1)
    return date(year, month + 1, 1)


def last_day_of_month(year: int, month: int) -> date:
    return _first_of_next_month(year, month) - timedelta(days=1)


def due_date_fallback(year: int, month: int) -> date:
    return _first_of_next_month(year, month).replace(day=DUE_DAY)


def resolve_dates(year: int, month: int, invoice_date=None, due_date=None) -> tuple[date, date]:
    """
    Explicit dates win only when BOTH parse. Otherwise both are computed
    from the billing month, never a mix of the two.
    """
    explicit_invoice = parse_date(invoice_date)
    explicit_due = parse_date(due_date)
    if explicit_invoice is not None and explicit_due is not None:
        return explicit_invoice, explicit_due

    if explicit_invoice is not None or explicit_due is not None:
        logger.info("Only one explicit date usable; computing both from %02d/%04d", month, year)
    return last_day_of_month(year, month), due_date_fallback(year, month)


def period_string(year: int, month: int) -> str:
    return f"{month:02d}/{year:04d}"


# -----------------------------
# Invoice number generator
# -----------------------------
def sender_initials(name: str) -> str:
    return "".join(word[0].upper() for word in (name or "").split() if word)


def generate_invoice_number(seed: str, sender_name: str, year: int, month: int) -> str:
    """
    Returns an invoice number like AS-2024-03-01.
    A sender name with no words yields a leading hyphen (-2024-03-01).
    """
    return f"{sender_initials(sender_name)}-{year:04d}-{month:02d}-{seed}"


# -----------------------------
# Builder
# -----------------------------
def build_invoice(
    config: BillingConfig,
    invoice_number_seed: str,
    year: int,
    month: int,
    quantities: Sequence[int] = (),
    invoice_date=None,
    due_date=None,
) -> Invoice:
    items = materialize_items(config.items, quantities)
    inv_date, inv_due = resolve_dates(year, month, invoice_date, due_date)

    invoice = Invoice(
        year=year,
        month=month,
        period=period_string(year, month),
        invoice_number=generate_invoice_number(invoice_number_seed, config.sender.name, year, month),
        invoice_date=inv_date,
        due_date=inv_due,
        items=items,
        subtotal=calculate_subtotal(items),
        sender=config.sender,
        bill_to=config.bill_to,
        project_name=config.project_name,
        payment=config.payment,
    )
    logger.info(
        "Built invoice %s for %s (%d items, subtotal %s)",
        invoice.invoice_number, invoice.period, len(items), invoice.subtotal,
    )
    return invoice
