# generate_invoice.py
import argparse
import logging
import sys
from datetime import date

from config import Config, load_billing_config
from models import InvoiceError, QuantityError, build_invoice
from pdf_service import generate_and_store_pdf


def parse_quantities(text: str) -> list[int]:
    """
    "2, ,3" -> [2, 3]. Blank entries are skipped. Anything other than a
    plain ASCII integer, or a negative one, raises QuantityError naming
    the offending token.
    """
    qtys = []
    for token in (text or "").split(","):
        token = token.strip()
        if not token:
            continue
        digits = token[1:] if token[0] in "+-" else token
        if not (digits.isascii() and digits.isdigit()):
            raise QuantityError(f"invalid quantity value {token!r}")
        qty = int(token)
        if qty < 0:
            raise QuantityError(f"invalid quantity value {token!r}: must not be negative")
        qtys.append(qty)
    return qtys


def _month(value: str) -> int:
    try:
        m = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid month {value!r}")
    if not 1 <= m <= 12:
        raise argparse.ArgumentTypeError("month must be between 1 and 12")
    return m


def build_parser(today: date) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invo",
        description="Generate a monthly PDF invoice from a YAML billing config.",
    )
    parser.add_argument("-c", "--config", default=Config.INVOICE_CONFIG_FILE, help="Path to config file.")
    parser.add_argument("-n", "--number", default="01", help="Invoice number seed, e.g. 01.")
    parser.add_argument("-y", "--year", type=int, default=today.year, help="Year (YYYY).")
    parser.add_argument("-m", "--month", type=_month, default=1, help="Month (1-12).")
    parser.add_argument("-q", "--quantities", default="1", help="Comma-separated quantities, e.g. 2,1.")
    parser.add_argument("-d", "--date", default="", help="Invoice date (YYYY-MM-DD).")
    parser.add_argument("-D", "--due", default="", help="Due date (YYYY-MM-DD).")
    parser.add_argument("-o", "--output-dir", default=Config.EXPORTS_DIR, help="Directory for the generated PDF.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def run(args) -> str:
    try:
        qtys = parse_quantities(args.quantities)
    except QuantityError as exc:
        raise QuantityError(f"parsing quantities: {exc}") from exc

    cfg = load_billing_config(args.config)
    inv = build_invoice(cfg, args.number, args.year, args.month, qtys, args.date, args.due)
    return generate_and_store_pdf(inv, args.output_dir)


def main(argv=None, today: date | None = None) -> int:
    # the clock is only read here; everything below gets explicit values
    parser = build_parser(today or date.today())
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        path = run(args)
    except InvoiceError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(f"PDF generated: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
