# config.py
import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

import yaml
from dotenv import load_dotenv

from models import BillingConfig, ConfigError, LineItem, PaymentInfo, RecipientInfo, SenderInfo

# Load environment variables from .env if present
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

logger = logging.getLogger(__name__)


class Config:
    # Billing config used when no per-user override exists
    INVOICE_CONFIG_FILE = os.getenv("INVOICE_CONFIG_FILE", "config.yaml")

    # Per-user override: $XDG_CONFIG_HOME/<subdir>/config.yaml
    CONFIG_SUBDIR = os.getenv("INVO_CONFIG_SUBDIR", "invo")

    # Where generated PDFs are written
    EXPORTS_DIR = os.getenv("EXPORTS_DIR", ".")

    # TrueType fonts used for all PDF text (regular + bold)
    FONT_DIR = os.getenv("FONT_DIR", (BASE_DIR / "fonts").as_posix())

    # Prefix for every money amount on the PDF
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "€")


# -----------------------------
# Config file lookup
# -----------------------------
def user_config_path(subfolder: str | None = None, filename: str = "config.yaml") -> Path:
    """
    $XDG_CONFIG_HOME/<subfolder>/<filename>, with ~/.config when
    XDG_CONFIG_HOME is unset.
    """
    base = (os.getenv("XDG_CONFIG_HOME") or "").strip()
    if not base:
        base = (Path.home() / ".config").as_posix()
    return Path(base) / (subfolder or Config.CONFIG_SUBDIR) / filename


def resolve_config_path(filename: str) -> Path:
    override = user_config_path()
    if override.is_file():
        logger.debug("Using per-user config %s", override)
        return override
    return Path(filename)


# -----------------------------
# YAML -> BillingConfig
# -----------------------------
def _text(value) -> str:
    return "" if value is None else str(value).strip()


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _price(value, idx: int) -> Decimal:
    # str() first so YAML floats like 12.1 stay exact
    try:
        return Decimal(str(value if value is not None else 0))
    except InvalidOperation as exc:
        raise ConfigError(f"item {idx + 1}: invalid unit_price {value!r}") from exc


def _quantity(value, idx: int) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"item {idx + 1}: invalid quantity {value!r}") from exc


def billing_config_from_dict(raw: dict) -> BillingConfig:
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")

    sender = _section(raw, "sender")
    bill_to = _section(raw, "bill_to")
    payment = _section(raw, "payment")

    address = bill_to.get("address") or []
    if isinstance(address, str):
        address = [address]

    raw_items = raw.get("items") or []
    if not isinstance(raw_items, list):
        raise ConfigError("'items' must be a list")

    items = []
    for idx, item in enumerate(raw_items):
        if not isinstance(item, dict):
            raise ConfigError(f"item {idx + 1}: must be a mapping")
        items.append(
            LineItem(
                description=_text(item.get("description")),
                unit_price=_price(item.get("unit_price"), idx),
                quantity=_quantity(item.get("quantity"), idx),
            )
        )

    return BillingConfig(
        sender=SenderInfo(
            name=_text(sender.get("name")),
            city=_text(sender.get("city")),
            address=_text(sender.get("address")),
            reg_nr=_text(sender.get("reg_nr")),
            phone=_text(sender.get("phone")),
        ),
        bill_to=RecipientInfo(
            name=_text(bill_to.get("name")),
            address=tuple(_text(line) for line in address),
        ),
        project_name=_text(raw.get("project_name")),
        payment=PaymentInfo(
            bic=_text(payment.get("bic")),
            iban=_text(payment.get("iban")),
            address=_text(payment.get("address")),
        ),
        items=tuple(items),
    )


def load_billing_config(filename: str) -> BillingConfig:
    """
    Reads the billing YAML. A file in the per-user config dir takes
    precedence over `filename`.

    Raises ConfigError for a missing file, bad YAML or missing required fields.
    """
    path = resolve_config_path(filename)

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"reading config file: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"parsing config file: {exc}") from exc

    try:
        cfg = billing_config_from_dict(raw)
    except ConfigError as exc:
        raise ConfigError(f"parsing config file: {exc}") from exc

    try:
        cfg.validate()
    except ConfigError as exc:
        raise ConfigError(f"validating config: {exc}") from exc

    logger.info("Loaded billing config from %s (%d items)", path, len(cfg.items))
    return cfg
