from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from config import Config, billing_config_from_dict, load_billing_config, resolve_config_path, user_config_path
from models import ConfigError

VALID_YAML = """\
sender:
  name: Acme Services
  city: Riga
  address: Brivibas iela 1
  reg_nr: "40003000000"
  phone: "+371 20000000"
bill_to:
  name: Example Client Ltd
  address:
    - 1 Market Street
    - London
project_name: Backend development
payment:
  bic: HABALV22
  iban: LV80BANK0000435195001
  address: Riga
items:
  - description: Development hours
    unit_price: 45.50
  - description: Hosting
    unit_price: 12.1
    quantity: 2
"""


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_load_billing_config(tmp_path):
    path = _write(tmp_path / "config.yaml", VALID_YAML)

    cfg = load_billing_config(str(path))

    assert cfg.sender.name == "Acme Services"
    assert cfg.sender.reg_nr == "40003000000"
    assert cfg.bill_to.address == ("1 Market Street", "London")
    assert cfg.project_name == "Backend development"
    assert cfg.payment.iban == "LV80BANK0000435195001"
    assert [i.unit_price for i in cfg.items] == [Decimal("45.5"), Decimal("12.1")]
    assert [i.quantity for i in cfg.items] == [0, 2]


def test_user_config_takes_precedence(tmp_path, monkeypatch):
    xdg = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    override = _write(xdg / "invo" / "config.yaml", VALID_YAML.replace("Acme Services", "Override Co"))
    local = _write(tmp_path / "local.yaml", VALID_YAML)

    assert resolve_config_path(str(local)) == override
    assert load_billing_config(str(local)).sender.name == "Override Co"


def test_user_config_defaults_to_home(tmp_path, monkeypatch):
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert user_config_path() == tmp_path / ".config" / "invo" / "config.yaml"


def test_fallback_path_when_no_user_config(tmp_path):
    assert resolve_config_path("somewhere/config.yaml").as_posix() == "somewhere/config.yaml"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="reading config file"):
        load_billing_config(str(tmp_path / "nope.yaml"))


def test_malformed_yaml(tmp_path):
    path = _write(tmp_path / "config.yaml", "sender: [unclosed\n")
    with pytest.raises(ConfigError, match="parsing config file"):
        load_billing_config(str(path))


@pytest.mark.parametrize(
    "old, new, message",
    [
        ("name: Acme Services", "name: ''", "validating config: sender name is required"),
        ("name: Example Client Ltd", "name: ''", "validating config: bill to name is required"),
    ],
)
def test_missing_required_fields(tmp_path, old, new, message):
    path = _write(tmp_path / "config.yaml", VALID_YAML.replace(old, new))
    with pytest.raises(ConfigError, match=message):
        load_billing_config(str(path))


def test_no_items(tmp_path):
    text = VALID_YAML.split("items:")[0]
    path = _write(tmp_path / "config.yaml", text)
    with pytest.raises(ConfigError, match="at least one item is required"):
        load_billing_config(str(path))


@pytest.mark.parametrize(
    "raw, message",
    [
        ([1, 2], "config root must be a mapping"),
        ({"sender": "me"}, "'sender' must be a mapping"),
        ({"items": {"a": 1}}, "'items' must be a list"),
        ({"items": [{"description": "x", "unit_price": "lots"}]}, "invalid unit_price"),
        ({"items": [{"description": "x", "unit_price": 1, "quantity": "two"}]}, "invalid quantity"),
    ],
)
def test_billing_config_from_dict_rejects_bad_shapes(raw, message):
    with pytest.raises(ConfigError, match=message):
        billing_config_from_dict(raw)


def test_non_utf8_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_bytes(b"sender:\n  name: Acme\xff\xfe\n")
    with pytest.raises(ConfigError, match="reading config file"):
        load_billing_config(str(path))


def test_default_font_dir_holds_bundled_fonts():
    font_dir = Path(Config.FONT_DIR)
    assert (font_dir / "DejaVuSans.ttf").is_file()
    assert (font_dir / "DejaVuSans-Bold.ttf").is_file()
