from __future__ import annotations

from decimal import Decimal

import pytest

from models import BillingConfig, LineItem, PaymentInfo, RecipientInfo, SenderInfo, build_invoice


@pytest.fixture(autouse=True)
def _isolated_user_config(tmp_path, monkeypatch):
    # keep a real ~/.config/invo/config.yaml from leaking into tests
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def billing_config():
    return BillingConfig(
        sender=SenderInfo(
            name="Acme Services",
            city="Riga",
            address="Brivibas iela 1",
            reg_nr="40003000000",
            phone="+371 20000000",
        ),
        bill_to=RecipientInfo(name="Example Client Ltd", address=("1 Market Street", "London")),
        project_name="Backend development",
        payment=PaymentInfo(bic="HABALV22", iban="LV80BANK0000435195001", address="Riga"),
        items=(
            LineItem("Development hours", Decimal("45.50")),
            LineItem("Hosting", Decimal("12.10"), quantity=1),
        ),
    )


@pytest.fixture
def invoice(billing_config):
    return build_invoice(billing_config, "01", 2024, 3, [160, 1])
