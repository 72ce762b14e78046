from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from stock.models import Ingredient, StockAlert

pytestmark = pytest.mark.django_db


def test_check_stock_ledger_consistent(flour, sugar):
    out = StringIO()
    call_command("check_stock_ledger", "--verbose-ok", stdout=out)

    output = out.getvalue()
    assert "OK   Flour" in output
    assert "Checked 2 ingredient(s)" in output


def test_check_stock_ledger_reports_drift(flour, sugar):
    Ingredient.objects.filter(id=sugar.id).update(current_stock=Decimal("41"))
    out = StringIO()

    with pytest.raises(CommandError):
        call_command("check_stock_ledger", stdout=out)

    assert "DRIFT Sugar" in out.getvalue()

    out = StringIO()
    call_command("check_stock_ledger", "--ingredient", str(flour.id), stdout=out)
    assert "Checked 1 ingredient(s)" in out.getvalue()


def test_refresh_stock_alerts(make_ingredient):
    make_ingredient("Milk", stock="0", reorder_level="5")
    out = StringIO()

    call_command("refresh_stock_alerts", stdout=out)

    assert "Alerts opened: 1" in out.getvalue()
    assert StockAlert.objects.filter(alert_type="out_of_stock").count() == 1
