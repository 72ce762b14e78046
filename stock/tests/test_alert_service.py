from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from stock.models import StockAlert
from stock.services import (
    StockAlertService, StockLedgerService, ValidationError, ConflictError,
)

pytestmark = pytest.mark.django_db


def open_alerts(ingredient):
    return {
        alert.alert_type: alert
        for alert in StockAlert.objects.filter(ingredient=ingredient, is_resolved=False)
    }


@pytest.mark.parametrize("stock, reorder_level, expected", [
    ("0", "10", [("out_of_stock", "critical")]),
    ("4", "10", [("low_stock", "high")]),
    ("5", "10", [("low_stock", "high")]),
    ("8", "10", [("low_stock", "medium")]),
    ("10", "10", [("low_stock", "medium")]),
    ("11", "10", []),
])
def test_evaluate_stock_levels(make_ingredient, stock, reorder_level, expected):
    ingredient = make_ingredient("Butter", stock=stock, reorder_level=reorder_level)

    found = [(t, s) for t, s, _ in StockAlertService.evaluate(ingredient)]
    assert found == expected


@pytest.mark.parametrize("days, expected", [
    (-1, ("expired", "critical")),
    (0, ("expired", "critical")),
    (2, ("expiring_soon", "high")),
    (3, ("expiring_soon", "high")),
    (6, ("expiring_soon", "medium")),
    (7, ("expiring_soon", "medium")),
    (8, None),
])
def test_evaluate_expiry(make_ingredient, days, expected):
    today = timezone.localdate()
    ingredient = make_ingredient("Cream", stock="50", expiry_date=today + timedelta(days=days))

    found = [(t, s) for t, s, _ in StockAlertService.evaluate(ingredient, today)]
    assert found == ([expected] if expected else [])


def test_refresh_opens_and_auto_resolves(flour, user):
    StockLedgerService.consume(flour.id, "100", user.id)

    assert StockAlertService.refresh() == {"created": 1, "resolved": 0}
    assert "out_of_stock" in open_alerts(flour)

    # repeated refresh does not duplicate
    assert StockAlertService.refresh() == {"created": 0, "resolved": 0}

    StockLedgerService.receive(flour.id, "30", user.id)
    assert StockAlertService.refresh([flour.id]) == {"created": 0, "resolved": 1}
    assert open_alerts(flour) == {}


def test_refresh_updates_severity_in_place(make_ingredient, user):
    butter = make_ingredient("Butter", stock="9", reorder_level="10")
    StockAlertService.refresh()
    alert = open_alerts(butter)["low_stock"]
    assert alert.severity == "medium"

    StockLedgerService.consume(butter.id, "6", user.id)
    StockAlertService.refresh()

    alert.refresh_from_db()
    assert alert.severity == "high"
    assert not alert.is_resolved
    assert StockAlert.objects.filter(ingredient=butter).count() == 1


def test_list_sorts_by_severity_and_filters(make_ingredient):
    make_ingredient("Butter", stock="8", reorder_level="10")
    make_ingredient("Milk", stock="0", reorder_level="5")

    result = StockAlertService.list()
    assert [a["severity"] for a in result["alerts"]] == ["critical", "medium"]
    assert result["count"] == 2

    low = StockAlertService.list(alert_type="low_stock", refresh=False)
    assert [a["ingredient_name"] for a in low["alerts"]] == ["Butter"]

    with pytest.raises(ValidationError):
        StockAlertService.list(severity="apocalyptic")


def test_acknowledge_and_resolve(make_ingredient, manager):
    make_ingredient("Milk", stock="0", reorder_level="5")
    alert = StockAlertService.list()["alerts"][0]

    acked = StockAlertService.acknowledge(alert["id"], manager.id, "Order placed")["alert"]
    assert acked["is_acknowledged"] is True
    assert acked["acknowledged_by_id"] == manager.id
    assert acked["notes"] == "Order placed"

    resolved = StockAlertService.resolve(alert["id"], manager.id)["alert"]
    assert resolved["is_resolved"] is True

    with pytest.raises(ConflictError):
        StockAlertService.resolve(alert["id"], manager.id)
    with pytest.raises(ConflictError):
        StockAlertService.acknowledge(alert["id"], manager.id)


def test_resolved_alert_reopens_while_condition_holds(make_ingredient, manager):
    milk = make_ingredient("Milk", stock="0", reorder_level="5")
    alert = StockAlertService.list()["alerts"][0]
    StockAlertService.resolve(alert["id"], manager.id)

    StockAlertService.refresh()

    reopened = open_alerts(milk)["out_of_stock"]
    assert reopened.id != alert["id"]
    assert reopened.severity == "critical"
    assert Decimal(StockAlertService.serialize(reopened)["current_stock"]) == Decimal("0")
