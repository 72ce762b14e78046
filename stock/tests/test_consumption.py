from decimal import Decimal

import pytest

from stock.models import StockTransaction, TransactionType
from stock.services import (
    SaleConsumptionService, PurchaseReceivingService,
    ValidationError, NotFoundError, ConflictError, InsufficientStockError,
)

from .conftest import stock_of

pytestmark = pytest.mark.django_db


def test_sale_deducts_each_ingredient_once(flour, sugar, user):
    result = SaleConsumptionService.consume_sale(
        42,
        [
            {"ingredient_id": sugar.id, "quantity": "1.5"},
            {"ingredient_id": flour.id, "quantity": "2"},
            {"ingredient_id": str(sugar.id), "quantity": "0.5"},
        ],
        user.id,
        sale_number="ORD-42",
    )

    assert result["total_deductions"] == 2
    assert stock_of(flour) == Decimal("98")
    assert stock_of(sugar) == Decimal("38")

    entries = StockTransaction.objects.filter(reference_type="sale", reference_id=42)
    assert entries.count() == 2
    assert set(entries.values_list("reference_number", flat=True)) == {"ORD-42"}
    assert set(entries.values_list("transaction_type", flat=True)) == {TransactionType.SALE_CONSUMPTION}


def test_sale_is_all_or_nothing(flour, sugar, user):
    with pytest.raises(InsufficientStockError):
        SaleConsumptionService.consume_sale(43, [
            {"ingredient_id": flour.id, "quantity": "2"},
            {"ingredient_id": sugar.id, "quantity": "40.5"},
        ], user.id)

    assert stock_of(flour) == Decimal("100")
    assert stock_of(sugar) == Decimal("40")
    assert not StockTransaction.objects.filter(reference_type="sale").exists()


@pytest.mark.parametrize("sale_id, lines", [
    (None, [{"ingredient_id": 1, "quantity": 1}]),
    (44, []),
    (44, [{"quantity": 1}]),
    (44, [{"ingredient_id": "abc", "quantity": 1}]),
    (44, [{"ingredient_id": 1, "quantity": 0}]),
])
def test_sale_validation(user, sale_id, lines):
    with pytest.raises(ValidationError):
        SaleConsumptionService.consume_sale(sale_id, lines, user.id)


def test_reverse_sale_restores_stock_once(flour, sugar, user):
    SaleConsumptionService.consume_sale(45, [
        {"ingredient_id": flour.id, "quantity": "10"},
        {"ingredient_id": sugar.id, "quantity": "4"},
    ], user.id)

    result = SaleConsumptionService.reverse_sale(45, user.id, reason="Order voided")

    assert len(result["transactions"]) == 2
    assert stock_of(flour) == Decimal("100")
    assert stock_of(sugar) == Decimal("40")

    reversals = StockTransaction.objects.filter(reference_type="sale_reversal", reference_id=45)
    originals = StockTransaction.objects.filter(reference_type="sale", reference_id=45)
    assert set(reversals.values_list("reference_number", flat=True)) == set(
        originals.values_list("transaction_number", flat=True)
    )

    with pytest.raises(ConflictError):
        SaleConsumptionService.reverse_sale(45, user.id)


def test_reverse_unknown_sale(user):
    with pytest.raises(NotFoundError):
        SaleConsumptionService.reverse_sale(404, user.id)


def test_receive_purchase_lines(flour, sugar, user):
    result = PurchaseReceivingService.receive_purchase(
        [
            {"ingredient_id": flour.id, "quantity": "25", "unit_cost": "11"},
            {"ingredient_id": sugar.id, "quantity": "10", "batch_number": "B-9", "expiry_date": "2027-03-01"},
        ],
        user.id,
        supplier_ref="Mill Co",
        reference_number="PO-1001",
    )

    assert result["total_lines"] == 2
    assert stock_of(flour) == Decimal("125")
    assert stock_of(sugar) == Decimal("50")
    assert flour.unit_cost == Decimal("11")

    sugar_entry = StockTransaction.objects.get(id=result["transactions"][1]["id"])
    assert sugar_entry.batch_number == "B-9"
    assert sugar_entry.reference_number == "PO-1001"
    assert sugar_entry.reason == "Received from Mill Co"


def test_receive_purchase_rolls_back_on_bad_line(flour, user):
    with pytest.raises(ValidationError):
        PurchaseReceivingService.receive_purchase([
            {"ingredient_id": flour.id, "quantity": "25"},
            {"ingredient_id": flour.id, "quantity": "-1"},
        ], user.id)

    assert stock_of(flour) == Decimal("100")

    with pytest.raises(ValidationError):
        PurchaseReceivingService.receive_purchase([], user.id)
