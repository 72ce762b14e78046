from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.db.models import Sum

from stock.models import StockTransaction, TransactionType
from stock.references import SaleRef, ManualRef, reference_from_fields
from stock.services import (
    IngredientService, StockLedgerService, StockTransactionService, StockTransferService,
    ValidationError, NotFoundError, InsufficientStockError, round_decimal,
)

from .conftest import stock_of

pytestmark = pytest.mark.django_db


def test_opening_stock_is_posted_as_adjustment(flour):
    entry = StockTransaction.objects.get(ingredient=flour)

    assert flour.current_stock == Decimal("100")
    assert entry.transaction_type == TransactionType.ADJUSTMENT
    assert entry.previous_stock == Decimal("0")
    assert entry.new_stock == Decimal("100")
    assert entry.reason == "Opening balance"


def test_receive_adds_stock_and_snapshots(flour, user):
    result = StockLedgerService.receive(flour.id, "50", user.id, supplier_ref="ACME", reference_number="PO-7")

    entry = StockTransaction.objects.get(id=result["transaction"]["id"])
    assert entry.transaction_type == TransactionType.PURCHASE
    assert entry.quantity == Decimal("50")
    assert entry.previous_stock == Decimal("100")
    assert entry.new_stock == Decimal("150")
    assert entry.reference_type == "purchase"
    assert entry.reference_number == "PO-7"
    assert entry.total_cost == Decimal("500")
    assert stock_of(flour) == Decimal("150")


def test_receive_with_unit_cost_updates_ingredient_cost(flour, user):
    StockLedgerService.receive(flour.id, 10, user.id, unit_cost="12.5")

    flour.refresh_from_db()
    assert flour.unit_cost == Decimal("12.5")
    assert StockTransaction.objects.filter(ingredient=flour).first().unit_cost == Decimal("12.5")


def test_consume_more_than_available_writes_nothing(flour, user):
    before = StockTransaction.objects.count()

    with pytest.raises(InsufficientStockError) as exc:
        StockLedgerService.consume(flour.id, "100.0001", user.id)

    assert exc.value.details["item"] == "Flour"
    assert exc.value.details["requested"] == "100.0001"
    assert exc.value.details["available"] == "100.0000"
    assert isinstance(exc.value, ValidationError)
    assert StockTransaction.objects.count() == before
    assert stock_of(flour) == Decimal("100")


def test_consume_exact_stock_reaches_zero(flour, user):
    StockLedgerService.consume(flour.id, 100, user.id, reference=SaleRef(id=9))

    entry = StockTransaction.objects.filter(ingredient=flour).first()
    assert stock_of(flour) == Decimal("0")
    assert entry.quantity == Decimal("-100")
    assert entry.reference_type == "sale"
    assert entry.reference_id == 9


@pytest.mark.parametrize("transaction_type, quantity", [
    (TransactionType.SALE_CONSUMPTION, "5"),
    (TransactionType.TRANSFER_OUT, "5"),
    (TransactionType.DAMAGE, "1"),
    (TransactionType.RETURN, "1"),
    (TransactionType.PURCHASE, "-5"),
    (TransactionType.TRANSFER_IN, "-5"),
    (TransactionType.ADJUSTMENT, "0"),
    (TransactionType.ADJUSTMENT, "NaN"),
    (TransactionType.ADJUSTMENT, "Infinity"),
    (TransactionType.ADJUSTMENT, "lots"),
    ("gift", "5"),
])
def test_record_movement_rejects_bad_sign_or_type(flour, user, transaction_type, quantity):
    with pytest.raises(ValidationError):
        StockLedgerService.record_movement(flour.id, quantity, transaction_type, user.id)

    assert stock_of(flour) == Decimal("100")


def test_adjustment_and_reconciliation_accept_either_sign(flour, user):
    StockLedgerService.record_movement(flour.id, "-3", TransactionType.ADJUSTMENT, user.id, ManualRef())
    StockLedgerService.record_movement(flour.id, "1.5", TransactionType.RECONCILIATION, user.id)

    assert stock_of(flour) == Decimal("98.5")


def test_record_movement_unknown_ingredient(user):
    with pytest.raises(NotFoundError):
        StockLedgerService.record_movement(999, 5, TransactionType.PURCHASE, user.id)


def test_record_movement_requires_user(flour):
    with pytest.raises(ValidationError):
        StockLedgerService.record_movement(flour.id, 5, TransactionType.PURCHASE, None)

    with pytest.raises(NotFoundError):
        StockLedgerService.record_movement(flour.id, 5, TransactionType.PURCHASE, 424242)


def test_adjust_requires_reason_and_known_type(flour, user):
    with pytest.raises(ValidationError):
        StockLedgerService.adjust(flour.id, "decrease", 5, "", user.id)

    with pytest.raises(ValidationError):
        StockLedgerService.adjust(flour.id, "sideways", 5, "Spillage", user.id)

    StockLedgerService.adjust(flour.id, "decrease", 5, "Spillage", user.id, location="Kitchen")

    entry = StockTransaction.objects.filter(ingredient=flour).first()
    assert entry.quantity == Decimal("-5")
    assert entry.from_location == "Kitchen"
    assert stock_of(flour) == Decimal("95")


def test_ledger_entries_are_immutable(flour):
    entry = StockTransaction.objects.get(ingredient=flour)

    entry.quantity = Decimal("1")
    with pytest.raises(ValueError):
        entry.save()

    with pytest.raises(ValueError):
        entry.delete()

    entry.refresh_from_db()
    assert entry.quantity == Decimal("100")


def test_conservation_after_mixed_operations(flour, sugar, user):
    StockLedgerService.receive(flour.id, "25.25", user.id)
    StockLedgerService.consume(flour.id, "10.5", user.id)
    StockLedgerService.adjust(flour.id, "increase", "0.0001", "Recount", user.id)
    StockLedgerService.consume(sugar.id, "39.9999", user.id)

    for ingredient in (flour, sugar):
        total = StockTransaction.objects.filter(ingredient=ingredient).aggregate(
            total=Sum("quantity")
        )["total"]
        assert round_decimal(Decimal(str(total))) == stock_of(ingredient)
        assert IngredientService.verify_projection(ingredient.id)["consistent"]

    assert stock_of(flour) == Decimal("114.7501")
    assert stock_of(sugar) == Decimal("0.0001")


def test_verify_projection_detects_drift(flour):
    from stock.models import Ingredient

    Ingredient.objects.filter(id=flour.id).update(current_stock=Decimal("90"))

    result = IngredientService.verify_projection(flour.id)
    assert result["consistent"] is False
    assert result["ledger_stock"] == "100.0000"
    assert result["problems"]


def test_transaction_list_filters_and_summary(flour, sugar, user):
    StockLedgerService.receive(flour.id, 5, user.id)
    StockLedgerService.consume(flour.id, 2, user.id)

    result = StockTransactionService.list(ingredient_id=flour.id, transaction_type="purchase")
    assert [t["quantity"] for t in result["transactions"]] == ["5.0000"]

    summary = StockTransactionService.movement_summary(ingredient_id=flour.id)["summary"]
    assert summary["purchase"]["count"] == 1
    assert Decimal(summary["sale_consumption"]["total_quantity"]) == Decimal("-2")
    assert Decimal(summary["adjustment"]["total_quantity"]) == Decimal("100")

    with pytest.raises(ValidationError):
        StockTransactionService.list(transaction_type="gift")


def test_reference_round_trip_from_columns(flour, user):
    StockLedgerService.consume(flour.id, 1, user.id, reference=SaleRef(id=77, number="S-77"))
    entry = StockTransactionService.get_by_reference("sale", 77)[0]

    assert reference_from_fields(entry.reference_type, entry.reference_id, entry.reference_number) == SaleRef(
        id=77, number="S-77"
    )
    assert reference_from_fields("", None) is None


def test_ingredient_update_rejects_current_stock(flour):
    with pytest.raises(ValidationError):
        IngredientService.update(flour.id, current_stock="500")

    IngredientService.update(flour.id, reorder_level="20", supplier="Mill Co")
    flour.refresh_from_db()
    assert flour.reorder_level == Decimal("20")
    assert flour.current_stock == Decimal("100")


def test_unbalanced_entry_is_refused_by_the_database(flour):
    entry = StockTransaction.objects.get(ingredient=flour)

    with pytest.raises(IntegrityError), transaction.atomic():
        StockTransaction.objects.filter(id=entry.id).update(new_stock=Decimal("12345"))

    entry.refresh_from_db()
    assert entry.new_stock == Decimal("100")


def test_long_reasons_fit_the_reason_column(flour, user):
    location = "Cold room " + "B" * 245

    StockTransferService.initiate("Warehouse", location, [{"ingredient_id": flour.id, "quantity": "1"}], user.id)
    entry = StockTransaction.objects.get(transaction_type=TransactionType.TRANSFER_OUT)
    assert len(entry.reason) == 255
    assert entry.reason.startswith("Transfer to Cold room ")

    entry = StockLedgerService.record_movement(
        flour.id, "1", TransactionType.ADJUSTMENT, user.id, reason="x" * 300
    )
    entry.refresh_from_db()
    assert entry.reason == "x" * 255
    assert stock_of(flour) == Decimal("100")
