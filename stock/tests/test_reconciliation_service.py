from decimal import Decimal

import pytest

from stock.models import StockReconciliation, StockTransaction, TransactionType
from stock.services import (
    StockReconciliationService, StockLedgerService, SaleConsumptionService,
    StockTransferService, IngredientService,
    ValidationError, NotFoundError, ConflictError,
)

from .conftest import stock_of

pytestmark = pytest.mark.django_db


def item_for(reconciliation, ingredient):
    return next(i for i in reconciliation["items"] if i["ingredient_id"] == ingredient.id)


def test_start_snapshots_active_ingredients(flour, sugar, make_ingredient, user):
    make_ingredient("Saffron", stock="1", is_active=False)

    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]

    assert reconciliation["status"] == StockReconciliation.Status.IN_PROGRESS
    assert reconciliation["location"] == "Warehouse"
    assert reconciliation["reconciliation_number"].startswith("REC-")
    assert [i["ingredient_name"] for i in reconciliation["items"]] == ["Flour", "Sugar"]
    assert item_for(reconciliation, flour)["system_stock"] == "100.0000"
    assert item_for(reconciliation, flour)["difference"] == "0.0000"


def test_only_one_reconciliation_in_progress(flour, user):
    StockReconciliationService.start(user.id)

    with pytest.raises(ConflictError):
        StockReconciliationService.start(user.id, location="Kitchen")

    assert StockReconciliation.objects.count() == 1


def test_update_items_computes_difference_and_value(flour, user):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    item = item_for(reconciliation, flour)

    updated = StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item["id"], "physical_stock": "95", "notes": "Torn sack"},
    ])["items"][0]

    assert updated["physical_stock"] == "95.0000"
    assert Decimal(updated["difference"]) == Decimal("-5")
    assert Decimal(updated["value_difference"]) == Decimal("-50")
    assert updated["notes"] == "Torn sack"
    assert stock_of(flour) == Decimal("100")


def test_update_items_validation(flour, user):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    item = item_for(reconciliation, flour)

    with pytest.raises(ValidationError):
        StockReconciliationService.update_items(reconciliation["id"], [])
    with pytest.raises(ValidationError):
        StockReconciliationService.update_items(reconciliation["id"], [
            {"id": item["id"], "physical_stock": "-1"},
        ])
    with pytest.raises(NotFoundError):
        StockReconciliationService.update_items(reconciliation["id"], [
            {"id": 99999, "physical_stock": "1"},
        ])


def test_submit_counts_discrepancies_above_epsilon(flour, sugar, user):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item_for(reconciliation, flour)["id"], "physical_stock": "97"},
        {"id": item_for(reconciliation, sugar)["id"], "physical_stock": "40.0001"},
    ])

    submitted = StockReconciliationService.submit(reconciliation["id"])["reconciliation"]

    assert submitted["status"] == StockReconciliation.Status.COMPLETED
    assert submitted["total_items_counted"] == 2
    assert submitted["total_discrepancies"] == 1
    assert Decimal(submitted["total_value_difference"]) == Decimal("-29.9997")

    with pytest.raises(ConflictError):
        StockReconciliationService.update_items(reconciliation["id"], [
            {"id": item_for(reconciliation, flour)["id"], "physical_stock": "1"},
        ])


def test_approve_posts_adjustments_for_variances_only(flour, sugar, user, manager):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item_for(reconciliation, flour)["id"], "physical_stock": "103"},
    ])
    StockReconciliationService.submit(reconciliation["id"])

    result = StockReconciliationService.approve(reconciliation["id"], manager.id)

    assert result["adjustments"] == 1
    assert result["reconciliation"]["status"] == StockReconciliation.Status.APPROVED
    assert result["reconciliation"]["approved_by_id"] == manager.id
    assert stock_of(flour) == Decimal("103")
    assert stock_of(sugar) == Decimal("40")

    entry = StockTransaction.objects.get(reference_type="reconciliation", reference_id=reconciliation["id"])
    assert entry.transaction_type == TransactionType.ADJUSTMENT
    assert entry.quantity == Decimal("3")
    assert item_for(result["reconciliation"], flour)["stock_transaction_id"] == entry.id


def test_approve_requires_submitted_count(flour, user, manager):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]

    with pytest.raises(ConflictError):
        StockReconciliationService.approve(reconciliation["id"], manager.id)


def test_approve_lands_on_count_after_stock_fell(flour, user, manager):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item_for(reconciliation, flour)["id"], "physical_stock": "0"},
    ])
    StockReconciliationService.submit(reconciliation["id"])
    StockLedgerService.consume(flour.id, "60", user.id)

    result = StockReconciliationService.approve(reconciliation["id"], manager.id)

    assert stock_of(flour) == Decimal("0")
    assert result["reconciliation"]["status"] == StockReconciliation.Status.APPROVED
    entry = StockTransaction.objects.get(reference_type="reconciliation", reference_id=reconciliation["id"])
    assert entry.quantity == Decimal("-40")
    assert Decimal(item_for(result["reconciliation"], flour)["difference"]) == Decimal("-100")


def test_approve_lands_on_count_after_stock_rose(flour, user, manager):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item_for(reconciliation, flour)["id"], "physical_stock": "95"},
    ])
    StockReconciliationService.submit(reconciliation["id"])
    StockLedgerService.receive(flour.id, "50", user.id)

    result = StockReconciliationService.approve(reconciliation["id"], manager.id)

    assert stock_of(flour) == Decimal("95")
    entry = StockTransaction.objects.get(reference_type="reconciliation", reference_id=reconciliation["id"])
    assert entry.previous_stock == Decimal("150")
    assert entry.quantity == Decimal("-55")
    assert Decimal(item_for(result["reconciliation"], flour)["difference"]) == Decimal("-5")
    assert IngredientService.verify_projection(flour.id)["consistent"]


def test_approve_skips_item_already_at_count(flour, user, manager):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item_for(reconciliation, flour)["id"], "physical_stock": "90"},
    ])
    StockReconciliationService.submit(reconciliation["id"])
    StockLedgerService.consume(flour.id, "10", user.id)

    result = StockReconciliationService.approve(reconciliation["id"], manager.id)

    assert result["adjustments"] == 0
    assert stock_of(flour) == Decimal("90")
    assert not StockTransaction.objects.filter(reference_type="reconciliation").exists()


def test_cancel_frees_the_slot(flour, user):
    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]

    cancelled = StockReconciliationService.cancel(reconciliation["id"], "Wrong day")["reconciliation"]
    assert cancelled["status"] == StockReconciliation.Status.CANCELLED
    assert "Wrong day" in cancelled["notes"]
    assert StockReconciliationService.get_active()["reconciliation"] is None

    StockReconciliationService.start(user.id)
    assert StockReconciliationService.get_active()["reconciliation"] is not None

    with pytest.raises(ConflictError):
        StockReconciliationService.cancel(reconciliation["id"])


def test_day_of_trading(flour, user, manager):
    StockLedgerService.receive(flour.id, "50", user.id, supplier_ref="Mill Co")
    assert stock_of(flour) == Decimal("150")

    SaleConsumptionService.consume_sale(501, [{"ingredient_id": flour.id, "quantity": "30"}], user.id)
    assert stock_of(flour) == Decimal("120")

    transfer = StockTransferService.initiate(
        "Warehouse", "Kitchen", [{"ingredient_id": flour.id, "quantity": "20"}], user.id
    )["transfer"]
    assert stock_of(flour) == Decimal("100")

    reconciliation = StockReconciliationService.start(user.id)["reconciliation"]
    item = item_for(reconciliation, flour)
    updated = StockReconciliationService.update_items(reconciliation["id"], [
        {"id": item["id"], "physical_stock": "95"},
    ])["items"][0]
    assert Decimal(updated["difference"]) == Decimal("-5")
    assert Decimal(updated["value_difference"]) == Decimal("-50")

    StockReconciliationService.submit(reconciliation["id"])
    StockReconciliationService.approve(reconciliation["id"], manager.id)
    assert stock_of(flour) == Decimal("95")

    StockTransferService.receive(transfer["id"], manager.id, items=[
        {"item_id": transfer["items"][0]["id"], "quantity_received": "18", "damaged_quantity": "2"},
    ])
    assert stock_of(flour) == Decimal("113")

    check = IngredientService.verify_projection(flour.id)
    assert check["consistent"]
    assert check["entries"] == 6
