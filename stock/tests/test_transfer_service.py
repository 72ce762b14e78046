from decimal import Decimal

import pytest

from stock.models import StockTransaction, StockTransfer, TransactionType
from stock.services import (
    StockTransferService, IngredientService,
    ValidationError, NotFoundError, ConflictError, InsufficientStockError,
)

from .conftest import stock_of

pytestmark = pytest.mark.django_db


@pytest.fixture
def transfer(flour, sugar, user):
    result = StockTransferService.initiate(
        "Warehouse", "Kitchen",
        [
            {"ingredient_id": flour.id, "quantity": "20"},
            {"ingredient_id": sugar.id, "quantity": "5"},
        ],
        user.id,
        reason="Morning prep",
    )
    return result["transfer"]


def test_initiate_deducts_every_item(transfer, flour, sugar):
    assert transfer["status"] == StockTransfer.Status.PENDING
    assert transfer["transfer_number"].startswith("TRF-")
    assert transfer["item_count"] == 2
    assert stock_of(flour) == Decimal("80")
    assert stock_of(sugar) == Decimal("35")

    outbound = StockTransaction.objects.filter(
        reference_type="transfer", reference_id=transfer["id"]
    )
    assert outbound.count() == 2
    assert set(outbound.values_list("transaction_type", flat=True)) == {TransactionType.TRANSFER_OUT}
    assert outbound.get(ingredient=flour).from_location == "Warehouse"


def test_initiate_is_all_or_nothing(flour, sugar, user):
    with pytest.raises(InsufficientStockError):
        StockTransferService.initiate(
            "Warehouse", "Kitchen",
            [
                {"ingredient_id": flour.id, "quantity": "20"},
                {"ingredient_id": sugar.id, "quantity": "41"},
            ],
            user.id,
        )

    assert stock_of(flour) == Decimal("100")
    assert stock_of(sugar) == Decimal("40")
    assert not StockTransfer.objects.exists()


@pytest.mark.parametrize("from_location, to_location, items", [
    ("", "Kitchen", [{"ingredient_id": 1, "quantity": 1}]),
    ("Warehouse", " ", [{"ingredient_id": 1, "quantity": 1}]),
    ("Kitchen", "Kitchen", [{"ingredient_id": 1, "quantity": 1}]),
    ("Warehouse", "Kitchen", []),
    ("Warehouse", "Kitchen", [{"quantity": 1}]),
    ("Warehouse", "Kitchen", [{"ingredient_id": 1, "quantity": -1}]),
])
def test_initiate_validation(user, from_location, to_location, items):
    with pytest.raises(ValidationError):
        StockTransferService.initiate(from_location, to_location, items, user.id)


def test_dispatch_then_receive_in_full(transfer, flour, sugar, manager):
    StockTransferService.dispatch(transfer["id"], manager.id)
    result = StockTransferService.receive(transfer["id"], manager.id)["transfer"]

    assert result["status"] == StockTransfer.Status.RECEIVED
    assert result["received_by_id"] == manager.id
    assert [item["quantity_received"] for item in result["items"]] == ["20.0000", "5.0000"]
    assert stock_of(flour) == Decimal("100")
    assert stock_of(sugar) == Decimal("40")


def test_receive_partial_with_damage(transfer, flour, sugar, manager):
    flour_item = transfer["items"][0]

    result = StockTransferService.receive(transfer["id"], manager.id, items=[
        {"item_id": str(flour_item["id"]), "quantity_received": "18", "damaged_quantity": "2",
         "damage_reason": "Torn bag"},
    ])["transfer"]

    received_flour = result["items"][0]
    assert received_flour["quantity_received"] == "18.0000"
    assert received_flour["damaged_quantity"] == "2.0000"
    assert received_flour["damage_reason"] == "Torn bag"
    # omitted items arrive in full
    assert result["items"][1]["quantity_received"] == "5.0000"
    assert stock_of(flour) == Decimal("98")
    assert stock_of(sugar) == Decimal("40")
    assert IngredientService.verify_projection(flour.id)["consistent"]


def test_receive_damage_defaults_received_to_remainder(transfer, flour, manager):
    flour_item = transfer["items"][0]

    StockTransferService.receive(transfer["id"], manager.id, items=[
        {"item_id": flour_item["id"], "damaged_quantity": "20"},
    ])

    item = StockTransfer.objects.get(id=transfer["id"]).items.get(id=flour_item["id"])
    assert item.quantity_received == Decimal("0")
    assert item.inbound_transaction is None
    assert stock_of(flour) == Decimal("80")


def test_receive_rejects_more_than_sent(transfer, flour, manager):
    flour_item = transfer["items"][0]

    with pytest.raises(ValidationError):
        StockTransferService.receive(transfer["id"], manager.id, items=[
            {"item_id": flour_item["id"], "quantity_received": "19", "damaged_quantity": "2"},
        ])

    with pytest.raises(NotFoundError):
        StockTransferService.receive(transfer["id"], manager.id, items=[
            {"item_id": 99999, "quantity_received": "1"},
        ])

    assert StockTransfer.objects.get(id=transfer["id"]).status == StockTransfer.Status.PENDING
    assert stock_of(flour) == Decimal("80")


def test_cancel_restores_sent_stock(transfer, flour, sugar, manager):
    StockTransferService.dispatch(transfer["id"], manager.id)
    result = StockTransferService.cancel(transfer["id"], "Kitchen closed", manager.id)["transfer"]

    assert result["status"] == StockTransfer.Status.CANCELLED
    assert stock_of(flour) == Decimal("100")
    assert stock_of(sugar) == Decimal("40")

    restored = StockTransaction.objects.filter(reference_type="transfer_cancellation")
    assert restored.count() == 2
    assert set(restored.values_list("transaction_type", flat=True)) == {TransactionType.ADJUSTMENT}


def test_closed_transfer_cannot_move_again(transfer, manager):
    StockTransferService.receive(transfer["id"], manager.id)

    with pytest.raises(ConflictError):
        StockTransferService.receive(transfer["id"], manager.id)
    with pytest.raises(ConflictError):
        StockTransferService.cancel(transfer["id"], "", manager.id)
    with pytest.raises(ConflictError):
        StockTransferService.dispatch(transfer["id"], manager.id)


def test_list_filters_by_status(transfer, manager):
    StockTransferService.dispatch(transfer["id"], manager.id)

    assert StockTransferService.list(status="in_transit")["pagination"]["total_items"] == 1
    assert StockTransferService.list(status="pending")["pagination"]["total_items"] == 0


def test_get_unknown_transfer():
    with pytest.raises(NotFoundError):
        StockTransferService.get(12345)
