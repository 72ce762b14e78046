from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from django.db import connection, connections

from stock.models import StockReconciliation, StockTransaction
from stock.services import (
    StockLedgerService, StockReconciliationService, IngredientService,
    InsufficientStockError, ConflictError,
)

from .conftest import stock_of

pytestmark = [
    pytest.mark.django_db(transaction=True),
    pytest.mark.skipif(
        not connection.features.has_select_for_update,
        reason="row locks need a database with SELECT ... FOR UPDATE",
    ),
]


def run_in_threads(func, count):
    def call(_):
        try:
            return func()
        finally:
            connections.close_all()

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(call, range(count)))


def test_concurrent_sales_never_oversell(make_ingredient, user):
    flour = make_ingredient("Flour", stock="10")

    def sell():
        try:
            StockLedgerService.consume(flour.id, "3", user.id)
            return True
        except InsufficientStockError:
            return False

    results = run_in_threads(sell, 8)

    assert results.count(True) == 3
    assert stock_of(flour) == Decimal("1")
    assert IngredientService.verify_projection(flour.id)["consistent"]


def test_concurrent_entries_get_unique_numbers(make_ingredient, user):
    flour = make_ingredient("Flour", stock="0")

    run_in_threads(lambda: StockLedgerService.receive(flour.id, "1", user.id), 10)

    numbers = list(StockTransaction.objects.filter(ingredient=flour).values_list("transaction_number", flat=True))
    assert len(numbers) == 10
    assert len(set(numbers)) == 10
    assert stock_of(flour) == Decimal("10")


def test_concurrent_starts_open_one_reconciliation(make_ingredient, user):
    flour = make_ingredient("Flour", stock="10")

    def start():
        try:
            return StockReconciliationService.start(user.id)["reconciliation"]["id"]
        except ConflictError:
            return None

    results = run_in_threads(start, 4)

    started = [r for r in results if r is not None]
    assert len(started) == 1
    assert StockReconciliation.objects.filter(status=StockReconciliation.Status.IN_PROGRESS).count() == 1
    reconciliation = StockReconciliation.objects.get(id=started[0])
    assert reconciliation.items.get().ingredient_id == flour.id
