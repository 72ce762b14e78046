from decimal import Decimal

import pytest
from django.contrib import admin

from stock.admin import IngredientAdmin
from stock.models import Ingredient
from stock.services import StockLedgerService, IngredientService

from .conftest import stock_of

pytestmark = pytest.mark.django_db


def test_admin_edit_keeps_stock_moved_by_the_ledger(rf, flour, user, manager):
    model_admin = IngredientAdmin(Ingredient, admin.site)
    request = rf.post("/admin/stock/ingredient/")
    request.user = manager

    loaded = Ingredient.objects.get(id=flour.id)
    StockLedgerService.consume(flour.id, "30", user.id)

    loaded.reorder_level = Decimal("15")
    model_admin.save_model(request, loaded, form=None, change=True)

    flour.refresh_from_db()
    assert flour.current_stock == Decimal("70")
    assert flour.reorder_level == Decimal("15")
    assert IngredientService.verify_projection(flour.id)["consistent"]


def test_admin_add_starts_at_zero(rf, manager):
    model_admin = IngredientAdmin(Ingredient, admin.site)
    request = rf.post("/admin/stock/ingredient/add/")
    request.user = manager

    ingredient = Ingredient(name="Salt", unit="kg")
    model_admin.save_model(request, ingredient, form=None, change=False)

    assert stock_of(ingredient) == Decimal("0")
