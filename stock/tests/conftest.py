from decimal import Decimal

import pytest

from stock.models import Ingredient
from stock.services import IngredientService


@pytest.fixture
def user(django_user_model):
    return django_user_model.objects.create_user(username="cashier", password="secret")


@pytest.fixture
def manager(django_user_model):
    return django_user_model.objects.create_user(username="manager", password="secret", is_staff=True)


@pytest.fixture
def make_ingredient(db, user):
    def _make(name="Flour", stock="0", unit="kg", unit_cost="10", **fields):
        result = IngredientService.create(
            name=name,
            unit=unit,
            performed_by_id=user.id,
            opening_stock=stock,
            unit_cost=unit_cost,
            **fields
        )
        return Ingredient.objects.get(id=result["ingredient"]["id"])
    return _make


@pytest.fixture
def flour(make_ingredient):
    return make_ingredient("Flour", stock="100")


@pytest.fixture
def sugar(make_ingredient):
    return make_ingredient("Sugar", stock="40", unit_cost="2.5")


def stock_of(ingredient) -> Decimal:
    ingredient.refresh_from_db()
    return ingredient.current_stock
