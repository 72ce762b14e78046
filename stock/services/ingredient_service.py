"""
Ingredient Service - catalogue and the current_stock projection.
"""
import logging
from typing import Dict, Any
from decimal import Decimal

from django.db.models import F, Q

from stock.models import Ingredient, StockTransaction, TransactionType
from stock.references import ManualRef
from .base_service import (
    BaseService, success_response, paginate_queryset, atomic_operation,
    ValidationError, parse_quantity, to_date, iso,
)
from .ledger_service import StockLedgerService

logger = logging.getLogger(__name__)


class IngredientService(BaseService):
    model = Ingredient

    EDITABLE_FIELDS = (
        "name", "description", "unit", "unit_cost", "reorder_level",
        "reorder_quantity", "supplier", "storage_location", "expiry_date",
        "is_active",
    )
    DECIMAL_FIELDS = ("unit_cost", "reorder_level", "reorder_quantity")

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize(cls, ingredient: Ingredient) -> Dict[str, Any]:
        return {
            "id": ingredient.id,
            "uuid": str(ingredient.uuid),
            "name": ingredient.name,
            "description": ingredient.description,
            "unit": ingredient.unit,
            "current_stock": str(ingredient.current_stock),
            "unit_cost": str(ingredient.unit_cost),
            "stock_value": str(ingredient.current_stock * ingredient.unit_cost),
            "reorder_level": str(ingredient.reorder_level),
            "reorder_quantity": str(ingredient.reorder_quantity),
            "is_low_stock": ingredient.current_stock <= ingredient.reorder_level,
            "supplier": ingredient.supplier,
            "storage_location": ingredient.storage_location,
            "expiry_date": iso(ingredient.expiry_date),
            "is_active": ingredient.is_active,
            "created_at": iso(ingredient.created_at),
            "updated_at": iso(ingredient.updated_at),
        }

    # ==================== LIST & GET ====================

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             low_stock_only: bool = False,
             active_only: bool = True) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if active_only:
            queryset = queryset.filter(is_active=True)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(supplier__icontains=search)
            )

        if low_stock_only:
            queryset = queryset.filter(current_stock__lte=F("reorder_level"))

        ingredients, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "ingredients": [cls.serialize(i) for i in ingredients],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, ingredient_id: int) -> Dict[str, Any]:
        ingredient = cls.get_or_404(ingredient_id)
        return success_response({"ingredient": cls.serialize(ingredient)})

    # ==================== CREATE / UPDATE ====================

    @classmethod
    def _clean_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {}
        for field, value in data.items():
            if field in cls.DECIMAL_FIELDS:
                cleaned[field] = parse_quantity(value, field, allow_zero=True)
            elif field == "expiry_date":
                cleaned[field] = to_date(value, field)
            elif field in ("name", "unit"):
                value = (value or "").strip()
                if not value:
                    raise ValidationError(f"{field} is required", field)
                cleaned[field] = value
            elif field == "is_active":
                cleaned[field] = bool(value)
            else:
                cleaned[field] = value or ""
        return cleaned

    @classmethod
    @atomic_operation
    def create(cls,
               name: str,
               unit: str,
               performed_by_id: int = None,
               opening_stock: Any = None,
               **fields) -> Dict[str, Any]:
        """Create an ingredient; opening stock is posted to the ledger as an adjustment."""
        if "current_stock" in fields:
            raise ValidationError(
                "current_stock is derived from the ledger; use opening_stock", "current_stock"
            )
        unknown = set(fields) - set(cls.EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}")

        data = cls._clean_fields({"name": name, "unit": unit, **fields})
        ingredient = cls.model.objects.create(**data)

        if opening_stock is not None:
            opening_stock = parse_quantity(opening_stock, "opening_stock", allow_zero=True)
            if opening_stock > 0:
                StockLedgerService.record_movement(
                    ingredient.id,
                    opening_stock,
                    TransactionType.ADJUSTMENT,
                    performed_by_id,
                    reference=ManualRef(),
                    to_location=ingredient.storage_location,
                    reason="Opening balance",
                )
                ingredient.refresh_from_db()

        logger.info(f"Ingredient created: {ingredient.name} (#{ingredient.id})")

        return success_response({
            "ingredient": cls.serialize(ingredient)
        }, "Ingredient created")

    @classmethod
    @atomic_operation
    def update(cls, ingredient_id: int, **fields) -> Dict[str, Any]:
        if "current_stock" in fields:
            raise ValidationError(
                "current_stock cannot be edited directly; post an adjustment instead",
                "current_stock"
            )
        unknown = set(fields) - set(cls.EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}")

        ingredient = cls.lock_or_404(ingredient_id, "Ingredient")

        data = cls._clean_fields(fields)
        for field, value in data.items():
            setattr(ingredient, field, value)

        if data:
            ingredient.save(update_fields=[*data.keys(), "updated_at"])

        return success_response({
            "ingredient": cls.serialize(ingredient)
        }, "Ingredient updated")

    # ==================== VERIFICATION ====================

    @classmethod
    def verify_projection(cls, ingredient_id: int) -> Dict[str, Any]:
        """
        Walk the ledger chain of one ingredient and compare it with current_stock.

        The chain starts at zero; every entry must continue from the
        previous entry's new_stock and balance on its own.
        """
        ingredient = cls.get_or_404(ingredient_id)

        problems = []
        expected_previous = Decimal("0")
        entries = StockTransaction.objects.filter(
            ingredient_id=ingredient.id
        ).order_by("id").values_list(
            "transaction_number", "quantity", "previous_stock", "new_stock"
        )

        count = 0
        for number, quantity, previous_stock, new_stock in entries.iterator():
            count += 1
            if previous_stock != expected_previous:
                problems.append(
                    f"{number}: previous_stock {previous_stock} does not continue from {expected_previous}"
                )
            if new_stock != previous_stock + quantity:
                problems.append(
                    f"{number}: {previous_stock} + {quantity} != {new_stock}"
                )
            expected_previous = new_stock

        if expected_previous != ingredient.current_stock:
            problems.append(
                f"current_stock {ingredient.current_stock} does not match ledger balance {expected_previous}"
            )

        if problems:
            logger.error(f"Ledger drift on {ingredient.name} (#{ingredient.id}): {problems}")

        return {
            "ingredient_id": ingredient.id,
            "ingredient": ingredient.name,
            "consistent": not problems,
            "current_stock": str(ingredient.current_stock),
            "ledger_stock": str(expected_previous),
            "entries": count,
            "problems": problems,
        }
