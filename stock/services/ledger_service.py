"""
Stock Ledger Service - the single writer of stock movements.

Every change to Ingredient.current_stock goes through
StockLedgerService.record_movement, which appends an immutable
StockTransaction and updates the projection in the same transaction.
"""
import logging
from typing import Dict, Any, Optional, List
from decimal import Decimal
from datetime import date

from django.db.models import Count, Sum
from django.utils import timezone

from stock.models import (
    Ingredient, StockTransaction, DocumentSequence, TransactionType,
    DEDUCTION_TYPES, ADDITION_TYPES,
)
from stock.references import Reference, PurchaseRef, ManualRef, SaleRef
from .base_service import (
    BaseService, success_response, paginate_queryset, atomic_operation,
    ValidationError, NotFoundError, InsufficientStockError,
    parse_quantity, round_decimal, require_user, to_date, iso,
)
from .sequence_service import SequenceService

logger = logging.getLogger(__name__)


class StockLedgerService:

    ADJUSTMENT_TYPES = ("increase", "decrease")

    @classmethod
    def validate_movement(cls, quantity: Any, transaction_type: str) -> Decimal:
        if transaction_type not in TransactionType.values:
            raise ValidationError(
                f"Invalid transaction type. Valid: {TransactionType.values}",
                "transaction_type"
            )

        quantity = parse_quantity(quantity, "quantity", allow_negative=True)

        if transaction_type in DEDUCTION_TYPES and quantity > 0:
            raise ValidationError(
                f"{transaction_type} must deduct stock (negative quantity)", "quantity"
            )
        if transaction_type in ADDITION_TYPES and quantity < 0:
            raise ValidationError(
                f"{transaction_type} must add stock (positive quantity)", "quantity"
            )
        return quantity

    @classmethod
    def lock_ingredient(cls, ingredient_id: int) -> Ingredient:
        ingredient = Ingredient.objects.select_for_update().filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)
        return ingredient

    @classmethod
    @atomic_operation
    def record_movement(cls,
                        ingredient_id: int,
                        quantity: Any,
                        transaction_type: str,
                        performed_by_id: int,
                        reference: Optional[Reference] = None,
                        unit_cost: Any = None,
                        from_location: str = "",
                        to_location: str = "",
                        reason: str = "",
                        notes: str = "",
                        batch_number: str = "",
                        expiry_date: Any = None,
                        status: str = StockTransaction.Status.COMPLETED) -> StockTransaction:
        quantity = cls.validate_movement(quantity, transaction_type)
        require_user(performed_by_id, "performed_by_id")

        ingredient = cls.lock_ingredient(ingredient_id)
        previous_stock = ingredient.current_stock
        new_stock = previous_stock + quantity

        if new_stock < 0:
            logger.warning(
                f"Rejected {transaction_type} of {quantity} on {ingredient.name}: only {previous_stock} available"
            )
            raise InsufficientStockError(ingredient.name, abs(quantity), previous_stock)

        if unit_cost is None:
            unit_cost = ingredient.unit_cost
        else:
            unit_cost = parse_quantity(unit_cost, "unit_cost", allow_zero=True)

        reference_fields = reference.as_fields() if reference else {}

        entry = StockTransaction.objects.create(
            transaction_number=SequenceService.next_number(
                DocumentSequence.DocumentType.TRANSACTION
            ),
            transaction_type=transaction_type,
            ingredient=ingredient,
            quantity=quantity,
            unit=ingredient.unit,
            previous_stock=previous_stock,
            new_stock=new_stock,
            unit_cost=unit_cost,
            total_cost=round_decimal(abs(quantity) * unit_cost),
            from_location=from_location or "",
            to_location=to_location or "",
            reason=(reason or "")[:255],
            notes=notes or "",
            batch_number=batch_number or "",
            expiry_date=to_date(expiry_date, "expiry_date"),
            status=status,
            performed_by_id=performed_by_id,
            **reference_fields,
        )

        Ingredient.objects.filter(id=ingredient.id).update(
            current_stock=new_stock, updated_at=timezone.now()
        )

        logger.info(
            f"{entry.transaction_number} {transaction_type} {quantity:+} {ingredient.unit} "
            f"{ingredient.name}: {previous_stock} -> {new_stock}"
        )
        return entry

    @classmethod
    @atomic_operation
    def receive(cls,
                ingredient_id: int,
                quantity: Any,
                performed_by_id: int,
                unit_cost: Any = None,
                supplier_ref: str = "",
                reference_number: str = "",
                batch_number: str = "",
                expiry_date: Any = None,
                to_location: str = "",
                notes: str = "") -> Dict[str, Any]:
        """Purchase receipt. A given unit_cost becomes the ingredient's current cost."""
        quantity = parse_quantity(quantity)
        if unit_cost is not None:
            unit_cost = parse_quantity(unit_cost, "unit_cost", allow_zero=True)

        entry = cls.record_movement(
            ingredient_id,
            quantity,
            TransactionType.PURCHASE,
            performed_by_id,
            reference=PurchaseRef(number=reference_number or supplier_ref),
            unit_cost=unit_cost,
            to_location=to_location,
            reason=f"Received from {supplier_ref}" if supplier_ref else "Stock received",
            notes=notes,
            batch_number=batch_number,
            expiry_date=expiry_date,
        )

        if unit_cost is not None:
            Ingredient.objects.filter(id=ingredient_id).update(unit_cost=unit_cost)

        return success_response({
            "transaction": StockTransactionService.serialize(entry),
        }, f"Received {quantity} {entry.unit}")

    @classmethod
    @atomic_operation
    def consume(cls,
                ingredient_id: int,
                quantity: Any,
                performed_by_id: int,
                reference: Optional[Reference] = None,
                notes: str = "") -> Dict[str, Any]:
        quantity = parse_quantity(quantity)

        entry = cls.record_movement(
            ingredient_id,
            -quantity,
            TransactionType.SALE_CONSUMPTION,
            performed_by_id,
            reference=reference or SaleRef(),
            reason="Sale consumption",
            notes=notes,
        )

        return success_response({
            "transaction": StockTransactionService.serialize(entry),
        }, f"Consumed {quantity} {entry.unit}")

    @classmethod
    @atomic_operation
    def adjust(cls,
               ingredient_id: int,
               adjustment_type: str,
               quantity: Any,
               reason: str,
               performed_by_id: int,
               location: str = "",
               notes: str = "") -> Dict[str, Any]:
        if adjustment_type not in cls.ADJUSTMENT_TYPES:
            raise ValidationError(
                f"Invalid adjustment type. Valid: {list(cls.ADJUSTMENT_TYPES)}",
                "adjustment_type"
            )
        if not reason or not str(reason).strip():
            raise ValidationError("Adjustment reason is required", "reason")

        quantity = parse_quantity(quantity)
        delta = quantity if adjustment_type == "increase" else -quantity

        entry = cls.record_movement(
            ingredient_id,
            delta,
            TransactionType.ADJUSTMENT,
            performed_by_id,
            reference=ManualRef(),
            from_location=location if delta < 0 else "",
            to_location=location if delta > 0 else "",
            reason=str(reason).strip(),
            notes=notes,
        )

        return success_response({
            "transaction": StockTransactionService.serialize(entry),
        }, f"Stock adjusted: {delta:+} {entry.unit}")


class StockTransactionService(BaseService):
    """Read side of the ledger"""

    model = StockTransaction

    @classmethod
    def serialize(cls, entry: StockTransaction) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "uuid": str(entry.uuid),
            "transaction_number": entry.transaction_number,
            "transaction_type": entry.transaction_type,
            "transaction_type_display": entry.get_transaction_type_display(),
            "ingredient_id": entry.ingredient_id,
            "quantity": str(entry.quantity),
            "unit": entry.unit,
            "previous_stock": str(entry.previous_stock),
            "new_stock": str(entry.new_stock),
            "unit_cost": str(entry.unit_cost),
            "total_cost": str(entry.total_cost),
            "from_location": entry.from_location,
            "to_location": entry.to_location,
            "reference_type": entry.reference_type,
            "reference_id": entry.reference_id,
            "reference_number": entry.reference_number,
            "reason": entry.reason,
            "notes": entry.notes,
            "batch_number": entry.batch_number,
            "expiry_date": iso(entry.expiry_date),
            "status": entry.status,
            "performed_by_id": entry.performed_by_id,
            "approved_by_id": entry.approved_by_id,
            "approved_at": iso(entry.approved_at),
            "created_at": iso(entry.created_at),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             ingredient_id: int = None,
             transaction_type: str = None,
             reference_type: str = None,
             reference_id: int = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if ingredient_id:
            queryset = queryset.filter(ingredient_id=ingredient_id)

        if transaction_type:
            if transaction_type not in TransactionType.values:
                raise ValidationError(
                    f"Invalid transaction type. Valid: {TransactionType.values}",
                    "transaction_type"
                )
            queryset = queryset.filter(transaction_type=transaction_type)

        if reference_type:
            queryset = queryset.filter(reference_type=reference_type)

        if reference_id:
            queryset = queryset.filter(reference_id=reference_id)

        if date_from:
            queryset = queryset.filter(created_at__date__gte=to_date(date_from, "date_from"))

        if date_to:
            queryset = queryset.filter(created_at__date__lte=to_date(date_to, "date_to"))

        entries, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "transactions": [cls.serialize(e) for e in entries],
            "pagination": pagination,
            "types": [{"value": c[0], "label": c[1]} for c in TransactionType.choices],
        })

    @classmethod
    def get(cls, transaction_id: int) -> Dict[str, Any]:
        entry = cls.get_or_404(transaction_id)
        return success_response({"transaction": cls.serialize(entry)})

    @classmethod
    def get_by_reference(cls, reference_type: str, reference_id: int) -> List[StockTransaction]:
        return list(
            cls.model.objects.filter(
                reference_type=reference_type, reference_id=reference_id
            ).order_by("id")
        )

    @classmethod
    def movement_summary(cls,
                         ingredient_id: int = None,
                         date_from: date = None,
                         date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if ingredient_id:
            queryset = queryset.filter(ingredient_id=ingredient_id)
        if date_from:
            queryset = queryset.filter(created_at__date__gte=to_date(date_from, "date_from"))
        if date_to:
            queryset = queryset.filter(created_at__date__lte=to_date(date_to, "date_to"))

        rows = queryset.order_by().values("transaction_type").annotate(
            count=Count("id"),
            total_quantity=Sum("quantity"),
            total_cost=Sum("total_cost"),
        ).order_by("transaction_type")

        summary = {
            row["transaction_type"]: {
                "count": row["count"],
                "total_quantity": str(round_decimal(Decimal(str(row["total_quantity"] or 0)))),
                "total_cost": str(round_decimal(Decimal(str(row["total_cost"] or 0)))),
            }
            for row in rows
        }
        net_change = sum(
            (Decimal(row["total_quantity"]) for row in summary.values()), Decimal("0")
        )

        return success_response({
            "ingredient_id": ingredient_id,
            "summary": summary,
            "net_change": str(net_change),
        })
