"""
Stock Reconciliation Service - physical counts against the ledger

in_progress -> completed -> approved
in_progress | completed -> cancelled
"""
import logging
from typing import Dict, Any, List
from decimal import Decimal
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from stock.models import (
    Ingredient, StockReconciliation, StockReconciliationItem,
    DocumentSequence, TransactionType,
)
from stock.references import ReconciliationRef
from .base_service import (
    BaseService, success_response, paginate_queryset, atomic_operation,
    ValidationError, NotFoundError, ConflictError,
    parse_quantity, round_decimal, require_user, append_note, stock_setting,
    to_date, iso,
)
from .ledger_service import StockLedgerService
from .sequence_service import SequenceService

logger = logging.getLogger(__name__)


class StockReconciliationService(BaseService):
    model = StockReconciliation

    Status = StockReconciliation.Status

    @classmethod
    def epsilon(cls) -> Decimal:
        return Decimal(str(stock_setting("VARIANCE_EPSILON")))

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize_item(cls, item: StockReconciliationItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "system_stock": str(item.system_stock),
            "physical_stock": str(item.physical_stock),
            "difference": str(item.difference),
            "unit": item.unit,
            "unit_cost": str(item.unit_cost),
            "value_difference": str(item.value_difference),
            "notes": item.notes,
            "adjustment_made": item.adjustment_made,
            "stock_transaction_id": item.stock_transaction_id,
        }

    @classmethod
    def serialize(cls, reconciliation: StockReconciliation, include_items: bool = False) -> Dict[str, Any]:
        data = {
            "id": reconciliation.id,
            "uuid": str(reconciliation.uuid),
            "reconciliation_number": reconciliation.reconciliation_number,
            "reconciliation_date": iso(reconciliation.reconciliation_date),
            "location": reconciliation.location,
            "status": reconciliation.status,
            "status_display": reconciliation.get_status_display(),
            "performed_by_id": reconciliation.performed_by_id,
            "approved_by_id": reconciliation.approved_by_id,
            "total_items_counted": reconciliation.total_items_counted,
            "total_discrepancies": reconciliation.total_discrepancies,
            "total_value_difference": str(reconciliation.total_value_difference),
            "notes": reconciliation.notes,
            "started_at": iso(reconciliation.started_at),
            "completed_at": iso(reconciliation.completed_at),
            "approved_at": iso(reconciliation.approved_at),
            "cancelled_at": iso(reconciliation.cancelled_at),
        }

        if include_items:
            data["items"] = [
                cls.serialize_item(item)
                for item in reconciliation.items.select_related("ingredient").order_by("ingredient__name", "id")
            ]

        return data

    # ==================== LIST & GET ====================

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             status: str = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if status:
            queryset = queryset.filter(status=status)
        if date_from:
            queryset = queryset.filter(reconciliation_date__gte=to_date(date_from, "date_from"))
        if date_to:
            queryset = queryset.filter(reconciliation_date__lte=to_date(date_to, "date_to"))

        reconciliations, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "reconciliations": [cls.serialize(r) for r in reconciliations],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, reconciliation_id: int) -> Dict[str, Any]:
        reconciliation = cls.get_by_id(reconciliation_id)
        if not reconciliation:
            raise NotFoundError("Reconciliation", reconciliation_id)

        return success_response({
            "reconciliation": cls.serialize(reconciliation, include_items=True)
        })

    @classmethod
    def get_active(cls) -> Dict[str, Any]:
        reconciliation = cls.model.objects.filter(status=cls.Status.IN_PROGRESS).first()
        return success_response({
            "reconciliation": cls.serialize(reconciliation, include_items=True) if reconciliation else None
        })

    # ==================== WORKFLOW ====================

    @classmethod
    @atomic_operation
    def start(cls, performed_by_id: int, location: str = None, notes: str = "") -> Dict[str, Any]:
        """Open a count with a snapshot of every active ingredient."""
        require_user(performed_by_id, "performed_by_id")

        existing = cls.model.objects.filter(status=cls.Status.IN_PROGRESS).first()
        if existing:
            raise ConflictError(
                f"Reconciliation {existing.reconciliation_number} is already in progress",
                {"reconciliation_id": existing.id}
            )

        try:
            with transaction.atomic():
                reconciliation = cls.model.objects.create(
                    reconciliation_number=SequenceService.next_number(
                        DocumentSequence.DocumentType.RECONCILIATION
                    ),
                    location=location or stock_setting("DEFAULT_RECONCILIATION_LOCATION"),
                    performed_by_id=performed_by_id,
                    notes=notes or "",
                )
        except IntegrityError:
            raise ConflictError("Another reconciliation is already in progress")

        StockReconciliationItem.objects.bulk_create([
            StockReconciliationItem(
                reconciliation=reconciliation,
                ingredient=ingredient,
                system_stock=ingredient.current_stock,
                physical_stock=ingredient.current_stock,
                difference=Decimal("0"),
                unit=ingredient.unit,
                unit_cost=ingredient.unit_cost,
            )
            for ingredient in Ingredient.objects.select_for_update().filter(is_active=True).order_by("id")
        ])

        logger.info(f"Reconciliation {reconciliation.reconciliation_number} started at {reconciliation.location}")

        return success_response({
            "reconciliation": cls.serialize(reconciliation, include_items=True)
        }, "Reconciliation started")

    @classmethod
    @atomic_operation
    def update_items(cls, reconciliation_id: int, items: List[Dict]) -> Dict[str, Any]:
        reconciliation = cls.lock_or_404(reconciliation_id, "Reconciliation")

        if reconciliation.status != cls.Status.IN_PROGRESS:
            raise ConflictError(
                f"Counts can only be entered while in progress. Current status: {reconciliation.status}",
                {"status": reconciliation.status}
            )
        if not items:
            raise ValidationError("No items to update", "items")

        updated = []
        for row in items:
            item = reconciliation.items.select_related("ingredient").filter(id=row.get("id")).first()
            if not item:
                raise NotFoundError("Reconciliation item", row.get("id"))

            item.physical_stock = parse_quantity(
                row.get("physical_stock"), "physical_stock", allow_zero=True
            )
            item.difference = item.physical_stock - item.system_stock
            item.value_difference = round_decimal(item.difference * item.unit_cost)
            if row.get("notes") is not None:
                item.notes = row["notes"]
            item.save(update_fields=[
                "physical_stock", "difference", "value_difference", "notes", "updated_at"
            ])
            updated.append(item)

        return success_response({
            "items": [cls.serialize_item(item) for item in updated]
        }, f"{len(updated)} item(s) updated")

    @classmethod
    @atomic_operation
    def submit(cls, reconciliation_id: int) -> Dict[str, Any]:
        reconciliation = cls.lock_or_404(reconciliation_id, "Reconciliation")

        if reconciliation.status != cls.Status.IN_PROGRESS:
            raise ConflictError(
                f"Only in-progress reconciliations can be submitted. Current status: {reconciliation.status}",
                {"status": reconciliation.status}
            )

        epsilon = cls.epsilon()
        items = list(reconciliation.items.all())

        reconciliation.total_items_counted = len(items)
        reconciliation.total_discrepancies = sum(
            1 for item in items if abs(item.difference) > epsilon
        )
        reconciliation.total_value_difference = round_decimal(sum(
            (item.value_difference for item in items), Decimal("0")
        ))
        reconciliation.status = cls.Status.COMPLETED
        reconciliation.completed_at = timezone.now()
        reconciliation.save(update_fields=[
            "total_items_counted", "total_discrepancies", "total_value_difference",
            "status", "completed_at", "updated_at",
        ])

        return success_response({
            "reconciliation": cls.serialize(reconciliation, include_items=True)
        }, "Reconciliation submitted for approval")

    @classmethod
    @atomic_operation
    def approve(cls, reconciliation_id: int, approved_by_id: int) -> Dict[str, Any]:
        """Bring every significantly miscounted ingredient to its physical count; all or nothing."""
        require_user(approved_by_id, "approved_by_id")
        reconciliation = cls.lock_or_404(reconciliation_id, "Reconciliation")

        if reconciliation.status != cls.Status.COMPLETED:
            raise ConflictError(
                f"Only completed reconciliations can be approved. Current status: {reconciliation.status}",
                {"status": reconciliation.status}
            )

        epsilon = cls.epsilon()
        reference = ReconciliationRef(
            id=reconciliation.id, number=reconciliation.reconciliation_number
        )
        adjustments = 0

        for item in reconciliation.items.select_related("ingredient").order_by("ingredient_id"):
            if abs(item.difference) <= epsilon:
                continue

            ingredient = StockLedgerService.lock_ingredient(item.ingredient_id)
            delta = item.physical_stock - ingredient.current_stock

            if ingredient.current_stock != item.system_stock:
                logger.warning(
                    f"{ingredient.name} moved from {item.system_stock} to {ingredient.current_stock} "
                    f"during {reconciliation.reconciliation_number}; setting counted stock {item.physical_stock}"
                )

            if abs(delta) <= epsilon:
                continue

            entry = StockLedgerService.record_movement(
                item.ingredient_id,
                delta,
                TransactionType.ADJUSTMENT,
                approved_by_id,
                reference=reference,
                unit_cost=item.unit_cost,
                to_location=reconciliation.location,
                reason=f"Reconciliation {reconciliation.reconciliation_number}",
                notes=item.notes or "Stock count correction",
            )

            item.adjustment_made = True
            item.stock_transaction = entry
            item.save(update_fields=["adjustment_made", "stock_transaction", "updated_at"])
            adjustments += 1

        reconciliation.status = cls.Status.APPROVED
        reconciliation.approved_by_id = approved_by_id
        reconciliation.approved_at = timezone.now()
        reconciliation.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

        logger.info(
            f"Reconciliation {reconciliation.reconciliation_number} approved with {adjustments} adjustment(s)"
        )

        return success_response({
            "reconciliation": cls.serialize(reconciliation, include_items=True),
            "adjustments": adjustments,
        }, "Reconciliation approved")

    @classmethod
    @atomic_operation
    def cancel(cls, reconciliation_id: int, reason: str = "") -> Dict[str, Any]:
        reconciliation = cls.lock_or_404(reconciliation_id, "Reconciliation")

        if reconciliation.status not in (cls.Status.IN_PROGRESS, cls.Status.COMPLETED):
            raise ConflictError(
                f"Reconciliation cannot be cancelled. Current status: {reconciliation.status}",
                {"status": reconciliation.status}
            )

        reconciliation.status = cls.Status.CANCELLED
        reconciliation.cancelled_at = timezone.now()
        reconciliation.notes = append_note(
            reconciliation.notes, f"Cancelled: {reason}" if reason else "Cancelled"
        )
        reconciliation.save(update_fields=["status", "cancelled_at", "notes", "updated_at"])

        return success_response({
            "reconciliation": cls.serialize(reconciliation)
        }, "Reconciliation cancelled")
