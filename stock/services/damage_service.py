"""
Damaged Stock Service - wastage reports

reported -> approved -> written_off
reported -> rejected (stock restored)
"""
import logging
from typing import Dict, Any

from django.utils import timezone

from stock.models import (
    Ingredient, DamagedStock, StockTransaction, DocumentSequence, TransactionType,
)
from stock.references import DamageRef
from .base_service import (
    BaseService, success_response, paginate_queryset, atomic_operation,
    ValidationError, NotFoundError, ConflictError,
    parse_quantity, round_decimal, require_user, append_note, to_date, iso,
)
from .ledger_service import StockLedgerService
from .sequence_service import SequenceService

logger = logging.getLogger(__name__)


class DamagedStockService(BaseService):
    model = DamagedStock

    Status = DamagedStock.Status

    @classmethod
    def serialize(cls, damage: DamagedStock) -> Dict[str, Any]:
        return {
            "id": damage.id,
            "uuid": str(damage.uuid),
            "damage_number": damage.damage_number,
            "ingredient_id": damage.ingredient_id,
            "ingredient_name": damage.ingredient.name,
            "quantity": str(damage.quantity),
            "unit": damage.unit,
            "damage_type": damage.damage_type,
            "damage_reason": damage.damage_reason,
            "damage_date": iso(damage.damage_date),
            "unit_cost": str(damage.unit_cost),
            "total_loss": str(damage.total_loss),
            "batch_number": damage.batch_number,
            "location": damage.location,
            "status": damage.status,
            "status_display": damage.get_status_display(),
            "disposal_method": damage.disposal_method,
            "disposal_date": iso(damage.disposal_date),
            "reported_by_id": damage.reported_by_id,
            "approved_by_id": damage.approved_by_id,
            "notes": damage.notes,
            "stock_transaction_id": damage.stock_transaction_id,
            "reversal_transaction_id": damage.reversal_transaction_id,
            "created_at": iso(damage.created_at),
        }

    @classmethod
    def list(cls, page: int = 1, per_page: int = 20, status: str = None,
             damage_type: str = None, ingredient_id: int = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("ingredient")

        if status:
            queryset = queryset.filter(status=status)
        if damage_type:
            queryset = queryset.filter(damage_type=damage_type)
        if ingredient_id:
            queryset = queryset.filter(ingredient_id=ingredient_id)

        damages, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "damages": [cls.serialize(d) for d in damages],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, damage_id: int) -> Dict[str, Any]:
        damage = cls.get_by_id(damage_id)
        if not damage:
            raise NotFoundError("Damage report", damage_id)
        return success_response({"damage": cls.serialize(damage)})

    @classmethod
    def _lock(cls, damage_id: int, allowed: tuple, action: str) -> DamagedStock:
        damage = cls.lock_or_404(damage_id, "Damage report")
        if damage.status not in allowed:
            raise ConflictError(
                f"Cannot {action} damage report. Current status: {damage.status}",
                {"status": damage.status}
            )
        return damage

    @classmethod
    @atomic_operation
    def report(cls,
               ingredient_id: int,
               quantity: Any,
               damage_type: str,
               damage_reason: str,
               reported_by_id: int,
               damage_date: Any = None,
               batch_number: str = "",
               location: str = "",
               notes: str = "") -> Dict[str, Any]:
        quantity = parse_quantity(quantity)
        if damage_type not in DamagedStock.DamageType.values:
            raise ValidationError(
                f"Invalid damage type. Valid: {DamagedStock.DamageType.values}", "damage_type"
            )
        if not damage_reason:
            raise ValidationError("Damage reason is required", "damage_reason")
        require_user(reported_by_id, "reported_by_id")

        ingredient = Ingredient.objects.filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)

        damage = cls.model.objects.create(
            damage_number=SequenceService.next_number(DocumentSequence.DocumentType.DAMAGE),
            ingredient=ingredient,
            quantity=quantity,
            unit=ingredient.unit,
            damage_type=damage_type,
            damage_reason=damage_reason,
            damage_date=to_date(damage_date, "damage_date") or timezone.localdate(),
            unit_cost=ingredient.unit_cost,
            total_loss=round_decimal(quantity * ingredient.unit_cost),
            batch_number=batch_number or "",
            location=location or ingredient.storage_location,
            reported_by_id=reported_by_id,
            notes=notes or "",
        )

        damage.stock_transaction = StockLedgerService.record_movement(
            ingredient.id,
            -quantity,
            TransactionType.DAMAGE,
            reported_by_id,
            reference=DamageRef(id=damage.id, number=damage.damage_number),
            unit_cost=ingredient.unit_cost,
            from_location=damage.location,
            reason=f"{damage.get_damage_type_display()}: {damage_reason}"[:255],
            notes=notes,
            batch_number=batch_number,
        )
        damage.save(update_fields=["stock_transaction", "updated_at"])

        logger.info(f"Damage {damage.damage_number} reported: {quantity} {ingredient.unit} of {ingredient.name}")

        return success_response({"damage": cls.serialize(damage)}, "Damage reported")

    @classmethod
    @atomic_operation
    def approve(cls,
                damage_id: int,
                approved_by_id: int,
                disposal_method: str = "",
                disposal_date: Any = None,
                notes: str = "") -> Dict[str, Any]:
        require_user(approved_by_id, "approved_by_id")
        damage = cls._lock(damage_id, (cls.Status.REPORTED,), "approve")

        now = timezone.now()
        damage.status = cls.Status.APPROVED
        damage.approved_by_id = approved_by_id
        damage.disposal_method = disposal_method or damage.disposal_method
        damage.disposal_date = to_date(disposal_date, "disposal_date") or damage.disposal_date
        damage.notes = append_note(damage.notes, notes)
        damage.save(update_fields=[
            "status", "approved_by", "disposal_method", "disposal_date", "notes", "updated_at"
        ])

        entry = damage.stock_transaction
        if entry:
            entry.status = StockTransaction.Status.APPROVED
            entry.approved_by_id = approved_by_id
            entry.approved_at = now
            entry.save(update_fields=["status", "approved_by", "approved_at"])

        return success_response({"damage": cls.serialize(damage)}, "Damage approved")

    @classmethod
    @atomic_operation
    def write_off(cls, damage_id: int, user_id: int, disposal_date: Any = None,
                  notes: str = "") -> Dict[str, Any]:
        require_user(user_id, "user_id")
        damage = cls._lock(damage_id, (cls.Status.APPROVED,), "write off")

        damage.status = cls.Status.WRITTEN_OFF
        damage.disposal_date = (
            to_date(disposal_date, "disposal_date") or damage.disposal_date or timezone.localdate()
        )
        damage.notes = append_note(damage.notes, notes)
        damage.save(update_fields=["status", "disposal_date", "notes", "updated_at"])

        return success_response({"damage": cls.serialize(damage)}, "Damage written off")

    @classmethod
    @atomic_operation
    def reject(cls, damage_id: int, user_id: int, reason: str) -> Dict[str, Any]:
        """Reject a report; the deducted quantity is restored with an adjustment entry."""
        if not reason:
            raise ValidationError("Rejection reason is required", "reason")
        require_user(user_id, "user_id")
        damage = cls._lock(damage_id, (cls.Status.REPORTED,), "reject")

        damage.reversal_transaction = StockLedgerService.record_movement(
            damage.ingredient_id,
            damage.quantity,
            TransactionType.ADJUSTMENT,
            user_id,
            reference=DamageRef(id=damage.id, number=damage.damage_number),
            unit_cost=damage.unit_cost,
            to_location=damage.location,
            reason=f"Damage report {damage.damage_number} rejected",
            notes=reason,
            batch_number=damage.batch_number,
        )

        damage.status = cls.Status.REJECTED
        damage.notes = append_note(damage.notes, f"Rejected: {reason}")
        damage.save(update_fields=["status", "reversal_transaction", "notes", "updated_at"])

        entry = damage.stock_transaction
        if entry:
            entry.status = StockTransaction.Status.REJECTED
            entry.save(update_fields=["status"])

        return success_response({"damage": cls.serialize(damage)}, "Damage report rejected")
