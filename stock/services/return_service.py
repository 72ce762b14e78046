"""
Stock Return Service - goods sent back to suppliers

pending -> approved -> shipped -> completed
pending | approved | shipped -> rejected (stock restored)
"""
import logging
from typing import Dict, Any

from django.utils import timezone

from stock.models import (
    Ingredient, StockReturn, StockTransaction, DocumentSequence, TransactionType,
)
from stock.references import ReturnRef
from .base_service import (
    BaseService, success_response, paginate_queryset, atomic_operation,
    ValidationError, NotFoundError, ConflictError,
    parse_quantity, round_decimal, require_user, append_note, to_date, iso,
)
from .ledger_service import StockLedgerService
from .sequence_service import SequenceService

logger = logging.getLogger(__name__)


class StockReturnService(BaseService):
    model = StockReturn

    Status = StockReturn.Status

    @classmethod
    def serialize(cls, stock_return: StockReturn) -> Dict[str, Any]:
        return {
            "id": stock_return.id,
            "uuid": str(stock_return.uuid),
            "return_number": stock_return.return_number,
            "ingredient_id": stock_return.ingredient_id,
            "ingredient_name": stock_return.ingredient.name,
            "quantity": str(stock_return.quantity),
            "unit": stock_return.unit,
            "return_reason": stock_return.return_reason,
            "return_description": stock_return.return_description,
            "return_date": iso(stock_return.return_date),
            "supplier_name": stock_return.supplier_name,
            "supplier_contact": stock_return.supplier_contact,
            "unit_cost": str(stock_return.unit_cost),
            "total_refund": str(stock_return.total_refund),
            "refund_status": stock_return.refund_status,
            "refund_date": iso(stock_return.refund_date),
            "original_purchase_reference": stock_return.original_purchase_reference,
            "batch_number": stock_return.batch_number,
            "status": stock_return.status,
            "status_display": stock_return.get_status_display(),
            "initiated_by_id": stock_return.initiated_by_id,
            "approved_by_id": stock_return.approved_by_id,
            "shipped_at": iso(stock_return.shipped_at),
            "notes": stock_return.notes,
            "stock_transaction_id": stock_return.stock_transaction_id,
            "reversal_transaction_id": stock_return.reversal_transaction_id,
            "created_at": iso(stock_return.created_at),
        }

    @classmethod
    def list(cls, page: int = 1, per_page: int = 20, status: str = None,
             ingredient_id: int = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("ingredient")

        if status:
            queryset = queryset.filter(status=status)
        if ingredient_id:
            queryset = queryset.filter(ingredient_id=ingredient_id)

        returns, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "returns": [cls.serialize(r) for r in returns],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, return_id: int) -> Dict[str, Any]:
        stock_return = cls.get_by_id(return_id)
        if not stock_return:
            raise NotFoundError("Return", return_id)
        return success_response({"return": cls.serialize(stock_return)})

    @classmethod
    def _lock(cls, return_id: int, allowed: tuple, action: str) -> StockReturn:
        stock_return = cls.lock_or_404(return_id, "Return")
        if stock_return.status not in allowed:
            raise ConflictError(
                f"Cannot {action} return. Current status: {stock_return.status}",
                {"status": stock_return.status}
            )
        return stock_return

    @classmethod
    @atomic_operation
    def initiate(cls,
                 ingredient_id: int,
                 quantity: Any,
                 return_reason: str,
                 initiated_by_id: int,
                 return_description: str = "",
                 return_date: Any = None,
                 supplier_name: str = "",
                 supplier_contact: str = "",
                 original_purchase_reference: str = "",
                 batch_number: str = "",
                 notes: str = "") -> Dict[str, Any]:
        """Record a supplier return; stock leaves immediately as a pending ledger entry."""
        quantity = parse_quantity(quantity)
        if return_reason not in StockReturn.ReturnReason.values:
            raise ValidationError(
                f"Invalid return reason. Valid: {StockReturn.ReturnReason.values}", "return_reason"
            )
        require_user(initiated_by_id, "initiated_by_id")

        ingredient = Ingredient.objects.filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)

        stock_return = cls.model.objects.create(
            return_number=SequenceService.next_number(DocumentSequence.DocumentType.RETURN),
            ingredient=ingredient,
            quantity=quantity,
            unit=ingredient.unit,
            return_reason=return_reason,
            return_description=return_description or "",
            return_date=to_date(return_date, "return_date") or timezone.localdate(),
            supplier_name=supplier_name or ingredient.supplier,
            supplier_contact=supplier_contact or "",
            unit_cost=ingredient.unit_cost,
            total_refund=round_decimal(quantity * ingredient.unit_cost),
            original_purchase_reference=original_purchase_reference or "",
            batch_number=batch_number or "",
            initiated_by_id=initiated_by_id,
            notes=notes or "",
        )

        reason = stock_return.get_return_reason_display()
        if return_description:
            reason = f"{reason}: {return_description}"

        stock_return.stock_transaction = StockLedgerService.record_movement(
            ingredient.id,
            -quantity,
            TransactionType.RETURN,
            initiated_by_id,
            reference=ReturnRef(id=stock_return.id, number=stock_return.return_number),
            unit_cost=ingredient.unit_cost,
            reason=reason[:255],
            notes=notes,
            batch_number=batch_number,
            status=StockTransaction.Status.PENDING,
        )
        stock_return.save(update_fields=["stock_transaction", "updated_at"])

        logger.info(f"Return {stock_return.return_number} initiated: {quantity} {ingredient.unit} of {ingredient.name}")

        return success_response({"return": cls.serialize(stock_return)}, "Return initiated")

    @classmethod
    @atomic_operation
    def approve(cls, return_id: int, approved_by_id: int, notes: str = "") -> Dict[str, Any]:
        require_user(approved_by_id, "approved_by_id")
        stock_return = cls._lock(return_id, (cls.Status.PENDING,), "approve")

        now = timezone.now()
        stock_return.status = cls.Status.APPROVED
        stock_return.refund_status = StockReturn.RefundStatus.APPROVED
        stock_return.approved_by_id = approved_by_id
        stock_return.notes = append_note(stock_return.notes, notes)
        stock_return.save(update_fields=["status", "refund_status", "approved_by", "notes", "updated_at"])

        entry = stock_return.stock_transaction
        if entry:
            entry.status = StockTransaction.Status.APPROVED
            entry.approved_by_id = approved_by_id
            entry.approved_at = now
            entry.save(update_fields=["status", "approved_by", "approved_at"])

        return success_response({"return": cls.serialize(stock_return)}, "Return approved")

    @classmethod
    @atomic_operation
    def ship(cls, return_id: int, user_id: int, notes: str = "") -> Dict[str, Any]:
        require_user(user_id, "user_id")
        stock_return = cls._lock(return_id, (cls.Status.APPROVED,), "ship")

        stock_return.status = cls.Status.SHIPPED
        stock_return.shipped_at = timezone.now()
        stock_return.notes = append_note(stock_return.notes, notes)
        stock_return.save(update_fields=["status", "shipped_at", "notes", "updated_at"])

        return success_response({"return": cls.serialize(stock_return)}, "Return shipped")

    @classmethod
    @atomic_operation
    def complete(cls,
                 return_id: int,
                 user_id: int,
                 actual_refund: Any = None,
                 refund_date: Any = None,
                 notes: str = "") -> Dict[str, Any]:
        require_user(user_id, "user_id")
        stock_return = cls._lock(return_id, (cls.Status.APPROVED, cls.Status.SHIPPED), "complete")

        if actual_refund is not None:
            stock_return.total_refund = parse_quantity(actual_refund, "actual_refund", allow_zero=True)

        stock_return.status = cls.Status.COMPLETED
        stock_return.refund_status = StockReturn.RefundStatus.REFUNDED
        stock_return.refund_date = to_date(refund_date, "refund_date") or timezone.localdate()
        stock_return.notes = append_note(stock_return.notes, notes)
        stock_return.save(update_fields=[
            "status", "refund_status", "refund_date", "total_refund", "notes", "updated_at"
        ])

        return success_response({"return": cls.serialize(stock_return)}, "Return completed")

    @classmethod
    @atomic_operation
    def reject(cls, return_id: int, user_id: int, reason: str) -> Dict[str, Any]:
        """Reject a return; the goods come back to stock as an adjustment entry."""
        if not reason:
            raise ValidationError("Rejection reason is required", "reason")
        require_user(user_id, "user_id")
        stock_return = cls._lock(
            return_id, (cls.Status.PENDING, cls.Status.APPROVED, cls.Status.SHIPPED), "reject"
        )

        stock_return.reversal_transaction = StockLedgerService.record_movement(
            stock_return.ingredient_id,
            stock_return.quantity,
            TransactionType.ADJUSTMENT,
            user_id,
            reference=ReturnRef(id=stock_return.id, number=stock_return.return_number),
            unit_cost=stock_return.unit_cost,
            reason=f"Return {stock_return.return_number} rejected",
            notes=reason,
            batch_number=stock_return.batch_number,
        )

        stock_return.status = cls.Status.REJECTED
        stock_return.refund_status = StockReturn.RefundStatus.REJECTED
        stock_return.notes = append_note(stock_return.notes, f"Rejected: {reason}")
        stock_return.save(update_fields=[
            "status", "refund_status", "reversal_transaction", "notes", "updated_at"
        ])

        entry = stock_return.stock_transaction
        if entry:
            entry.status = StockTransaction.Status.REJECTED
            entry.save(update_fields=["status"])

        logger.info(f"Return {stock_return.return_number} rejected, {stock_return.quantity} restored")

        return success_response({"return": cls.serialize(stock_return)}, "Return rejected")
