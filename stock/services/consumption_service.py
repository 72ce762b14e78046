"""
Collaborator integration - stock movements triggered by POS sales and purchases
"""
import logging
from typing import Dict, Any, List
from decimal import Decimal

from stock.models import StockTransaction, TransactionType
from stock.references import SaleRef, SaleReversalRef
from .base_service import (
    success_response, atomic_operation,
    ValidationError, NotFoundError, ConflictError, parse_quantity, require_user,
)
from .ledger_service import StockLedgerService, StockTransactionService

logger = logging.getLogger(__name__)


class SaleConsumptionService:
    """
    Deduct ingredients used by a POS sale.
    This is the integration point between order processing and the stock ledger.
    """

    @classmethod
    def merge_lines(cls, lines: List[Dict]) -> Dict[int, Decimal]:
        """Sum quantities per ingredient so each ingredient gets one ledger entry."""
        if not lines:
            raise ValidationError("Sale has no ingredient lines", "lines")

        merged = {}
        for index, line in enumerate(lines):
            try:
                ingredient_id = int(line["ingredient_id"])
            except (KeyError, TypeError, ValueError):
                raise ValidationError(f"Line {index + 1}: ingredient_id is required", "ingredient_id")
            quantity = parse_quantity(line.get("quantity"), "quantity")
            merged[ingredient_id] = merged.get(ingredient_id, Decimal("0")) + quantity
        return merged

    @classmethod
    @atomic_operation
    def consume_sale(cls,
                     sale_id: int,
                     lines: List[Dict],
                     performed_by_id: int,
                     sale_number: str = "",
                     notes: str = "") -> Dict[str, Any]:
        """
        Deduct stock for a sale, all or nothing.

        Args:
            sale_id: POS sale/order ID
            lines: List of dicts with {ingredient_id, quantity}
            performed_by_id: User completing the sale

        Returns:
            Result with the created ledger entries
        """
        if not sale_id:
            raise ValidationError("sale_id is required", "sale_id")
        merged = cls.merge_lines(lines)
        require_user(performed_by_id, "performed_by_id")

        reference = SaleRef(id=sale_id, number=sale_number)
        entries = []

        # Lock ingredients in id order so concurrent sales cannot deadlock
        for ingredient_id in sorted(merged):
            entries.append(StockLedgerService.record_movement(
                ingredient_id,
                -merged[ingredient_id],
                TransactionType.SALE_CONSUMPTION,
                performed_by_id,
                reference=reference,
                reason="Sale consumption",
                notes=notes,
            ))

        logger.info(f"Sale #{sale_id}: {len(entries)} ingredient(s) deducted")

        return success_response({
            "sale_id": sale_id,
            "transactions": [StockTransactionService.serialize(e) for e in entries],
            "total_deductions": len(entries),
        }, "Stock deducted for sale")

    @classmethod
    @atomic_operation
    def reverse_sale(cls, sale_id: int, performed_by_id: int, reason: str = "") -> Dict[str, Any]:
        """Restore stock of a voided sale with offsetting adjustment entries."""
        require_user(performed_by_id, "performed_by_id")

        consumed = list(
            StockTransaction.objects.select_for_update().filter(
                reference_type=SaleRef.kind,
                reference_id=sale_id,
                transaction_type=TransactionType.SALE_CONSUMPTION,
            ).order_by("ingredient_id", "id")
        )
        if not consumed:
            raise NotFoundError("Sale consumption", sale_id)

        already_reversed = set(
            StockTransaction.objects.filter(
                reference_type=SaleReversalRef.kind,
                reference_id=sale_id,
            ).values_list("reference_number", flat=True)
        )
        pending = [e for e in consumed if e.transaction_number not in already_reversed]
        if not pending:
            raise ConflictError(f"Sale #{sale_id} has already been reversed", {"sale_id": sale_id})

        entries = []
        for original in pending:
            entries.append(StockLedgerService.record_movement(
                original.ingredient_id,
                -original.quantity,
                TransactionType.ADJUSTMENT,
                performed_by_id,
                reference=SaleReversalRef(id=sale_id, number=original.transaction_number),
                unit_cost=original.unit_cost,
                reason=f"Reversal of {original.transaction_number}",
                notes=reason or "",
            ))

        logger.info(f"Sale #{sale_id} reversed: {len(entries)} entries restored")

        return success_response({
            "sale_id": sale_id,
            "transactions": [StockTransactionService.serialize(e) for e in entries],
        }, "Sale consumption reversed")


class PurchaseReceivingService:

    @classmethod
    @atomic_operation
    def receive_purchase(cls,
                         lines: List[Dict],
                         performed_by_id: int,
                         supplier_ref: str = "",
                         reference_number: str = "",
                         notes: str = "") -> Dict[str, Any]:
        """Receive a delivery; every line is posted or none is."""
        if not lines:
            raise ValidationError("Purchase has no lines", "lines")

        transactions = []
        for line in lines:
            result = StockLedgerService.receive(
                line.get("ingredient_id"),
                line.get("quantity"),
                performed_by_id,
                unit_cost=line.get("unit_cost"),
                supplier_ref=supplier_ref,
                reference_number=reference_number,
                batch_number=line.get("batch_number", ""),
                expiry_date=line.get("expiry_date"),
                to_location=line.get("location", ""),
                notes=notes,
            )
            transactions.append(result["transaction"])

        return success_response({
            "transactions": transactions,
            "total_lines": len(transactions),
        }, f"Received {len(transactions)} line(s)")
