"""
Stock Transfer Service - move stock between locations

pending -> in_transit -> received
pending -> received
pending | in_transit -> cancelled
"""
import logging
from typing import Dict, Any, List
from decimal import Decimal
from datetime import date

from django.utils import timezone

from stock.models import (
    StockTransfer, StockTransferItem, DocumentSequence, TransactionType,
)
from stock.references import TransferRef, TransferCancellationRef
from .base_service import (
    BaseService, success_response, paginate_queryset, atomic_operation,
    ValidationError, NotFoundError, ConflictError,
    parse_quantity, require_user, append_note, to_date, iso,
)
from .ledger_service import StockLedgerService
from .sequence_service import SequenceService

logger = logging.getLogger(__name__)


class StockTransferItemService(BaseService):
    model = StockTransferItem

    @classmethod
    def serialize(cls, item: StockTransferItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "quantity_sent": str(item.quantity_sent),
            "quantity_received": str(item.quantity_received) if item.quantity_received is not None else None,
            "damaged_quantity": str(item.damaged_quantity),
            "damage_reason": item.damage_reason,
            "unit": item.unit,
            "unit_cost": str(item.unit_cost),
            "total_cost": str(item.total_cost),
            "batch_number": item.batch_number,
            "expiry_date": iso(item.expiry_date),
            "notes": item.notes,
            "outbound_transaction_id": item.outbound_transaction_id,
            "inbound_transaction_id": item.inbound_transaction_id,
        }


class StockTransferService(BaseService):
    """Manage stock transfers between locations"""

    model = StockTransfer

    OPEN_STATUSES = (StockTransfer.Status.PENDING, StockTransfer.Status.IN_TRANSIT)

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize(cls, transfer: StockTransfer, include_items: bool = False) -> Dict[str, Any]:
        data = {
            "id": transfer.id,
            "uuid": str(transfer.uuid),
            "transfer_number": transfer.transfer_number,
            "from_location": transfer.from_location,
            "to_location": transfer.to_location,
            "status": transfer.status,
            "status_display": transfer.get_status_display(),
            "reason": transfer.reason,
            "notes": transfer.notes,
            "transfer_date": iso(transfer.transfer_date),

            "initiated_by_id": transfer.initiated_by_id,
            "dispatched_by_id": transfer.dispatched_by_id,
            "received_by_id": transfer.received_by_id,
            "cancelled_by_id": transfer.cancelled_by_id,

            "dispatched_at": iso(transfer.dispatched_at),
            "received_at": iso(transfer.received_at),
            "cancelled_at": iso(transfer.cancelled_at),
            "created_at": iso(transfer.created_at),
            "updated_at": iso(transfer.updated_at),
        }

        if include_items:
            items = list(transfer.items.select_related("ingredient").order_by("id"))
            data["items"] = [StockTransferItemService.serialize(item) for item in items]
            data["item_count"] = len(items)

        return data

    @classmethod
    def serialize_brief(cls, transfer: StockTransfer) -> Dict[str, Any]:
        return {
            "id": transfer.id,
            "transfer_number": transfer.transfer_number,
            "from_location": transfer.from_location,
            "to_location": transfer.to_location,
            "status": transfer.status,
            "transfer_date": iso(transfer.transfer_date),
        }

    # ==================== LIST & GET ====================

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             status: str = None,
             from_location: str = None,
             to_location: str = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if status:
            queryset = queryset.filter(status=status)

        if from_location:
            queryset = queryset.filter(from_location=from_location)

        if to_location:
            queryset = queryset.filter(to_location=to_location)

        if date_from:
            queryset = queryset.filter(transfer_date__date__gte=to_date(date_from, "date_from"))

        if date_to:
            queryset = queryset.filter(transfer_date__date__lte=to_date(date_to, "date_to"))

        transfers, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "transfers": [cls.serialize_brief(t) for t in transfers],
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in StockTransfer.Status.choices],
        })

    @classmethod
    def get(cls, transfer_id: int, include_items: bool = True) -> Dict[str, Any]:
        transfer = cls.get_by_id(transfer_id)
        if not transfer:
            raise NotFoundError("Transfer", transfer_id)

        return success_response({
            "transfer": cls.serialize(transfer, include_items=include_items)
        })

    # ==================== WORKFLOW ====================

    @classmethod
    @atomic_operation
    def initiate(cls,
                 from_location: str,
                 to_location: str,
                 items: List[Dict],
                 initiated_by_id: int,
                 reason: str = "",
                 notes: str = "") -> Dict[str, Any]:
        """Create a transfer and deduct every item from stock."""
        from_location = (from_location or "").strip()
        to_location = (to_location or "").strip()

        if not from_location:
            raise ValidationError("Source location is required", "from_location")
        if not to_location:
            raise ValidationError("Destination location is required", "to_location")
        if from_location == to_location:
            raise ValidationError("Source and destination locations must differ", "to_location")
        if not items:
            raise ValidationError("Transfer must include at least one item", "items")

        require_user(initiated_by_id, "initiated_by_id")

        lines = []
        for index, row in enumerate(items):
            ingredient_id = row.get("ingredient_id")
            if not ingredient_id:
                raise ValidationError(f"Item {index + 1}: ingredient_id is required", "ingredient_id")
            quantity = parse_quantity(row.get("quantity"), "quantity")
            lines.append((ingredient_id, quantity, row))

        transfer = cls.model.objects.create(
            transfer_number=SequenceService.next_number(DocumentSequence.DocumentType.TRANSFER),
            from_location=from_location,
            to_location=to_location,
            reason=reason or "",
            notes=notes or "",
            initiated_by_id=initiated_by_id,
        )
        reference = TransferRef(id=transfer.id, number=transfer.transfer_number)

        for ingredient_id, quantity, row in lines:
            outbound = StockLedgerService.record_movement(
                ingredient_id,
                -quantity,
                TransactionType.TRANSFER_OUT,
                initiated_by_id,
                reference=reference,
                from_location=from_location,
                to_location=to_location,
                reason=f"Transfer to {to_location}",
                notes=row.get("notes", ""),
                batch_number=row.get("batch_number", ""),
                expiry_date=row.get("expiry_date"),
            )

            StockTransferItem.objects.create(
                transfer=transfer,
                ingredient_id=ingredient_id,
                quantity_sent=quantity,
                unit=outbound.unit,
                unit_cost=outbound.unit_cost,
                total_cost=outbound.total_cost,
                batch_number=outbound.batch_number,
                expiry_date=outbound.expiry_date,
                notes=row.get("notes", "") or "",
                outbound_transaction=outbound,
            )

        logger.info(
            f"Transfer {transfer.transfer_number} initiated: {from_location} -> {to_location}, {len(lines)} item(s)"
        )

        return success_response({
            "transfer": cls.serialize(transfer, include_items=True)
        }, "Transfer initiated")

    @classmethod
    @atomic_operation
    def dispatch(cls, transfer_id: int, dispatched_by_id: int, notes: str = "") -> Dict[str, Any]:
        require_user(dispatched_by_id, "dispatched_by_id")
        transfer = cls.lock_or_404(transfer_id, "Transfer")

        if transfer.status != StockTransfer.Status.PENDING:
            raise ConflictError(
                f"Only pending transfers can be dispatched. Current status: {transfer.status}",
                {"status": transfer.status}
            )

        transfer.status = StockTransfer.Status.IN_TRANSIT
        transfer.dispatched_by_id = dispatched_by_id
        transfer.dispatched_at = timezone.now()
        transfer.notes = append_note(transfer.notes, notes)
        transfer.save(update_fields=["status", "dispatched_by", "dispatched_at", "notes", "updated_at"])

        return success_response({
            "transfer": cls.serialize(transfer, include_items=True)
        }, "Transfer dispatched")

    @classmethod
    def _parse_receipts(cls, transfer_items: Dict[int, StockTransferItem], items: List[Dict]) -> Dict:
        receipts = {}
        for row in items:
            try:
                item_id = int(row.get("item_id") or row.get("id"))
            except (TypeError, ValueError):
                raise ValidationError("item_id is required for each received item", "item_id")
            if item_id not in transfer_items:
                raise NotFoundError("Transfer item", item_id)
            if item_id in receipts:
                raise ValidationError(f"Transfer item {item_id} listed more than once", "item_id")

            sent = transfer_items[item_id].quantity_sent
            damaged = parse_quantity(
                row.get("damaged_quantity", 0), "damaged_quantity", allow_zero=True
            )
            if row.get("quantity_received") is None:
                received = sent - damaged
            else:
                received = parse_quantity(
                    row["quantity_received"], "quantity_received", allow_zero=True
                )

            if received < 0 or received + damaged > sent:
                raise ValidationError(
                    f"Received ({received}) plus damaged ({damaged}) exceeds sent quantity ({sent})",
                    "quantity_received",
                    {"item_id": item_id, "quantity_sent": str(sent)}
                )

            receipts[item_id] = (received, damaged, row.get("damage_reason", "") or "")
        return receipts

    @classmethod
    @atomic_operation
    def receive(cls,
                transfer_id: int,
                received_by_id: int,
                items: List[Dict] = None,
                notes: str = "") -> Dict[str, Any]:
        """
        Receive a transfer. Items missing from `items` are received in full.
        Damaged units are recorded on the item but never added back to stock.
        """
        require_user(received_by_id, "received_by_id")
        transfer = cls.lock_or_404(transfer_id, "Transfer")

        if transfer.status not in cls.OPEN_STATUSES:
            raise ConflictError(
                f"Transfer cannot be received. Current status: {transfer.status}",
                {"status": transfer.status}
            )

        transfer_items = {
            item.id: item
            for item in transfer.items.select_related("ingredient").order_by("id")
        }
        receipts = cls._parse_receipts(transfer_items, items or [])
        reference = TransferRef(id=transfer.id, number=transfer.transfer_number)

        for item in transfer_items.values():
            received, damaged, damage_reason = receipts.get(
                item.id, (item.quantity_sent, Decimal("0"), "")
            )

            inbound = None
            if received > 0:
                inbound = StockLedgerService.record_movement(
                    item.ingredient_id,
                    received,
                    TransactionType.TRANSFER_IN,
                    received_by_id,
                    reference=reference,
                    unit_cost=item.unit_cost,
                    from_location=transfer.from_location,
                    to_location=transfer.to_location,
                    reason=f"Transfer from {transfer.from_location}",
                    batch_number=item.batch_number,
                    expiry_date=item.expiry_date,
                )

            if damaged > 0:
                logger.warning(
                    f"Transfer {transfer.transfer_number}: {damaged} {item.unit} of {item.ingredient.name} damaged in transit"
                )

            item.quantity_received = received
            item.damaged_quantity = damaged
            item.damage_reason = damage_reason if damaged > 0 else ""
            item.inbound_transaction = inbound
            item.save(update_fields=[
                "quantity_received", "damaged_quantity", "damage_reason", "inbound_transaction"
            ])

        transfer.status = StockTransfer.Status.RECEIVED
        transfer.received_by_id = received_by_id
        transfer.received_at = timezone.now()
        transfer.notes = append_note(transfer.notes, notes)
        transfer.save(update_fields=["status", "received_by", "received_at", "notes", "updated_at"])

        logger.info(f"Transfer {transfer.transfer_number} received at {transfer.to_location}")

        return success_response({
            "transfer": cls.serialize(transfer, include_items=True)
        }, "Transfer received")

    @classmethod
    @atomic_operation
    def cancel(cls, transfer_id: int, reason: str, cancelled_by_id: int) -> Dict[str, Any]:
        """Cancel an open transfer; sent stock comes back as new adjustment entries."""
        require_user(cancelled_by_id, "cancelled_by_id")
        transfer = cls.lock_or_404(transfer_id, "Transfer")

        if transfer.status not in cls.OPEN_STATUSES:
            raise ConflictError(
                f"Transfer cannot be cancelled. Current status: {transfer.status}",
                {"status": transfer.status}
            )

        reference = TransferCancellationRef(id=transfer.id, number=transfer.transfer_number)

        for item in transfer.items.order_by("id"):
            StockLedgerService.record_movement(
                item.ingredient_id,
                item.quantity_sent,
                TransactionType.ADJUSTMENT,
                cancelled_by_id,
                reference=reference,
                unit_cost=item.unit_cost,
                to_location=transfer.from_location,
                reason=f"Transfer {transfer.transfer_number} cancelled",
                notes=reason or "",
                batch_number=item.batch_number,
                expiry_date=item.expiry_date,
            )

        transfer.status = StockTransfer.Status.CANCELLED
        transfer.cancelled_by_id = cancelled_by_id
        transfer.cancelled_at = timezone.now()
        transfer.notes = append_note(transfer.notes, f"Cancelled: {reason}" if reason else "Cancelled")
        transfer.save(update_fields=["status", "cancelled_by", "cancelled_at", "notes", "updated_at"])

        logger.info(f"Transfer {transfer.transfer_number} cancelled")

        return success_response({
            "transfer": cls.serialize(transfer, include_items=True)
        }, "Transfer cancelled")

