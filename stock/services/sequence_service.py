"""
Document numbering: PREFIX-YEAR-NNNN, unique per document type and year.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models.functions import Length
from django.utils import timezone

from stock.models import (
    DocumentSequence, StockTransaction, StockTransfer, StockReturn,
    StockReconciliation, DamagedStock,
)
from .base_service import ValidationError, stock_setting

logger = logging.getLogger(__name__)


class SequenceService:
    DocumentType = DocumentSequence.DocumentType

    # Where numbers of each type are stored, used to seed a fresh counter
    SOURCES = {
        DocumentType.TRANSACTION: (StockTransaction, "transaction_number"),
        DocumentType.TRANSFER: (StockTransfer, "transfer_number"),
        DocumentType.RETURN: (StockReturn, "return_number"),
        DocumentType.RECONCILIATION: (StockReconciliation, "reconciliation_number"),
        DocumentType.DAMAGE: (DamagedStock, "damage_number"),
    }

    @classmethod
    def format_number(cls, document_type: str, year: int, sequence: int) -> str:
        padding = stock_setting("SEQUENCE_PADDING")
        return f"{document_type}-{year}-{sequence:0{padding}d}"

    @classmethod
    def next_number(cls, document_type: str) -> str:
        if document_type not in cls.SOURCES:
            raise ValidationError(
                f"Unknown document type: {document_type}. Valid: {list(cls.SOURCES)}",
                "document_type"
            )

        year = timezone.localdate().year

        with transaction.atomic():
            counter = cls._lock_counter(document_type, year)
            counter.last_number += 1
            counter.save(update_fields=["last_number", "updated_at"])

        return cls.format_number(document_type, year, counter.last_number)

    @classmethod
    def _lock_counter(cls, document_type: str, year: int) -> DocumentSequence:
        counter = DocumentSequence.objects.select_for_update().filter(
            document_type=document_type, year=year
        ).first()
        if counter:
            return counter

        try:
            with transaction.atomic():
                DocumentSequence.objects.create(
                    document_type=document_type,
                    year=year,
                    last_number=cls.highest_issued(document_type, year),
                )
        except IntegrityError:
            logger.debug(f"Sequence {document_type}-{year} created concurrently")

        return DocumentSequence.objects.select_for_update().get(
            document_type=document_type, year=year
        )

    @classmethod
    def highest_issued(cls, document_type: str, year: int) -> int:
        """Largest sequence already stored for the type and year, 0 if none."""
        model, field = cls.SOURCES[document_type]
        prefix = f"{document_type}-{year}-"

        last = model.objects.filter(
            **{f"{field}__startswith": prefix}
        ).annotate(
            number_length=Length(field)
        ).order_by("-number_length", f"-{field}").values_list(field, flat=True).first()

        if not last:
            return 0
        try:
            return int(last[len(prefix):])
        except ValueError:
            logger.warning(f"Unparseable document number {last}, restarting sequence")
            return 0
