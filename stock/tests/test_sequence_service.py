import pytest
from django.utils import timezone

from stock.models import DocumentSequence
from stock.services import SequenceService, StockLedgerService, ValidationError

pytestmark = pytest.mark.django_db


def test_numbers_increase_per_type():
    year = timezone.localdate().year

    assert SequenceService.next_number("TXN") == f"TXN-{year}-0001"
    assert SequenceService.next_number("TXN") == f"TXN-{year}-0002"
    assert SequenceService.next_number("TRF") == f"TRF-{year}-0001"


def test_unknown_document_type():
    with pytest.raises(ValidationError):
        SequenceService.next_number("INV")


def test_padding_grows_past_four_digits():
    assert SequenceService.format_number("REC", 2026, 7) == "REC-2026-0007"
    assert SequenceService.format_number("REC", 2026, 12345) == "REC-2026-12345"


def test_ledger_entries_get_consecutive_numbers(flour, user):
    first = StockLedgerService.receive(flour.id, 1, user.id)["transaction"]["transaction_number"]
    second = StockLedgerService.receive(flour.id, 1, user.id)["transaction"]["transaction_number"]

    assert int(second.rsplit("-", 1)[1]) == int(first.rsplit("-", 1)[1]) + 1


def test_missing_counter_is_seeded_from_issued_numbers(flour, user):
    year = timezone.localdate().year
    for _ in range(3):
        StockLedgerService.receive(flour.id, 1, user.id)

    # opening balance + three receipts
    DocumentSequence.objects.filter(document_type="TXN").delete()

    assert SequenceService.highest_issued("TXN", year) == 4
    assert SequenceService.next_number("TXN") == f"TXN-{year}-0005"


def test_highest_issued_orders_numerically(flour, user):
    year = timezone.localdate().year
    DocumentSequence.objects.filter(document_type="TXN").update(last_number=9999)
    StockLedgerService.receive(flour.id, 1, user.id)

    assert SequenceService.highest_issued("TXN", year) == 10000
