"""
Source documents a ledger entry can point at.

Each reference is stored on StockTransaction as the
(reference_type, reference_id, reference_number) column triple.
"""
from dataclasses import dataclass
from typing import ClassVar, Dict, Optional, Union


@dataclass(frozen=True)
class BaseReference:
    kind: ClassVar[str] = ""

    id: Optional[int] = None
    number: str = ""

    def as_fields(self) -> Dict:
        return {
            "reference_type": self.kind,
            "reference_id": self.id,
            "reference_number": self.number or "",
        }


@dataclass(frozen=True)
class SaleRef(BaseReference):
    kind: ClassVar[str] = "sale"


@dataclass(frozen=True)
class SaleReversalRef(BaseReference):
    kind: ClassVar[str] = "sale_reversal"


@dataclass(frozen=True)
class PurchaseRef(BaseReference):
    kind: ClassVar[str] = "purchase"


@dataclass(frozen=True)
class TransferRef(BaseReference):
    kind: ClassVar[str] = "transfer"


@dataclass(frozen=True)
class TransferCancellationRef(BaseReference):
    kind: ClassVar[str] = "transfer_cancellation"


@dataclass(frozen=True)
class ReconciliationRef(BaseReference):
    kind: ClassVar[str] = "reconciliation"


@dataclass(frozen=True)
class ReturnRef(BaseReference):
    kind: ClassVar[str] = "return"


@dataclass(frozen=True)
class DamageRef(BaseReference):
    kind: ClassVar[str] = "damage"


@dataclass(frozen=True)
class ManualRef(BaseReference):
    kind: ClassVar[str] = "manual"


Reference = Union[
    SaleRef, SaleReversalRef, PurchaseRef, TransferRef, TransferCancellationRef,
    ReconciliationRef, ReturnRef, DamageRef, ManualRef,
]

REFERENCE_TYPES = {
    ref.kind: ref
    for ref in (
        SaleRef, SaleReversalRef, PurchaseRef, TransferRef, TransferCancellationRef,
        ReconciliationRef, ReturnRef, DamageRef, ManualRef,
    )
}


def reference_from_fields(reference_type: str,
                          reference_id: Optional[int] = None,
                          reference_number: str = "") -> Optional[Reference]:
    """Rebuild a reference from its stored columns; None when the entry has none."""
    if not reference_type:
        return None
    ref_class = REFERENCE_TYPES.get(reference_type)
    if ref_class is None:
        raise ValueError(f"Unknown reference type: {reference_type}")
    return ref_class(id=reference_id, number=reference_number or "")
