import uuid as uuid_lib
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

# Ledger amounts carry four decimal places; SQLite compares them as floats.
BALANCE_TOLERANCE = Decimal("0.00005")


class Ingredient(models.Model):
    """
    Inventory item tracked by quantity.
    current_stock is a projection of the ledger and is only written by
    StockLedgerService.record_movement.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    unit = models.CharField(max_length=50)
    current_stock = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reorder_level = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reorder_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    supplier = models.CharField(max_length=200, blank=True, default="")
    storage_location = models.CharField(max_length=255, blank=True, default="")
    expiry_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_stock__gte=0),
                name="ingredient_stock_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.current_stock} {self.unit})"


class DocumentSequence(models.Model):
    """
    Atomic per-year counter for human readable document numbers.
    Rows are locked with select_for_update while a number is issued.
    """

    class DocumentType(models.TextChoices):
        TRANSACTION = "TXN", "Stock Transaction"
        TRANSFER = "TRF", "Stock Transfer"
        RETURN = "RTN", "Stock Return"
        RECONCILIATION = "REC", "Stock Reconciliation"
        DAMAGE = "DMG", "Damaged Stock"

    document_type = models.CharField(max_length=10, choices=DocumentType.choices)
    year = models.PositiveIntegerField()
    last_number = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["document_type", "year"],
                name="unique_document_sequence_per_year",
            ),
        ]

    def __str__(self):
        return f"{self.document_type}-{self.year}: {self.last_number}"


class StockTransaction(models.Model):
    """
    Immutable ledger entry. new_stock == previous_stock + quantity.
    Corrections are new offsetting entries, never edits.
    """

    class TransactionType(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        SALE_CONSUMPTION = "sale_consumption", "Sale Consumption"
        ADJUSTMENT = "adjustment", "Adjustment"
        TRANSFER_OUT = "transfer_out", "Transfer Out"
        TRANSFER_IN = "transfer_in", "Transfer In"
        DAMAGE = "damage", "Damage"
        RETURN = "return", "Return to Supplier"
        RECONCILIATION = "reconciliation", "Reconciliation"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    # Only the approval stamp may change after insert
    MUTABLE_FIELDS = frozenset({"status", "approved_by", "approved_at"})

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    transaction_number = models.CharField(max_length=50, unique=True)
    transaction_type = models.CharField(
        max_length=30, choices=TransactionType.choices, db_index=True
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="transactions"
    )

    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=50)
    previous_stock = models.DecimalField(max_digits=15, decimal_places=4)
    new_stock = models.DecimalField(max_digits=15, decimal_places=4)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    from_location = models.CharField(max_length=255, blank=True, default="")
    to_location = models.CharField(max_length=255, blank=True, default="")

    # Source document, see stock.references
    reference_type = models.CharField(max_length=50, blank=True, default="")
    reference_id = models.PositiveIntegerField(null=True, blank=True)
    reference_number = models.CharField(max_length=100, blank=True, default="")

    reason = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    batch_number = models.CharField(max_length=100, blank=True, default="")
    expiry_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.COMPLETED, db_index=True
    )

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="stock_transactions",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["ingredient", "created_at"], name="stock_txn_ingredient_idx"),
            models.Index(fields=["transaction_type", "created_at"], name="stock_txn_type_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="stock_txn_reference_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(
                    new_stock__gte=F("previous_stock") + F("quantity") - BALANCE_TOLERANCE,
                    new_stock__lte=F("previous_stock") + F("quantity") + BALANCE_TOLERANCE,
                ),
                name="stock_txn_balanced",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if not update_fields or not set(update_fields) <= self.MUTABLE_FIELDS:
                raise ValueError(
                    f"Ledger entry {self.transaction_number} is immutable"
                )
        elif self.new_stock != self.previous_stock + self.quantity:
            raise ValueError(
                f"Unbalanced ledger entry: {self.previous_stock} + {self.quantity} != {self.new_stock}"
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"Ledger entry {self.transaction_number} cannot be deleted")

    def __str__(self):
        return f"{self.transaction_number} | {self.get_transaction_type_display()}"


class StockTransfer(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_TRANSIT = "in_transit", "In Transit"
        RECEIVED = "received", "Received"
        CANCELLED = "cancelled", "Cancelled"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    transfer_number = models.CharField(max_length=50, unique=True)
    from_location = models.CharField(max_length=255)
    to_location = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    transfer_date = models.DateTimeField(default=timezone.now)

    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="initiated_transfers",
    )
    dispatched_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="dispatched_transfers",
    )
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_transfers",
    )
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cancelled_transfers",
    )

    dispatched_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-transfer_date", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(from_location=F("to_location")),
                name="transfer_locations_differ",
            ),
        ]

    def __str__(self):
        return f"{self.transfer_number}: {self.from_location} -> {self.to_location}"


class StockTransferItem(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    transfer = models.ForeignKey(
        StockTransfer, on_delete=models.CASCADE, related_name="items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="+"
    )
    quantity_sent = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_received = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )
    damaged_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    damage_reason = models.TextField(blank=True, default="")
    unit = models.CharField(max_length=50)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    batch_number = models.CharField(max_length=100, blank=True, default="")
    expiry_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    outbound_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    inbound_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.ingredient.name} × {self.quantity_sent}"


class StockReconciliation(models.Model):
    class Status(models.TextChoices):
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"
        APPROVED = "approved", "Approved"
        CANCELLED = "cancelled", "Cancelled"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    reconciliation_number = models.CharField(max_length=50, unique=True)
    reconciliation_date = models.DateField(default=timezone.localdate)
    location = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.IN_PROGRESS
    )
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="stock_reconciliations",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_reconciliations",
    )
    total_items_counted = models.PositiveIntegerField(default=0)
    total_discrepancies = models.PositiveIntegerField(default=0)
    total_value_difference = models.DecimalField(
        max_digits=15, decimal_places=4, default=0
    )
    notes = models.TextField(blank=True, default="")
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-started_at", "-id"]
        constraints = [
            # System-wide: at most one count may be open at a time
            models.UniqueConstraint(
                fields=["status"],
                condition=Q(status="in_progress"),
                name="single_in_progress_reconciliation",
            ),
        ]

    def __str__(self):
        return self.reconciliation_number


class StockReconciliationItem(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    reconciliation = models.ForeignKey(
        StockReconciliation, on_delete=models.CASCADE, related_name="items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="+"
    )
    system_stock = models.DecimalField(max_digits=15, decimal_places=4)
    physical_stock = models.DecimalField(max_digits=15, decimal_places=4)
    difference = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    unit = models.CharField(max_length=50)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    value_difference = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    notes = models.TextField(blank=True, default="")
    adjustment_made = models.BooleanField(default=False)
    stock_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["reconciliation", "ingredient"],
                name="unique_reconciliation_ingredient",
            ),
        ]

    def __str__(self):
        return f"{self.ingredient.name}: system={self.system_stock}, physical={self.physical_stock}"


class StockReturn(models.Model):
    class ReturnReason(models.TextChoices):
        DEFECTIVE = "defective", "Defective"
        WRONG_ITEM = "wrong_item", "Wrong Item"
        EXCESS = "excess", "Excess"
        EXPIRED = "expired", "Expired"
        QUALITY_ISSUE = "quality_issue", "Quality Issue"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        SHIPPED = "shipped", "Shipped"
        COMPLETED = "completed", "Completed"
        REJECTED = "rejected", "Rejected"

    class RefundStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REFUNDED = "refunded", "Refunded"
        REJECTED = "rejected", "Rejected"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    return_number = models.CharField(max_length=50, unique=True)
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="returns"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=50)
    return_reason = models.CharField(max_length=20, choices=ReturnReason.choices)
    return_description = models.TextField(blank=True, default="")
    return_date = models.DateField(default=timezone.localdate)
    supplier_name = models.CharField(max_length=200, blank=True, default="")
    supplier_contact = models.CharField(max_length=200, blank=True, default="")
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_refund = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    refund_status = models.CharField(
        max_length=20, choices=RefundStatus.choices, default=RefundStatus.PENDING
    )
    refund_date = models.DateField(null=True, blank=True)
    original_purchase_reference = models.CharField(max_length=100, blank=True, default="")
    batch_number = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="initiated_returns",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_returns",
    )
    shipped_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    stock_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    reversal_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.return_number} | {self.get_status_display()}"


class DamagedStock(models.Model):
    class DamageType(models.TextChoices):
        EXPIRED = "expired", "Expired"
        SPOILED = "spoiled", "Spoiled"
        BROKEN = "broken", "Broken"
        CONTAMINATED = "contaminated", "Contaminated"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        REPORTED = "reported", "Reported"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        WRITTEN_OFF = "written_off", "Written Off"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    damage_number = models.CharField(max_length=50, unique=True)
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="damage_reports"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=50)
    damage_type = models.CharField(max_length=20, choices=DamageType.choices)
    damage_reason = models.TextField()
    damage_date = models.DateField(default=timezone.localdate)
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_loss = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    batch_number = models.CharField(max_length=100, blank=True, default="")
    location = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.REPORTED, db_index=True
    )
    disposal_method = models.CharField(max_length=255, blank=True, default="")
    disposal_date = models.DateField(null=True, blank=True)
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reported_damages",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_damages",
    )
    notes = models.TextField(blank=True, default="")
    stock_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    reversal_transaction = models.ForeignKey(
        StockTransaction,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-damage_date", "-id"]
        verbose_name_plural = "damaged stock"

    def __str__(self):
        return f"{self.damage_number} | {self.get_damage_type_display()}"


class StockAlert(models.Model):
    """
    Workflow record for a derived stock condition. Stock figures are read
    live from the ingredient; only acknowledgement/resolution is stored.
    """

    class AlertType(models.TextChoices):
        LOW_STOCK = "low_stock", "Low Stock"
        OUT_OF_STOCK = "out_of_stock", "Out of Stock"
        EXPIRING_SOON = "expiring_soon", "Expiring Soon"
        EXPIRED = "expired", "Expired"

    class Severity(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        CRITICAL = "critical", "Critical"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.CASCADE, related_name="alerts"
    )
    alert_type = models.CharField(max_length=20, choices=AlertType.choices)
    severity = models.CharField(
        max_length=20, choices=Severity.choices, default=Severity.MEDIUM, db_index=True
    )
    message = models.TextField()
    is_acknowledged = models.BooleanField(default=False)
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    is_resolved = models.BooleanField(default=False, db_index=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.get_alert_type_display()}: {self.ingredient.name}"


TransactionType = StockTransaction.TransactionType

DEDUCTION_TYPES = frozenset({
    TransactionType.SALE_CONSUMPTION,
    TransactionType.TRANSFER_OUT,
    TransactionType.DAMAGE,
    TransactionType.RETURN,
})

ADDITION_TYPES = frozenset({
    TransactionType.PURCHASE,
    TransactionType.TRANSFER_IN,
})
