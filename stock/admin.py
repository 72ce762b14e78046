from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import (
    RangeDateFilter,
    RangeDateTimeFilter,
    RangeNumericFilter,
)
from .models import (
    Ingredient, DocumentSequence, StockTransaction,
    StockTransfer, StockTransferItem,
    StockReconciliation, StockReconciliationItem,
    StockReturn, DamagedStock, StockAlert,
)
from .services import IngredientService


class ReadOnlyAdminMixin:
    """Documents change through the stock services only"""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


STATUS_COLORS = {
    'pending': 'warning',
    'in_progress': 'warning',
    'reported': 'warning',
    'in_transit': 'info',
    'shipped': 'info',
    'approved': 'info',
    'completed': 'success',
    'received': 'success',
    'written_off': 'success',
    'rejected': 'danger',
    'cancelled': 'danger',
}


@admin.register(Ingredient)
class IngredientAdmin(ModelAdmin):
    list_display = ['id', 'name', 'stock_display', 'unit_cost', 'reorder_level', 'stock_badge', 'expiry_date', 'is_active']
    list_filter = [
        'is_active',
        ('current_stock', RangeNumericFilter),
        ('expiry_date', RangeDateFilter),
    ]
    search_fields = ['name', 'supplier', 'storage_location']
    list_filter_submit = True
    readonly_fields = ['current_stock', 'created_at', 'updated_at']

    fieldsets = (
        (_('Basic Information'), {
            'fields': ('name', 'description', 'unit', 'is_active'),
            'classes': ['tab'],
        }),
        (_('Stock'), {
            'fields': ('current_stock', 'unit_cost', 'reorder_level', 'reorder_quantity'),
            'classes': ['tab'],
            'description': _('Current stock is maintained by the stock ledger and cannot be edited here.'),
        }),
        (_('Supply'), {
            'fields': ('supplier', 'storage_location', 'expiry_date'),
            'classes': ['tab'],
        }),
    )

    def save_model(self, request, obj, form, change):
        # current_stock may have moved since the form was loaded
        if change:
            obj.save(update_fields=[*IngredientService.EDITABLE_FIELDS, 'updated_at'])
        else:
            super().save_model(request, obj, form, change)

    def has_delete_permission(self, request, obj=None):
        return False

    @display(description=_("Stock"), ordering='current_stock')
    def stock_display(self, obj):
        return f"{obj.current_stock} {obj.unit}"

    @display(description=_("Level"), label=True)
    def stock_badge(self, obj):
        if obj.current_stock <= 0:
            return 'danger', _('Out of stock')
        if obj.current_stock <= obj.reorder_level:
            return 'warning', _('Low')
        return 'success', _('OK')


@admin.register(StockTransaction)
class StockTransactionAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        'transaction_number', 'type_badge', 'ingredient', 'quantity',
        'previous_stock', 'new_stock', 'reference_display', 'performed_by', 'created_at',
    ]
    list_filter = [
        'transaction_type',
        'status',
        ('created_at', RangeDateTimeFilter),
    ]
    search_fields = ['transaction_number', 'ingredient__name', 'reference_number', 'reason']
    list_filter_submit = True
    list_select_related = ['ingredient', 'performed_by']

    @display(description=_("Type"), label=True)
    def type_badge(self, obj):
        color = 'success' if obj.quantity > 0 else 'danger'
        return color, obj.get_transaction_type_display()

    @display(description=_("Reference"))
    def reference_display(self, obj):
        if not obj.reference_type:
            return "-"
        return f"{obj.reference_type} {obj.reference_number or obj.reference_id or ''}".strip()


class StockTransferItemInline(TabularInline):
    model = StockTransferItem
    extra = 0
    fields = ('ingredient', 'quantity_sent', 'quantity_received', 'damaged_quantity', 'unit', 'total_cost')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(StockTransfer)
class StockTransferAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['transfer_number', 'from_location', 'to_location', 'status_badge', 'initiated_by', 'transfer_date']
    list_filter = [
        'status',
        ('transfer_date', RangeDateTimeFilter),
    ]
    search_fields = ['transfer_number', 'from_location', 'to_location']
    list_filter_submit = True
    inlines = [StockTransferItemInline]

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        return STATUS_COLORS.get(obj.status, 'info'), obj.get_status_display()


class StockReconciliationItemInline(TabularInline):
    model = StockReconciliationItem
    extra = 0
    fields = ('ingredient', 'system_stock', 'physical_stock', 'difference', 'value_difference', 'adjustment_made')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(StockReconciliation)
class StockReconciliationAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        'reconciliation_number', 'location', 'status_badge', 'total_items_counted',
        'total_discrepancies', 'total_value_difference', 'started_at',
    ]
    list_filter = [
        'status',
        ('reconciliation_date', RangeDateFilter),
    ]
    search_fields = ['reconciliation_number', 'location']
    list_filter_submit = True
    inlines = [StockReconciliationItemInline]

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        return STATUS_COLORS.get(obj.status, 'info'), obj.get_status_display()


@admin.register(StockReturn)
class StockReturnAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['return_number', 'ingredient', 'quantity', 'return_reason', 'status_badge', 'total_refund', 'return_date']
    list_filter = [
        'status',
        'return_reason',
        'refund_status',
        ('return_date', RangeDateFilter),
    ]
    search_fields = ['return_number', 'ingredient__name', 'supplier_name']
    list_filter_submit = True

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        return STATUS_COLORS.get(obj.status, 'info'), obj.get_status_display()


@admin.register(DamagedStock)
class DamagedStockAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['damage_number', 'ingredient', 'quantity', 'damage_type', 'status_badge', 'total_loss', 'damage_date']
    list_filter = [
        'status',
        'damage_type',
        ('damage_date', RangeDateFilter),
    ]
    search_fields = ['damage_number', 'ingredient__name', 'damage_reason']
    list_filter_submit = True

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        return STATUS_COLORS.get(obj.status, 'info'), obj.get_status_display()


@admin.register(StockAlert)
class StockAlertAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['id', 'ingredient', 'alert_type', 'severity_badge', 'is_acknowledged', 'is_resolved', 'created_at']
    list_filter = [
        'alert_type',
        'severity',
        'is_resolved',
        ('created_at', RangeDateTimeFilter),
    ]
    search_fields = ['ingredient__name', 'message']
    list_filter_submit = True

    @display(description=_("Severity"), label=True)
    def severity_badge(self, obj):
        colors = {
            'critical': 'danger',
            'high': 'warning',
            'medium': 'info',
            'low': 'success',
        }
        return colors.get(obj.severity, 'info'), obj.get_severity_display()


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['document_type', 'year', 'last_number', 'updated_at']
    list_filter = ['document_type', 'year']
