import json
import logging

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from stock.references import SaleRef
from stock.services import (
    ServiceError, ValidationError, NotFoundError, ConflictError,
    InsufficientStockError, PersistenceError,
    IngredientService, StockLedgerService, StockTransactionService,
    StockTransferService, StockReconciliationService,
    StockReturnService, DamagedStockService,
    SaleConsumptionService, PurchaseReceivingService, StockAlertService,
)

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message, "details": details or {}}}
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, InsufficientStockError):
        return error_response(e.message, "insufficient_stock", 400, e.details)
    elif isinstance(e, ValidationError):
        return error_response(e.message, "validation_error", 400, e.details)
    elif isinstance(e, NotFoundError):
        return error_response(e.message, "not_found", 404, e.details)
    elif isinstance(e, ConflictError):
        return error_response(e.message, "conflict", 409, e.details)
    elif isinstance(e, PersistenceError):
        return error_response(e.message, "persistence_error", 503, e.details)
    elif isinstance(e, ServiceError):
        return error_response(e.message, e.code.lower(), 400, e.details)
    elif isinstance(e, KeyError):
        return error_response(f"Missing field: {e.args[0]}", "validation_error", 400, {"field": e.args[0]})
    elif isinstance(e, ValueError):
        return error_response(str(e), "validation_error", 400)
    else:
        logger.exception(f"Unhandled error in stock API: {e}")
        return error_response("Internal server error", "server_error", 500)


def query_int(request, name: str, default: int = None):
    value = request.GET.get(name)
    return int(value) if value else default


class BaseStockView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        return super().dispatch(request, *args, **kwargs)

    def get_json_body(self, request):
        try:
            return json.loads(request.body) if request.body else {}
        except json.JSONDecodeError:
            raise ValidationError("Request body is not valid JSON", "body")

    def get_user_id(self, request, data: dict = None, key: str = "performed_by_id"):
        if request.user.is_authenticated:
            return request.user.id
        return (data or {}).get(key)

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== INGREDIENTS ====================

class IngredientListView(BaseStockView):
    """GET/POST /api/stock/ingredients/"""

    def get(self, request):
        try:
            result = IngredientService.list(
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 20),
                search=request.GET.get("search"),
                low_stock_only=request.GET.get("low_stock", "false").lower() == "true",
                active_only=request.GET.get("include_inactive", "false").lower() != "true",
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            fields = {
                k: v for k, v in data.items()
                if k not in ("name", "unit", "opening_stock", "performed_by_id")
            }
            result = IngredientService.create(
                name=data["name"],
                unit=data["unit"],
                performed_by_id=self.get_user_id(request, data),
                opening_stock=data.get("opening_stock"),
                **fields
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class IngredientDetailView(BaseStockView):
    """GET/PUT /api/stock/ingredients/<id>/"""

    def get(self, request, ingredient_id):
        try:
            result = IngredientService.get(ingredient_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, ingredient_id):
        try:
            data = self.get_json_body(request)
            result = IngredientService.update(ingredient_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class IngredientVerifyView(BaseStockView):
    """GET /api/stock/ingredients/<id>/verify/"""

    def get(self, request, ingredient_id):
        try:
            result = IngredientService.verify_projection(ingredient_id)
            return self.success({"verification": result})
        except Exception as e:
            return handle_service_error(e)


# ==================== LEDGER ====================

class TransactionListView(BaseStockView):
    """GET /api/stock/transactions/"""

    def get(self, request):
        try:
            if request.GET.get("summary", "false").lower() == "true":
                result = StockTransactionService.movement_summary(
                    ingredient_id=query_int(request, "ingredient_id"),
                    date_from=request.GET.get("date_from"),
                    date_to=request.GET.get("date_to"),
                )
                return self.success(result)

            result = StockTransactionService.list(
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 50),
                ingredient_id=query_int(request, "ingredient_id"),
                transaction_type=request.GET.get("type"),
                reference_type=request.GET.get("reference_type"),
                reference_id=query_int(request, "reference_id"),
                date_from=request.GET.get("date_from"),
                date_to=request.GET.get("date_to"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class TransactionDetailView(BaseStockView):
    """GET /api/stock/transactions/<id>/"""

    def get(self, request, transaction_id):
        try:
            return self.success(StockTransactionService.get(transaction_id))
        except Exception as e:
            return handle_service_error(e)


class PurchaseView(BaseStockView):
    """POST /api/stock/purchase/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = PurchaseReceivingService.receive_purchase(
                lines=data.get("lines") or [data],
                performed_by_id=self.get_user_id(request, data),
                supplier_ref=data.get("supplier_ref", ""),
                reference_number=data.get("reference_number", ""),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ConsumeView(BaseStockView):
    """POST /api/stock/consume/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request, data)

            if data.get("sale_id") and data.get("lines"):
                result = SaleConsumptionService.consume_sale(
                    sale_id=data["sale_id"],
                    lines=data["lines"],
                    performed_by_id=user_id,
                    sale_number=data.get("sale_number", ""),
                    notes=data.get("notes", ""),
                )
            else:
                result = StockLedgerService.consume(
                    ingredient_id=data["ingredient_id"],
                    quantity=data["quantity"],
                    performed_by_id=user_id,
                    reference=SaleRef(id=data.get("sale_id"), number=data.get("sale_number", "")),
                    notes=data.get("notes", ""),
                )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class SaleReverseView(BaseStockView):
    """POST /api/stock/consume/<sale_id>/reverse/"""

    def post(self, request, sale_id):
        try:
            data = self.get_json_body(request)
            result = SaleConsumptionService.reverse_sale(
                sale_id,
                performed_by_id=self.get_user_id(request, data),
                reason=data.get("reason", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class AdjustView(BaseStockView):
    """POST /api/stock/adjust/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = StockLedgerService.adjust(
                ingredient_id=data["ingredient_id"],
                adjustment_type=data["adjustment_type"],
                quantity=data["quantity"],
                reason=data.get("reason", ""),
                performed_by_id=self.get_user_id(request, data),
                location=data.get("location", ""),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


# ==================== TRANSFERS ====================

class TransferListView(BaseStockView):
    """GET/POST /api/stock/transfers/"""

    def get(self, request):
        try:
            result = StockTransferService.list(
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 20),
                status=request.GET.get("status"),
                from_location=request.GET.get("from_location"),
                to_location=request.GET.get("to_location"),
                date_from=request.GET.get("date_from"),
                date_to=request.GET.get("date_to"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = StockTransferService.initiate(
                from_location=data.get("from_location"),
                to_location=data.get("to_location"),
                items=data.get("items", []),
                initiated_by_id=self.get_user_id(request, data, "initiated_by_id"),
                reason=data.get("reason", ""),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class TransferDetailView(BaseStockView):
    """GET /api/stock/transfers/<id>/"""

    def get(self, request, transfer_id):
        try:
            result = StockTransferService.get(transfer_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class TransferActionView(BaseStockView):
    """POST /api/stock/transfers/<id>/<action>/"""

    def post(self, request, transfer_id, action):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request, data, "user_id")

            if action == "dispatch":
                result = StockTransferService.dispatch(transfer_id, user_id, notes=data.get("notes", ""))
            elif action == "receive":
                result = StockTransferService.receive(
                    transfer_id, user_id, items=data.get("items"), notes=data.get("notes", "")
                )
            elif action == "cancel":
                result = StockTransferService.cancel(transfer_id, data.get("reason", ""), user_id)
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== RECONCILIATIONS ====================

class ReconciliationListView(BaseStockView):
    """GET/POST /api/stock/reconciliations/"""

    def get(self, request):
        try:
            result = StockReconciliationService.list(
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 20),
                status=request.GET.get("status"),
                date_from=request.GET.get("date_from"),
                date_to=request.GET.get("date_to"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = StockReconciliationService.start(
                performed_by_id=self.get_user_id(request, data),
                location=data.get("location"),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ReconciliationActiveView(BaseStockView):
    """GET /api/stock/reconciliations/active/"""

    def get(self, request):
        try:
            return self.success(StockReconciliationService.get_active())
        except Exception as e:
            return handle_service_error(e)


class ReconciliationDetailView(BaseStockView):
    """GET /api/stock/reconciliations/<id>/"""

    def get(self, request, reconciliation_id):
        try:
            return self.success(StockReconciliationService.get(reconciliation_id))
        except Exception as e:
            return handle_service_error(e)


class ReconciliationItemsView(BaseStockView):
    """PUT /api/stock/reconciliations/<id>/items/"""

    def put(self, request, reconciliation_id):
        try:
            data = self.get_json_body(request)
            result = StockReconciliationService.update_items(reconciliation_id, data.get("items", []))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class ReconciliationActionView(BaseStockView):
    """POST /api/stock/reconciliations/<id>/<action>/"""

    def post(self, request, reconciliation_id, action):
        try:
            data = self.get_json_body(request)

            if action == "submit":
                result = StockReconciliationService.submit(reconciliation_id)
            elif action == "approve":
                result = StockReconciliationService.approve(
                    reconciliation_id, self.get_user_id(request, data, "approved_by_id")
                )
            elif action == "cancel":
                result = StockReconciliationService.cancel(reconciliation_id, data.get("reason", ""))
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== RETURNS ====================

class ReturnListView(BaseStockView):
    """GET/POST /api/stock/returns/"""

    def get(self, request):
        try:
            result = StockReturnService.list(
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 20),
                status=request.GET.get("status"),
                ingredient_id=query_int(request, "ingredient_id"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = StockReturnService.initiate(
                ingredient_id=data["ingredient_id"],
                quantity=data["quantity"],
                return_reason=data["return_reason"],
                initiated_by_id=self.get_user_id(request, data, "initiated_by_id"),
                return_description=data.get("return_description", ""),
                return_date=data.get("return_date"),
                supplier_name=data.get("supplier_name", ""),
                supplier_contact=data.get("supplier_contact", ""),
                original_purchase_reference=data.get("original_purchase_reference", ""),
                batch_number=data.get("batch_number", ""),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ReturnDetailView(BaseStockView):
    """GET /api/stock/returns/<id>/"""

    def get(self, request, return_id):
        try:
            return self.success(StockReturnService.get(return_id))
        except Exception as e:
            return handle_service_error(e)


class ReturnActionView(BaseStockView):
    """POST /api/stock/returns/<id>/<action>/"""

    def post(self, request, return_id, action):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request, data, "user_id")

            if action == "approve":
                result = StockReturnService.approve(return_id, user_id, notes=data.get("notes", ""))
            elif action == "ship":
                result = StockReturnService.ship(return_id, user_id, notes=data.get("notes", ""))
            elif action == "complete":
                result = StockReturnService.complete(
                    return_id, user_id,
                    actual_refund=data.get("actual_refund"),
                    refund_date=data.get("refund_date"),
                    notes=data.get("notes", ""),
                )
            elif action == "reject":
                result = StockReturnService.reject(return_id, user_id, data.get("reason", ""))
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== DAMAGES ====================

class DamageListView(BaseStockView):
    """GET/POST /api/stock/damages/"""

    def get(self, request):
        try:
            result = DamagedStockService.list(
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 20),
                status=request.GET.get("status"),
                damage_type=request.GET.get("type"),
                ingredient_id=query_int(request, "ingredient_id"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = DamagedStockService.report(
                ingredient_id=data["ingredient_id"],
                quantity=data["quantity"],
                damage_type=data["damage_type"],
                damage_reason=data.get("damage_reason", ""),
                reported_by_id=self.get_user_id(request, data, "reported_by_id"),
                damage_date=data.get("damage_date"),
                batch_number=data.get("batch_number", ""),
                location=data.get("location", ""),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class DamageDetailView(BaseStockView):
    """GET /api/stock/damages/<id>/"""

    def get(self, request, damage_id):
        try:
            return self.success(DamagedStockService.get(damage_id))
        except Exception as e:
            return handle_service_error(e)


class DamageActionView(BaseStockView):
    """POST /api/stock/damages/<id>/<action>/"""

    def post(self, request, damage_id, action):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request, data, "user_id")

            if action == "approve":
                result = DamagedStockService.approve(
                    damage_id, user_id,
                    disposal_method=data.get("disposal_method", ""),
                    disposal_date=data.get("disposal_date"),
                    notes=data.get("notes", ""),
                )
            elif action == "write-off":
                result = DamagedStockService.write_off(
                    damage_id, user_id,
                    disposal_date=data.get("disposal_date"),
                    notes=data.get("notes", ""),
                )
            elif action == "reject":
                result = DamagedStockService.reject(damage_id, user_id, data.get("reason", ""))
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== ALERTS ====================

class AlertListView(BaseStockView):
    """GET /api/stock/alerts/"""

    def get(self, request):
        try:
            result = StockAlertService.list(
                alert_type=request.GET.get("type"),
                severity=request.GET.get("severity"),
                include_resolved=request.GET.get("include_resolved", "false").lower() == "true",
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class AlertActionView(BaseStockView):
    """POST /api/stock/alerts/<id>/<action>/"""

    def post(self, request, alert_id, action):
        try:
            data = self.get_json_body(request)
            user_id = self.get_user_id(request, data, "user_id")

            if action == "acknowledge":
                result = StockAlertService.acknowledge(alert_id, user_id, notes=data.get("notes", ""))
            elif action == "resolve":
                result = StockAlertService.resolve(alert_id, user_id, notes=data.get("notes", ""))
            else:
                return error_response(f"Unknown action: {action}", "invalid_action", 400)

            return self.success(result)
        except Exception as e:
            return handle_service_error(e)
