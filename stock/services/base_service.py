import functools
import logging
from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Model
from django.utils.dateparse import parse_date

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None,
                 code: str = "VALIDATION_ERROR"):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(message, code, details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class ConflictError(ServiceError):
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, "CONFLICT", details)


class InsufficientStockError(ValidationError):
    def __init__(self, item_name: str, requested: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock for {item_name}: requested {requested}, available {available}",
            "quantity",
            {"item": item_name, "requested": str(requested), "available": str(available)},
            code="INSUFFICIENT_STOCK",
        )


class PersistenceError(ServiceError):
    def __init__(self, message: str = "Storage temporarily unavailable", details: Dict = None):
        super().__init__(message, "PERSISTENCE_ERROR", details)


def atomic_operation(func):
    """
    Run a service method inside transaction.atomic.
    Database failures surface as PersistenceError, service errors pass through.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            with transaction.atomic():
                return func(*args, **kwargs)
        except ServiceError:
            raise
        except DatabaseError as e:
            logger.exception(f"{func.__qualname__} failed: {e}")
            raise PersistenceError(details={"operation": func.__qualname__}) from e
    return wrapper


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def error_response(message: str, code: str = "ERROR", details: Dict = None) -> Dict:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }


def stock_setting(name: str) -> Any:
    return settings.STOCK_LEDGER[name]


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), stock_setting("PAGE_SIZE_MAX"))

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def parse_quantity(value: Any,
                   field: str = "quantity",
                   allow_negative: bool = False,
                   allow_zero: bool = False) -> Decimal:
    """Strict decimal parsing for amounts that end up in the ledger."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}", field)
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}", field)

    if not quantity.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}", field)

    quantity = round_decimal(quantity, 4)

    if quantity < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative", field)
    if quantity == 0 and not allow_zero:
        raise ValidationError(f"{field} must be greater than zero", field)
    return quantity


def to_date(value: Any, field: str = "date") -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"Invalid {field}: {value!r}. Expected YYYY-MM-DD", field)
    return parsed


def require_user(user_id: Optional[int], field: str = "user_id") -> int:
    if not user_id:
        raise ValidationError(f"{field} is required", field)
    if not get_user_model().objects.filter(pk=user_id).exists():
        raise NotFoundError("User", user_id)
    return user_id


def append_note(existing: str, note: str) -> str:
    if not note:
        return existing
    return f"{existing}\n{note}".strip()


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls.model.__name__, id)
        return obj

    @classmethod
    def lock_or_404(cls, id: int, resource: str = None) -> Model:
        """Fetch a row with select_for_update; caller must be inside a transaction."""
        obj = cls.model.objects.select_for_update().filter(id=id).first()
        if not obj:
            raise NotFoundError(resource or cls.model.__name__, id)
        return obj
