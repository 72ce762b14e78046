"""
Stock Alert Service - low stock and expiry conditions

Conditions are derived from the ingredient on every read; StockAlert rows
only carry the acknowledge/resolve workflow.
"""
import logging
from typing import Dict, Any, List, Tuple
from datetime import date

from django.utils import timezone

from stock.models import Ingredient, StockAlert
from .base_service import (
    BaseService, success_response, atomic_operation,
    ValidationError, ConflictError, require_user, append_note,
    stock_setting, iso,
)

logger = logging.getLogger(__name__)

AlertType = StockAlert.AlertType
Severity = StockAlert.Severity

SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class StockAlertService(BaseService):
    model = StockAlert

    @classmethod
    def serialize(cls, alert: StockAlert) -> Dict[str, Any]:
        ingredient = alert.ingredient
        return {
            "id": alert.id,
            "uuid": str(alert.uuid),
            "ingredient_id": ingredient.id,
            "ingredient_name": ingredient.name,
            "alert_type": alert.alert_type,
            "alert_type_display": alert.get_alert_type_display(),
            "severity": alert.severity,
            "message": alert.message,
            "current_stock": str(ingredient.current_stock),
            "reorder_level": str(ingredient.reorder_level),
            "expiry_date": iso(ingredient.expiry_date),
            "is_acknowledged": alert.is_acknowledged,
            "acknowledged_by_id": alert.acknowledged_by_id,
            "acknowledged_at": iso(alert.acknowledged_at),
            "is_resolved": alert.is_resolved,
            "resolved_by_id": alert.resolved_by_id,
            "resolved_at": iso(alert.resolved_at),
            "notes": alert.notes,
            "created_at": iso(alert.created_at),
        }

    @classmethod
    def evaluate(cls, ingredient: Ingredient, today: date = None) -> List[Tuple[str, str, str]]:
        """Current (alert_type, severity, message) conditions for one ingredient."""
        today = today or timezone.localdate()
        stock = ingredient.current_stock
        conditions = []

        if stock <= 0:
            conditions.append((
                AlertType.OUT_OF_STOCK, Severity.CRITICAL,
                f"{ingredient.name} is out of stock",
            ))
        elif stock <= ingredient.reorder_level:
            severity = Severity.HIGH if stock <= ingredient.reorder_level / 2 else Severity.MEDIUM
            conditions.append((
                AlertType.LOW_STOCK, severity,
                f"{ingredient.name} is low: {stock} {ingredient.unit} "
                f"(reorder level {ingredient.reorder_level})",
            ))

        if ingredient.expiry_date:
            days_left = (ingredient.expiry_date - today).days
            if days_left <= 0:
                conditions.append((
                    AlertType.EXPIRED, Severity.CRITICAL,
                    f"{ingredient.name} expired on {ingredient.expiry_date.isoformat()}",
                ))
            elif days_left <= stock_setting("EXPIRY_ALERT_DAYS"):
                conditions.append((
                    AlertType.EXPIRING_SOON,
                    Severity.HIGH if days_left <= 3 else Severity.MEDIUM,
                    f"{ingredient.name} expires in {days_left} day(s)",
                ))

        return conditions

    @classmethod
    @atomic_operation
    def refresh(cls, ingredient_ids: List[int] = None, today: date = None) -> Dict[str, int]:
        """Open alerts for new conditions and auto-resolve cleared ones."""
        ingredients = Ingredient.objects.filter(is_active=True)
        if ingredient_ids:
            ingredients = ingredients.filter(id__in=ingredient_ids)

        created = resolved = 0
        now = timezone.now()

        for ingredient in ingredients:
            conditions = {
                alert_type: (severity, message)
                for alert_type, severity, message in cls.evaluate(ingredient, today)
            }
            open_alerts = {
                alert.alert_type: alert
                for alert in cls.model.objects.filter(ingredient=ingredient, is_resolved=False)
            }

            for alert_type, alert in open_alerts.items():
                if alert_type not in conditions:
                    alert.is_resolved = True
                    alert.resolved_at = now
                    alert.notes = append_note(alert.notes, "Condition cleared")
                    alert.save(update_fields=["is_resolved", "resolved_at", "notes", "updated_at"])
                    resolved += 1
                elif (alert.severity, alert.message) != conditions[alert_type]:
                    alert.severity, alert.message = conditions[alert_type]
                    alert.save(update_fields=["severity", "message", "updated_at"])

            for alert_type, (severity, message) in conditions.items():
                if alert_type not in open_alerts:
                    cls.model.objects.create(
                        ingredient=ingredient,
                        alert_type=alert_type,
                        severity=severity,
                        message=message,
                    )
                    created += 1

        if created or resolved:
            logger.info(f"Stock alerts refreshed: {created} opened, {resolved} auto-resolved")

        return {"created": created, "resolved": resolved}

    @classmethod
    def list(cls,
             alert_type: str = None,
             severity: str = None,
             include_resolved: bool = False,
             refresh: bool = True) -> Dict[str, Any]:
        if alert_type and alert_type not in AlertType.values:
            raise ValidationError(f"Invalid alert type. Valid: {AlertType.values}", "alert_type")
        if severity and severity not in Severity.values:
            raise ValidationError(f"Invalid severity. Valid: {Severity.values}", "severity")

        if refresh:
            cls.refresh()

        queryset = cls.model.objects.select_related("ingredient")
        if not include_resolved:
            queryset = queryset.filter(is_resolved=False)
        if alert_type:
            queryset = queryset.filter(alert_type=alert_type)
        if severity:
            queryset = queryset.filter(severity=severity)

        alerts = sorted(queryset, key=lambda a: SEVERITY_RANK[a.severity])

        return success_response({
            "alerts": [cls.serialize(a) for a in alerts],
            "count": len(alerts),
        })

    @classmethod
    @atomic_operation
    def acknowledge(cls, alert_id: int, user_id: int, notes: str = "") -> Dict[str, Any]:
        require_user(user_id, "user_id")
        alert = cls.lock_or_404(alert_id, "Alert")

        if alert.is_resolved:
            raise ConflictError("Alert is already resolved", {"alert_id": alert.id})

        alert.is_acknowledged = True
        alert.acknowledged_by_id = user_id
        alert.acknowledged_at = timezone.now()
        alert.notes = append_note(alert.notes, notes)
        alert.save(update_fields=[
            "is_acknowledged", "acknowledged_by", "acknowledged_at", "notes", "updated_at"
        ])

        return success_response({"alert": cls.serialize(alert)}, "Alert acknowledged")

    @classmethod
    @atomic_operation
    def resolve(cls, alert_id: int, user_id: int, notes: str = "") -> Dict[str, Any]:
        require_user(user_id, "user_id")
        alert = cls.lock_or_404(alert_id, "Alert")

        if alert.is_resolved:
            raise ConflictError("Alert is already resolved", {"alert_id": alert.id})

        alert.is_resolved = True
        alert.resolved_by_id = user_id
        alert.resolved_at = timezone.now()
        alert.notes = append_note(alert.notes, notes)
        alert.save(update_fields=["is_resolved", "resolved_by", "resolved_at", "notes", "updated_at"])

        return success_response({"alert": cls.serialize(alert)}, "Alert resolved")
