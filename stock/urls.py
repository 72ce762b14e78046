from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("ingredients/", views.IngredientListView.as_view(), name="ingredient-list"),
    path("ingredients/<int:ingredient_id>/", views.IngredientDetailView.as_view(), name="ingredient-detail"),
    path("ingredients/<int:ingredient_id>/verify/", views.IngredientVerifyView.as_view(), name="ingredient-verify"),

    path("transactions/", views.TransactionListView.as_view(), name="transaction-list"),
    path("transactions/<int:transaction_id>/", views.TransactionDetailView.as_view(), name="transaction-detail"),
    path("purchase/", views.PurchaseView.as_view(), name="purchase"),
    path("consume/", views.ConsumeView.as_view(), name="consume"),
    path("consume/<int:sale_id>/reverse/", views.SaleReverseView.as_view(), name="consume-reverse"),
    path("adjust/", views.AdjustView.as_view(), name="adjust"),

    path("transfers/", views.TransferListView.as_view(), name="transfer-list"),
    path("transfers/<int:transfer_id>/", views.TransferDetailView.as_view(), name="transfer-detail"),
    path("transfers/<int:transfer_id>/<str:action>/", views.TransferActionView.as_view(), name="transfer-action"),

    path("reconciliations/", views.ReconciliationListView.as_view(), name="reconciliation-list"),
    path("reconciliations/active/", views.ReconciliationActiveView.as_view(), name="reconciliation-active"),
    path("reconciliations/<int:reconciliation_id>/", views.ReconciliationDetailView.as_view(), name="reconciliation-detail"),
    path("reconciliations/<int:reconciliation_id>/items/", views.ReconciliationItemsView.as_view(), name="reconciliation-items"),
    path("reconciliations/<int:reconciliation_id>/<str:action>/", views.ReconciliationActionView.as_view(), name="reconciliation-action"),

    path("returns/", views.ReturnListView.as_view(), name="return-list"),
    path("returns/<int:return_id>/", views.ReturnDetailView.as_view(), name="return-detail"),
    path("returns/<int:return_id>/<str:action>/", views.ReturnActionView.as_view(), name="return-action"),

    path("damages/", views.DamageListView.as_view(), name="damage-list"),
    path("damages/<int:damage_id>/", views.DamageDetailView.as_view(), name="damage-detail"),
    path("damages/<int:damage_id>/<str:action>/", views.DamageActionView.as_view(), name="damage-action"),

    path("alerts/", views.AlertListView.as_view(), name="alert-list"),
    path("alerts/<int:alert_id>/<str:action>/", views.AlertActionView.as_view(), name="alert-action"),
]
