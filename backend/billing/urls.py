"""
RentVelo — API URL Configuration
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'bills', views.RentBillViewSet, basename='bills')

urlpatterns = [
    path('', include(router.urls)),

    # Property-scoped bill routes
    path('properties/<uuid:property_id>/bills/',
         views.PropertyBillsView.as_view(), name='property-bills'),
    path('properties/<uuid:property_id>/bills/generate/',
         views.GenerateBillsView.as_view(), name='property-bills-generate'),

    # Ledger entries
    path('expenses/<uuid:expense_id>/', views.ExpenseDetailView.as_view(), name='expense-detail'),
    path('payments/<uuid:payment_id>/', views.PaymentDetailView.as_view(), name='payment-detail'),

    # Reports
    path('tenants/<uuid:tenant_id>/ledger/', views.TenantLedgerView.as_view(), name='tenant-ledger'),
    path('dashboard/', views.DashboardView.as_view(), name='dashboard'),
]
