"""
RentVelo — API Views
Thin REST surface over the billing engine. Every mutating endpoint ends by
calling recalculate_bill; engine errors are rendered by
billing.exceptions.billing_exception_handler.
"""
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.response import Response
from rest_framework.views import APIView

from . import generator, ledger, reports
from .models import RentBill
from .serializers import (
    RentBillSerializer, RentBillDetailSerializer, BillExpenseSerializer, PaymentSerializer,
    BillRowSerializer, TenantLedgerSerializer, DashboardSerializer,
    PeriodSerializer, BillUpdateSerializer, ExpenseCreateSerializer,
    PaymentCreateSerializer, MeterReadingInputSerializer,
)


# ═══════════════════════════════════════════════════════════
#  PROPERTY BILLS
# ═══════════════════════════════════════════════════════════

class PropertyBillsView(APIView):
    """GET /api/properties/{property_id}/bills/?month=&year="""

    def get(self, request, property_id):
        today = timezone.localdate()
        rows = reports.get_bills_for_property_month(
            property_id,
            request.query_params.get('month', today.month),
            request.query_params.get('year', today.year),
        )
        return Response(BillRowSerializer(rows, many=True).data)


class GenerateBillsView(APIView):
    """POST /api/properties/{property_id}/bills/generate/"""

    def post(self, request, property_id):
        serializer = PeriodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        created = generator.generate_bills_for_property(property_id, data['month'], data['year'])
        return Response(
            {'created': len(created), 'bills': RentBillSerializer(created, many=True).data},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


# ═══════════════════════════════════════════════════════════
#  BILLS
# ═══════════════════════════════════════════════════════════

class RentBillViewSet(mixins.UpdateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    GET   /api/bills/            (filter: property, tenant, unit, month, year, status)
    GET   /api/bills/{id}/
    PATCH /api/bills/{id}/
    """
    queryset = RentBill.objects.select_related('tenant', 'unit').order_by('-year', '-month')
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['property', 'tenant', 'unit', 'month', 'year', 'status']
    ordering_fields = ['year', 'month', 'balance', 'total_amount']
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return RentBillDetailSerializer
        return RentBillSerializer

    def _detail(self, bill_id):
        bill = RentBill.objects.select_related('tenant', 'unit').get(pk=bill_id)
        return RentBillDetailSerializer(bill).data

    def update(self, request, *args, **kwargs):
        bill = self.get_object()
        serializer = BillUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        ledger.update_bill(bill.pk, **serializer.validated_data)
        ledger.recalculate_bill(bill.pk)
        return Response(self._detail(bill.pk))

    @action(detail=True, methods=['post'], url_path='recalculate')
    def recalculate(self, request, pk=None):
        """POST /api/bills/{id}/recalculate/"""
        bill = self.get_object()
        ledger.recalculate_bill(bill.pk)
        return Response(self._detail(bill.pk))

    @action(detail=True, methods=['post'], url_path='meter-reading')
    def meter_reading(self, request, pk=None):
        """POST /api/bills/{id}/meter-reading/"""
        bill = self.get_object()
        serializer = MeterReadingInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        ledger.apply_meter_reading(
            bill.pk, data['current_reading'], kind=data['kind'],
            reading_date=data.get('reading_date'),
        )
        return Response(self._detail(bill.pk))

    @action(detail=True, methods=['get', 'post'], url_path='expenses')
    def expenses(self, request, pk=None):
        """GET|POST /api/bills/{id}/expenses/"""
        bill = self.get_object()
        if request.method == 'GET':
            return Response(BillExpenseSerializer(ledger.get_bill_expenses(bill.pk), many=True).data)

        serializer = ExpenseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        # add_expense_to_bill recalculates on its own
        expense = ledger.add_expense_to_bill(
            bill.pk, data['label'], data['amount'], is_recurring=data['is_recurring'],
        )
        return Response(BillExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'], url_path='payments')
    def payments(self, request, pk=None):
        """GET|POST /api/bills/{id}/payments/"""
        bill = self.get_object()
        if request.method == 'GET':
            return Response(PaymentSerializer(ledger.get_bill_payments(bill.pk), many=True).data)

        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = ledger.add_payment_to_bill(
            bill.pk,
            data['amount'],
            payment_method=data['payment_method'],
            payment_date=data.get('payment_date'),
            notes=data['notes'],
            photo_uri=data['photo_uri'],
            payment_type=data['payment_type'],
        )
        ledger.recalculate_bill(bill.pk)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


# ═══════════════════════════════════════════════════════════
#  LEDGER ENTRIES
# ═══════════════════════════════════════════════════════════

class ExpenseDetailView(APIView):
    """DELETE /api/expenses/{expense_id}/"""

    def delete(self, request, expense_id):
        bill_id = ledger.remove_expense(expense_id)
        ledger.recalculate_bill(bill_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PaymentDetailView(APIView):
    """DELETE /api/payments/{payment_id}/"""

    def delete(self, request, payment_id):
        bill_id = ledger.remove_payment_from_bill(payment_id)
        if bill_id:
            ledger.recalculate_bill(bill_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════
#  TENANT LEDGER & DASHBOARD
# ═══════════════════════════════════════════════════════════

class TenantLedgerView(APIView):
    """GET /api/tenants/{tenant_id}/ledger/"""

    def get(self, request, tenant_id):
        return Response(TenantLedgerSerializer(reports.get_tenant_ledger(tenant_id)).data)


class DashboardView(APIView):
    """GET /api/dashboard/?month=&year=&property_id="""

    def get(self, request):
        today = timezone.localdate()
        data = reports.get_dashboard_data(
            request.query_params.get('month', today.month),
            request.query_params.get('year', today.year),
            property_id=request.query_params.get('property_id') or None,
        )
        return Response(DashboardSerializer(data).data)
