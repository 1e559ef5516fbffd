"""
RentVelo — Billing errors
Raised by the engine before any write; rendered by the REST exception handler.
"""
from rest_framework import status


class BillingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidInput(BillingError):
    """Rejected input: negative payment, meter regression, non-numeric value."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class BillLocked(BillingError):
    """Historical bill edited while RENT_LOCK_HISTORICAL_BILLS is on."""
    status_code = status.HTTP_409_CONFLICT


def billing_exception_handler(exc, context):
    """DRF EXCEPTION_HANDLER: engine errors become {'detail': message}."""
    # Imported here: models import this module while apps are loading
    from rest_framework.response import Response
    from rest_framework.views import exception_handler

    if isinstance(exc, BillingError):
        return Response({'detail': exc.message}, status=exc.status_code)
    return exception_handler(exc, context)
