# storefront/api/errors.py
from fastapi import HTTPException, status

from storefront.domain.errors import ErrorKind, StoreError

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_INVENTORY: status.HTTP_409_CONFLICT,
    ErrorKind.DISCOUNT_REJECTED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PAYMENT_DECLINED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.PAYMENT_FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOTIFICATION_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http(exc: StoreError) -> HTTPException:
    return HTTPException(status_code=STATUS_BY_KIND[exc.kind], detail=exc.details())
