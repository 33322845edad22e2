"""Error taxonomy surfaced by the billing engine and its API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


class BillingError(Exception):
    """Base domain error carrying a stable machine-readable code."""

    code = "billing_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, detail: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = dict(detail or {})

    @property
    def payload(self) -> Dict[str, Any]:
        """Serialized representation suitable for JSON responses."""

        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        body.update(self.detail)
        return body

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.payload)


class ValidationError(BillingError):
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, fields: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(message, detail={"fields": dict(fields or {})})
        self.fields = dict(fields or {})


class NotFoundError(BillingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PlanNotFound(NotFoundError):
    code = "plan_not_found"


class AuthorizationError(BillingError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(BillingError):
    code = "conflict"
    status_code = status.HTTP_400_BAD_REQUEST


class GatewayError(BillingError):
    """The payment provider rejected a call or could not be reached."""

    code = "gateway_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class InvalidGatewayPrice(GatewayError):
    code = "invalid_gateway_price"
    status_code = status.HTTP_400_BAD_REQUEST


class GatewayIncomplete(GatewayError):
    code = "gateway_incomplete"


class GatewayRefundFailed(GatewayError):
    code = "gateway_refund_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class GatewayRejected(GatewayError):
    code = "gateway_rejected"


class GatewayUnavailable(GatewayError):
    code = "gateway_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class RefundReconciliationRequired(BillingError):
    """A remote refund succeeded but the local ledger write did not."""

    code = "reconciliation_required"

    def __init__(self, message: str, *, payment_id: int, remote_refund_id: str) -> None:
        super().__init__(
            message,
            detail={"paymentId": payment_id, "remoteRefundId": remote_refund_id},
        )
        self.payment_id = payment_id
        self.remote_refund_id = remote_refund_id


class RateLimited(BillingError):
    code = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self,
        message: str,
        *,
        remaining_seconds: Optional[int] = None,
        reset_time: Optional[datetime] = None,
    ) -> None:
        detail: Dict[str, Any] = {}
        if remaining_seconds is not None:
            detail["remainingSeconds"] = remaining_seconds
        if reset_time is not None:
            detail["resetTime"] = reset_time.isoformat()
        super().__init__(message, detail=detail)
        self.remaining_seconds = remaining_seconds
        self.reset_time = reset_time


__all__ = [
    "AuthorizationError",
    "BillingError",
    "ConflictError",
    "GatewayError",
    "GatewayIncomplete",
    "GatewayRefundFailed",
    "GatewayRejected",
    "GatewayUnavailable",
    "InvalidGatewayPrice",
    "NotFoundError",
    "PlanNotFound",
    "RateLimited",
    "RefundReconciliationRequired",
    "ValidationError",
]
