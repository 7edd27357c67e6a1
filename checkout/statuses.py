from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    CREATED = "created"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ProviderPaymentStatus(str, Enum):
    """Payment statuses reported by Mercado Pago."""

    PENDING = "pending"
    APPROVED = "approved"
    AUTHORIZED = "authorized"
    IN_PROCESS = "in_process"
    IN_MEDIATION = "in_mediation"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    CHARGED_BACK = "charged_back"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["ProviderPaymentStatus"]:
        try:
            return cls(raw)
        except ValueError:
            return None


PAYMENT_TO_ORDER_STATUS = {
    ProviderPaymentStatus.APPROVED: OrderStatus.PAID,
    ProviderPaymentStatus.REFUNDED: OrderStatus.REFUNDED,
    ProviderPaymentStatus.IN_PROCESS: OrderStatus.PENDING_PAYMENT,
    # Rejected payments send the order back to its pre-payment state
    ProviderPaymentStatus.REJECTED: OrderStatus.CREATED,
    ProviderPaymentStatus.PENDING: OrderStatus.PENDING_PAYMENT,
    ProviderPaymentStatus.AUTHORIZED: OrderStatus.PENDING_PAYMENT,
    ProviderPaymentStatus.IN_MEDIATION: OrderStatus.PENDING_PAYMENT,
    ProviderPaymentStatus.CANCELLED: OrderStatus.PENDING_PAYMENT,
    ProviderPaymentStatus.CHARGED_BACK: OrderStatus.PENDING_PAYMENT,
}

_unmapped = set(ProviderPaymentStatus) - set(PAYMENT_TO_ORDER_STATUS)
if _unmapped:
    raise RuntimeError(f"Provider statuses without an order status: {sorted(s.value for s in _unmapped)}")


def order_status_for(raw_status: Optional[str]) -> OrderStatus:
    status = ProviderPaymentStatus.parse(raw_status)
    if status is None:
        return OrderStatus.PENDING_PAYMENT
    return PAYMENT_TO_ORDER_STATUS[status]
