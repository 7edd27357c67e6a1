import json
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from checkout.config import Settings
from checkout.errors import AuthenticationFailure, InvalidPayment, MalformedPayload
from checkout.mercadopago_service import MercadoPagoClient
from checkout.models import Order, PaymentRecord, utcnow
from checkout.signature import verify_signature
from checkout.statuses import order_status_for

logger = logging.getLogger(__name__)

PROVIDER = "mercadopago"
PAYMENT_TOPIC = "payment"


class ReconcileOutcome(str, Enum):
    IGNORED = "ignored"
    APPLIED = "applied"


def parse_payload(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError as exc:
        raise MalformedPayload("Webhook body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedPayload("Webhook body is not a JSON object")
    return payload


def extract_notification(payload: dict) -> tuple[Optional[str], Optional[str]]:
    """Return ``(topic, payment_id)`` for both ``{type, data: {id}}`` and ``{action, id}`` shapes."""
    topic = payload.get("type") or payload.get("action")
    data = payload.get("data")
    payment_id = data.get("id") if isinstance(data, dict) else None
    if payment_id in (None, ""):
        payment_id = payload.get("id")
    # Mercado Pago payment ids are numeric
    if payment_id is None or isinstance(payment_id, bool) or not str(payment_id).isdigit():
        return topic, None
    return topic, str(payment_id)


def to_cents(amount) -> int:
    if amount is None:
        return 0
    if isinstance(amount, bool) or not isinstance(amount, (int, float, str)):
        raise ValueError(f"Invalid amount: {amount!r}")
    try:
        cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    return int(cents)


def upsert_payment_record(db: Session, values: dict) -> None:
    """Insert or replace the audit row keyed by ``payment_id``. Does not commit."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        db.merge(PaymentRecord(**values))
        return

    stmt = insert(PaymentRecord).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[PaymentRecord.payment_id],
        set_={key: stmt.excluded[key] for key in values if key != "payment_id"},
    )
    db.execute(stmt)


def _optional_str(value) -> Optional[str]:
    return None if value in (None, "") else str(value)


def _mapping(value) -> dict:
    return value if isinstance(value, dict) else {}


class WebhookReconciler:
    def __init__(self, db: Session, client: MercadoPagoClient, settings: Settings):
        self.db = db
        self.client = client
        self.settings = settings

    def check_signature(self, raw_body: bytes, signature: Optional[str],
                        request_id: Optional[str], data_id: Optional[str]) -> None:
        if verify_signature(signature, raw_body, self.settings.mp_webhook_secret,
                            data_id=data_id, request_id=request_id):
            return
        logger.warning(
            "Webhook signature mismatch",
            extra={"payment_id": data_id, "enforced": self.settings.webhook_enforce_signature},
        )
        if self.settings.webhook_enforce_signature:
            raise AuthenticationFailure("Invalid webhook signature")

    def audit_values(self, payment: dict) -> dict:
        transaction_data = _mapping(_mapping(payment.get("point_of_interaction")).get("transaction_data"))
        merchant_order = _mapping(payment.get("order"))
        try:
            amount_cents = to_cents(payment.get("transaction_amount"))
        except ValueError as exc:
            raise InvalidPayment(f"Payment {payment.get('id')} has an invalid transaction_amount") from exc

        return {
            "payment_id": str(payment.get("id")),
            "provider": PROVIDER,
            "order_id": _optional_str(payment.get("external_reference")),
            "status": _optional_str(payment.get("status")),
            "status_detail": _optional_str(payment.get("status_detail")),
            "amount_cents": amount_cents,
            "currency": _optional_str(payment.get("currency_id")) or self.settings.currency_id,
            "preference_id": _optional_str(transaction_data.get("preference_id")),
            "merchant_order_id": _optional_str(merchant_order.get("id")),
            "external_reference": _optional_str(payment.get("external_reference")),
            "raw": payment,
            "updated_at": utcnow(),
        }

    def apply_to_order(self, audit: dict, request_id: Optional[str]) -> None:
        order_id = audit["external_reference"]
        if order_id is None:
            logger.warning("Payment has no external reference", extra={"payment_id": audit["payment_id"]})
            return

        updated = self.db.query(Order).filter_by(id=order_id).update(
            {
                "status": order_status_for(audit["status"]).value,
                "payment_id": audit["payment_id"],
                "payment_status": audit["status"],
                "mp_merchant_order_id": audit["merchant_order_id"],
                "mp_request_id": request_id,
                "updated_at": utcnow(),
            },
            synchronize_session=False,
        )
        if not updated:
            logger.warning("No order for external reference",
                           extra={"order_id": order_id, "payment_id": audit["payment_id"]})

    async def handle(self, raw_body: bytes, signature: Optional[str] = None,
                     request_id: Optional[str] = None) -> ReconcileOutcome:
        payload = parse_payload(raw_body)
        topic, payment_id = extract_notification(payload)

        self.check_signature(raw_body, signature, request_id, payment_id)

        logger.info("Webhook received", extra={"topic": topic, "payment_id": payment_id})
        if topic != PAYMENT_TOPIC or payment_id is None:
            logger.info("Webhook ignored", extra={"topic": topic, "payment_id": payment_id})
            return ReconcileOutcome.IGNORED

        payment = await self.client.get_payment(payment_id)
        if not isinstance(payment, dict):
            raise InvalidPayment(f"Payment {payment_id} is not a JSON object")
        if payment.get("id") is None:
            payment = {**payment, "id": payment_id}

        audit = self.audit_values(payment)
        upsert_payment_record(self.db, audit)
        self.apply_to_order(audit, request_id)
        self.db.commit()

        logger.info(
            "Payment reconciled",
            extra={"payment_id": audit["payment_id"], "order_id": audit["order_id"], "status": audit["status"]},
        )
        return ReconcileOutcome.APPLIED
