import logging

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from checkout.config import Settings
from checkout.errors import NotFound, ProviderError
from checkout.mercadopago_service import MercadoPagoClient
from checkout.models import Order, OrderItem
from checkout.statuses import OrderStatus

logger = logging.getLogger(__name__)


class IssuedPreference(BaseModel):
    preference_id: str
    init_point: str
    sandbox_init_point: str | None = None


class PreferenceIssuer:
    def __init__(self, db: Session, client: MercadoPagoClient, settings: Settings):
        self.db = db
        self.client = client
        self.settings = settings

    def build_preference(self, order_id: str, items: list[OrderItem]) -> dict:
        return {
            "items": [
                {
                    "id": f"{order_id}-{index}",
                    "title": item.title,
                    "quantity": item.quantity,
                    "currency_id": self.settings.currency_id,
                    "unit_price": item.unit_price_cents / 100,
                }
                for index, item in enumerate(items)
            ],
            "external_reference": str(order_id),
            "back_urls": {
                "success": self.settings.back_url("success"),
                "failure": self.settings.back_url("failure"),
                "pending": self.settings.back_url("pending"),
            },
            "auto_return": "approved",
            "notification_url": self.settings.notification_url,
        }

    async def issue(self, order_id: str) -> IssuedPreference:
        items = (
            self.db.query(OrderItem)
            .filter_by(order_id=order_id)
            .order_by(OrderItem.id)
            .all()
        )
        if not items:
            raise NotFound(f"Order {order_id} has no line items")

        # ProviderError propagates before anything is written
        response = await self.client.create_preference(self.build_preference(order_id, items))

        try:
            issued = IssuedPreference(
                preference_id=str(response["id"]),
                init_point=response["init_point"],
                sandbox_init_point=response.get("sandbox_init_point"),
            )
        except (KeyError, TypeError, ValidationError) as exc:
            raise ProviderError("Mercado Pago preference response is incomplete") from exc

        self.db.query(Order).filter_by(id=order_id).update(
            {"preference_id": issued.preference_id, "status": OrderStatus.PENDING_PAYMENT.value},
            synchronize_session=False,
        )
        self.db.commit()

        logger.info("Preference issued", extra={"order_id": order_id, "preference_id": issued.preference_id})
        return issued
