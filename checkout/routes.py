from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from checkout.auth import verify_token
from checkout.config import Settings, get_settings
from checkout.database import get_db
from checkout.errors import NotFound, ProviderError
from checkout.mercadopago_service import MercadoPagoClient, get_mercadopago_client
from checkout.models import Order, OrderItem, PaymentRecord
from checkout.preferences import IssuedPreference, PreferenceIssuer
from checkout.statuses import OrderStatus

router = APIRouter(prefix="/api")


class LineItemRequest(BaseModel):
    title: str = Field(min_length=1)
    unit_price_cents: int = Field(ge=0)
    quantity: int = Field(ge=1)


class OrderRequest(BaseModel):
    items: list[LineItemRequest] = Field(min_length=1)


class PreferenceRequest(BaseModel):
    order_id: str


@router.post("/orders", status_code=201)
def create_order(request: OrderRequest, db: Session = Depends(get_db)):
    order = Order(status=OrderStatus.CREATED.value)
    order.items = [
        OrderItem(title=item.title, unit_price_cents=item.unit_price_cents, quantity=item.quantity)
        for item in request.items
    ]
    db.add(order)
    db.commit()

    return {
        "order_id": order.id,
        "status": order.status,
        "total_cents": sum(i.unit_price_cents * i.quantity for i in request.items),
    }


@router.post("/checkout/preference", response_model=IssuedPreference)
async def create_preference(
    request: PreferenceRequest,
    db: Session = Depends(get_db),
    client: MercadoPagoClient = Depends(get_mercadopago_client),
    settings: Settings = Depends(get_settings),
):
    try:
        return await PreferenceIssuer(db, client, settings).issue(request.order_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ProviderError:
        raise HTTPException(status_code=502, detail="Failed to create Mercado Pago preference")


@router.get("/admin/orders/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), auth=Depends(verify_token)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    payments = (
        db.query(PaymentRecord)
        .filter_by(order_id=order_id)
        .order_by(PaymentRecord.updated_at.desc())
        .all()
    )

    return {
        "id": order.id,
        "status": order.status,
        "preference_id": order.preference_id,
        "payment_id": order.payment_id,
        "payment_status": order.payment_status,
        "mp_merchant_order_id": order.mp_merchant_order_id,
        "items": [
            {"title": i.title, "unit_price_cents": i.unit_price_cents, "quantity": i.quantity}
            for i in order.items
        ],
        "payments": [
            {
                "payment_id": p.payment_id,
                "status": p.status,
                "status_detail": p.status_detail,
                "amount_cents": p.amount_cents,
                "currency": p.currency,
            }
            for p in payments
        ],
    }
