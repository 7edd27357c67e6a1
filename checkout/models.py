import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from checkout.database import Base
from checkout.statuses import OrderStatus


def utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(String, nullable=False, default=OrderStatus.CREATED.value)
    preference_id = Column(String, nullable=True)          # Mercado Pago preference
    payment_id = Column(String, nullable=True, index=True)  # latest Mercado Pago payment
    payment_status = Column(String, nullable=True)          # raw provider status
    mp_merchant_order_id = Column(String, nullable=True)
    mp_request_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.id"), index=True, nullable=False)
    title = Column(String, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")


class PaymentRecord(Base):
    """Audit copy of a provider payment. Not authoritative for order state."""

    __tablename__ = "payments"

    payment_id = Column(String, primary_key=True)
    provider = Column(String, nullable=False, default="mercadopago")
    order_id = Column(String, index=True)
    status = Column(String)
    status_detail = Column(String)
    amount_cents = Column(Integer)
    currency = Column(String)
    preference_id = Column(String)
    merchant_order_id = Column(String)
    external_reference = Column(String)
    raw = Column(JSON)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
