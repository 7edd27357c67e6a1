import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_app.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from checkout.main import app as fastapi_app
from checkout.config import Settings, get_settings
from checkout.database import Base, get_db
from checkout.mercadopago_service import MercadoPagoClient, get_mercadopago_client
from checkout.models import Order, OrderItem

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(
        mp_access_token="TEST-access-token",
        mp_webhook_secret="whsec_test",
        public_base_url="https://shop.example",
        jwt_secret="jwt-test-secret",
    )


@pytest.fixture
def mp_client(mocker):
    mp = mocker.Mock(spec=MercadoPagoClient)
    mp.create_preference = mocker.AsyncMock()
    mp.get_payment = mocker.AsyncMock()
    return mp


@pytest.fixture
def client(settings, mp_client):
    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    fastapi_app.dependency_overrides[get_mercadopago_client] = lambda: mp_client

    with TestClient(fastapi_app) as c:
        yield c

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_order(db):
    def _make_order(order_id, items, status="created"):
        order = Order(id=order_id, status=status)
        order.items = [
            OrderItem(title=title, unit_price_cents=price, quantity=qty)
            for title, price, qty in items
        ]
        db.add(order)
        db.commit()
        return order

    return _make_order
