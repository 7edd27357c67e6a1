import logging

from fastapi import FastAPI, Request, Header, HTTPException, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout.config import Settings, get_settings
from checkout.database import Base, engine, get_db
from checkout.errors import AuthenticationFailure, InvalidPayment, MalformedPayload, ProviderError
from checkout.logging_config import setup_logging
from checkout.mercadopago_service import MercadoPagoClient, get_mercadopago_client
from checkout.reconciler import WebhookReconciler
from checkout.routes import router

setup_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Sneaker Storefront Checkout")

app.include_router(router)

Base.metadata.create_all(bind=engine)


@app.post("/api/mercadopago/webhook")
async def mercadopago_webhook(
    request: Request,
    x_signature: str = Header(None),
    x_request_id: str = Header(None),
    db: Session = Depends(get_db),
    client: MercadoPagoClient = Depends(get_mercadopago_client),
    settings: Settings = Depends(get_settings),
):
    # Signature covers the exact bytes received
    raw = await request.body()

    try:
        await WebhookReconciler(db, client, settings).handle(raw, x_signature, x_request_id)
    except MalformedPayload:
        logger.info("Malformed webhook body ignored")
    except AuthenticationFailure:
        raise HTTPException(status_code=401, detail="Invalid signature")
    except ProviderError:
        logger.error("Failed to fetch Mercado Pago payment", exc_info=True)
        if settings.webhook_retry_on_provider_error:
            raise HTTPException(status_code=503, detail="Payment provider unavailable")
    except InvalidPayment:
        logger.error("Mercado Pago payment could not be recorded", exc_info=True)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to store webhook result", exc_info=True)
    except Exception:
        # Acknowledged regardless of internal failures
        db.rollback()
        logger.exception("Unexpected failure while reconciling webhook")

    return {"ok": True}
