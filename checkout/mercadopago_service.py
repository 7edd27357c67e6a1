import logging
from urllib.parse import quote

import httpx
from fastapi import Depends

from checkout.config import Settings, get_settings
from checkout.errors import ProviderError

logger = logging.getLogger(__name__)


class MercadoPagoClient:
    """Thin async wrapper over the Mercado Pago REST API. Never retries."""

    def __init__(self, access_token: str, base_url: str = "https://api.mercadopago.com",
                 timeout: float = 30.0, transport: httpx.AsyncBaseTransport = None):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        if not self.access_token:
            raise ProviderError("Mercado Pago is not configured")

        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Mercado Pago request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Mercado Pago request rejected",
                extra={"path": path, "status_code": response.status_code, "response": response.text[:500]},
            )
            raise ProviderError(
                f"Mercado Pago answered {response.status_code} for {method} {path}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError("Mercado Pago answered with a non-JSON body") from exc

    async def create_preference(self, body: dict) -> dict:
        return await self._request("POST", "/checkout/preferences", json=body)

    async def get_payment(self, payment_id: str) -> dict:
        return await self._request("GET", f"/v1/payments/{quote(str(payment_id), safe='')}")


def get_mercadopago_client(settings: Settings = Depends(get_settings)) -> MercadoPagoClient:
    return MercadoPagoClient(
        access_token=settings.mp_access_token,
        base_url=settings.mp_api_base_url,
        timeout=settings.mp_timeout,
    )
