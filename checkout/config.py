import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    database_url: str = ""
    mp_access_token: str = ""
    mp_webhook_secret: str = ""
    mp_api_base_url: str = "https://api.mercadopago.com"
    mp_timeout: float = 30.0
    currency_id: str = "MXN"
    public_base_url: str = "http://localhost:8000"
    webhook_enforce_signature: bool = False
    webhook_retry_on_provider_error: bool = False
    jwt_secret: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", ""),
            mp_access_token=os.getenv("MP_ACCESS_TOKEN", ""),
            mp_webhook_secret=os.getenv("MP_WEBHOOK_SECRET", ""),
            mp_api_base_url=os.getenv("MP_API_BASE_URL", "https://api.mercadopago.com"),
            mp_timeout=float(os.getenv("MP_TIMEOUT_SECONDS", "30")),
            currency_id=os.getenv("MP_CURRENCY_ID", "MXN"),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"),
            webhook_enforce_signature=_flag("MP_WEBHOOK_ENFORCE_SIGNATURE"),
            webhook_retry_on_provider_error=_flag("MP_WEBHOOK_RETRY_ON_PROVIDER_ERROR"),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def base_url(self) -> str:
        return self.public_base_url.rstrip("/")

    @property
    def notification_url(self) -> str:
        return f"{self.base_url}/api/mercadopago/webhook"

    def back_url(self, outcome: str) -> str:
        return f"{self.base_url}/checkout/{outcome}"


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
