from pydantic_settings import BaseSettings
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    # Default token lifetime (in minutes). Adjust via ACCESS_TOKEN_EXPIRE_MINUTES env var.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    DEBUG: bool = False

    @property
    def secret_key(self) -> str:
        return self.JWT_SECRET or self.SECRET_KEY

    # Postgres in production; a local SQLite file is accepted for development
    # and tests.
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")

    ALLOWED_ORIGINS: str = "http://localhost:8080,http://localhost:5173"
    FRONTEND_URL: str = "http://localhost:8080"
    # Public base URL of this API including the /api prefix, e.g.
    #   https://api.yourdomain.com/api
    API_URL: str = "http://localhost:3000/api"

    # Timeout (seconds) for payment gateway and ERP calls.
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Mercado Pago (payment gateway)
    #
    # MERCADO_PAGO_ACCESS_TOKEN is the platform account token. It is used when
    # an order has no seller or the seller has not connected an account.
    MERCADO_PAGO_ACCESS_TOKEN: Optional[str] = None
    MERCADO_PAGO_CLIENT_ID: Optional[str] = None
    MERCADO_PAGO_CLIENT_SECRET: Optional[str] = None
    MERCADO_PAGO_API_URL: str = "https://api.mercadopago.com"
    MERCADO_PAGO_AUTH_URL: str = "https://auth.mercadopago.com.br"
    MERCADO_PAGO_STATEMENT_DESCRIPTOR: str = "OPTICAL MARKET"
    MERCADO_PAGO_CURRENCY: str = "BRL"

    # Platform commission charged on orders paid through a seller account.
    CREDIT_CARD_FEE_RATE: float = 0.10
    PIX_FEE_RATE: float = 0.08

    # Correios (shipping rates). When user/token are missing the regional
    # fallback table is used.
    CORREIOS_USER: Optional[str] = None
    CORREIOS_TOKEN: Optional[str] = None
    CORREIOS_CARTAO: str = ""
    CORREIOS_ORIGIN_CEP: str = "01310100"
    CORREIOS_API_URL: str = "https://apihom.correios.com.br"
    CORREIOS_TIMEOUT_SECONDS: float = 5.0

    # Bling (ERP)
    BLING_API_URL: str = "https://www.bling.com.br/Api/v3"
    BLING_REDIRECT_URI: Optional[str] = None

    class Config:
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def allowed_origins(self) -> list:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def mercado_pago_redirect_uri(self) -> str:
        return f"{self.API_URL}/mercadopago/callback"

    @property
    def payment_webhook_url(self) -> str:
        return f"{self.API_URL}/payment/webhook"

    @property
    def bling_redirect_uri(self) -> str:
        return self.BLING_REDIRECT_URI or f"{self.API_URL}/bling/callback"


settings = Settings()
