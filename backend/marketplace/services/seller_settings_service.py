"""Seller payment-account linkage (Mercado Pago OAuth)."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import CredentialProvider, ProviderCredential
from marketplace.services.mercado_pago import MercadoPagoClient, MercadoPagoError
from marketplace.utils.logger import logger


def get_credential(db: Session, user_id: str, provider: CredentialProvider) -> Optional[ProviderCredential]:
    return (
        db.query(ProviderCredential)
        .filter(ProviderCredential.user_id == user_id, ProviderCredential.provider == provider)
        .first()
    )


def get_or_create_credential(db: Session, user_id: str, provider: CredentialProvider) -> ProviderCredential:
    credential = get_credential(db, user_id, provider)
    if credential is None:
        credential = ProviderCredential(user_id=user_id, provider=provider)
        db.add(credential)
    return credential


class SellerSettingsService:

    def __init__(self, db: Session, gateway: Optional[MercadoPagoClient] = None):
        self.db = db
        self.gateway = gateway or MercadoPagoClient()

    def get_credential(self, seller_id: str) -> Optional[ProviderCredential]:
        return get_credential(self.db, seller_id, CredentialProvider.MERCADO_PAGO)

    def get_seller_access_token(self, seller_id: Optional[str]) -> Optional[str]:
        if not seller_id:
            return None
        credential = self.get_credential(seller_id)
        if credential is not None and credential.is_connected:
            return credential.access_token
        return None

    def get_oauth_url(self, seller_id: str) -> dict:
        """Start the OAuth flow; the random state is stored on the credential row."""
        state = secrets.token_urlsafe(24)
        with transaction(self.db):
            credential = get_or_create_credential(self.db, seller_id, CredentialProvider.MERCADO_PAGO)
            credential.oauth_state = state

        query = urlencode({
            "client_id": settings.MERCADO_PAGO_CLIENT_ID or "",
            "response_type": "code",
            "platform_id": "mp",
            "state": state,
            "redirect_uri": settings.mercado_pago_redirect_uri,
        })
        return {"url": f"{settings.MERCADO_PAGO_AUTH_URL}/authorization?{query}"}

    async def handle_oauth_callback(self, code: str, state: str) -> str:
        """Finish the OAuth flow and return the frontend URL to redirect to."""
        frontend_url = settings.FRONTEND_URL
        credential = (
            self.db.query(ProviderCredential)
            .filter(
                ProviderCredential.oauth_state == state,
                ProviderCredential.provider == CredentialProvider.MERCADO_PAGO,
            )
            .first()
        )
        if credential is None or not code:
            logger.warning("Mercado Pago OAuth callback with unknown state")
            return f"{frontend_url}/seller/profile?mp=error"

        try:
            data = await self.gateway.exchange_authorization_code(code)
        except MercadoPagoError as exc:
            logger.error("Mercado Pago OAuth error for seller %s: %s", credential.user_id, exc.message)
            return f"{frontend_url}/seller/profile?mp=error"

        with transaction(self.db):
            credential.account_id = str(data.get("user_id")) if data.get("user_id") is not None else None
            credential.access_token = data.get("access_token")
            credential.refresh_token = data.get("refresh_token")
            credential.scope = data.get("scope")
            credential.expires_at = _expiry(data.get("expires_in"))
            credential.oauth_state = None

        logger.info("Seller %s connected Mercado Pago account %s", credential.user_id, credential.account_id)
        return f"{frontend_url}/seller/profile?mp=connected"

    def disconnect(self, seller_id: str) -> dict:
        credential = self.get_credential(seller_id)
        if credential is not None:
            with transaction(self.db):
                self.db.delete(credential)
            logger.info("Seller %s disconnected Mercado Pago", seller_id)
        return {"disconnected": True}

    async def refresh_seller_token(self, seller_id: str) -> Optional[str]:
        """Refresh the seller's access token; None when it cannot be refreshed."""
        credential = self.get_credential(seller_id)
        if credential is None or not credential.refresh_token:
            return None

        try:
            data = await self.gateway.refresh_access_token(credential.refresh_token)
        except MercadoPagoError as exc:
            logger.warning("Mercado Pago token refresh failed for seller %s: %s", seller_id, exc.message)
            return None

        with transaction(self.db):
            credential.access_token = data.get("access_token")
            credential.refresh_token = data.get("refresh_token") or credential.refresh_token
            credential.expires_at = _expiry(data.get("expires_in"))

        logger.info("Refreshed Mercado Pago token for seller %s", seller_id)
        return credential.access_token


def _expiry(expires_in) -> Optional[datetime]:
    try:
        return datetime.utcnow() + timedelta(seconds=int(expires_in))
    except (TypeError, ValueError):
        return None
