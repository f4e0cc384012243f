"""Bling ERP integration: per-user OAuth, product/category push and category pull."""

from __future__ import annotations

import re
import secrets
import unicodedata
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.errors import ExternalServiceError, ValidationFailed
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import Category, CredentialProvider, ProviderCredential
from marketplace.services.seller_settings_service import get_credential, get_or_create_credential
from marketplace.utils.logger import logger, provider_logger


PROVIDER = "bling"

# Refresh the access token when it expires within this window.
REFRESH_WINDOW = timedelta(minutes=5)

AUTH_ERROR_MESSAGE = "Authentication failed. Please reconnect your Bling account."


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value.lower())
    without_accents = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]+", "-", without_accents).strip("-")


def build_product_payload(
    sku: str,
    name: str,
    price: float,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
    bling_category_id: Optional[int] = None,
) -> Dict[str, Any]:
    return {
        "nome": name,
        "codigo": sku,
        "preco": price,
        "tipo": "P",
        "situacao": "A",
        "formato": "S",
        "descricaoCurta": (description or name)[:255],
        "descricao": description or "",
        "unidade": "UN",
        "pesoLiquido": 0.1,
        "pesoBruto": 0.1,
        "estoque": {"minimo": 0, "maximo": 9999, "crossdocking": 0, "localizacao": ""},
        "actionEstoque": "A",
        "tipoProducao": "P",
        "condicao": 0,
        "freteGratis": False,
        "linkExterno": image_url or "",
        "categoria": {"id": bling_category_id},
    }


class BlingService:

    def __init__(self, db: Session, api_url: Optional[str] = None, timeout: Optional[float] = None):
        self.db = db
        self.api_url = (api_url or settings.BLING_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS

    def _credential(self, user_id: str) -> Optional[ProviderCredential]:
        return get_credential(self.db, user_id, CredentialProvider.BLING)

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------
    def connect(self, user_id: str, client_id: str, client_secret: str) -> dict:
        """Store the user's Bling app credentials and return the authorize URL."""
        if not client_id or not client_secret:
            raise ValidationFailed("client_id and client_secret are required", code="missing_credentials")

        state = secrets.token_urlsafe(24)
        with transaction(self.db):
            credential = get_or_create_credential(self.db, user_id, CredentialProvider.BLING)
            credential.client_id = client_id
            credential.client_secret = client_secret
            credential.oauth_state = state

        query = urlencode({"response_type": "code", "client_id": client_id, "state": state})
        return {"url": f"{self.api_url}/oauth/authorize?{query}"}

    async def _token_request(self, credential: ProviderCredential, form: Dict[str, str], event_type: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.api_url}/oauth/token",
                    data=form,
                    auth=(credential.client_id or "", credential.client_secret or ""),
                    headers={"Accept": "application/json"},
                )
        except httpx.RequestError as exc:
            provider_logger.log_event(PROVIDER, event_type, "Token request failed", request_data=form, status="error", error=str(exc))
            raise ExternalServiceError(f"Bling token request failed: {exc}", code="bling_unavailable") from exc

        if resp.status_code >= 400:
            provider_logger.log_event(PROVIDER, event_type, f"Token request returned {resp.status_code}", request_data=form, status="error", error=resp.text[:500])
            raise ExternalServiceError("Failed to obtain Bling access token", code="AUTH_ERROR")

        provider_logger.log_event(PROVIDER, event_type, "Token request succeeded", request_data=form)
        return resp.json()

    def _store_tokens(self, credential: ProviderCredential, data: Dict[str, Any]) -> None:
        with transaction(self.db):
            credential.access_token = data.get("access_token")
            credential.refresh_token = data.get("refresh_token") or credential.refresh_token
            if data.get("scope"):
                credential.scope = data.get("scope")
            expires_in = data.get("expires_in")
            credential.expires_at = (
                datetime.utcnow() + timedelta(seconds=int(expires_in)) if expires_in is not None else None
            )
            credential.oauth_state = None

    async def handle_oauth_callback(self, code: str, state: str) -> str:
        """Exchange the authorization code; returns the user id that connected."""
        credential = (
            self.db.query(ProviderCredential)
            .filter(
                ProviderCredential.oauth_state == state,
                ProviderCredential.provider == CredentialProvider.BLING,
            )
            .first()
        )
        if credential is None:
            raise ValidationFailed("Invalid state parameter", code="invalid_state")

        data = await self._token_request(
            credential,
            {"grant_type": "authorization_code", "code": code, "redirect_uri": settings.bling_redirect_uri},
            "oauth_code_exchange",
        )
        self._store_tokens(credential, data)
        logger.info("User %s connected Bling", credential.user_id)
        return credential.user_id

    async def refresh_access_token(self, user_id: str) -> str:
        credential = self._credential(user_id)
        if credential is None:
            raise ExternalServiceError("No Bling token found for user", code="not_connected")
        if not credential.refresh_token:
            raise ExternalServiceError("No Bling refresh token available", code="not_connected")

        data = await self._token_request(
            credential,
            {"grant_type": "refresh_token", "refresh_token": credential.refresh_token},
            "oauth_refresh",
        )
        self._store_tokens(credential, data)
        return credential.access_token

    async def get_valid_access_token(self, user_id: str) -> str:
        credential = self._credential(user_id)
        if credential is None or not credential.is_connected:
            raise ExternalServiceError("Bling not connected. Please authenticate first.", code="not_connected")
        if credential.expires_at is None:
            raise ExternalServiceError(
                "Token expiration date not found. Please re-authenticate.", code="not_connected"
            )
        if credential.expires_at - datetime.utcnow() < REFRESH_WINDOW:
            return await self.refresh_access_token(user_id)
        return credential.access_token

    def is_configured(self, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        credential = self._credential(user_id)
        return bool(credential and credential.is_connected)

    def get_connection_status(self, user_id: str) -> dict:
        credential = self._credential(user_id)
        if credential is None or not credential.is_connected:
            return {"connected": False, "message": "Not connected to Bling"}
        if credential.expires_at is None:
            return {
                "connected": True,
                "expires_at": None,
                "is_expired": False,
                "message": "Connected to Bling (expiration unknown)",
            }
        is_expired = credential.expires_at < datetime.utcnow()
        return {
            "connected": True,
            "expires_at": credential.expires_at.isoformat(),
            "is_expired": is_expired,
            "message": "Token expired, will refresh on next request" if is_expired else "Connected to Bling",
        }

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------
    async def _api(self, user_id: str, method: str, path: str, event_type: str, json_body: Optional[dict] = None) -> Dict[str, Any]:
        token = await self.get_valid_access_token(user_id)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method,
                    f"{self.api_url}{path}",
                    json=json_body,
                    headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                )
        except httpx.RequestError as exc:
            provider_logger.log_event(PROVIDER, event_type, f"{method} {path} failed", request_data=json_body, status="error", error=str(exc))
            raise ExternalServiceError(f"Bling request failed: {exc}", code="bling_unavailable") from exc

        if resp.status_code == 401:
            provider_logger.log_event(PROVIDER, event_type, f"{method} {path} unauthorized", status="error", error=resp.text[:500])
            raise ExternalServiceError(AUTH_ERROR_MESSAGE, code="AUTH_ERROR")
        if resp.status_code >= 400:
            try:
                details = resp.json()
            except ValueError:
                details = resp.text[:500]
            provider_logger.log_event(PROVIDER, event_type, f"{method} {path} returned {resp.status_code}", request_data=json_body, status="error", error=str(details))
            if resp.status_code == 400:
                raise ExternalServiceError(
                    "Invalid data sent to Bling. Please check the details.", code="VALIDATION_ERROR", details=details
                )
            raise ExternalServiceError(f"Bling returned HTTP {resp.status_code}", code="BLING_ERROR", details=details)

        provider_logger.log_event(PROVIDER, event_type, f"{method} {path} returned {resp.status_code}", request_data=json_body)
        if not resp.content:
            return {}
        return resp.json()

    async def create_category(self, user_id: str, name: str) -> Optional[int]:
        """Create the category on Bling and return its Bling id."""
        data = await self._api(user_id, "POST", "/categorias/produtos", "create_category", {"descricao": name})
        return (data.get("data") or {}).get("id")

    async def update_category(self, user_id: str, bling_id: int, name: str) -> None:
        await self._api(user_id, "PUT", f"/categorias/produtos/{bling_id}", "update_category", {"descricao": name})

    async def push_product(
        self,
        user_id: str,
        sku: str,
        name: str,
        price: float,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        bling_category_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload = build_product_payload(sku, name, price, description, image_url, bling_category_id)
        return await self._api(user_id, "POST", "/produtos", "push_product", payload)

    async def sync_categories(self, user_id: str) -> Dict[str, Any]:
        """Pull the user's Bling categories and upsert them by Bling id."""
        data = await self._api(user_id, "GET", "/categorias/produtos", "sync_categories")
        remote: List[Dict[str, Any]] = data.get("data") or []

        synced: List[Category] = []
        errors: List[Dict[str, str]] = []
        for entry in remote:
            name = entry.get("descricao")
            if not name or entry.get("id") is None:
                errors.append({"category": name or "Unknown", "error": "Missing id or description"})
                continue

            category = (
                self.db.query(Category)
                .filter(Category.bling_id == entry["id"], Category.user_id == user_id)
                .first()
            )
            if category is None:
                category = Category(bling_id=entry["id"], user_id=user_id)
                self.db.add(category)
            category.name = name
            category.slug = slugify(name)
            synced.append(category)

        with transaction(self.db):
            self.db.flush()

        message = f"Synced {len(synced)} of {len(remote)} categories from Bling ERP"
        if errors:
            message += f" ({len(errors)} failed)"
        logger.info("%s for user %s", message, user_id)
        return {
            "success": True,
            "data": synced,
            "total": len(remote),
            "synced": len(synced),
            "failed": len(errors),
            "errors": errors or None,
            "message": message,
        }
