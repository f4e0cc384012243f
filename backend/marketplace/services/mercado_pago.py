from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from marketplace.config import settings
from marketplace.utils.logger import logger, provider_logger


PROVIDER = "mercado_pago"


class MercadoPagoError(Exception):
    """A Mercado Pago call failed (transport error, non-2xx or unreadable response)."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class MercadoPagoClient:
    """Thin async client for the Mercado Pago endpoints the marketplace uses."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.MERCADO_PAGO_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        json_body: Optional[Dict[str, Any]] = None,
        event_type: str,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, url, headers=headers, json=json_body)
        except httpx.RequestError as exc:
            logger.error("Mercado Pago request error %s %s: %s", method, url, exc)
            provider_logger.log_event(PROVIDER, event_type, f"{method} {path} failed", request_data=json_body, status="error", error=str(exc))
            raise MercadoPagoError(f"Mercado Pago request error: {exc}") from exc

        readable = True
        try:
            body = resp.json()
        except ValueError:
            readable = False
            body = {"raw": resp.text}

        if resp.status_code >= 400:
            message = None
            if isinstance(body, dict):
                message = body.get("message") or body.get("error")
            provider_logger.log_event(
                PROVIDER,
                event_type,
                f"{method} {path} returned {resp.status_code}",
                request_data=json_body,
                response_data=body if isinstance(body, dict) else None,
                status="error",
                error=message,
            )
            raise MercadoPagoError(message or f"Mercado Pago returned HTTP {resp.status_code}", resp.status_code, body)

        if not readable or not isinstance(body, dict):
            provider_logger.log_event(
                PROVIDER,
                event_type,
                f"{method} {path} returned {resp.status_code} with a non-JSON body",
                request_data=json_body,
                status="error",
                error=resp.text[:500],
            )
            raise MercadoPagoError("Mercado Pago returned an unreadable response", resp.status_code, body)

        provider_logger.log_event(
            PROVIDER,
            event_type,
            f"{method} {path} returned {resp.status_code}",
            request_data=json_body,
            response_data={"id": body.get("id"), "status": body.get("status")},
        )
        return body

    async def create_preference(self, preference: Dict[str, Any], access_token: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/checkout/preferences",
            access_token=access_token, json_body=preference, event_type="create_preference",
        )

    async def get_payment(self, payment_id: str, access_token: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/v1/payments/{payment_id}",
            access_token=access_token, event_type="get_payment",
        )

    async def exchange_authorization_code(self, code: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/oauth/token",
            json_body={
                "client_id": settings.MERCADO_PAGO_CLIENT_ID,
                "client_secret": settings.MERCADO_PAGO_CLIENT_SECRET,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": settings.mercado_pago_redirect_uri,
            },
            event_type="oauth_code_exchange",
        )

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/oauth/token",
            json_body={
                "client_id": settings.MERCADO_PAGO_CLIENT_ID,
                "client_secret": settings.MERCADO_PAGO_CLIENT_SECRET,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            event_type="oauth_refresh",
        )
