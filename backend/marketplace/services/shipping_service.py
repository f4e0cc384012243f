import math
import re
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx

from marketplace.config import settings
from marketplace.utils.logger import logger, provider_logger


@dataclass
class ShippingOption:
    service: str
    name: str
    price: float
    delivery_days: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _CorreiosTokenCacheEntry:
    access_token: str
    expires_at: datetime  # UTC


# Contract services quoted through the Correios API.
CORREIOS_SERVICES = [
    ("03220", "SEDEX"),
    ("03298", "PAC"),
]

# Parcel defaults sent with every quote (box, cm).
PACKAGE_TYPE_BOX = 2
PACKAGE_DIMENSIONS = {"comprimento": 20, "largura": 15, "altura": 10}

# Price multiplier by the first digit of the destination CEP.
REGION_MULTIPLIERS: Dict[str, float] = {
    "0": 1.0, "1": 1.0,
    "2": 1.1,
    "3": 1.15,
    "4": 1.2,
    "5": 1.25,
    "6": 1.3,
    "7": 1.2,
    "8": 1.15,
    "9": 1.2,
}
DEFAULT_REGION_MULTIPLIER = 1.2

FALLBACK_PAC_BASE = 18
FALLBACK_PAC_DAYS = 8
FALLBACK_SEDEX_BASE = 25
FALLBACK_SEDEX_DAYS = 3

DEFAULT_WEIGHT_KG = 0.5

_TOKEN_SAFETY_MARGIN_SECONDS = 60
_TOKEN_CACHE: Dict[str, _CorreiosTokenCacheEntry] = {}


class CorreiosError(Exception):
    pass


def clean_cep(cep: str) -> str:
    return re.sub(r"\D", "", cep or "")


def calculate_fallback_options(destination_cep: str) -> List[ShippingOption]:
    """Deterministic regional table used when the Correios API is unavailable."""
    multiplier = REGION_MULTIPLIERS.get(destination_cep[:1], DEFAULT_REGION_MULTIPLIER)
    return [
        ShippingOption("PAC", "PAC", round(FALLBACK_PAC_BASE * multiplier, 2), FALLBACK_PAC_DAYS),
        ShippingOption("SEDEX", "SEDEX", round(FALLBACK_SEDEX_BASE * multiplier, 2), FALLBACK_SEDEX_DAYS),
    ]


class ShippingService:

    def __init__(self, api_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_url = (api_url or settings.CORREIOS_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CORREIOS_TIMEOUT_SECONDS
        self.origin_cep = settings.CORREIOS_ORIGIN_CEP
        self.user = settings.CORREIOS_USER
        self.token = settings.CORREIOS_TOKEN

    @property
    def has_credentials(self) -> bool:
        return bool(self.user and self.token)

    async def calculate_shipping(self, destination_cep: str, weight_kg: float = DEFAULT_WEIGHT_KG) -> List[ShippingOption]:
        cep = clean_cep(destination_cep)

        if self.has_credentials:
            try:
                options = await self._quote_from_api(cep, weight_kg)
                if options:
                    return options
                logger.warning("Correios returned no quotes for CEP %s, using fallback", cep)
            except (CorreiosError, httpx.HTTPError) as exc:
                logger.error("Correios API error, using fallback: %s", exc)

        return calculate_fallback_options(cep)

    async def _get_access_token(self) -> str:
        now = datetime.now(timezone.utc)
        entry = _TOKEN_CACHE.get(self.api_url)
        if entry and entry.expires_at > now:
            return entry.access_token

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.api_url}/token/v1/autentica/cartaopostagem",
                auth=(self.user, self.token),
                json={"numero": settings.CORREIOS_CARTAO},
            )

        if resp.status_code >= 400:
            provider_logger.log_event("correios", "authenticate", f"Token request returned {resp.status_code}", status="error", error=resp.text[:500])
            raise CorreiosError("Failed to authenticate with Correios")

        data = resp.json()
        token = data.get("token")
        if not token:
            raise CorreiosError("Correios token response has no token")

        try:
            ttl = int(data.get("expiraEm"))
        except (TypeError, ValueError):
            ttl = 3600
        _TOKEN_CACHE[self.api_url] = _CorreiosTokenCacheEntry(
            access_token=token,
            expires_at=now + timedelta(seconds=max(0, ttl - _TOKEN_SAFETY_MARGIN_SECONDS)),
        )
        return token

    async def _quote_from_api(self, destination_cep: str, weight_kg: float) -> List[ShippingOption]:
        token = await self._get_access_token()
        body = {
            "cepOrigem": self.origin_cep,
            "cepDestino": destination_cep,
            "psObjeto": math.ceil(weight_kg * 1000),
            "tpObjeto": PACKAGE_TYPE_BOX,
            **PACKAGE_DIMENSIONS,
        }

        results: List[ShippingOption] = []
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for code, name in CORREIOS_SERVICES:
                try:
                    resp = await client.post(
                        f"{self.api_url}/preco/v1/nacional/{code}",
                        headers={"Authorization": f"Bearer {token}"},
                        json=body,
                    )
                except httpx.RequestError as exc:
                    logger.warning("Correios quote for %s failed: %s", name, exc)
                    continue

                if resp.status_code >= 400:
                    logger.warning("Correios quote for %s returned %s", name, resp.status_code)
                    continue

                data = resp.json()
                try:
                    price = float(data.get("pcFinal") or data.get("pcBase"))
                    days = int(data.get("prazoEntrega"))
                except (TypeError, ValueError):
                    logger.warning("Correios quote for %s is malformed: %s", name, data)
                    continue
                results.append(ShippingOption(code, name, price, days))

        provider_logger.log_event(
            "correios",
            "quote",
            f"Quoted {len(results)} service(s) for CEP {destination_cep}",
            request_data=body,
        )
        return sorted(results, key=lambda option: option.price)
