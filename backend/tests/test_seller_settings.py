from urllib.parse import parse_qs, urlparse

import pytest

from marketplace.config import settings
from marketplace.models_sqlalchemy.models import UserRole
from marketplace.services.mercado_pago import MercadoPagoError
from marketplace.services.seller_settings_service import SellerSettingsService


class OAuthGateway:
    def __init__(self, fail=False):
        self.fail = fail
        self.codes = []

    async def exchange_authorization_code(self, code):
        self.codes.append(code)
        if self.fail:
            raise MercadoPagoError("invalid_grant", 400)
        return {
            "user_id": 424242,
            "access_token": "APP_USR-seller",
            "refresh_token": "TG-seller",
            "scope": "offline_access payments read write",
            "expires_in": 15552000,
        }

    async def refresh_access_token(self, refresh_token):
        if self.fail:
            raise MercadoPagoError("invalid_grant", 400)
        return {"access_token": "APP_USR-refreshed", "expires_in": 15552000}


@pytest.fixture(autouse=True)
def _oauth_settings(monkeypatch):
    monkeypatch.setattr(settings, "MERCADO_PAGO_CLIENT_ID", "mp-client", raising=False)
    monkeypatch.setattr(settings, "FRONTEND_URL", "https://shop.example.com", raising=False)
    monkeypatch.setattr(settings, "API_URL", "https://api.example.com/api", raising=False)


@pytest.fixture
def seller(make_user):
    return make_user(role=UserRole.SELLER)


def _state_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


def test_oauth_url_carries_state_and_redirect(db, seller):
    result = SellerSettingsService(db, OAuthGateway()).get_oauth_url(seller.id)

    query = parse_qs(urlparse(result["url"]).query)
    assert result["url"].startswith("https://auth.mercadopago.com.br/authorization?")
    assert query["client_id"] == ["mp-client"]
    assert query["redirect_uri"] == ["https://api.example.com/api/mercadopago/callback"]
    assert len(query["state"][0]) >= 24


@pytest.mark.asyncio
async def test_callback_connects_seller(db, seller):
    gateway = OAuthGateway()
    service = SellerSettingsService(db, gateway)
    state = _state_from(service.get_oauth_url(seller.id)["url"])

    redirect = await service.handle_oauth_callback("TG-code", state)

    assert redirect == "https://shop.example.com/seller/profile?mp=connected"
    assert gateway.codes == ["TG-code"]
    credential = service.get_credential(seller.id)
    assert credential.account_id == "424242"
    assert credential.oauth_state is None
    assert service.get_seller_access_token(seller.id) == "APP_USR-seller"


@pytest.mark.asyncio
async def test_callback_with_unknown_state_redirects_with_error(db, seller):
    gateway = OAuthGateway()
    service = SellerSettingsService(db, gateway)
    service.get_oauth_url(seller.id)

    redirect = await service.handle_oauth_callback("TG-code", "forged")

    assert redirect.endswith("mp=error")
    assert gateway.codes == []
    assert service.get_seller_access_token(seller.id) is None


@pytest.mark.asyncio
async def test_callback_exchange_failure_redirects_with_error(db, seller):
    service = SellerSettingsService(db, OAuthGateway(fail=True))
    state = _state_from(service.get_oauth_url(seller.id)["url"])

    assert (await service.handle_oauth_callback("TG-code", state)).endswith("mp=error")


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_not_rotated(db, seller, connect_provider):
    connect_provider(seller, access_token="old", refresh_token="TG-keep")
    service = SellerSettingsService(db, OAuthGateway())

    assert await service.refresh_seller_token(seller.id) == "APP_USR-refreshed"
    assert service.get_credential(seller.id).refresh_token == "TG-keep"


@pytest.mark.asyncio
async def test_refresh_failure_returns_none(db, seller, connect_provider):
    connect_provider(seller)

    assert await SellerSettingsService(db, OAuthGateway(fail=True)).refresh_seller_token(seller.id) is None
    assert await SellerSettingsService(db, OAuthGateway()).refresh_seller_token("no-such-seller") is None


def test_disconnect_removes_credential(db, seller, connect_provider):
    connect_provider(seller)
    service = SellerSettingsService(db, OAuthGateway())

    assert service.disconnect(seller.id) == {"disconnected": True}
    assert service.get_credential(seller.id) is None
