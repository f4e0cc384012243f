import httpx
import pytest

from marketplace.config import settings
from marketplace.services import shipping_service
from marketplace.services.shipping_service import (
    ShippingService,
    calculate_fallback_options,
    clean_cep,
)


@pytest.fixture(autouse=True)
def _reset_token_cache():
    shipping_service._TOKEN_CACHE.clear()
    yield
    shipping_service._TOKEN_CACHE.clear()


@pytest.fixture
def correios_credentials(monkeypatch):
    monkeypatch.setattr(settings, "CORREIOS_USER", "user", raising=False)
    monkeypatch.setattr(settings, "CORREIOS_TOKEN", "token", raising=False)
    monkeypatch.setattr(settings, "CORREIOS_API_URL", "https://correios.test", raising=False)


class FakeClient:
    """Minimal stand-in for httpx.AsyncClient routed by URL suffix."""

    calls = []
    routes = {}

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):  # pragma: no cover - trivial
        return self

    async def __aexit__(self, exc_type, exc, tb):  # pragma: no cover - trivial
        return False

    async def post(self, url, auth=None, headers=None, json=None):
        FakeClient.calls.append({"url": url, "auth": auth, "headers": headers or {}, "json": json})
        for suffix, result in FakeClient.routes.items():
            if url.endswith(suffix):
                if isinstance(result, Exception):
                    raise result
                status_code, body = result
                return httpx.Response(status_code, json=body)
        return httpx.Response(404, json={})


@pytest.fixture
def fake_http(monkeypatch):
    FakeClient.calls = []
    FakeClient.routes = {
        "/token/v1/autentica/cartaopostagem": (201, {"token": "correios-jwt", "expiraEm": 3600}),
        "/preco/v1/nacional/03220": (200, {"pcFinal": "42.10", "prazoEntrega": 2}),
        "/preco/v1/nacional/03298": (200, {"pcFinal": "21.35", "prazoEntrega": 7}),
    }
    monkeypatch.setattr(httpx, "AsyncClient", FakeClient)
    return FakeClient


def test_clean_cep_strips_formatting():
    assert clean_cep("01310-100") == "01310100"
    assert clean_cep(" 69.000-000 ") == "69000000"
    assert clean_cep(None) == ""


@pytest.mark.parametrize(
    "cep, pac, sedex",
    [
        ("01310100", 18.0, 25.0),
        ("20040002", 19.8, 27.5),
        ("69000000", 23.4, 32.5),
    ],
)
def test_fallback_table_scales_by_region(cep, pac, sedex):
    options = calculate_fallback_options(cep)

    assert [o.service for o in options] == ["PAC", "SEDEX"]
    assert options[0].price == pytest.approx(pac)
    assert options[0].delivery_days == 8
    assert options[1].price == pytest.approx(sedex)
    assert options[1].delivery_days == 3


@pytest.mark.asyncio
async def test_without_credentials_uses_fallback(monkeypatch, fake_http):
    monkeypatch.setattr(settings, "CORREIOS_USER", None, raising=False)
    monkeypatch.setattr(settings, "CORREIOS_TOKEN", None, raising=False)

    options = await ShippingService().calculate_shipping("01310-100")

    assert [o.to_dict() for o in options] == [
        {"service": "PAC", "name": "PAC", "price": 18.0, "delivery_days": 8},
        {"service": "SEDEX", "name": "SEDEX", "price": 25.0, "delivery_days": 3},
    ]
    assert fake_http.calls == []


@pytest.mark.asyncio
async def test_api_quotes_sorted_by_price(correios_credentials, fake_http):
    options = await ShippingService().calculate_shipping("20040-002", weight_kg=0.3)

    assert [(o.service, o.name, o.price, o.delivery_days) for o in options] == [
        ("03298", "PAC", 21.35, 7),
        ("03220", "SEDEX", 42.10, 2),
    ]

    token_call = fake_http.calls[0]
    assert token_call["auth"] == ("user", "token")
    quote_call = fake_http.calls[1]
    assert quote_call["headers"]["Authorization"] == "Bearer correios-jwt"
    assert quote_call["json"]["cepDestino"] == "20040002"
    assert quote_call["json"]["psObjeto"] == 300


@pytest.mark.asyncio
async def test_access_token_is_cached_between_quotes(correios_credentials, fake_http):
    service = ShippingService()
    await service.calculate_shipping("20040002")
    await service.calculate_shipping("30110000")

    token_calls = [c for c in fake_http.calls if c["url"].endswith("cartaopostagem")]
    assert len(token_calls) == 1


@pytest.mark.asyncio
async def test_authentication_failure_falls_back(correios_credentials, fake_http):
    fake_http.routes["/token/v1/autentica/cartaopostagem"] = (401, {"msgs": ["invalid"]})

    options = await ShippingService().calculate_shipping("69000000")

    assert [o.price for o in options] == pytest.approx([23.4, 32.5])


@pytest.mark.asyncio
async def test_network_failure_falls_back(correios_credentials, fake_http):
    fake_http.routes["/token/v1/autentica/cartaopostagem"] = httpx.ConnectError("unreachable")

    options = await ShippingService().calculate_shipping("01310100")

    assert [o.service for o in options] == ["PAC", "SEDEX"]


@pytest.mark.asyncio
async def test_partial_quotes_are_kept(correios_credentials, fake_http):
    fake_http.routes["/preco/v1/nacional/03220"] = (500, {"msgs": ["down"]})

    options = await ShippingService().calculate_shipping("01310100")

    assert [o.name for o in options] == ["PAC"]


@pytest.mark.asyncio
async def test_no_quotes_falls_back(correios_credentials, fake_http):
    fake_http.routes["/preco/v1/nacional/03220"] = (500, {})
    fake_http.routes["/preco/v1/nacional/03298"] = (200, {"pcFinal": None, "prazoEntrega": None})

    options = await ShippingService().calculate_shipping("01310100")

    assert [o.price for o in options] == [18.0, 25.0]
