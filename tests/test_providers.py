"""Tests for quote providers, provider error mapping and bearer-token verification."""
import asyncio
from unittest.mock import MagicMock, patch

import httpx
import jwt
import pytest
from fastapi import HTTPException

from conftest import JWT_SECRET, make_token
from quote_relay.auth import JwtIdentityVerifier, extract_bearer
from quote_relay.errors import InvalidCredential, UpstreamUnavailable
from quote_relay.providers import (AlphaVantageProvider, ProviderErrorMapper,
                                   YFinanceProvider)

GLOBAL_QUOTE = {
    "Global Quote": {
        "01. symbol": "IBM",
        "02. open": "181.0000",
        "03. high": "183.4500",
        "04. low": "180.1000",
        "05. price": "182.6700",
        "06. volume": "3456789",
        "07. latest trading day": "2024-05-10",
        "08. previous close": "180.9900",
        "09. change": "1.6800",
        "10. change percent": "0.9282%",
    }
}


def alpha_vantage(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AlphaVantageProvider("demo-key", client=client)


# ============================================================================
# AlphaVantageProvider
# ============================================================================


async def test_alpha_vantage_parses_global_quote():
    seen = []
    provider = alpha_vantage(GLOBAL_QUOTE, seen=seen)

    quote = await provider.get_quote(" ibm")
    await provider.close()

    assert quote.symbol == "IBM"
    assert quote.price == 182.67
    assert quote.change == 1.68
    assert quote.change_percent == 0.93
    assert quote.volume == 3_456_789
    assert (quote.open, quote.high, quote.low) == (181.0, 183.45, 180.1)
    assert quote.previous_close == 180.99

    [request] = seen
    assert str(request.url).startswith(AlphaVantageProvider.BASE_URL + "?")
    assert request.url.params["function"] == "GLOBAL_QUOTE"
    assert request.url.params["symbol"] == "IBM"
    assert request.url.params["apikey"] == "demo-key"


async def test_alpha_vantage_error_message_is_not_found():
    provider = alpha_vantage({"Error Message": "Invalid API call."})

    with pytest.raises(ValueError, match="'ZZZZ' not found"):
        await provider.get_quote("ZZZZ")


@pytest.mark.parametrize("key", ["Note", "Information"])
async def test_alpha_vantage_rate_limit_is_runtime_error(key, caplog):
    provider = alpha_vantage({key: "Thank you for using Alpha Vantage!"})

    with pytest.raises(RuntimeError, match="rate limit"):
        await provider.get_quote("IBM")
    assert "rate limit reached while fetching IBM" in caplog.text


async def test_alpha_vantage_empty_quote_is_not_found():
    provider = alpha_vantage({"Global Quote": {}})

    with pytest.raises(ValueError, match="no price data"):
        await provider.get_quote("IBM")


async def test_alpha_vantage_http_error_propagates():
    provider = alpha_vantage({}, status_code=503)

    with pytest.raises(httpx.HTTPStatusError):
        await provider.get_quote("IBM")


# ============================================================================
# YFinanceProvider
# ============================================================================


@pytest.fixture
def mock_ticker():
    with patch("quote_relay.providers.yfinance.yf.Ticker") as ticker:
        yield ticker


async def test_yfinance_uses_fast_info(mock_ticker):
    mock_ticker.return_value.fast_info = {
        "lastPrice": 105.0,
        "previousClose": 100.0,
        "lastVolume": 1234.0,
        "open": 101.0,
        "dayHigh": 106.0,
        "dayLow": 99.5,
    }

    quote = await YFinanceProvider().get_quote("aapl")

    mock_ticker.assert_called_once_with("AAPL")
    assert quote.price == 105.0
    assert quote.change == 5.0
    assert quote.change_percent == 5.0
    assert quote.volume == 1234
    assert quote.low == 99.5


async def test_yfinance_falls_back_to_info(mock_ticker):
    mock_ticker.return_value.fast_info = {}
    mock_ticker.return_value.info = {"currentPrice": 50.0, "previousClose": 0, "volume": 10}

    quote = await YFinanceProvider().get_quote("F")

    assert quote.price == 50.0
    assert quote.change == 0.0
    assert quote.change_percent == 0.0


async def test_yfinance_missing_price_is_not_found(mock_ticker):
    mock_ticker.return_value.fast_info = {}
    mock_ticker.return_value.info = {}

    with pytest.raises(ValueError, match="not found"):
        await YFinanceProvider().get_quote("ZZZZ")


async def test_yfinance_library_error_becomes_value_error(mock_ticker):
    type(mock_ticker.return_value).fast_info = property(
        MagicMock(side_effect=KeyError("currentTradingPeriod"))
    )

    with pytest.raises(ValueError, match="Failed to fetch quote for 'AAPL'"):
        await YFinanceProvider().get_quote("AAPL")


# ============================================================================
# ProviderErrorMapper
# ============================================================================


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.test/query")
    return httpx.HTTPStatusError(
        "error", request=request, response=httpx.Response(code, request=request)
    )


MAPPER = ProviderErrorMapper(resource_name="Stock", api_name="Alpha Vantage")


@pytest.mark.parametrize(
    "exc,expected",
    [
        (ValueError("Stock 'ZZZZ' not found"), (404, "Stock 'ZZZZ' not found")),
        (status_error(404), (404, "Stock 'ZZZZ' not found")),
        (status_error(503), (502, "Alpha Vantage error")),
        (status_error(429), (429, "Alpha Vantage error")),
        (asyncio.TimeoutError(), (504, "Request to Alpha Vantage timed out for 'ZZZZ'")),
        (httpx.ConnectError("refused"), (502, "Alpha Vantage unavailable")),
        (RuntimeError("rate limit"), (500, "Internal server error")),
    ],
)
def test_error_mapper(exc, expected):
    assert MAPPER.to_http(exc, symbol="ZZZZ") == expected


def test_error_mapper_unwraps_upstream_unavailable():
    wrapped = UpstreamUnavailable("ZZZZ", ValueError("not found"))

    assert MAPPER.to_http(wrapped, symbol="ZZZZ")[0] == 404


def test_raise_http_chains_original():
    original = ValueError("not found")

    with pytest.raises(HTTPException) as exc_info:
        MAPPER.raise_http(original)

    assert exc_info.value.status_code == 404
    assert exc_info.value.__cause__ is original


# ============================================================================
# bearer tokens
# ============================================================================


def test_verifier_accepts_integer_user_id():
    assert JwtIdentityVerifier(JWT_SECRET).verify(make_token(12)).user_id == 12


@pytest.mark.parametrize(
    "token",
    [
        make_token(1, secret="another-secret-of-sufficient-length-xx"),
        make_token("12"),
        make_token(True),
        jwt.encode({"sub": "12"}, JWT_SECRET, algorithm="HS256"),
        jwt.encode({"userId": 1, "exp": 1}, JWT_SECRET, algorithm="HS256"),
        "not-a-jwt",
    ],
)
def test_verifier_rejects_bad_tokens(token):
    with pytest.raises(InvalidCredential):
        JwtIdentityVerifier(JWT_SECRET).verify(token)


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer  abc.def ", "abc.def"),
        ("Basic dXNlcjpwdw==", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer(header, expected):
    assert extract_bearer(header) == expected
