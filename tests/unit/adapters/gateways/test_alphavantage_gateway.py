# tests/unit/adapters/gateways/test_alphavantage_gateway.py
from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime

import httpx
import pytest
import respx

from quantam_proxy.adapters.gateways.alphavantage_gateway import AlphaVantageGateway
from quantam_proxy.domain.entities.stock_bar import BarInterval
from quantam_proxy.domain.exceptions.market_data import (
    MarketDataBadRequest,
    MarketDataRateLimited,
    MarketDataValidationError,
)
from quantam_proxy.infrastructure.external_apis.alphavantage.client import AlphaVantageClient
from quantam_proxy.infrastructure.external_apis.alphavantage.settings import (
    AlphaVantageSettings,
)
from quantam_proxy.infrastructure.resilience.retry import RetryPolicy

pytestmark = pytest.mark.anyio

BASE = "https://www.alphavantage.co/query"

DAILY_CSV = (
    "timestamp,open,high,low,close,volume\r\n"
    "2024-01-03,10.0,11.0,9.0,10.5,1000\r\n"
    "2024-01-02,9.0,10.0,8.0,9.5,900\r\n"
)


@pytest.fixture
def settings() -> AlphaVantageSettings:
    return AlphaVantageSettings(api_key="av-secret")  # type: ignore[arg-type]


@pytest.fixture
async def client(settings: AlphaVantageSettings) -> AsyncIterator[AlphaVantageClient]:
    c = AlphaVantageClient(settings, retry_policy=RetryPolicy(total=2, base=0, cap=0, jitter=False))
    try:
        yield c
    finally:
        await c.aclose()


@pytest.fixture
def gateway(client: AlphaVantageClient, settings: AlphaVantageSettings) -> AlphaVantageGateway:
    return AlphaVantageGateway(client, settings)


async def test_daily_url_is_secret_free(gateway: AlphaVantageGateway) -> None:
    assert gateway.daily_url("ibm", "NYSE") == (
        f"{BASE}?apikey=***&datatype=csv&function=TIME_SERIES_DAILY&outputsize=full&symbol=IBM"
    )


async def test_vendor_symbol_suffixes_non_us_exchanges() -> None:
    assert AlphaVantageGateway.vendor_symbol("vod", "LSE") == "VOD.LON"
    assert AlphaVantageGateway.vendor_symbol("shop", "TSX") == "SHOP.TRT"
    assert AlphaVantageGateway.vendor_symbol("ibm", "NYSE") == "IBM"


async def test_fetch_daily_parses_csv(gateway: AlphaVantageGateway) -> None:
    with respx.mock:
        route = respx.get(BASE).mock(
            return_value=httpx.Response(
                200, text=DAILY_CSV, headers={"Content-Type": "application/x-download"}
            )
        )
        bars = await gateway.fetch_daily("VOD", "LSE")

    assert [b.timestamp for b in bars] == [
        datetime(2024, 1, 3, tzinfo=UTC),
        datetime(2024, 1, 2, tzinfo=UTC),
    ]
    assert bars[0].exchange == "LSE"
    params = route.calls.last.request.url.params
    assert params["symbol"] == "VOD.LON"
    assert params["function"] == "TIME_SERIES_DAILY"


async def test_fetch_intraday_json_is_localized_to_new_york(gateway: AlphaVantageGateway) -> None:
    body = {
        "Meta Data": {"1. Information": "Intraday (60min)"},
        "Time Series (60min)": {
            "2024-01-02 15:00:00": {
                "1. open": "1.0",
                "2. high": "2.0",
                "3. low": "0.5",
                "4. close": "1.5",
                "5. volume": "100",
            }
        },
    }
    with respx.mock:
        route = respx.get(BASE).mock(return_value=httpx.Response(200, json=body))
        bars = await gateway.fetch_intraday("IBM", "NYSE", BarInterval.I1H)

    assert bars[0].timestamp.astimezone(UTC) == datetime(2024, 1, 2, 20, tzinfo=UTC)
    assert route.calls.last.request.url.params["interval"] == "60min"


async def test_vendor_note_is_rate_limited_and_not_retried(gateway: AlphaVantageGateway) -> None:
    with respx.mock:
        route = respx.get(BASE).mock(
            return_value=httpx.Response(200, json={"Note": "Thank you for using Alpha Vantage!"})
        )
        with pytest.raises(MarketDataRateLimited):
            await gateway.fetch_daily("IBM", "NYSE")
    assert route.call_count == 1


async def test_error_message_is_client_error(gateway: AlphaVantageGateway) -> None:
    with respx.mock:
        respx.get(BASE).mock(
            return_value=httpx.Response(200, json={"Error Message": "Invalid API call."})
        )
        with pytest.raises(MarketDataBadRequest):
            await gateway.fetch_daily("NOPE", "NYSE")


async def test_transient_429_is_retried(gateway: AlphaVantageGateway) -> None:
    with respx.mock:
        route = respx.get(BASE).mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "0"}),
                httpx.Response(200, text=DAILY_CSV),
            ]
        )
        bars = await gateway.fetch_daily("IBM", "NYSE")
    assert len(bars) == 2
    assert route.call_count == 2


async def test_csv_without_ohlc_columns_is_schema_error(gateway: AlphaVantageGateway) -> None:
    with respx.mock:
        respx.get(BASE).mock(return_value=httpx.Response(200, text="foo,bar\n1,2\n"))
        with pytest.raises(MarketDataValidationError):
            await gateway.fetch_daily("IBM", "NYSE")


async def test_ping_queries_market_status(gateway: AlphaVantageGateway) -> None:
    with respx.mock:
        route = respx.get(BASE).mock(return_value=httpx.Response(200, json={"markets": []}))
        await gateway.ping()
    assert route.calls.last.request.url.params["function"] == "MARKET_STATUS"
