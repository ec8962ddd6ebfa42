# tests/unit/infrastructure/test_base_client.py
from __future__ import annotations

import pytest

from quantam_proxy.domain.exceptions.market_data import (
    MarketDataBadRequest,
    MarketDataQuotaExceeded,
    MarketDataRateLimited,
    MarketDataUnauthorized,
    MarketDataUnavailable,
    MarketDataValidationError,
    SymbolNotFound,
)
from quantam_proxy.domain.exceptions.proxy import ClientError, ProviderError, UnsupportedRequest
from quantam_proxy.infrastructure.external_apis.base_client import (
    ProviderHttpClient,
    is_retryable,
    map_status,
)


@pytest.mark.parametrize(
    ("status", "error", "kind"),
    [
        (400, MarketDataBadRequest, ClientError),
        (422, MarketDataBadRequest, ClientError),
        (404, SymbolNotFound, ClientError),
        (401, MarketDataUnauthorized, ProviderError),
        (403, MarketDataUnauthorized, ProviderError),
        (402, MarketDataQuotaExceeded, ProviderError),
        (429, MarketDataRateLimited, ProviderError),
        (500, MarketDataUnavailable, ProviderError),
        (503, MarketDataUnavailable, ProviderError),
        (302, MarketDataValidationError, ProviderError),
    ],
)
def test_map_status(status: int, error: type[Exception], kind: type[Exception]) -> None:
    with pytest.raises(error) as info:
        map_status(status, {"code": "x"})
    assert isinstance(info.value, kind)
    assert info.value.details == {"code": "x", "status": status}


def test_map_status_passes_success() -> None:
    map_status(200)
    map_status(204)


def test_is_retryable() -> None:
    assert is_retryable(MarketDataUnavailable("down"))
    assert is_retryable(MarketDataRateLimited("slow"))
    assert not is_retryable(MarketDataRateLimited("note", details={"retryable": False}))
    assert not is_retryable(MarketDataQuotaExceeded("quota"))
    assert not is_retryable(SymbolNotFound("nope"))
    assert not is_retryable(UnsupportedRequest("nope"))
    assert not is_retryable(RuntimeError("x"))


class _Client(ProviderHttpClient):
    secret_params = frozenset({"token"})


@pytest.mark.anyio
async def test_audit_url_is_sorted_and_redacted() -> None:
    client = _Client(base_url="https://api.example.test/v1/")
    try:
        url = client.audit_url("/bars", {"z": "1", "token": "s3cret", "a": "b c", "skip": None})
    finally:
        await client.aclose()
    assert url == "https://api.example.test/v1/bars?a=b+c&token=***&z=1"
    assert client.base_url == "https://api.example.test/v1"
