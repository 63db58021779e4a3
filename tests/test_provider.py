from __future__ import annotations

import httpx
import pytest

from solarlayers.config import ApiSettings
from solarlayers.errors import FetchError, InputValidationError
from solarlayers.provider import (
    DataLayersResponse,
    SolarApiClient,
    mask_key,
    mask_sensitive_url,
    normalize_quality,
)
from solarlayers.raster.models import Location

DATA_LAYERS_PAYLOAD = {
    "imageryDate": {"year": 2022, "month": 4, "day": 6},
    "imageryProcessedDate": {"year": 2022, "month": 8, "day": 1},
    "dsmUrl": "https://solar.googleapis.com/v1/geoTiff:get?id=dsm",
    "rgbUrl": "https://solar.googleapis.com/v1/geoTiff:get?id=rgb",
    "maskUrl": "https://solar.googleapis.com/v1/geoTiff:get?id=mask",
    "annualFluxUrl": "https://solar.googleapis.com/v1/geoTiff:get?id=annual",
    "monthlyFluxUrl": "https://solar.googleapis.com/v1/geoTiff:get?id=monthly",
    "hourlyShadeUrls": [f"https://solar.googleapis.com/v1/geoTiff:get?id=h{i}" for i in range(12)],
    "imageryQuality": "HIGH",
}


def _client(handler, *, retries: int = 2, key: str | None = "abcd1234efgh5678"):
    delays: list[float] = []
    settings = ApiSettings(max_retries=retries, retry_delay=0.5)
    client = SolarApiClient(
        settings,
        api_key=key,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=delays.append,
    )
    return client, delays


def test_mask_key_and_url() -> None:
    assert mask_key("abcd1234efgh5678") == "abcd...5678"
    assert mask_key("short") == "***"
    url = "https://solar.googleapis.com/v1/geoTiff:get?id=x&key=abcd1234efgh5678"
    assert mask_sensitive_url(url).endswith("key=abcd...5678")
    assert "1234efgh" not in mask_sensitive_url(url)


def test_normalize_quality() -> None:
    assert normalize_quality("medium") == "MEDIUM"
    assert normalize_quality(None) == "LOW"
    with pytest.raises(InputValidationError):
        normalize_quality("best")


def test_data_layers_response_parses_dates() -> None:
    response = DataLayersResponse.from_json(DATA_LAYERS_PAYLOAD)
    assert response.imagery_date == "2022-04-06"
    assert response.imagery_processed_date == "2022-08-01"
    assert len(response.hourly_shade_urls) == 12
    assert response.imagery_metadata()["imagery_quality"] == "HIGH"
    assert DataLayersResponse.from_json({}).imagery_date is None


def test_get_data_layers_sends_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=DATA_LAYERS_PAYLOAD)

    client, _ = _client(handler)
    with client:
        response = client.get_data_layers(
            Location(37.4450012, -122.1390012),
            radius_meters=30,
            quality="high",
        )
    assert response.dsm_url.endswith("id=dsm")
    params = seen[0].url.params
    assert seen[0].url.path == "/v1/dataLayers:get"
    assert params["location.latitude"] == "37.44500"
    assert params["location.longitude"] == "-122.13900"
    assert params["radiusMeters"] == "30"
    assert params["requiredQuality"] == "HIGH"
    assert params["view"] == "FULL_LAYERS"
    assert params["key"] == "abcd1234efgh5678"


def test_request_retries_with_backoff() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, content=b"tiff")

    client, delays = _client(handler, retries=3)
    assert client.download("https://example.com/layer.tif") == b"tiff"
    assert calls["count"] == 3
    assert delays == [0.5, 1.0]


def test_request_gives_up_after_retries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    client, delays = _client(handler, retries=2)
    with pytest.raises(FetchError) as excinfo:
        client.download("https://example.com/layer.tif")
    assert excinfo.value.attempts == 3
    assert delays == [0.5, 1.0]


def test_empty_body_is_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    client, _ = _client(handler, retries=0)
    with pytest.raises(FetchError, match="Empty response"):
        client.download("https://example.com/layer.tif")


def test_transport_errors_are_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, content=b"ok")

    client, delays = _client(handler, retries=1)
    assert client.download("https://example.com/layer.tif") == b"ok"
    assert delays == [0.5]


def test_download_appends_key_for_solar_host() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"data")

    client, _ = _client(handler)
    client.download("https://solar.googleapis.com/v1/geoTiff:get?id=dsm")
    client.download("https://storage.example.com/dsm.tif")
    assert seen[0].url.params["key"] == "abcd1234efgh5678"
    assert seen[0].url.params["id"] == "dsm"
    assert "key" not in seen[1].url.params


def test_missing_api_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client, _ = _client(handler, key=None)
    with pytest.raises(InputValidationError, match="API key"):
        client.get_data_layers(Location(37.0, -122.0))
