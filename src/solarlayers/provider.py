"""Upstream Solar API client with bounded retry and exponential backoff."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import httpx

from solarlayers.config import QUALITY_LEVELS, ApiSettings
from solarlayers.errors import FetchError, InputValidationError
from solarlayers.raster.models import Location

LOGGER = logging.getLogger(__name__)

SOLAR_API_HOST = "solar.googleapis.com"
_KEY_PATTERN = re.compile(r"([?&]key=)([^&]+)")


def mask_key(key: str) -> str:
    """Return an API key with everything but the first/last four characters hidden."""
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}...{key[-4:]}"


def mask_sensitive_url(url: str) -> str:
    """Mask the ``key`` query parameter of a URL for logging."""
    return _KEY_PATTERN.sub(lambda match: match.group(1) + mask_key(match.group(2)), url)


def normalize_quality(value: str | None, default: str = "LOW") -> str:
    """Return an upper-cased imagery quality, validating it against known levels."""
    quality = (value or default).upper()
    if quality not in QUALITY_LEVELS:
        raise InputValidationError(f"quality must be one of {', '.join(QUALITY_LEVELS)}")
    return quality


@dataclass(frozen=True)
class DataLayersResponse:
    """URLs and imagery metadata returned by ``dataLayers:get``."""

    dsm_url: str | None = None
    rgb_url: str | None = None
    mask_url: str | None = None
    annual_flux_url: str | None = None
    monthly_flux_url: str | None = None
    hourly_shade_urls: tuple[str, ...] = ()
    imagery_quality: str | None = None
    imagery_date: str | None = None
    imagery_processed_date: str | None = None

    @staticmethod
    def _format_date(value: Any) -> str | None:
        if not isinstance(value, Mapping):
            return None
        try:
            return f"{int(value['year']):04d}-{int(value['month']):02d}-{int(value['day']):02d}"
        except (KeyError, TypeError, ValueError):
            return None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "DataLayersResponse":
        return cls(
            dsm_url=payload.get("dsmUrl"),
            rgb_url=payload.get("rgbUrl"),
            mask_url=payload.get("maskUrl"),
            annual_flux_url=payload.get("annualFluxUrl"),
            monthly_flux_url=payload.get("monthlyFluxUrl"),
            hourly_shade_urls=tuple(payload.get("hourlyShadeUrls") or ()),
            imagery_quality=payload.get("imageryQuality"),
            imagery_date=cls._format_date(payload.get("imageryDate")),
            imagery_processed_date=cls._format_date(payload.get("imageryProcessedDate")),
        )

    def imagery_metadata(self) -> dict[str, Any]:
        return {
            "imagery_quality": self.imagery_quality,
            "imagery_date": self.imagery_date,
            "imagery_processed_date": self.imagery_processed_date,
        }


@dataclass(frozen=True)
class RawLayer:
    """Undecoded GeoTIFF buffers fetched for one layer."""

    data: bytes
    mask: bytes | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


class SolarApiClient:
    """Thin httpx wrapper around the Solar API data-layer endpoints."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        api_key: str | None = None,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._api_key = api_key or settings.api_key
        self._client = http_client or httpx.Client(
            timeout=settings.request_timeout,
            follow_redirects=True,
        )
        self._owns_client = http_client is None
        self._sleep = sleep

    def __enter__(self) -> "SolarApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _require_key(self) -> str:
        if not self._api_key:
            raise InputValidationError(
                "A Solar API key is required (set SOLAR_API_KEY or pass --api-key)"
            )
        return self._api_key

    def _request(self, url: str, params: Mapping[str, Any] | None = None) -> httpx.Response:
        """GET a URL, retrying failures with exponential backoff."""
        attempts = self._settings.max_retries + 1
        last_error: Exception | None = None
        masked = mask_sensitive_url(url)
        for attempt in range(1, attempts + 1):
            try:
                response = self._client.get(
                    url,
                    params=params,
                    timeout=self._settings.request_timeout,
                )
                if response.status_code != 200:
                    raise FetchError(
                        f"HTTP {response.status_code} from {masked}",
                        url=masked,
                        attempts=attempt,
                    )
                if not response.content:
                    raise FetchError(f"Empty response from {masked}", url=masked, attempts=attempt)
                return response
            except (httpx.HTTPError, FetchError) as exc:
                last_error = exc
                if attempt == attempts:
                    break
                delay = self._settings.retry_delay * (2 ** (attempt - 1))
                LOGGER.warning(
                    "Request to %s failed (attempt %s/%s): %s; retrying in %.1fs",
                    masked,
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
        raise FetchError(
            f"Request to {masked} failed after {attempts} attempt(s): {last_error}",
            url=masked,
            attempts=attempts,
        ) from last_error

    def get_data_layers(
        self,
        location: Location,
        *,
        radius_meters: float | None = None,
        quality: str | None = None,
    ) -> DataLayersResponse:
        """Return the data-layer URLs covering a location."""
        params = {
            "location.latitude": f"{location.latitude:.5f}",
            "location.longitude": f"{location.longitude:.5f}",
            "radiusMeters": radius_meters or self._settings.default_radius,
            "requiredQuality": normalize_quality(quality, self._settings.default_quality),
            "view": "FULL_LAYERS",
            "key": self._require_key(),
        }
        url = f"{self._settings.base_url.rstrip('/')}/dataLayers:get"
        LOGGER.info(
            "Requesting data layers for (%.5f, %.5f)",
            location.latitude,
            location.longitude,
        )
        response = self._request(url, params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"Invalid JSON from {url}", url=url) from exc
        if not isinstance(payload, Mapping):
            raise FetchError(f"Unexpected payload from {url}", url=url)
        return DataLayersResponse.from_json(payload)

    def download(self, url: str) -> bytes:
        """Download a GeoTIFF, appending the API key for Solar API hosts."""
        if urlparse(url).hostname == SOLAR_API_HOST and "key=" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}key={self._require_key()}"
        LOGGER.debug("Downloading %s", mask_sensitive_url(url))
        return self._request(url).content
