"""
HTTP JSON provider.

Thin httpx client over a provider API exposing:

* ``GET /categories``
* ``GET /products?category=<handle>``
* ``GET /manufacturers?category=<handle>``
* ``GET /parameters?category=<handle>``
* ``GET /documents?product=<sku>``

Responses are JSON lists (or objects wrapping the list under ``data``).
Timeouts and rate limiting are retried with linear backoff; anything else
becomes a ProviderError scoped to the requested grouping.
"""
import time
from typing import Any, Callable, Optional

import httpx
import structlog

from catalog_sync.config.settings import ProviderSettings
from catalog_sync.core.exceptions import ProviderError
from catalog_sync.providers.base import CatalogProvider, RawRecord

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


class HttpCatalogProvider(CatalogProvider):
    """Provider backed by an HTTP JSON API"""

    name = "http"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        name: Optional[str] = None,
    ) -> None:
        if name:
            self.name = name
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.sleep = sleep
        self.client = client or httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
            headers={"Accept": "application/json"},
        )
        self.logger = logger.bind(provider=self.name, base_url=self.base_url)

    @classmethod
    def from_settings(cls, settings: ProviderSettings, **kwargs: Any) -> "HttpCatalogProvider":
        if not settings.provider_base_url:
            raise ProviderError("PROVIDER_PROVIDER_BASE_URL is not configured", provider=cls.name)
        return cls(
            settings.provider_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
            max_retries=settings.provider_max_retries,
            **{"name": settings.provider_name, **kwargs},
        )

    def fetch_categories_raw(self) -> list[RawRecord]:
        return self._get_list("/categories")

    def fetch_products_raw(self, category_handle: str) -> list[RawRecord]:
        return self._get_list("/products", handle=category_handle, params={"category": category_handle})

    def fetch_manufacturers_raw(self, category_handle: str) -> set[str]:
        entries = self._get_list(
            "/manufacturers", handle=category_handle, params={"category": category_handle}
        )
        names = set()
        for entry in entries:
            name = entry.get("name") if isinstance(entry, dict) else entry
            if name and str(name).strip():
                names.add(str(name).strip())
        return names

    def fetch_parameter_options_raw(self, category_handle: str) -> list[RawRecord]:
        return self._get_list(
            "/parameters", handle=category_handle, params={"category": category_handle}
        )

    def fetch_documents_raw(self, product_handle: str) -> list[RawRecord]:
        return self._get_list("/documents", handle=product_handle, params={"product": product_handle})

    def close(self) -> None:
        self.client.close()

    def _get_list(
        self, path: str, handle: Optional[str] = None, params: Optional[dict[str, str]] = None
    ) -> list[Any]:
        payload = self._get(path, handle, params)
        if isinstance(payload, dict):
            payload = payload.get("data", [])
        if not isinstance(payload, list):
            raise ProviderError(
                f"Unexpected payload for {path}: {type(payload).__name__}",
                provider=self.name,
                handle=handle,
            )
        return payload

    def _get(self, path: str, handle: Optional[str], params: Optional[dict[str, str]]) -> Any:
        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.get(path, params=params)
            except httpx.TimeoutException as e:
                if attempt < self.max_retries:
                    self.logger.warning("Request timeout, retrying", path=path, attempt=attempt + 1)
                    self.sleep(attempt + 1)
                    continue
                raise ProviderError(
                    f"Request timeout for {path}", provider=self.name, handle=handle, original_exception=e
                ) from e
            except httpx.HTTPError as e:
                raise ProviderError(
                    f"Request failed for {path}: {e}",
                    provider=self.name,
                    handle=handle,
                    original_exception=e,
                ) from e

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                wait_time = attempt + 1
                self.logger.warning(
                    "Provider busy, retrying",
                    path=path,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    wait_time=wait_time,
                )
                self.sleep(wait_time)
                continue

            if response.status_code >= 400:
                raise ProviderError(
                    f"HTTP {response.status_code} for {path}",
                    provider=self.name,
                    handle=handle,
                )

            try:
                return response.json()
            except ValueError as e:
                raise ProviderError(
                    f"Invalid JSON from {path}", provider=self.name, handle=handle, original_exception=e
                ) from e

        raise ProviderError(f"Max retries exceeded for {path}", provider=self.name, handle=handle)


__all__ = ["HttpCatalogProvider", "RETRYABLE_STATUS_CODES"]
