"""
Unit tests for the HTTP provider using httpx mock transports.
"""
import httpx
import pytest

from catalog_sync.config.settings import ProviderSettings
from catalog_sync.core.exceptions import ProviderError
from catalog_sync.providers.http import HttpCatalogProvider


def make_provider(handler, sleeps=None, max_retries=2):
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://provider.test")
    return HttpCatalogProvider(
        "https://provider.test",
        max_retries=max_retries,
        client=client,
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


class TestHttpCatalogProvider:
    """Test requests, payload unwrapping and retries"""

    def test_products_request(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, dict(request.url.params)))
            return httpx.Response(200, json=[{"sku": "CAM-1"}])

        products = make_provider(handler).fetch_products_raw("ip-cameras")

        assert products == [{"sku": "CAM-1"}]
        assert seen == [("/products", {"category": "ip-cameras"})]

    def test_data_envelope_unwrapped(self):
        def handler(request):
            return httpx.Response(200, json={"data": [{"id": "10"}], "total": 1})

        assert make_provider(handler).fetch_categories_raw() == [{"id": "10"}]

    def test_manufacturer_entries(self):
        def handler(request):
            return httpx.Response(200, json=[{"name": "Hikvision"}, "Dahua", {"name": " "}])

        assert make_provider(handler).fetch_manufacturers_raw("dome") == {"Hikvision", "Dahua"}

    def test_rate_limit_retried(self):
        responses = iter([httpx.Response(429), httpx.Response(200, json=[])])
        sleeps = []

        provider = make_provider(lambda request: next(responses), sleeps=sleeps)

        assert provider.fetch_parameter_options_raw("dome") == []
        assert sleeps == [1]

    def test_retries_exhausted(self):
        sleeps = []
        provider = make_provider(lambda request: httpx.Response(503), sleeps=sleeps)

        with pytest.raises(ProviderError, match="HTTP 503"):
            provider.fetch_products_raw("dome")
        assert sleeps == [1, 2]

    def test_client_error_not_retried(self):
        sleeps = []
        provider = make_provider(lambda request: httpx.Response(500), sleeps=sleeps)

        with pytest.raises(ProviderError) as exc_info:
            provider.fetch_products_raw("dome")
        assert exc_info.value.details == {"provider": "http", "handle": "dome"}
        assert sleeps == []

    def test_timeout_retried_then_raised(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderError, match="timeout"):
            make_provider(handler, max_retries=1).fetch_categories_raw()
        assert len(calls) == 2

    def test_unexpected_payload(self):
        def handler(request):
            return httpx.Response(200, json="oops")

        with pytest.raises(ProviderError, match="Unexpected payload"):
            make_provider(handler).fetch_documents_raw("CAM-1")

    def test_from_settings_requires_base_url(self):
        with pytest.raises(ProviderError):
            HttpCatalogProvider.from_settings(ProviderSettings(provider_base_url=None))

        provider = HttpCatalogProvider.from_settings(
            ProviderSettings(provider_base_url="https://api.example.com/", provider_max_retries=0)
        )
        assert provider.base_url == "https://api.example.com"
        assert provider.max_retries == 0
        assert provider.name == "default"
        provider.close()

    def test_name_overrides_adapter_name(self):
        provider = HttpCatalogProvider("https://api.example.com", name="tekra")
        assert provider.name == "tekra"
        provider.close()
