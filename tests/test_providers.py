"""providers モジュールのテスト."""

from unittest.mock import MagicMock

from pricecollector.config import Settings
from pricecollector.models import SearchRequest
from pricecollector.providers import (
    AmazonProvider,
    SampleCatalogProvider,
    WalmartProvider,
    build_providers,
)


class TestAmazonProvider:
    """AmazonProvider のテスト."""

    def test_targets_biased_then_generic(self):
        provider = AmazonProvider(None)

        targets = provider.targets(SearchRequest(query="power drill", category="tools"))

        assert targets == [
            "https://www.amazon.ca/s?k=power+drill&i=tools",
            "https://www.amazon.ca/s?k=power+drill",
        ]

    def test_category_alias(self):
        provider = AmazonProvider(None)

        targets = provider.targets(SearchRequest(query="tent", category="sports"))

        assert targets[0] == "https://www.amazon.ca/s?k=tent&i=sporting"

    def test_default_alias(self):
        """カテゴリ未指定・未知のカテゴリは tools に寄せること."""
        provider = AmazonProvider(None)

        assert provider.targets(SearchRequest(query="saw"))[0].endswith("&i=tools")
        assert provider.targets(SearchRequest(query="saw", category="toys"))[0].endswith("&i=tools")

    def test_affiliate_tag(self):
        gateway = MagicMock()
        gateway.api_key = "k"
        gateway.fetch.return_value = (
            '<div data-component-type="s-search-result">'
            '<h2><a href="/dp/B0DRILL001?th=1&amp;tag=other-20"><span>Drill</span></a></h2></div>'
        )
        provider = AmazonProvider(gateway, affiliate_tag="mystore-20")

        candidates = provider.fetch("https://www.amazon.ca/s?k=drill")

        assert candidates[0].affiliate_url == "https://www.amazon.ca/dp/B0DRILL001?th=1&tag=mystore-20"
        assert candidates[0].detail_url == "https://www.amazon.ca/dp/B0DRILL001?th=1&tag=other-20"

    def test_not_configured(self):
        assert not AmazonProvider(None).configured


class TestWalmartProvider:
    """WalmartProvider のテスト."""

    def _provider(self, data) -> tuple[WalmartProvider, MagicMock]:
        gateway = MagicMock()
        gateway.api_key = "rapid-key"
        gateway.get_json.return_value = data
        return WalmartProvider(gateway), gateway

    def test_targets(self):
        provider, _ = self._provider({})

        assert provider.targets(SearchRequest(query="drill", category="tools")) == ["drill tools", "drill"]
        assert provider.targets(SearchRequest(query="drill")) == ["drill"]

    def test_fetch_maps_items(self):
        provider, gateway = self._provider({"items": [
            {
                "name": "Hyper Tough 20V Drill",
                "shortDescription": "Cordless drill",
                "priceInfo": {"currentPrice": {"price": 39.97}},
                "imageInfo": {"thumbnailUrl": "https://i5.walmartimages.com/drill.jpg"},
                "canonicalUrl": "/ip/Hyper-Tough-Drill/123456",
                "itemId": 123456,
                "averageRating": 4.4,
                "numberOfReviews": 812,
            },
            {"name": "No url"},
            "garbage",
        ]})

        candidates = provider.fetch("drill")

        gateway.get_json.assert_called_once_with("walmart-api2.p.rapidapi.com", "search", {"query": "drill"})
        assert len(candidates) == 1
        c = candidates[0]
        assert c.title == "Hyper Tough 20V Drill"
        assert c.detail_url == "https://www.walmart.com/ip/Hyper-Tough-Drill/123456"
        assert c.raw_price_text == "39.97"
        assert c.rating_text == "4.4"
        assert c.review_count_text == "812"
        assert c.external_id == "123456"
        assert c.store == "Walmart"

    def test_missing_items(self):
        provider, _ = self._provider({"error": "quota"})
        assert provider.fetch("drill") == []


class TestSampleCatalogProvider:
    """SampleCatalogProvider のテスト."""

    def test_no_credential_needed(self):
        provider = SampleCatalogProvider()

        assert provider.configured
        assert [c.external_id for c in provider.fetch("sample-catalog")] == ["HD123", "HD456"]


class TestBuildProviders:
    """build_providers のテスト."""

    def test_registry(self):
        providers = build_providers(Settings(zenrows_key="z", rapidapi_key="r"), session=MagicMock())

        assert set(providers) == {"amazon", "walmart", "homedepot"}
        assert providers["amazon"].configured
        assert providers["walmart"].configured

    def test_origin_from_settings(self):
        providers = build_providers(Settings(zenrows_key="z", amazon_origin="https://www.amazon.com"), session=MagicMock())

        assert providers["amazon"].targets(SearchRequest(query="x"))[1] == "https://www.amazon.com/s?k=x"
