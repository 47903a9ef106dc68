"""ストアごとの検索プロバイダ.

各プロバイダは検索対象 (URL またはクエリ) を優先順に返す targets() と、
対象 1 件から RawCandidate を取り出す fetch() を持つ。
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode, urljoin, urlsplit, urlunsplit, parse_qsl

import requests

from pricecollector import extractor
from pricecollector.config import (
    AMAZON_ORIGIN,
    CATEGORY_SEARCH_ALIASES,
    DEFAULT_SEARCH_ALIAS,
    RAPIDAPI_KEY_NAMES,
    WALMART_API_HOST,
    WALMART_ORIGIN,
    ZENROWS_KEY_NAMES,
    Settings,
)
from pricecollector.fetcher import RapidApiGateway, ZenRowsGateway
from pricecollector.models import RawCandidate, SearchRequest

logger = logging.getLogger(__name__)


def _deep_get(d: dict, *keys: str):
    """ネストされた dict から安全に値を取得する."""
    for key in keys:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def _text(value) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class Provider:
    """プロバイダの基底クラス."""

    key = ""
    label = ""
    credential_names: tuple[str, ...] = ()

    def __init__(self, credential: str | None = None):
        self.credential = credential

    @property
    def configured(self) -> bool:
        return not self.credential_names or bool(self.credential)

    def targets(self, request: SearchRequest) -> list:
        raise NotImplementedError

    def fetch(self, target) -> list[RawCandidate]:
        raise NotImplementedError


class AmazonProvider(Provider):
    """ZenRows 経由で Amazon 検索結果 HTML をスクレイピングする."""

    key = "amazon"
    label = "Amazon"
    credential_names = ZENROWS_KEY_NAMES

    def __init__(
        self,
        gateway: ZenRowsGateway | None,
        origin: str = AMAZON_ORIGIN,
        affiliate_tag: str | None = None,
    ):
        super().__init__(gateway.api_key if gateway else None)
        self.gateway = gateway
        self.origin = origin.rstrip("/")
        self.affiliate_tag = affiliate_tag

    def search_url(self, query: str, alias: str | None = None) -> str:
        params = {"k": query}
        if alias:
            params["i"] = alias
        return f"{self.origin}/s?{urlencode(params)}"

    def targets(self, request: SearchRequest) -> list[str]:
        """カテゴリに寄せた検索 URL、次に汎用検索 URL."""
        alias = CATEGORY_SEARCH_ALIASES.get(request.category.lower(), DEFAULT_SEARCH_ALIAS)
        return [
            self.search_url(request.query, alias),
            self.search_url(request.query),
        ]

    def fetch(self, target: str) -> list[RawCandidate]:
        html = self.gateway.fetch(target)
        candidates = extractor.extract(html, self.origin)
        if self.affiliate_tag:
            for c in candidates:
                c.affiliate_url = self._with_tag(c.detail_url)
        return candidates

    def _with_tag(self, url: str) -> str:
        parts = urlsplit(url)
        query = [(k, v) for k, v in parse_qsl(parts.query) if k != "tag"]
        query.append(("tag", self.affiliate_tag))
        return urlunsplit(parts._replace(query=urlencode(query)))


class WalmartProvider(Provider):
    """RapidAPI の Walmart 検索 API を使う."""

    key = "walmart"
    label = "Walmart"
    credential_names = RAPIDAPI_KEY_NAMES

    def __init__(self, gateway: RapidApiGateway | None):
        super().__init__(gateway.api_key if gateway else None)
        self.gateway = gateway

    def targets(self, request: SearchRequest) -> list[str]:
        queries = []
        if request.category:
            queries.append(f"{request.query} {request.category}")
        queries.append(request.query)
        return list(dict.fromkeys(queries))

    def fetch(self, target: str) -> list[RawCandidate]:
        data = self.gateway.get_json(WALMART_API_HOST, "search", {"query": target})
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.warning("Walmart 応答に items がありません: query=%s", target)
            return []

        candidates = []
        for item in items:
            if not isinstance(item, dict):
                continue
            candidate = self._to_candidate(item)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _to_candidate(self, item: dict) -> RawCandidate | None:
        title = _text(item.get("name"))
        url = _text(item.get("canonicalUrl"))
        if not title or not url:
            return None
        return RawCandidate(
            title=title,
            detail_url=urljoin(WALMART_ORIGIN + "/", url),
            raw_price_text=_text(_deep_get(item, "priceInfo", "currentPrice", "price")),
            image_url=_text(_deep_get(item, "imageInfo", "thumbnailUrl")),
            rating_text=_text(item.get("averageRating")),
            review_count_text=_text(item.get("numberOfReviews")),
            external_id=_text(item.get("itemId")),
            description=_text(item.get("shortDescription")),
            store=self.label,
        )


SAMPLE_PRODUCTS = [
    {
        "title": "DEWALT 20V MAX Cordless Drill",
        "description": "Powerful cordless drill for home improvement projects",
        "price": "129.99",
        "image_url": "https://images.unsplash.com/photo-1572981779307-38b8cabb2407",
        "detail_url": "https://homedepot.com/product/123",
        "external_id": "HD123",
        "rating": "4.5",
        "reviews": "234",
    },
    {
        "title": "Ryobi Circular Saw",
        "description": "Professional grade circular saw for cutting wood",
        "price": "89.99",
        "image_url": "https://images.unsplash.com/photo-1609205807107-e8ec2120f9de",
        "detail_url": "https://homedepot.com/product/456",
        "external_id": "HD456",
        "rating": "4.3",
        "reviews": "156",
    },
]


class SampleCatalogProvider(Provider):
    """固定のサンプル商品を返す. 通信しない."""

    key = "homedepot"
    label = "Home Depot"

    def targets(self, request: SearchRequest) -> list[str]:
        return ["sample-catalog"]

    def fetch(self, target: str) -> list[RawCandidate]:
        return [
            RawCandidate(
                title=p["title"],
                detail_url=p["detail_url"],
                raw_price_text=p["price"],
                image_url=p["image_url"],
                rating_text=p["rating"],
                review_count_text=p["reviews"],
                external_id=p["external_id"],
                description=p["description"],
                store=self.label,
            )
            for p in SAMPLE_PRODUCTS
        ]


def build_providers(settings: Settings, session: requests.Session | None = None) -> dict[str, Provider]:
    """設定からストアキー → プロバイダの対応を作る.

    認証情報が無いプロバイダも登録し、検索時に ServerMisconfigured にする。
    """
    session = session or requests.Session()
    zenrows = (
        ZenRowsGateway(settings.zenrows_key, session, settings.request_timeout)
        if settings.zenrows_key else None
    )
    rapidapi = (
        RapidApiGateway(settings.rapidapi_key, session, settings.request_timeout)
        if settings.rapidapi_key else None
    )
    providers: list[Provider] = [
        AmazonProvider(zenrows, settings.amazon_origin, settings.amazon_affiliate_tag),
        WalmartProvider(rapidapi),
        SampleCatalogProvider(),
    ]
    return {p.key: p for p in providers}
