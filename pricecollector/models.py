"""データモデル定義."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from pricecollector.config import DEFAULT_STORE


@dataclass(frozen=True)
class SearchRequest:
    """1 回の検索要求."""

    query: str
    category: str = ""  # 検索を寄せるカテゴリ (任意)
    store: str = DEFAULT_STORE

    @classmethod
    def build(cls, query: str | None, category: str | None = None, store: str | None = None) -> "SearchRequest":
        """前後の空白を除去して組み立てる."""
        return cls(
            query=(query or "").strip(),
            category=(category or "").strip(),
            store=(store or "").strip().lower() or DEFAULT_STORE,
        )


@dataclass
class RawCandidate:
    """正規化前の検索結果 1 件."""

    title: str
    detail_url: str
    raw_price_text: str | None = None
    image_url: str | None = None
    rating_text: str | None = None
    review_count_text: str | None = None
    sponsored: bool = False
    external_id: str | None = None  # ASIN, Walmart itemId など
    description: str | None = None
    store: str | None = None  # 表示用ストア名
    affiliate_url: str | None = None


@dataclass(frozen=True)
class CanonicalProduct:
    """正規化済みの商品."""

    id: str
    name: str
    description: str
    price: float | None
    image_url: str | None
    category: str
    rating: float | None  # 0〜5
    review_count: int | None
    store: str
    detail_url: str
    affiliate_url: str

    def to_dict(self) -> dict:
        return asdict(self)

    def to_row(self) -> dict:
        """products テーブルに書き込む行."""
        return {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "image_url": self.image_url,
            "affiliate_url": self.affiliate_url,
            "status": "active",
        }


@dataclass(frozen=True)
class ScrapeLogEntry:
    """scraper_logs に追記するレコード."""

    source_name: str
    status: str  # "success" or "error"
    message: str
    item_count: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def success(cls, source_name: str, item_count: int, message: str) -> "ScrapeLogEntry":
        return cls(source_name=source_name, status="success", message=message, item_count=item_count)

    @classmethod
    def error(cls, source_name: str, message: str) -> "ScrapeLogEntry":
        return cls(source_name=source_name, status="error", message=message, item_count=0)

    def to_row(self) -> dict:
        return {
            "scraper_name": self.source_name,
            "status": self.status,
            "products_scraped": self.item_count,
            "message": self.message,
        }
