"""RawCandidate → CanonicalProduct の正規化と重複除去."""

from __future__ import annotations

import math
import re

from pricecollector.config import DEFAULT_CATEGORY, MAX_RESULTS
from pricecollector.models import CanonicalProduct, RawCandidate, SearchRequest

_NUMBER = re.compile(r"\d[\d,]*(?:\.\d+)?|\.\d+")
_DECIMAL_COMMA = re.compile(r"^\d+,\d{1,2}$")

STORE_LABELS = {
    "amazon": "Amazon",
    "walmart": "Walmart",
    "homedepot": "Home Depot",
}


def _finite(value: float) -> float | None:
    return value if math.isfinite(value) else None


def parse_price(text: str | float | int | None) -> float | None:
    """価格表記を数値にする. 解釈できない、または負の場合は None."""
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        value = _finite(float(text))
        return value if value is not None and value >= 0 else None

    s = str(text).strip()
    if not s or s.startswith("-"):
        return None
    match = _NUMBER.search(s)
    if not match:
        return None

    token = match.group(0)
    if _DECIMAL_COMMA.match(token):
        token = token.replace(",", ".")
    else:
        token = token.replace(",", "")
    try:
        value = float(token)
    except ValueError:
        return None
    return _finite(value)


def parse_rating(text: str | float | None) -> float | None:
    """"4.7 out of 5 stars" のような表記の先頭の数値を取り出す. 0〜5 以外は None."""
    if text is None:
        return None
    tokens = str(text).strip().split()
    if not tokens:
        return None
    try:
        value = float(tokens[0].replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(value) or not 0 <= value <= 5:
        return None
    return value


def parse_review_count(text: str | int | None) -> int | None:
    if text is None:
        return None
    digits = re.sub(r"[^\d]", "", str(text))
    if not digits:
        return None
    return int(digits)


def product_id(candidate: RawCandidate, store: str) -> str:
    """安定した商品 ID. プロバイダ固有 ID があればそれを、無ければ詳細 URL を使う."""
    if candidate.external_id:
        return f"{store}:{candidate.external_id}"
    return candidate.detail_url


def to_canonical(candidate: RawCandidate, request: SearchRequest) -> CanonicalProduct:
    store_key = request.store
    name = candidate.title.strip()
    return CanonicalProduct(
        id=product_id(candidate, store_key),
        name=name,
        description=(candidate.description or "").strip() or name,
        price=parse_price(candidate.raw_price_text),
        image_url=candidate.image_url or None,
        category=request.category or DEFAULT_CATEGORY,
        rating=parse_rating(candidate.rating_text),
        review_count=parse_review_count(candidate.review_count_text),
        store=candidate.store or STORE_LABELS.get(store_key, store_key),
        detail_url=candidate.detail_url,
        affiliate_url=candidate.affiliate_url or candidate.detail_url,
    )


def normalize(
    candidates: list[RawCandidate],
    request: SearchRequest,
    max_results: int = MAX_RESULTS,
) -> list[CanonicalProduct]:
    """候補を正規化し、重複を除いて max_results 件までに絞る.

    重複判定は詳細 URL と商品 ID の両方で行い、先に出たものを残す。
    件数の上限は重複除去の後に適用する。
    """
    seen_urls: set[str] = set()
    seen_ids: set[str] = set()
    products: list[CanonicalProduct] = []

    for candidate in candidates:
        if candidate.sponsored or not candidate.title.strip() or not candidate.detail_url:
            continue
        product = to_canonical(candidate, request)
        if product.detail_url in seen_urls or product.id in seen_ids:
            continue
        seen_urls.add(product.detail_url)
        seen_ids.add(product.id)
        products.append(product)

    return products[:max_results]
