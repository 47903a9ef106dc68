"""Amazon 検索結果 HTML の抽出モジュール.

各フィールドは (セレクタ, 属性) の候補を優先順に並べたテーブルで定義し、
最初に空でない値が取れたものを採用する。属性が None の場合はテキストを使う。
新しいマークアップの揺れには候補を追加するだけで対応できる。
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from pricecollector.config import AMAZON_ORIGIN
from pricecollector.models import RawCandidate

logger = logging.getLogger(__name__)

RESULT_SELECTOR = '[data-component-type="s-search-result"]'

SPONSORED_SELECTORS = (
    '[aria-label="Sponsored"]',
    ".s-sponsored-label-text",
    ".s-label-popover-default",
)

TITLE_STRATEGIES = (
    ("h2 a span", None),
    ("h2 span", None),
)

DETAIL_URL_STRATEGIES = (
    ("h2 a", "href"),
    ("a.a-link-normal", "href"),
)

IMAGE_STRATEGIES = (
    ("img.s-image", "src"),
    ("img.s-image", "data-src"),
    ("img.s-image", "data-lazy"),
    ("img.s-image", "data-image-lazy"),
)

OFFSCREEN_PRICE_STRATEGIES = (
    (".a-price .a-offscreen", None),
)

RATING_STRATEGIES = (
    (".a-icon-alt", None),
)

REVIEW_LABEL_SELECTORS = (
    '[aria-label*="rating"]',
    '[aria-label$="ratings"]',
)

REVIEW_TEXT_SELECTOR = ".a-size-base"

_NON_DIGIT = re.compile(r"[^\d]")
_REVIEW_COUNT = re.compile(r"^\d{1,6}$")


def _value(node: Tag, attr: str | None) -> str:
    if attr is None:
        return node.get_text(strip=True)
    value = node.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    return (value or "").strip()


def first_match(el: Tag, strategies) -> str | None:
    """strategies を順に試し、最初の空でない値を返す."""
    for selector, attr in strategies:
        for node in el.select(selector):
            value = _value(node, attr)
            if value:
                return value
    return None


def is_sponsored(el: Tag) -> bool:
    return any(el.select_one(selector) is not None for selector in SPONSORED_SELECTORS)


def _digits(el: Tag, selector: str) -> str:
    node = el.select_one(selector)
    if node is None:
        return ""
    return _NON_DIGIT.sub("", node.get_text())


def extract_price_text(el: Tag) -> str | None:
    """価格文字列を取得する.

    .a-offscreen の完全な価格表記を優先し、無ければ整数部と小数部を
    数字だけにして "." で連結する。
    """
    price = first_match(el, OFFSCREEN_PRICE_STRATEGIES)
    if price:
        return price

    whole = _digits(el, ".a-price-whole")
    if not whole:
        return None
    fraction = _digits(el, ".a-price-fraction")
    return f"{whole}.{fraction}" if fraction else whole


def extract_review_count_text(el: Tag) -> str | None:
    """レビュー件数を取得する.

    数字を含む aria-label を優先し、無ければ小さいテキストノードから
    1〜6 桁の数字だけのものを探す。
    """
    for selector in REVIEW_LABEL_SELECTORS:
        for node in el.select(selector):
            label = node.get("aria-label") or ""
            digits = _NON_DIGIT.sub("", label)
            if digits:
                return digits

    for node in el.select(REVIEW_TEXT_SELECTOR):
        text = node.get_text().replace(",", "").replace(" ", "").strip()
        if _REVIEW_COUNT.match(text):
            return text
    return None


def extract_candidate(el: Tag, origin: str = AMAZON_ORIGIN) -> RawCandidate | None:
    """検索結果要素 1 件から RawCandidate を作る.

    スポンサー枠、またはタイトル・URL が取れない要素は None。
    """
    if is_sponsored(el):
        return None

    title = first_match(el, TITLE_STRATEGIES)
    href = first_match(el, DETAIL_URL_STRATEGIES)
    if not title or not href:
        return None

    return RawCandidate(
        title=title,
        detail_url=urljoin(origin + "/", href),
        raw_price_text=extract_price_text(el),
        image_url=first_match(el, IMAGE_STRATEGIES),
        rating_text=first_match(el, RATING_STRATEGIES),
        review_count_text=extract_review_count_text(el),
        external_id=(el.get("data-asin") or "").strip() or None,
    )


def extract(html, origin: str = AMAZON_ORIGIN) -> list[RawCandidate]:
    """検索結果 HTML から RawCandidate のリストを抽出する.

    文字列以外が渡された場合は空リストを返す。例外は送出しない。
    """
    if not isinstance(html, str) or not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    elements = soup.select(RESULT_SELECTOR)

    candidates: list[RawCandidate] = []
    skipped = 0
    for el in elements:
        candidate = extract_candidate(el, origin)
        if candidate is None:
            skipped += 1
            continue
        candidates.append(candidate)

    logger.info("抽出: 要素 %d 件, 候補 %d 件, 除外 %d 件", len(elements), len(candidates), skipped)
    return candidates
