"""例外定義."""

from __future__ import annotations

from pricecollector.config import EXCERPT_LIMIT


class PriceCollectorError(Exception):
    """pricecollector の例外の基底クラス."""


class InvalidRequest(PriceCollectorError):
    """呼び出し側の入力が不正 (空クエリ、未対応ストアなど)."""


class ServerMisconfigured(PriceCollectorError):
    """必要な認証情報が設定されていない.

    メッセージには確認した環境変数名のみを含め、値は含めない。
    """

    def __init__(self, checked: tuple[str, ...]):
        self.checked = tuple(checked)
        super().__init__(
            "Server misconfigured: credential not set (checked: %s)" % ", ".join(self.checked)
        )


class UpstreamError(PriceCollectorError):
    """スクレイピングプロバイダが 2xx 以外を返した、または通信に失敗した."""

    def __init__(self, status: int | None, excerpt: str = ""):
        self.status = status
        self.excerpt = (excerpt or "")[:EXCERPT_LIMIT]
        label = status if status is not None else "transport error"
        super().__init__(f"Upstream request failed: {label} {self.excerpt}".rstrip())


class PersistenceError(PriceCollectorError):
    """商品の保存に失敗した."""
