"""Supabase データベース操作モジュール.

products は category 単位で入れ替え (削除してから挿入) る。
scraper_logs への追記は失敗しても呼び出し側に例外を返さない。
"""

from __future__ import annotations

import logging

from supabase import Client, create_client

from pricecollector.config import Settings
from pricecollector.errors import PersistenceError
from pricecollector.models import CanonicalProduct, ScrapeLogEntry

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
LOGS_TABLE = "scraper_logs"


class SupabaseSink:
    """商品と実行ログの書き込み先."""

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseSink | None":
        """Supabase が設定されていなければ None."""
        if not settings.supabase_configured:
            logger.warning("SUPABASE_URL / SUPABASE_SECRET_KEY が未設定のため保存をスキップします")
            return None
        return cls(create_client(settings.supabase_url, settings.supabase_key))

    def _table(self, name: str):
        return self._client.table(name)

    def replace_category(self, category: str, products: list[CanonicalProduct]) -> None:
        """category の商品を削除してから products を挿入する.

        Raises:
            PersistenceError: 削除または挿入に失敗した場合。
        """
        try:
            self._table(PRODUCTS_TABLE).delete().eq("category", category).execute()
            if products:
                self._table(PRODUCTS_TABLE).insert([p.to_row() for p in products]).execute()
        except Exception as e:
            raise PersistenceError(f"products の保存に失敗: category={category}: {e}") from e
        logger.info("products を入れ替え: category=%s, %d 件", category, len(products))

    def append_log(self, entry: ScrapeLogEntry) -> None:
        """scraper_logs に 1 件追記する. 失敗はログに残すだけ."""
        try:
            self._table(LOGS_TABLE).insert(entry.to_row()).execute()
        except Exception:
            logger.exception("scraper_logs への書き込み失敗: source=%s", entry.source_name)

    def fetch_category(self, category: str, limit: int = 50) -> list[dict]:
        """category の有効な商品行を新しい順に取得する."""
        try:
            resp = (
                self._table(PRODUCTS_TABLE)
                .select("*")
                .eq("category", category)
                .eq("status", "active")
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"products の取得に失敗: category={category}: {e}") from e
        return resp.data or []
