"""検索戦略の制御モジュール.

処理フロー:
  1. 入力検証 (空クエリ → InvalidRequest)
  2. 認証情報の確認 (未設定 → ServerMisconfigured、通信は行わない)
  3. キャッシュ参照
  4. カテゴリに寄せた検索 → 汎用検索 の順に試し、最初に結果が出たところで終了
  5. ライブ検索で 0 件なら、一定時間待ってから一度だけ全体を再試行
  6. 結果をキャッシュ・保存し、実行ログを追記
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from pricecollector.cache import TTLCache
from pricecollector.config import LIVE_RETRY_DELAY, MAX_RESULTS
from pricecollector.db import SupabaseSink
from pricecollector.errors import InvalidRequest, PersistenceError, ServerMisconfigured, UpstreamError
from pricecollector.models import CanonicalProduct, ScrapeLogEntry, SearchRequest
from pricecollector.normalizer import normalize
from pricecollector.providers import Provider, SampleCatalogProvider

logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """1 件の検索要求を正規化済み商品リストに変換する."""

    def __init__(
        self,
        providers: dict[str, Provider],
        sink: SupabaseSink | None = None,
        cache: TTLCache | None = None,
        max_results: int = MAX_RESULTS,
        retry_delay: float = LIVE_RETRY_DELAY,
        sample_fallback: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.providers = providers
        self.sink = sink
        self.cache = cache
        self.max_results = max_results
        self.retry_delay = retry_delay
        self.sample_fallback = sample_fallback
        self.sleep = sleep

    def provider_for(self, request: SearchRequest) -> Provider:
        provider = self.providers.get(request.store)
        if provider is None:
            raise InvalidRequest(f"Unsupported store: {request.store}")
        if not provider.configured:
            logger.error(
                "%s の認証情報が未設定です (checked: %s)",
                provider.label, ", ".join(provider.credential_names),
            )
            raise ServerMisconfigured(provider.credential_names)
        return provider

    def search(
        self,
        request: SearchRequest,
        live: bool = False,
        persist: bool = True,
        fallback: bool = True,
    ) -> list[CanonicalProduct]:
        """request に対する商品リストを返す.

        0 件はエラーではなく空リスト。

        Args:
            live: 0 件なら一度だけ再試行する。
            persist: False なら products を書き込まない (スイープがカテゴリ単位でまとめて書く)。
            fallback: False ならサンプル商品での代替を行わない。

        Raises:
            InvalidRequest: クエリが空、またはストアが未対応。
            ServerMisconfigured: プロバイダの認証情報が未設定。
            UpstreamError: 最後の検索対象でもプロバイダが失敗した場合。
        """
        if not request.query.strip():
            raise InvalidRequest("Missing query")

        provider = self.provider_for(request)

        if self.cache is not None:
            cached = self.cache.get(request.query, request.category, request.store)
            if cached is not None:
                logger.info("キャッシュから返却: query=%s, %d 件", request.query, len(cached))
                return cached

        rounds = 2 if live else 1
        products: list[CanonicalProduct] = []
        for round_no in range(1, rounds + 1):
            products = self._run_targets(provider, request, final_round=round_no == rounds)
            if products:
                break
            if round_no < rounds:
                logger.info("0 件のため %.1f 秒後に再試行: query=%s", self.retry_delay, request.query)
                self.sleep(self.retry_delay)

        if not products:
            if fallback and self.sample_fallback and not isinstance(provider, SampleCatalogProvider):
                # サンプル商品は応答にだけ使い、キャッシュにも products にも残さない
                logger.warning("0 件のためサンプル商品を返却: query=%s", request.query)
                sample = SampleCatalogProvider()
                return normalize(sample.fetch("sample-catalog"), replace(request, store=sample.key), self.max_results)
            logger.info("商品が見つかりませんでした: query=%s", request.query)
            self._log(ScrapeLogEntry.success(
                provider.label, 0, f'No products found for query: "{request.query}"',
            ))
            return []

        if self.cache is not None:
            self.cache.set(request.query, request.category, request.store, products)
        category = products[0].category
        if persist:
            self.persist(category, products)
        self._log(ScrapeLogEntry.success(
            provider.label,
            len(products),
            f'Successfully scraped {len(products)} products for "{request.query}" in category "{category}"',
        ))
        return products

    def _run_targets(
        self, provider: Provider, request: SearchRequest, final_round: bool
    ) -> list[CanonicalProduct]:
        targets = provider.targets(request)
        for i, target in enumerate(targets):
            is_last = final_round and i == len(targets) - 1
            try:
                candidates = provider.fetch(target)
            except UpstreamError as e:
                logger.warning("%s 取得失敗: target=%s, status=%s", provider.label, target, e.status)
                self._log(ScrapeLogEntry.error(provider.label, f"Scraping failed: {e}"))
                if is_last:
                    raise
                continue

            products = normalize(candidates, request, self.max_results)
            logger.info("%s: target=%s, %d 件", provider.label, target, len(products))
            if products:
                return products
        return []

    def persist(self, category: str, products: list[CanonicalProduct]) -> None:
        """category の商品を products で入れ替える. 失敗はログに残すだけ."""
        if self.sink is None:
            return
        try:
            self.sink.replace_category(category, products)
        except PersistenceError:
            logger.exception("保存に失敗しました (結果は返却します): category=%s", category)

    def _log(self, entry: ScrapeLogEntry) -> None:
        if self.sink is not None:
            self.sink.append_log(entry)
