"""定期スイープ.

カテゴリ × ストアの全組み合わせを 1 件ずつ順に検索する。
プロバイダ呼び出しの間には一定の待機を入れる。1 組の失敗はログに残して
スイープを続行する。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pricecollector.config import SWEEP_PACE_SECONDS
from pricecollector.db import SupabaseSink
from pricecollector.models import CanonicalProduct, ScrapeLogEntry, SearchRequest
from pricecollector.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """1 回のスイープの集計."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    products: list[CanonicalProduct] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.products)


def run_sweep(
    orchestrator: SearchOrchestrator,
    categories: Iterable[str],
    stores: Iterable[str],
    sink: SupabaseSink | None = None,
    pace: float = SWEEP_PACE_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> SweepReport:
    """categories × stores を順に検索する.

    products はカテゴリごとに全ストアの結果をまとめてから一度だけ入れ替える。
    どのストアからも取れなかったカテゴリは書き換えない。
    """
    categories = list(categories)
    stores = list(stores)
    total = len(categories) * len(stores)
    report = SweepReport()

    for category in categories:
        collected: dict[str, CanonicalProduct] = {}
        for store in stores:
            if report.attempted > 0:
                sleep(pace)

            report.attempted += 1
            logger.info("スイープ %d/%d: category=%s, store=%s", report.attempted, total, category, store)
            try:
                products = orchestrator.search(
                    SearchRequest.build(category, category, store), persist=False, fallback=False,
                )
            except Exception as e:
                report.failed += 1
                logger.exception("スイープ失敗: category=%s, store=%s", category, store)
                if sink is not None:
                    sink.append_log(ScrapeLogEntry.error(
                        f"{store} sweep", f"Scraping {store} for {category} failed: {e}",
                    ))
                continue

            report.succeeded += 1
            for p in products:
                collected.setdefault(p.id, p)
            logger.info("  %s / %s → %d 件", store, category, len(products))

        merged = list(collected.values())
        report.products.extend(merged)
        if merged:
            orchestrator.persist(category, merged)

    logger.info(
        "スイープ完了: 実行 %d, 成功 %d, 失敗 %d, 商品 %d 件",
        report.attempted, report.succeeded, report.failed, report.count,
    )
    return report


def seconds_until(hour: int, now: datetime | None = None) -> float:
    """次の hour 時 00 分までの秒数."""
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()
