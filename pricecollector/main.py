"""価格収集スイープ — メインエントリーポイント.

処理フロー:
  1. 設定を読み込み、プロバイダ・キャッシュ・保存先を組み立てる
  2. カテゴリ × ストアの全組み合わせでスイープを実行
  3. --daemon 指定時は毎日 SWEEP_HOUR 時まで待機して 2 を繰り返す

通常は cron などの外部スケジューラから 1 日 1 回起動する。
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime

import requests

from pricecollector.cache import TTLCache
from pricecollector.config import LOG_DIR, Settings, load_settings
from pricecollector.db import SupabaseSink
from pricecollector.orchestrator import SearchOrchestrator
from pricecollector.providers import build_providers
from pricecollector.scheduler import run_sweep, seconds_until

NOISY_LOGGERS = ("urllib3", "requests", "httpx", "httpcore", "hpack")


def setup_logging(level: int = logging.INFO) -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(exist_ok=True)
    log_file = LOG_DIR / f"collector_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_orchestrator(
    settings: Settings,
    session: requests.Session | None = None,
    sink: SupabaseSink | None = None,
) -> SearchOrchestrator:
    """設定から SearchOrchestrator を組み立てる."""
    if sink is None:
        sink = SupabaseSink.from_settings(settings)
    return SearchOrchestrator(
        providers=build_providers(settings, session),
        sink=sink,
        cache=TTLCache(ttl=settings.cache_ttl),
        max_results=settings.max_results,
        sample_fallback=settings.sample_fallback,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="カテゴリ × ストアの商品スイープを実行する")
    parser.add_argument("--category", action="append", dest="categories", help="対象カテゴリ (複数指定可)")
    parser.add_argument("--store", action="append", dest="stores", help="対象ストア (複数指定可)")
    parser.add_argument("--daemon", action="store_true", help="毎日 SWEEP_HOUR 時に繰り返し実行する")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> None:
    """メイン処理."""
    args = parse_args(argv)
    setup_logging()
    logger = logging.getLogger(__name__)

    settings = load_settings()
    orchestrator = build_orchestrator(settings)
    categories = args.categories or list(settings.sweep_categories)
    stores = args.stores or list(settings.sweep_stores)

    while True:
        logger.info("=== スイープ 開始 ===")
        start_time = time.time()
        report = run_sweep(
            orchestrator, categories, stores,
            sink=orchestrator.sink, pace=settings.sweep_pace,
        )
        elapsed = time.time() - start_time
        logger.info("=== スイープ 完了 ===")
        logger.info(
            "実行: %d 回, エラー: %d 回, 商品: %d 件, 所要時間: %.1f 秒",
            report.attempted, report.failed, report.count, elapsed,
        )

        if not args.daemon:
            break
        wait = seconds_until(settings.sweep_hour)
        logger.info("次回スイープまで %.0f 秒待機", wait)
        time.sleep(wait)


if __name__ == "__main__":
    run()
