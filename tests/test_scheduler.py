"""scheduler モジュールのテスト."""

from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

from pricecollector.errors import UpstreamError
from pricecollector.models import CanonicalProduct, SearchRequest
from pricecollector.orchestrator import SearchOrchestrator
from pricecollector.providers import AmazonProvider, SampleCatalogProvider
from pricecollector.scheduler import run_sweep, seconds_until

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _product(n: int, category: str = "tools") -> CanonicalProduct:
    url = f"https://www.amazon.ca/dp/B{n:09d}"
    return CanonicalProduct(
        id=f"amazon:B{n:09d}", name=f"Drill {n}", description=f"Drill {n}", price=99.99,
        image_url=None, category=category, rating=None, review_count=None,
        store="Amazon", detail_url=url, affiliate_url=url,
    )


class FakeGateway:
    api_key = "test-key"

    def __init__(self, html: str):
        self.html = html

    def fetch(self, target_url: str) -> str:
        return self.html


class FakeSink:
    """category 単位で削除してから挿入する、状態を持つフェイク."""

    def __init__(self):
        self.rows: list[dict] = []
        self.logs = []

    def replace_category(self, category, products):
        self.rows = [r for r in self.rows if r["category"] != category]
        self.rows.extend(p.to_row() | {"store": p.store} for p in products)

    def append_log(self, entry):
        self.logs.append(entry)


class TestRunSweep:
    """run_sweep のテスト."""

    def test_cross_product_in_order(self):
        orchestrator = MagicMock()
        orchestrator.search.return_value = []

        report = run_sweep(orchestrator, ["tools", "electronics"], ["amazon", "walmart"], sleep=MagicMock())

        requests = [c[0][0] for c in orchestrator.search.call_args_list]
        assert requests == [
            SearchRequest("tools", "tools", "amazon"),
            SearchRequest("tools", "tools", "walmart"),
            SearchRequest("electronics", "electronics", "amazon"),
            SearchRequest("electronics", "electronics", "walmart"),
        ]
        assert report.attempted == 4
        assert report.succeeded == 4

    def test_pacing_between_calls(self):
        """呼び出しの間にだけ待機を入れること."""
        orchestrator = MagicMock()
        orchestrator.search.return_value = []
        sleep = MagicMock()

        run_sweep(orchestrator, ["tools", "sports"], ["amazon", "walmart", "homedepot"], pace=2.0, sleep=sleep)

        assert sleep.call_count == 5
        sleep.assert_called_with(2.0)

    def test_failure_does_not_abort(self):
        orchestrator = MagicMock()
        orchestrator.search.side_effect = [[_product(1), _product(2)], UpstreamError(500, "boom"), [_product(3)]]
        sink = MagicMock()

        report = run_sweep(orchestrator, ["tools"], ["amazon", "walmart", "homedepot"], sink=sink, sleep=MagicMock())

        assert report.attempted == 3
        assert report.succeeded == 2
        assert report.failed == 1
        assert [p.name for p in report.products] == ["Drill 1", "Drill 2", "Drill 3"]
        assert report.count == 3
        entry = sink.append_log.call_args[0][0]
        assert entry.status == "error"
        assert "walmart" in entry.message

    def test_one_write_per_category(self):
        """各ストアの結果をまとめ、カテゴリごとに一度だけ書き込むこと."""
        orchestrator = MagicMock()
        orchestrator.search.side_effect = [[_product(1)], [_product(2), _product(1)], [], []]

        run_sweep(orchestrator, ["tools", "sports"], ["amazon", "walmart"], sleep=MagicMock())

        orchestrator.persist.assert_called_once()
        category, products = orchestrator.persist.call_args[0]
        assert category == "tools"
        assert [p.id for p in products] == ["amazon:B000000001", "amazon:B000000002"]
        for call in orchestrator.search.call_args_list:
            assert call.kwargs == {"persist": False, "fallback": False}

    def test_stores_do_not_overwrite_each_other(self):
        html = (FIXTURES_DIR / "search_power_drill.html").read_text(encoding="utf-8")
        sink = FakeSink()
        orchestrator = SearchOrchestrator(
            {"amazon": AmazonProvider(FakeGateway(html)), "homedepot": SampleCatalogProvider()},
            sink=sink,
            sleep=MagicMock(),
        )

        run_sweep(orchestrator, ["tools"], ["amazon", "homedepot"], sink=sink, sleep=MagicMock())

        stores = [r["store"] for r in sink.rows]
        assert stores.count("Amazon") == 3
        assert stores.count("Home Depot") == 2
        assert all(r["category"] == "tools" for r in sink.rows)

    def test_empty_sweep(self):
        report = run_sweep(MagicMock(), [], ["amazon"], sleep=MagicMock())
        assert report.attempted == 0


class TestSecondsUntil:
    """seconds_until のテスト."""

    def test_later_today(self):
        assert seconds_until(2, datetime(2026, 3, 1, 1, 30)) == 1800

    def test_tomorrow(self):
        assert seconds_until(2, datetime(2026, 3, 1, 2, 0)) == 24 * 3600
