"""main モジュールのテスト."""

from unittest.mock import MagicMock, patch

from pricecollector.config import Settings
from pricecollector.main import build_orchestrator, parse_args, run
from pricecollector.scheduler import SweepReport


class TestBuildOrchestrator:
    """build_orchestrator のテスト."""

    def test_wiring(self):
        sink = MagicMock()
        settings = Settings(zenrows_key="z", cache_ttl=60, max_results=12, sample_fallback=True)

        orchestrator = build_orchestrator(settings, session=MagicMock(), sink=sink)

        assert orchestrator.sink is sink
        assert orchestrator.cache.ttl == 60
        assert orchestrator.max_results == 12
        assert orchestrator.sample_fallback is True
        assert set(orchestrator.providers) == {"amazon", "walmart", "homedepot"}

    def test_without_supabase(self):
        orchestrator = build_orchestrator(Settings(), session=MagicMock())
        assert orchestrator.sink is None


class TestRun:
    """run のテスト."""

    def test_parse_args(self):
        args = parse_args(["--category", "tools", "--category", "sports", "--store", "amazon"])

        assert args.categories == ["tools", "sports"]
        assert args.stores == ["amazon"]
        assert args.daemon is False

    @patch("pricecollector.main.setup_logging")
    @patch("pricecollector.main.load_settings")
    @patch("pricecollector.main.run_sweep")
    def test_single_sweep(self, mock_run_sweep, mock_load_settings, mock_setup_logging):
        mock_load_settings.return_value = Settings(sweep_pace=0.5)
        mock_run_sweep.return_value = SweepReport()

        run(["--store", "homedepot"])

        args, kwargs = mock_run_sweep.call_args
        assert list(args[1]) == list(Settings().sweep_categories)
        assert args[2] == ["homedepot"]
        assert kwargs["pace"] == 0.5
        mock_run_sweep.assert_called_once()
