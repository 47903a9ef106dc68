"""config モジュールのテスト."""

from pricecollector.config import SWEEP_CATEGORIES, load_settings


class TestLoadSettings:
    """load_settings のテスト."""

    def test_zenrows_key_priority(self):
        env = {"ZENROWS_KEY": "primary", "VITE_ZENROWS_KEY": "vite", "ZENROWS_API_KEY": "api"}
        assert load_settings(env).zenrows_key == "primary"

    def test_zenrows_key_fallbacks(self):
        assert load_settings({"VITE_ZENROWS_KEY": "vite", "ZENROWS_API_KEY": "api"}).zenrows_key == "vite"
        assert load_settings({"ZENROWS_KEY": " ", "ZENROWS_API_KEY": "api"}).zenrows_key == "api"

    def test_missing_credentials(self):
        settings = load_settings({})

        assert settings.zenrows_key is None
        assert settings.rapidapi_key is None
        assert not settings.supabase_configured

    def test_supabase_key_fallback(self):
        settings = load_settings({"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "svc"})

        assert settings.supabase_key == "svc"
        assert settings.supabase_configured

    def test_defaults(self):
        settings = load_settings({})

        assert settings.cache_ttl == 300
        assert settings.max_results == 24
        assert settings.sweep_pace == 2.0
        assert settings.sweep_categories == tuple(SWEEP_CATEGORIES)
        assert settings.sweep_stores == ("amazon", "walmart", "homedepot")
        assert settings.amazon_origin == "https://www.amazon.ca"
        assert settings.sample_fallback is False

    def test_invalid_numbers_fall_back(self):
        settings = load_settings({"CACHE_TTL_SECONDS": "abc", "MAX_RESULTS": "-3", "SWEEP_HOUR": "30"})

        assert settings.cache_ttl == 300
        assert settings.max_results == 24
        assert settings.sweep_hour == 2

    def test_non_finite_numbers_fall_back(self):
        settings = load_settings({"SWEEP_HOUR": "inf", "SWEEP_PACE_SECONDS": "nan"})

        assert settings.sweep_hour == 2
        assert settings.sweep_pace == 2.0

    def test_overrides(self):
        settings = load_settings({
            "MAX_RESULTS": "10",
            "SWEEP_CATEGORIES": "tools, electronics,",
            "SWEEP_STORES": "amazon",
            "SWEEP_HOUR": "0",
            "SAMPLE_FALLBACK": "true",
            "AMAZON_ORIGIN": "https://www.amazon.com/",
        })

        assert settings.max_results == 10
        assert settings.sweep_categories == ("tools", "electronics")
        assert settings.sweep_stores == ("amazon",)
        assert settings.sweep_hour == 0
        assert settings.sample_fallback is True
        assert settings.amazon_origin == "https://www.amazon.com"
