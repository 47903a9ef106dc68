"""設定モジュール — 環境変数・定数定義.

環境変数の参照はこのモジュールだけで行い、他のモジュールは
load_settings() が返す Settings のみに依存する。
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- ZenRows ---
ZENROWS_ENDPOINT = "https://api.zenrows.com/v1/"
ZENROWS_KEY_NAMES = ("ZENROWS_KEY", "VITE_ZENROWS_KEY", "ZENROWS_API_KEY")

# --- RapidAPI ---
RAPIDAPI_KEY_NAMES = ("RAPIDAPI_KEY",)
WALMART_API_HOST = "walmart-api2.p.rapidapi.com"
WALMART_ORIGIN = "https://www.walmart.com"

# --- Supabase ---
SUPABASE_KEY_NAMES = ("SUPABASE_SECRET_KEY", "SUPABASE_SERVICE_ROLE_KEY")

# --- Amazon 検索 ---
AMAZON_ORIGIN = "https://www.amazon.ca"
DEFAULT_SEARCH_ALIAS = "tools"

# カテゴリ → Amazon 検索エイリアス (i=)
CATEGORY_SEARCH_ALIASES = {
    "tools": "tools",
    "power tools": "tools",
    "electronics": "electronics",
    "home-garden": "garden",
    "clothing": "fashion",
    "sports": "sporting",
}

# --- User-Agent ---
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# --- リクエスト設定 ---
REQUEST_TIMEOUT = 60  # 秒。JS レンダリング + networkidle 待ちがあるため長め
EXCERPT_LIMIT = 500  # エラー本文の最大文字数
LIVE_RETRY_DELAY = 1.0  # 秒

# --- 結果 ---
MAX_RESULTS = 24
DEFAULT_STORE = "amazon"
DEFAULT_CATEGORY = "general"
PLACEHOLDER_IMAGE_URL = "https://images.unsplash.com/photo-1505740420928-5e560c06d30e"

# --- キャッシュ ---
CACHE_TTL_SECONDS = 300

# --- 定期スイープ ---
SWEEP_CATEGORIES = ["electronics", "home-garden", "tools", "clothing", "sports"]
SWEEP_STORES = ["amazon", "walmart", "homedepot"]
SWEEP_PACE_SECONDS = 2.0
SWEEP_HOUR = 2  # 毎日 2 時

# --- HTTP サーバ ---
PORT = 3001

# --- ログ ---
LOG_DIR = _PROJECT_ROOT / "logs"


@dataclass(frozen=True)
class Settings:
    """起動時に一度だけ解決される設定値."""

    zenrows_key: str | None = None
    rapidapi_key: str | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None
    amazon_origin: str = AMAZON_ORIGIN
    amazon_affiliate_tag: str | None = None
    cache_ttl: float = CACHE_TTL_SECONDS
    max_results: int = MAX_RESULTS
    request_timeout: float = REQUEST_TIMEOUT
    sweep_pace: float = SWEEP_PACE_SECONDS
    sweep_categories: tuple[str, ...] = tuple(SWEEP_CATEGORIES)
    sweep_stores: tuple[str, ...] = tuple(SWEEP_STORES)
    sweep_hour: int = SWEEP_HOUR
    sample_fallback: bool = False
    port: int = PORT

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def first_env(environ: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    """names の順に環境変数を参照し、最初の空でない値を返す."""
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            return value
    return None


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if math.isfinite(value) and value >= 0 else default


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_list(environ: Mapping[str, str], name: str, default: list[str]) -> tuple[str, ...]:
    raw = environ.get(name)
    if not raw:
        return tuple(default)
    items = [v.strip() for v in raw.split(",") if v.strip()]
    return tuple(items) or tuple(default)


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return (environ.get(name) or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """環境変数から Settings を組み立てる.

    Args:
        environ: 参照する環境変数。省略時は os.environ。
    """
    env = os.environ if environ is None else environ

    sweep_hour = int(_env_float(env, "SWEEP_HOUR", SWEEP_HOUR))
    if sweep_hour > 23:
        sweep_hour = SWEEP_HOUR

    return Settings(
        zenrows_key=first_env(env, ZENROWS_KEY_NAMES),
        rapidapi_key=first_env(env, RAPIDAPI_KEY_NAMES),
        supabase_url=first_env(env, ("SUPABASE_URL",)),
        supabase_key=first_env(env, SUPABASE_KEY_NAMES),
        amazon_origin=(env.get("AMAZON_ORIGIN") or AMAZON_ORIGIN).rstrip("/"),
        amazon_affiliate_tag=first_env(env, ("AMAZON_AFFILIATE_TAG",)),
        cache_ttl=_env_float(env, "CACHE_TTL_SECONDS", CACHE_TTL_SECONDS),
        max_results=_env_int(env, "MAX_RESULTS", MAX_RESULTS),
        request_timeout=_env_float(env, "REQUEST_TIMEOUT", REQUEST_TIMEOUT),
        sweep_pace=_env_float(env, "SWEEP_PACE_SECONDS", SWEEP_PACE_SECONDS),
        sweep_categories=_env_list(env, "SWEEP_CATEGORIES", SWEEP_CATEGORIES),
        sweep_stores=_env_list(env, "SWEEP_STORES", SWEEP_STORES),
        sweep_hour=sweep_hour,
        sample_fallback=_env_flag(env, "SAMPLE_FALLBACK"),
        port=_env_int(env, "PORT", PORT),
    )
