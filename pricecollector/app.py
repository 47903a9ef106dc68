"""HTTP エンドポイント (Flask).

  GET  /api/search   検索 (?q=, &category=, &store=, &live=)
  GET  /api/health   認証情報の設定状況
  POST /api/scrape   手動スクレイピング / スイープ起動
  GET  /api/products カテゴリの保存済み商品 (無ければスクレイピング)

全レスポンスに CORS ヘッダを付ける。OPTIONS は 204 で本文なし。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Flask, Response, current_app, jsonify, request

from pricecollector.config import DEFAULT_CATEGORY, EXCERPT_LIMIT, Settings, load_settings
from pricecollector.errors import InvalidRequest, PersistenceError, ServerMisconfigured, UpstreamError
from pricecollector.main import build_orchestrator, setup_logging
from pricecollector.models import SearchRequest
from pricecollector.orchestrator import SearchOrchestrator
from pricecollector.scheduler import run_sweep

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Cache-Control": "no-store",
}


def _settings() -> Settings:
    return current_app.extensions["pricecollector.settings"]


def _orchestrator() -> SearchOrchestrator:
    return current_app.extensions["pricecollector.orchestrator"]


def _error(status: int, message: str, details: str | None = None, **extra):
    body = {"error": message, **extra}
    if details:
        body["details"] = details[:EXCERPT_LIMIT]
    return jsonify(body), status


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def search():
    q = (request.args.get("q") or "").strip()
    if not q:
        return _error(400, "Missing query")

    search_request = SearchRequest.build(q, request.args.get("category"), request.args.get("store"))
    try:
        items = _orchestrator().search(search_request, live=_flag(request.args.get("live")))
    except InvalidRequest as e:
        return _error(400, str(e))
    except ServerMisconfigured as e:
        return _error(500, str(e))
    except UpstreamError as e:
        logger.error("search 上流エラー: query=%s, status=%s", q, e.status)
        return _error(500, "Upstream request failed", str(e))
    except Exception as e:
        logger.exception("search サーバエラー: query=%s", q)
        return _error(500, "Internal server error", str(e))

    return jsonify({"items": [p.to_dict() for p in items], "count": len(items), "query": q})


def health():
    try:
        configured = bool(_settings().zenrows_key)
        cache = _orchestrator().cache
        return jsonify({
            "ok": configured,
            "env": configured,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": "All environment variables configured" if configured else "Missing ZENROWS_KEY",
            "cache": cache.stats() if cache is not None else None,
        })
    except Exception:
        logger.exception("ヘルスチェック失敗")
        return jsonify({"ok": False, "env": False, "error": "Health check failed"}), 500


def scrape():
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object", success=False)
    fields = {name: body.get(name) for name in ("query", "category", "store")}
    for name, value in fields.items():
        if value is not None and not isinstance(value, str):
            return _error(400, f"{name} must be a string", success=False)

    query = (fields["query"] or "").strip()
    category = (fields["category"] or "").strip()
    store = fields["store"]
    orchestrator = _orchestrator()

    try:
        if query or category:
            logger.info("手動スクレイピング: query=%s, category=%s, store=%s", query, category, store)
            products = orchestrator.search(SearchRequest.build(query or category, category, store))
            message = f"Successfully scraped {len(products)} products"
        else:
            settings = _settings()
            logger.info("スイープを起動")
            report = run_sweep(
                orchestrator, settings.sweep_categories, settings.sweep_stores,
                sink=orchestrator.sink, pace=settings.sweep_pace,
            )
            products = report.products
            message = (
                f"Scheduled scraping completed: {report.succeeded}/{report.attempted} succeeded"
            )
    except InvalidRequest as e:
        return _error(400, str(e), success=False)
    except Exception as e:
        logger.exception("スクレイピング失敗")
        return _error(500, "Scraping failed", str(e), success=False)

    return jsonify({
        "success": True,
        "message": message,
        "products": [p.to_dict() for p in products],
        "count": len(products),
    })


def products():
    category = (request.args.get("category") or "").strip() or DEFAULT_CATEGORY
    query = (request.args.get("query") or "").strip()
    orchestrator = _orchestrator()

    rows: list[dict] = []
    source = "database"
    if orchestrator.sink is not None:
        try:
            rows = orchestrator.sink.fetch_category(category)
        except PersistenceError:
            logger.exception("データベース取得失敗: category=%s", category)
            return _error(500, "Database error")

    if not rows:
        logger.info("保存済み商品がないためスクレイピング: category=%s", category)
        source = "scrape"
        try:
            scraped = orchestrator.search(SearchRequest.build(query or category, category))
        except InvalidRequest as e:
            return _error(400, str(e))
        except Exception as e:
            logger.exception("スクレイピング失敗: category=%s", category)
            return _error(500, "Failed to scrape products", str(e))
        rows = [p.to_dict() for p in scraped]

    return jsonify({"success": True, "products": rows, "count": len(rows), "source": source})


def create_app(
    settings: Settings | None = None,
    orchestrator: SearchOrchestrator | None = None,
) -> Flask:
    """Flask アプリを作る. テストでは orchestrator を差し替える."""
    settings = settings or load_settings()
    app = Flask(__name__)
    app.extensions["pricecollector.settings"] = settings
    app.extensions["pricecollector.orchestrator"] = orchestrator or build_orchestrator(settings)

    @app.before_request
    def _preflight():
        if request.method == "OPTIONS":
            return Response(status=204)
        return None

    @app.after_request
    def _cors(resp):
        resp.headers.update(CORS_HEADERS)
        return resp

    app.add_url_rule("/api/search", "search", search, methods=["GET", "OPTIONS"])
    app.add_url_rule("/api/health", "health", health, methods=["GET", "OPTIONS"])
    app.add_url_rule("/api/scrape", "scrape", scrape, methods=["POST", "OPTIONS"])
    app.add_url_rule("/api/products", "products", products, methods=["GET", "OPTIONS"])
    return app


def serve() -> None:
    """開発用サーバを起動する."""
    setup_logging()
    settings = load_settings()
    app = create_app(settings)
    logger.info("サーバ起動: port=%d, ZenRows=%s", settings.port, "設定済み" if settings.zenrows_key else "未設定")
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    serve()
