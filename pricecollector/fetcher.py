"""外部プロバイダへの HTTP 取得モジュール.

HTTP クライアントは requests.Session 互換のオブジェクトを注入できる。
リトライは行わない (リトライ方針は orchestrator 側で持つ)。
"""

from __future__ import annotations

import logging

import requests

from pricecollector.config import EXCERPT_LIMIT, REQUEST_TIMEOUT, USER_AGENT, ZENROWS_ENDPOINT
from pricecollector.errors import UpstreamError

logger = logging.getLogger(__name__)


def _transport_excerpt(e: requests.RequestException, target: str) -> str:
    """通信エラーの要約. 例外メッセージには認証情報入りの URL が含まれうるため使わない."""
    return f"{type(e).__name__} while requesting {target}"


def _check_response(resp: requests.Response) -> None:
    """2xx 以外なら本文の先頭だけを持たせて UpstreamError を送出する."""
    if resp.ok:
        return
    text = resp.text or ""
    raise UpstreamError(resp.status_code, text[:EXCERPT_LIMIT])


class ZenRowsGateway:
    """ZenRows 経由で対象ページの HTML を取得する."""

    def __init__(self, api_key: str, session: requests.Session | None = None, timeout: float = REQUEST_TIMEOUT):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def build_params(self, target_url: str) -> dict:
        return {
            "apikey": self.api_key,
            "url": target_url,
            "js_render": "true",
            "premium_proxy": "true",
            "wait_for": "networkidle",
        }

    def fetch(self, target_url: str) -> str:
        """target_url の HTML を返す.

        Raises:
            UpstreamError: 2xx 以外の応答、または通信エラー。
        """
        logger.info("ZenRows 取得: url=%s", target_url)
        try:
            resp = self.session.get(
                ZENROWS_ENDPOINT,
                params=self.build_params(target_url),
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            excerpt = _transport_excerpt(e, target_url)
            logger.error("ZenRows 通信失敗: %s", excerpt)
            raise UpstreamError(None, excerpt) from e

        _check_response(resp)
        return resp.text


class RapidApiGateway:
    """RapidAPI の JSON API を呼び出す."""

    def __init__(self, api_key: str, session: requests.Session | None = None, timeout: float = REQUEST_TIMEOUT):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_json(self, host: str, path: str, params: dict | None = None) -> dict:
        url = f"https://{host}/{path.lstrip('/')}"
        headers = {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": host,
        }
        logger.info("RapidAPI 取得: host=%s, path=%s", host, path)
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            excerpt = _transport_excerpt(e, url)
            logger.error("RapidAPI 通信失敗: %s", excerpt)
            raise UpstreamError(None, excerpt) from e

        _check_response(resp)
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(resp.status_code, (resp.text or "")[:EXCERPT_LIMIT]) from e
