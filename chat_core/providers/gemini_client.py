"""Gemini 非流式问答适配器。

通过 generateContent REST 接口完成一次问答，并开启 google_search 工具，
把返回的 groundingChunks 转成按 uri 去重的 Reference 列表。
"""

from typing import Any, Dict, List

import httpx

from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import GroundedAnswer
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.history_format import references_from_grounding


class GeminiClient:
    """Gemini 客户端实现。

    - name: Provider 名称（供日志使用）。
    - answer: 对外统一调用入口，返回 GroundedAnswer。
    """

    name = "gemini"

    def __init__(self, settings):
        self._settings = settings

    def answer(self, history: List[Dict[str, str]]) -> GroundedAnswer:
        """执行一次非流式调用。

        history 为 [{role: "user"|"model", content}]，由 to_provider_history 生成。
        """

        api_key = getattr(self._settings, "gemini_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        payload = self._build_payload(history)
        url = f"{self._settings.gemini_base_url}/models/{self._settings.gemini_model}:generateContent"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    url,
                    json=payload,
                    headers={
                        "x-goog-api-key": api_key,
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        return self._parse_response(resp.json())

    @staticmethod
    def _build_payload(history: List[Dict[str, str]]) -> Dict[str, Any]:
        contents = [
            {"role": item["role"], "parts": [{"text": item["content"]}]}
            for item in history
        ]
        return {"contents": contents, "tools": [{"google_search": {}}]}

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> GroundedAnswer:
        """从 candidates[0] 中取出文本与 groundingChunks。"""

        candidates = data.get("candidates") or []
        if not candidates:
            logger.warning("Gemini response has no candidates")
            return GroundedAnswer(content="")
        first = candidates[0] or {}
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(p.get("text") or "" for p in parts if isinstance(p, dict))
        chunks = (first.get("groundingMetadata") or {}).get("groundingChunks") or []
        return GroundedAnswer(content=text, references=references_from_grounding(chunks))
