"""流式 Webhook Provider 适配器。

本模块负责：

1. 把当前对话与会话 ID 组装成 {chatInput, sessionId} 请求体并 POST 给 Webhook。
2. 逐块读取分块传输的响应体，交给 FrameExtractor 切帧。
3. 通过 decode 把每一帧转换为 DomainEvent，按帧闭合的顺序惰性 yield。

返回值是生成器：调用方每取一个事件才会继续读网络，不会提前读取；
无论正常结束、抛错还是调用方中途 close()，with 块都会关闭响应与连接。
"""

import logging
from typing import Any, Dict, Iterator, List

import httpx

from chat_core.domain.events import ContentFragment, DomainEvent
from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import Turn, turn_to_dict
from chat_core.infrastructure.logging.logger import logger
from chat_core.streaming.decoder import decode
from chat_core.streaming.frame_extractor import FrameExtractor


class WebhookStreamClient:
    """流式 Webhook 客户端。

    - name: Provider 名称（供日志使用）。
    - stream_events: 发起一次请求并逐个产出 DomainEvent。
    """

    name = "webhook"

    def __init__(self, settings, string_aware: bool = True):
        # Settings 里包含 webhook_url 与超时配置
        self._settings = settings
        self._string_aware = string_aware

    def stream_events(self, chat_input: List[Turn], session_id: str) -> Iterator[DomainEvent]:
        """执行一次流式调用。

        非 2xx 状态在产出任何事件之前就会抛出 ApiError / RateLimitError；
        建连失败或读流中断抛出 NetworkError。单帧解码失败不会中断序列。
        """

        url = getattr(self._settings, "webhook_url", None)
        if not url:
            raise ValidationError(code="MISSING_WEBHOOK_URL", message="WEBHOOK_URL not set")
        payload = self._build_payload(chat_input, session_id)
        log_ctx: Dict[str, Any] = {"session_id": session_id, "provider": self.name}
        extractor = FrameExtractor(string_aware=self._string_aware)
        frame_count = 0
        fragment_count = 0

        self._log(logging.INFO, "Calling webhook (stream)", log_ctx, message_count=len(chat_input))
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                ) as resp:
                    if resp.status_code == 429:
                        raise RateLimitError(code="RATE_LIMIT", message="Webhook rate limit", http_status=429)
                    if not 200 <= resp.status_code < 300:
                        raise ApiError(
                            code="API_ERROR",
                            message=f"HTTP error! status: {resp.status_code}",
                            http_status=resp.status_code,
                        )
                    for increment in resp.iter_bytes():
                        for frame in extractor.feed(increment):
                            frame_count += 1
                            event = decode(frame)
                            if isinstance(event, ContentFragment):
                                fragment_count += 1
                            yield event
                    for frame in extractor.close():
                        frame_count += 1
                        event = decode(frame)
                        if isinstance(event, ContentFragment):
                            fragment_count += 1
                        yield event
        except httpx.RequestError as e:
            self._log(
                logging.ERROR,
                "Webhook stream failed",
                log_ctx,
                error=str(e),
                frames=frame_count,
                fragments=fragment_count,
            )
            raise NetworkError(code="NETWORK_ERROR", message=str(e)) from e

        self._log(
            logging.INFO,
            "Webhook stream completed",
            log_ctx,
            frames=frame_count,
            fragments=fragment_count,
        )

    @staticmethod
    def _build_payload(chat_input: List[Turn], session_id: str) -> Dict[str, Any]:
        return {
            "chatInput": [turn_to_dict(t) for t in chat_input],
            "sessionId": session_id,
        }

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
