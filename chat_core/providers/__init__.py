"""Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 流式 Webhook 实现 (webhook_client)。
- 非流式问答实现 (gemini_client) 及其历史格式化 (history_format)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.base import AnswerProvider, StreamingProvider
from chat_core.providers.gemini_client import GeminiClient
from chat_core.providers.webhook_client import WebhookStreamClient


def create_provider(cfg=None) -> StreamingProvider:
    """根据配置创建流式 Provider 实例，默认使用全局配置。"""

    return WebhookStreamClient(cfg or settings)


def create_answer_provider(cfg=None) -> Optional[AnswerProvider]:
    """配置了 Gemini 密钥时返回非流式 Provider，否则返回 None。"""

    cfg = cfg or settings
    if not getattr(cfg, "gemini_api_key", None):
        return None
    return GeminiClient(cfg)
