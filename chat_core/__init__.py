"""Chat Core 顶层包。

该包提供流式对话客户端的核心实现，
包括增量 JSON 分帧、帧解码、Webhook 流式驱动、
会话控制器与按会话 ID 持久化的历史存储等能力。
"""

from chat_core.api.service import ChatService

__all__ = ["ChatService"]
