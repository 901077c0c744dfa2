"""对外 API 服务模块。

ChatService 在构造时显式组装键值存储、历史适配器、Provider 与会话控制器，
不依赖进程级单例；上层应用在启动时创建一个实例即可。
"""

from typing import Any, Dict, Iterator, List, Optional

from chat_core.agents.conversation_controller import ConversationController
from chat_core.config.settings import Settings, settings as default_settings
from chat_core.domain.history import KeyValueStore
from chat_core.domain.models import Turn, turn_to_dict
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.history_store import HistoryStoreAdapter
from chat_core.infrastructure.storage.kv_store import JsonFileKeyValueStore
from chat_core.providers import create_answer_provider, create_provider
from chat_core.providers.base import AnswerProvider, StreamingProvider


class ChatService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        provider: Optional[StreamingProvider] = None,
        answer_provider: Optional[AnswerProvider] = None,
    ):
        """初始化服务。

        Args:
            settings: 配置（可选，默认使用全局配置）
            store: 键值存储（可选，默认使用 storage_root 下的文件存储）
            provider: 流式 Provider（可选，默认 WebhookStreamClient）
            answer_provider: 非流式 Provider（可选，配置了 Gemini 密钥时自动创建）
        """
        self._settings = settings or default_settings
        self._store = store or JsonFileKeyValueStore(root=self._settings.storage_root)
        self.history = HistoryStoreAdapter(
            self._store,
            key=self._settings.history_key,
            title_max_chars=self._settings.title_max_chars,
        )
        if answer_provider is None:
            answer_provider = create_answer_provider(self._settings)
        self.controller = ConversationController(
            provider=provider or create_provider(self._settings),
            history=self.history,
            answer_provider=answer_provider,
            error_message_template=self._settings.error_message_template,
        )

    @property
    def session_id(self) -> str:
        return self.controller.session_id

    def new_chat(self) -> str:
        return self.controller.new_chat()

    def send_stream(self, prompt: str) -> Iterator[Turn]:
        return self.controller.send_stream(prompt)

    def send(self, prompt: str) -> Dict[str, Any]:
        """运行一轮流式对话并返回结果字典。

        Returns:
            包含 session_id、最终 model 消息与完整对话的字典
        """
        try:
            turn = self.controller.send(prompt)
        except Exception as e:
            logger.error(f"Chat failed: {e}", extra={"extra": {
                "session_id": self.controller.session_id,
                "error": str(e),
            }})
            raise
        return {
            "session_id": self.controller.session_id,
            "message": turn_to_dict(turn),
            "conversation": [turn_to_dict(t) for t in self.controller.conversation],
        }

    def ask(self, prompt: str) -> Dict[str, Any]:
        turn = self.controller.ask(prompt)
        return {
            "session_id": self.controller.session_id,
            "message": turn_to_dict(turn),
        }

    def list_history(self) -> List[Dict[str, Any]]:
        """列出所有历史会话。

        Returns:
            会话列表，每项包含 id, title, turns
        """
        return [
            {"id": r.id, "title": r.title, "turns": len(r.conversation)}
            for r in self.history.list_records()
        ]

    def load_history(self, session_id: str) -> List[Dict[str, Any]]:
        """加载历史会话并返回其消息列表；会话不存在时返回空列表。"""
        if not self.controller.load_session(session_id):
            return []
        return [turn_to_dict(t) for t in self.controller.conversation]

    def delete_history(self, session_id: str) -> bool:
        return self.history.delete(session_id)
