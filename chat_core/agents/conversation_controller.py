"""会话控制器。

负责一个会话内的对话轮次：

- 持有会话 ID（新建时生成，加载历史时恢复）。
- 用户提交后追加 user 消息与空的 model 占位消息。
- 按到达顺序把每个 ContentFragment 拼接到占位消息上。
- 流结束（正常结束或传输错误）后定稿；出错且尚无任何内容时，
  占位消息替换为用户可读的错误提示。
- 每次修改对话都会调用 HistoryStore.upsert 持久化。

状态机：idle -> awaiting_first_fragment -> streaming -> finalized。
同一控制器同一时刻最多只有一个进行中的轮次，重复提交直接拒绝。
"""

import logging
from typing import Any, Dict, Iterator, List, Literal, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.events import ContentFragment
from chat_core.domain.exceptions import BusinessError, ConversationBusyError, ValidationError
from chat_core.domain.history import HistoryStore
from chat_core.domain.models import ROLE_MODEL, ROLE_USER, HistoryRecord, Turn
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import AnswerProvider, StreamingProvider
from chat_core.providers.history_format import dedupe_references, to_provider_history


ExchangeState = Literal["idle", "awaiting_first_fragment", "streaming", "finalized"]

_IN_FLIGHT = ("awaiting_first_fragment", "streaming")


class ConversationController:
    def __init__(
        self,
        provider: StreamingProvider,
        history: HistoryStore,
        answer_provider: Optional[AnswerProvider] = None,
        session_id: Optional[str] = None,
        error_message_template: Optional[str] = None,
    ):
        self._provider = provider
        self._history = history
        self._answer_provider = answer_provider
        self._session_id = session_id or self._mint_session_id()
        self._conversation: List[Turn] = []
        self._state: ExchangeState = "idle"
        self._error_template = error_message_template or settings.error_message_template

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def conversation(self) -> List[Turn]:
        return list(self._conversation)

    @property
    def state(self) -> ExchangeState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state in _IN_FLIGHT

    def new_chat(self) -> str:
        """清空当前对话并生成新的会话 ID。"""

        self._ensure_not_busy()
        self._conversation = []
        self._session_id = self._mint_session_id()
        self._state = "idle"
        return self._session_id

    def load_record(self, record: HistoryRecord) -> None:
        """恢复一条历史记录，之后的修改会写回同一个会话 ID。"""

        self._ensure_not_busy()
        self._conversation = [
            Turn(role=t.role, content=t.content, references=t.references)
            for t in record.conversation
        ]
        self._session_id = record.id
        self._state = "idle"

    def load_session(self, session_id: str) -> bool:
        record = self._history.get(session_id)
        if record is None:
            return False
        self.load_record(record)
        return True

    def send_stream(self, prompt: str) -> Iterator[Turn]:
        """以流式方式发起一轮对话。

        返回生成器：首次迭代时才会校验并追加消息，先产出空占位消息，
        之后每追加一段文本产出一次（同一个 Turn 对象）。调用方中途
        close() 时也会定稿并释放底层响应。
        """

        self._begin_exchange(prompt)
        placeholder = Turn(role=ROLE_MODEL, content="")
        self._append(placeholder)

        log_ctx: Dict[str, Any] = {"session_id": self._session_id, "provider": self._provider.name}
        fragments = 0
        events: Optional[Iterator[Any]] = None
        try:
            yield placeholder
            events = self._provider.stream_events(self._conversation[:-1], self._session_id)
            for event in events:
                if not isinstance(event, ContentFragment):
                    continue
                self._state = "streaming"
                if not event.text:
                    continue
                fragments += 1
                placeholder.content += event.text
                self._persist()
                yield placeholder
        except BusinessError as e:
            self._log(
                logging.ERROR,
                "Streaming exchange failed",
                log_ctx,
                code=e.code,
                error=e.message,
                fragments=fragments,
            )
            if not placeholder.content:
                placeholder.content = self._error_template.format(message=e.message)
                self._persist()
                yield placeholder
        finally:
            close = getattr(events, "close", None)
            if callable(close):
                close()
            self._state = "finalized"
            self._log(
                logging.INFO,
                "Exchange finalized",
                log_ctx,
                fragments=fragments,
                content_chars=len(placeholder.content),
            )

    def send(self, prompt: str) -> Turn:
        """发起一轮流式对话并等待结束，返回定稿后的 model 消息。"""

        for _ in self.send_stream(prompt):
            pass
        # 占位消息始终是本轮追加的最后一条
        return self._conversation[-1]

    def ask(self, prompt: str) -> Turn:
        """非流式问答：一次性追加带引用的 model 消息。"""

        if self._answer_provider is None:
            raise ValidationError(code="MISSING_ANSWER_PROVIDER", message="answer provider not configured")
        self._begin_exchange(prompt)
        try:
            try:
                result = self._answer_provider.answer(to_provider_history(self._conversation))
                turn = Turn(
                    role=ROLE_MODEL,
                    content=result.content,
                    references=dedupe_references(result.references),
                )
            except BusinessError as e:
                self._log(
                    logging.ERROR,
                    "Answer request failed",
                    {"session_id": self._session_id, "provider": self._answer_provider.name},
                    code=e.code,
                    error=e.message,
                )
                turn = Turn(role=ROLE_MODEL, content=self._error_template.format(message=e.message))
            self._append(turn)
            return turn
        finally:
            self._state = "finalized"

    def _begin_exchange(self, prompt: str) -> None:
        self._ensure_not_busy()
        if not prompt or not prompt.strip():
            raise ValidationError(code="EMPTY_PROMPT", message="prompt is empty")
        self._append(Turn(role=ROLE_USER, content=prompt))
        self._state = "awaiting_first_fragment"

    def _ensure_not_busy(self) -> None:
        if self.is_busy:
            raise ConversationBusyError(
                code="EXCHANGE_IN_PROGRESS",
                message="An exchange is already in progress",
                http_status=409,
                session_id=self._session_id,
            )

    def _append(self, turn: Turn) -> None:
        self._conversation.append(turn)
        self._persist()

    def _persist(self) -> None:
        self._history.upsert(self._session_id, self._conversation)

    @staticmethod
    def _mint_session_id() -> str:
        return str(uuid4())

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
