"""Provider 抽象接口。

会话控制器不直接依赖 HTTP 细节，而是依赖以下协议：

- StreamingProvider: 流式 Webhook，逐个产出 DomainEvent。
- AnswerProvider: 非流式问答，一次性返回完整文本与引用。

测试中可以用任意满足协议的假实现替换。
"""

from typing import Dict, Iterator, List, Protocol

from chat_core.domain.events import DomainEvent
from chat_core.domain.models import GroundedAnswer, Turn


class StreamingProvider(Protocol):
    """流式 Provider 协议。

    - name: Provider 名称，用于日志。
    - stream_events: 发起一次新请求并惰性产出事件；序列不可重放，
      再次调用即发起新的请求。
    """

    name: str

    def stream_events(self, chat_input: List[Turn], session_id: str) -> Iterator[DomainEvent]:
        ...


class AnswerProvider(Protocol):
    """非流式 Provider 协议，history 为 [{role: "user"|"model", content}]。"""

    name: str

    def answer(self, history: List[Dict[str, str]]) -> GroundedAnswer:
        ...
