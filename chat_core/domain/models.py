"""会话领域模型。

本模块定义在流式驱动、会话控制器与历史存储之间共享的数据结构：

- Turn: 一条对话消息（user 或 model）。
- Reference: 非流式回答附带的引用链接。
- HistoryRecord: 按会话 ID 持久化的一段完整对话。
- GroundedAnswer: 非流式 Provider 的统一返回结果。

序列化格式与持久化布局保持一致：turn 为 {role, content, references?}，
记录为 {id, title, conversation}。读取时容忍未知字段。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional


# model 即助手一侧，与 Webhook / 非流式接口的 role 取值保持一致
Role = Literal["user", "model"]

ROLE_USER: Role = "user"
ROLE_MODEL: Role = "model"


@dataclass(frozen=True)
class Reference:
    """一条引用：链接地址与标题。"""

    uri: str
    title: str


@dataclass
class Turn:
    """一条对话消息。

    - role: "user" 或 "model"。
    - content: 文本内容；流式占位回复在结束前会不断增长。
    - references: 仅非流式回答可能携带的引用列表。
    """

    role: Role
    content: str
    references: Optional[List[Reference]] = None


@dataclass
class HistoryRecord:
    """一次会话的持久化记录，id 即会话 ID。"""

    id: str
    title: str
    conversation: List[Turn] = field(default_factory=list)


@dataclass
class GroundedAnswer:
    """非流式回答：完整文本 + 已按 uri 去重的引用。"""

    content: str
    references: List[Reference] = field(default_factory=list)


def turn_to_dict(turn: Turn) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"role": turn.role, "content": turn.content}
    if turn.references is not None:
        payload["references"] = [{"uri": r.uri, "title": r.title} for r in turn.references]
    return payload


def turn_from_dict(data: Mapping[str, Any]) -> Turn:
    refs_raw = data.get("references")
    references: Optional[List[Reference]] = None
    if isinstance(refs_raw, list):
        references = [
            Reference(uri=str(r.get("uri") or ""), title=str(r.get("title") or ""))
            for r in refs_raw
            if isinstance(r, Mapping)
        ]
    role = data.get("role")
    return Turn(
        role=ROLE_USER if role == ROLE_USER else ROLE_MODEL,
        content=str(data.get("content") or ""),
        references=references,
    )


def record_to_dict(record: HistoryRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "conversation": [turn_to_dict(t) for t in record.conversation],
    }


def record_from_dict(data: Mapping[str, Any]) -> HistoryRecord:
    """把持久化的字典还原为 HistoryRecord。

    缺少 id 时抛出 KeyError；conversation 中非字典的条目会被跳过。
    """

    conversation = [
        turn_from_dict(item)
        for item in (data.get("conversation") or [])
        if isinstance(item, Mapping)
    ]
    return HistoryRecord(
        id=str(data["id"]),
        title=str(data.get("title") or ""),
        conversation=conversation,
    )
