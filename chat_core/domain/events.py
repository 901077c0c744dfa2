"""流式领域事件。

每个完整的 JSON 帧最终被解码为以下两种事件之一：

- ContentFragment: type == "item" 的帧，携带一段回复文本。
- Ignored: 其余帧（未知 type、缺少 type、格式错误等），上层直接跳过。
"""

from dataclasses import dataclass
from typing import Literal, Optional, Union


ITEM_TYPE = "item"


@dataclass(frozen=True)
class ContentFragment:
    """一段按到达顺序追加到助手回复中的文本。"""

    text: str
    kind: Literal["content"] = "content"


@dataclass(frozen=True)
class Ignored:
    """不产生可见内容的帧。

    - frame_type: 帧中的 type 字段（若存在且为字符串）。
    - reason: "unknown_type" / "missing_type" / "malformed" / "not_object" / "bad_content"。
    """

    frame_type: Optional[str] = None
    reason: str = "unknown_type"
    kind: Literal["ignored"] = "ignored"


DomainEvent = Union[ContentFragment, Ignored]
