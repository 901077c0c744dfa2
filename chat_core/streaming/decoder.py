"""帧 → 领域事件解码。

把 FrameExtractor 产出的 JSON 文本映射为 ContentFragment / Ignored，
帧的 JSON 结构校验只在这里进行，与分帧逻辑互相隔离。
decode 永远不向外抛异常：解析失败只记日志并返回 Ignored。
"""

import json

from chat_core.domain.events import ITEM_TYPE, ContentFragment, DomainEvent, Ignored
from chat_core.infrastructure.logging.logger import logger


def decode(frame: str) -> DomainEvent:
    """将一帧 JSON 文本解码为领域事件。

    - type == "item": 返回 ContentFragment，content 缺失或为 null 时视为空串。
    - type 缺失或未知: 返回 Ignored，不视为错误。
    - 非法 JSON / 非对象 / content 不是字符串: 返回 Ignored 并记录告警。
    """

    try:
        data = json.loads(frame)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(
            "Failed to decode stream frame",
            extra={"extra": {"frame_preview": str(frame)[:200], "error": str(e)}},
        )
        return Ignored(reason="malformed")

    if not isinstance(data, dict):
        logger.warning(
            "Stream frame is not a JSON object",
            extra={"extra": {"frame_preview": frame[:200]}},
        )
        return Ignored(reason="not_object")

    frame_type = data.get("type")
    if not isinstance(frame_type, str):
        return Ignored(reason="missing_type")
    if frame_type != ITEM_TYPE:
        return Ignored(frame_type=frame_type, reason="unknown_type")

    content = data.get("content")
    if content is None:
        return ContentFragment(text="")
    if not isinstance(content, str):
        logger.warning(
            "Item frame carries non-string content",
            extra={"extra": {"content_type": type(content).__name__}},
        )
        return Ignored(frame_type=frame_type, reason="bad_content")
    return ContentFragment(text=content)
