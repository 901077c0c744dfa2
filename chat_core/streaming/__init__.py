"""流式协议层。

- frame_extractor: 从无分隔符的 JSON 字节流中切出完整帧。
- decoder: 把单帧解码为 ContentFragment / Ignored 事件。
"""

from chat_core.streaming.decoder import decode
from chat_core.streaming.frame_extractor import FrameExtractor, iter_frames

__all__ = ["FrameExtractor", "decode", "iter_frames"]
