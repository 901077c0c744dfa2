"""增量 JSON 帧提取器。

Webhook 的响应体是若干 JSON 对象首尾相接拼成的字节流，中间没有分隔符，
也没有长度前缀，并且网络读取的边界可以落在任意位置（字符串中间、数字中间、
甚至一个多字节 UTF-8 字符中间）。

FrameExtractor 负责：

1. 接收任意大小的增量（bytes 或 str），按到达顺序拼接到内部缓冲区。
2. 通过花括号深度计数找出已经闭合的顶层对象，逐个返回其原始文本。
3. 保留未闭合的尾部，等待下一次 feed。
4. 流结束时（close），对剩余内容做一次尽力而为的整体解析。

默认模式会识别 JSON 字符串（含转义），字符串里的 "{" / "}" 不参与计数；
传入 string_aware=False 可退回到纯字符计数的旧行为。
"""

import codecs
import json
from typing import Iterable, Iterator, List, Union

from chat_core.domain.exceptions import ValidationError
from chat_core.infrastructure.logging.logger import logger


Increment = Union[bytes, bytearray, memoryview, str]


class FrameExtractor:
    """有状态的帧提取器，每个响应流使用一个实例。"""

    def __init__(self, string_aware: bool = True, encoding: str = "utf-8"):
        self._string_aware = string_aware
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        # 扫描状态跨 feed 保留，已扫描过的字符不会重复扫描
        self._pos = 0
        self._depth = 0
        self._start = -1
        self._in_string = False
        self._escape = False
        self._closed = False

    @property
    def pending(self) -> str:
        """尚未形成完整帧的缓冲内容。"""

        return self._buffer

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, increment: Increment) -> List[str]:
        """追加一个增量，返回本次新闭合的帧（可能为空列表）。"""

        if self._closed:
            raise ValidationError(code="EXTRACTOR_CLOSED", message="feed() called after close()")
        if isinstance(increment, (bytes, bytearray, memoryview)):
            text = self._decoder.decode(bytes(increment))
        else:
            text = increment
        if not text:
            return []
        self._buffer += text
        return self._drain()

    def close(self) -> List[str]:
        """结束输入。

        剩余缓冲区非空时，只尝试一次把它整体当作 JSON 对象解析：
        成功则作为最后一帧返回，失败则记录日志后丢弃。
        """

        if self._closed:
            return []
        frames: List[str] = []
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._buffer += tail
            frames.extend(self._drain())
        self._closed = True

        remainder = self._buffer.strip()
        self._buffer = ""
        self._pos = 0
        if not remainder:
            return frames
        try:
            parsed = json.loads(remainder)
        except json.JSONDecodeError as e:
            logger.warning(
                "Dropped unparseable stream tail",
                extra={"extra": {"tail_preview": remainder[:200], "error": str(e)}},
            )
            return frames
        if isinstance(parsed, dict):
            frames.append(remainder)
        else:
            logger.warning(
                "Dropped non-object stream tail",
                extra={"extra": {"tail_preview": remainder[:200]}},
            )
        return frames

    def _drain(self) -> List[str]:
        frames: List[str] = []
        buf = self._buffer
        n = len(buf)
        i = self._pos
        consumed = 0
        while i < n:
            ch = buf[i]
            if self._depth == 0:
                # 对象之外的字符不计数，多余的 "}" 也不会让深度变成负数
                if ch == "{":
                    self._depth = 1
                    self._start = i
            elif self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"' and self._string_aware:
                self._in_string = True
            elif ch == "{":
                self._depth += 1
            elif ch == "}":
                self._depth -= 1
                if self._depth == 0:
                    junk = buf[consumed:self._start].strip()
                    if junk:
                        logger.debug(
                            "Skipped text outside of JSON objects",
                            extra={"extra": {"skipped_preview": junk[:200]}},
                        )
                    frames.append(buf[self._start:i + 1])
                    consumed = i + 1
                    self._start = -1
            i += 1

        # 对象之外已扫描的文本不再保留，缓冲区只存放一个未闭合对象
        if self._depth == 0:
            junk = buf[consumed:].strip()
            buf = ""
        else:
            junk = buf[consumed:self._start].strip()
            buf = buf[self._start:]
            self._start = 0
        if junk:
            logger.debug(
                "Skipped text outside of JSON objects",
                extra={"extra": {"skipped_preview": junk[:200]}},
            )
        self._buffer = buf
        self._pos = len(buf)
        return frames


def iter_frames(increments: Iterable[Increment], string_aware: bool = True) -> Iterator[str]:
    """把一组增量依次喂给新的 FrameExtractor，并在结束时 close。"""

    extractor = FrameExtractor(string_aware=string_aware)
    for increment in increments:
        yield from extractor.feed(increment)
    yield from extractor.close()
