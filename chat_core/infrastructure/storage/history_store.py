"""会话历史存储适配器。

所有历史记录以 JSON 数组的形式保存在键值存储的同一个 key 下：

    [{"id": ..., "title": ..., "conversation": [{"role", "content", "references?"}]}]

upsert 按会话 ID 查找记录：存在则只替换 conversation（标题在首次创建时确定，
之后不再变化），不存在则追加新记录。持久化失败只记录日志，不会向上抛出
（包括注入的存储抛出的任意异常），以免打断正在进行的对话。
"""

import json
import threading
from typing import List, Optional

from chat_core.config.settings import settings
from chat_core.domain.history import HistoryStore, KeyValueStore
from chat_core.domain.models import HistoryRecord, Turn, record_from_dict, record_to_dict
from chat_core.infrastructure.logging.logger import logger


TITLE_SUFFIX = "..."


def make_title(text: str, max_chars: int) -> str:
    """取首条消息的前 max_chars 个字符作为标题，超长时追加省略号。"""

    if len(text) > max_chars:
        return text[:max_chars] + TITLE_SUFFIX
    return text


class HistoryStoreAdapter(HistoryStore):
    def __init__(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
        title_max_chars: Optional[int] = None,
    ):
        self._store = store
        self._key = key or settings.history_key
        self._title_max_chars = title_max_chars or settings.title_max_chars
        # 同一适配器内串行化读-改-写；不同进程/实例之间后写者覆盖
        self._lock = threading.Lock()

    def upsert(self, session_id: str, conversation: List[Turn]) -> None:
        if not conversation:
            return
        snapshot = [
            Turn(
                role=t.role,
                content=t.content,
                references=list(t.references) if t.references is not None else None,
            )
            for t in conversation
        ]
        with self._lock:
            try:
                records = self._read_for_update()
                existing = next((r for r in records if r.id == session_id), None)
                if existing is not None:
                    existing.conversation = snapshot
                else:
                    records.append(
                        HistoryRecord(
                            id=session_id,
                            title=make_title(snapshot[0].content, self._title_max_chars),
                            conversation=snapshot,
                        )
                    )
                self._write(records)
            except Exception as e:
                logger.exception(
                    "Failed to persist chat history",
                    extra={"extra": {"session_id": session_id, "error": str(e)}},
                )

    def get(self, session_id: str) -> Optional[HistoryRecord]:
        for record in self.list_records():
            if record.id == session_id:
                return record
        return None

    def list_records(self) -> List[HistoryRecord]:
        try:
            return self._read()
        except Exception as e:
            logger.exception("Failed to load chat history", extra={"extra": {"error": str(e)}})
            return []

    def delete(self, session_id: str) -> bool:
        with self._lock:
            try:
                records = self._read()
                remaining = [r for r in records if r.id != session_id]
                if len(remaining) == len(records):
                    return False
                self._write(remaining)
                return True
            except Exception as e:
                logger.exception(
                    "Failed to delete chat history",
                    extra={"extra": {"session_id": session_id, "error": str(e)}},
                )
                return False

    def _read(self) -> List[HistoryRecord]:
        raw = self._store.get(self._key)
        if not raw:
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("history payload is not a list")
        records: List[HistoryRecord] = []
        for item in data:
            if not isinstance(item, dict) or "id" not in item:
                logger.warning("Skipped malformed history entry")
                continue
            if not isinstance(item.get("conversation") or [], list):
                logger.warning(
                    "Skipped history entry with invalid conversation",
                    extra={"extra": {"session_id": str(item["id"])}},
                )
                continue
            try:
                records.append(record_from_dict(item))
            except (TypeError, ValueError) as e:
                logger.warning(
                    "Skipped unreadable history entry",
                    extra={"extra": {"session_id": str(item["id"]), "error": str(e)}},
                )
        return records

    def _read_for_update(self) -> List[HistoryRecord]:
        # 损坏的历史数据会被当前写入覆盖；存储不可用时仍然放弃本次写入
        try:
            return self._read()
        except ValueError as e:
            logger.warning(
                "Existing chat history unreadable, starting fresh",
                extra={"extra": {"error": str(e)}},
            )
            return []

    def _write(self, records: List[HistoryRecord]) -> None:
        payload = json.dumps([record_to_dict(r) for r in records], ensure_ascii=False)
        self._store.set(self._key, payload)
