from typing import List, Optional, Protocol

from .models import HistoryRecord, Turn


class KeyValueStore(Protocol):
    """以字符串为 key 的持久化介质（类似浏览器 localStorage）。"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class HistoryStore(Protocol):
    def upsert(self, session_id: str, conversation: List[Turn]) -> None:
        ...

    def get(self, session_id: str) -> Optional[HistoryRecord]:
        ...

    def list_records(self) -> List[HistoryRecord]:
        ...

    def delete(self, session_id: str) -> bool:
        ...
