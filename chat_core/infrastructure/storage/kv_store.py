import os
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.history import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """每个 key 对应 root 下的一个文件，写入时先写临时文件再原子替换。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e), key=key)

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = self._root / f"{path.stem}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def _path_for(self, key: str) -> Path:
        if not key:
            raise BusinessError(code="STORE_INVALID_KEY", message="empty key")
        return self._root / f"{quote(key, safe='')}.json"
