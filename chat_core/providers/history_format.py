"""非流式接口的历史格式化与引用去重。"""

from typing import Any, Dict, Iterable, List, Mapping

from chat_core.domain.models import ROLE_USER, Reference, Turn


def to_provider_history(turns: Iterable[Turn]) -> List[Dict[str, str]]:
    """把对话转换为 [{role: "user"|"model", content}]。"""

    return [
        {"role": "user" if t.role == ROLE_USER else "model", "content": t.content}
        for t in turns
    ]


def dedupe_references(refs: Iterable[Reference]) -> List[Reference]:
    """按 uri 去重，uri 或 title 为空的引用直接丢弃。

    同一 uri 出现多次时保留第一次出现的位置、最后一次出现的标题。
    """

    unique: Dict[str, Reference] = {}
    for ref in refs:
        if not ref.uri or not ref.title:
            continue
        unique[ref.uri] = ref
    return list(unique.values())


def references_from_grounding(chunks: Iterable[Any]) -> List[Reference]:
    """从 groundingChunks 列表中提取 web 引用并去重。"""

    refs: List[Reference] = []
    for chunk in chunks or []:
        if not isinstance(chunk, Mapping):
            continue
        web = chunk.get("web")
        if not isinstance(web, Mapping):
            continue
        refs.append(Reference(uri=str(web.get("uri") or ""), title=str(web.get("title") or "")))
    return dedupe_references(refs)
