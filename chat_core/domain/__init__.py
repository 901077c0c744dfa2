"""领域层模型与协议。

包含：
- models: Turn / Reference / HistoryRecord / GroundedAnswer 及其序列化。
- events: 流式帧解码后的 ContentFragment / Ignored 事件。
- history: KeyValueStore 与 HistoryStore 抽象。
- exceptions: 业务异常类型定义。
"""
