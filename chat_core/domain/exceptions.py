"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在控制器层统一捕获并转换为用户可见的错误回复。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 session_id、url 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、读流中断等。"""


class ApiError(BusinessError):
    """Webhook 返回非 2xx/429 状态时抛出。"""


class RateLimitError(BusinessError):
    """服务端限流错误，本模块不做重试，由调用方决定。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ConversationBusyError(BusinessError):
    """同一个控制器上已有进行中的对话轮次。"""
