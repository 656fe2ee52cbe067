"""流水线错误分类。

所有从请求流水线抛出的错误都继承自 PipelineError，且只有五种：

- ValidationError: 本地校验失败（端点非法、密钥为空），不会发起网络请求。
- HttpError: 上游返回非 2xx 状态码，message 优先取自响应体 error.message。
- NetworkError: 传输层失败（DNS、连接被拒绝、读流中断等）。
- RequestCancelledError: 调用方取消，携带已累积的部分输出。
- UnknownError: 兜底分类。

每个子类带有 kind 标签，调用方可以直接按 kind 分发，而不必逐个 isinstance。
"""

from typing import Any, Dict, List, Literal, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from gemini_core.domain.models import ImageData


ErrorKind = Literal["validation", "http", "network", "cancelled", "unknown"]

# 这些状态码通常意味着上游暂时性故障，值得调用方重试
RETRYABLE_STATUS_CODES = frozenset({408, 429})


class PipelineError(Exception):
    """流水线错误基类。

    Attributes:
        kind: 错误类别标签（validation/http/network/cancelled/unknown）。
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        status_code: 上游 HTTP 状态码（仅 HttpError 必有）。
        retryable: 调用方是否值得重试。
        extra: 其他补充字段。
    """

    kind: ErrorKind = "unknown"
    default_retryable: bool = True

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        **extra: Any,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "extra": self.extra,
        }


class ValidationError(PipelineError):
    """参数或配置校验失败。"""

    kind: ErrorKind = "validation"
    default_retryable = False


class HttpError(PipelineError):
    """上游返回非 2xx 状态码时抛出。"""

    kind: ErrorKind = "http"

    def __init__(self, status_code: int, message: str, code: str = "API_ERROR", **extra: Any):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            retryable=is_retryable_status(status_code),
            **extra,
        )


class NetworkError(PipelineError):
    """网络层错误，例如连接失败、读流中断等。"""

    kind: ErrorKind = "network"


class RequestCancelledError(PipelineError):
    """调用方取消请求。

    这不是调用方意义上的“失败”：它总是带着取消前已经累积的文本、
    思维链和图片，UI 可以把部分回答照常展示出来。
    """

    kind: ErrorKind = "cancelled"
    default_retryable = False

    def __init__(
        self,
        message: str = "Request cancelled",
        partial_text: str = "",
        partial_thought: str = "",
        partial_images: Optional[List["ImageData"]] = None,
        **extra: Any,
    ):
        super().__init__(code="REQUEST_CANCELLED", message=message, **extra)
        self.partial_text = partial_text
        self.partial_thought = partial_thought
        self.partial_images = list(partial_images or [])

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["partial_text"] = self.partial_text
        payload["partial_thought"] = self.partial_thought
        payload["partial_image_count"] = len(self.partial_images)
        return payload


class UnknownError(PipelineError):
    """无法归类的错误，默认允许重试。"""

    kind: ErrorKind = "unknown"


def is_retryable_status(status_code: int) -> bool:
    """判断 HTTP 状态码是否意味着暂时性故障。"""

    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500
