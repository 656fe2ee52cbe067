"""对外 API 服务模块。

提供简化的函数接口供上层应用调用，内部共用一个默认的流水线客户端。
"""

from typing import Any, Dict, Optional, Sequence, Union

from gemini_core.config.settings import settings
from gemini_core.domain.exceptions import PipelineError
from gemini_core.domain.models import (
    ApiConfig,
    ConnectionCheck,
    Content,
    PipelineOutcome,
    PipelineRequest,
    PipelineResult,
)
from gemini_core.infrastructure.logging.logger import logger
from gemini_core.providers import create_client
from gemini_core.providers.gemini_client import GeminiClient

Contents = Sequence[Union[Content, Dict[str, Any]]]

_client: Optional[GeminiClient] = None


def get_default_client() -> GeminiClient:
    """获取默认的流水线客户端实例（单例）。"""
    global _client
    if _client is None:
        _client = create_client()
    return _client


def default_api_config() -> ApiConfig:
    """根据配置文件 / 环境变量构建 ApiConfig。"""
    return ApiConfig(
        endpoint=settings.gemini_endpoint,
        api_key=settings.gemini_api_key or "",
        model=settings.gemini_model,
    )


def execute_request(request: PipelineRequest) -> PipelineResult:
    """执行一次完整调用。

    Raises:
        domain.exceptions 中定义的五种 PipelineError 之一
    """
    try:
        return get_default_client().execute(request)
    except PipelineError as e:
        logger.error(f"Request failed: {e}", extra={"extra": {
            "kind": e.kind,
            "code": e.code,
            "status_code": e.status_code,
        }})
        raise


def execute_request_safe(request: PipelineRequest) -> PipelineOutcome:
    """与 execute_request 相同，但错误以 PipelineOutcome.error 返回。"""
    return get_default_client().run(request)


def send_message(
    contents: Contents,
    api_config: Optional[ApiConfig] = None,
    on_chunk=None,
    **options: Any,
) -> str:
    """流式发送消息，返回完整正文。

    Args:
        contents: 对话历史
        api_config: API 配置（可选，不提供则从配置读取）
        on_chunk: 正文增量回调
        **options: PipelineRequest 的其余字段，如 generation_config、cancel_token
    """
    return get_default_client().send_message(
        contents, api_config or default_api_config(), on_chunk=on_chunk, **options
    )


def send_message_with_thoughts(
    contents: Contents,
    api_config: Optional[ApiConfig] = None,
    on_chunk=None,
    on_thought_chunk=None,
    **options: Any,
) -> PipelineResult:
    return get_default_client().send_message_with_thoughts(
        contents,
        api_config or default_api_config(),
        on_chunk=on_chunk,
        on_thought_chunk=on_thought_chunk,
        **options,
    )


def send_message_non_streaming(
    contents: Contents,
    api_config: Optional[ApiConfig] = None,
    **options: Any,
) -> str:
    return get_default_client().send_message_non_streaming(
        contents, api_config or default_api_config(), **options
    )


def send_message_non_streaming_with_thoughts(
    contents: Contents,
    api_config: Optional[ApiConfig] = None,
    **options: Any,
) -> PipelineResult:
    return get_default_client().send_message_non_streaming_with_thoughts(
        contents, api_config or default_api_config(), **options
    )


def test_connection(api_config: Optional[ApiConfig] = None) -> ConnectionCheck:
    """测试 API 连接。

    Returns:
        ConnectionCheck(success, error)，不会抛异常
    """
    return get_default_client().test_connection(api_config or default_api_config())
