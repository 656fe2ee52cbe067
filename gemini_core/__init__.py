"""Gemini Core 顶层包。

该包提供 Gemini 对话客户端的请求/响应流水线，
包括配置加载、领域模型、请求构建、SSE 事件流解析、
响应内容提取、取消与错误分类以及调试记录等能力。
"""

from gemini_core.domain.cancellation import CancellationToken
from gemini_core.domain.exceptions import (
    HttpError,
    NetworkError,
    PipelineError,
    RequestCancelledError,
    UnknownError,
    ValidationError,
)
from gemini_core.domain.models import ApiConfig, PipelineOutcome, PipelineRequest, PipelineResult
from gemini_core.providers import GeminiClient, create_client

__all__ = [
    "ApiConfig",
    "CancellationToken",
    "GeminiClient",
    "HttpError",
    "NetworkError",
    "PipelineError",
    "PipelineOutcome",
    "PipelineRequest",
    "PipelineResult",
    "RequestCancelledError",
    "UnknownError",
    "ValidationError",
    "create_client",
]
