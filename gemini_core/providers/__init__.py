"""Gemini Provider 集成层。

该包下的模块负责：
- 定义模型能力查询协议 (base)。
- 维护模型能力预设表与解析器 (registry)。
- 构建请求 (builders)、解析事件流 (parsers)、提取响应内容 (extractor)。
- 串联以上步骤的请求流水线 (gemini_client)。
"""

from typing import Optional

from gemini_core.config.settings import settings
from gemini_core.providers.base import CapabilityResolver
from gemini_core.providers.gemini_client import GeminiClient
from gemini_core.providers.registry import PresetCapabilityResolver, default_resolver


def create_client(resolver: Optional[CapabilityResolver] = None) -> GeminiClient:
    """创建流水线客户端，默认使用内置的模型能力预设。"""

    return GeminiClient(settings, resolver=resolver or default_resolver)


__all__ = ["CapabilityResolver", "GeminiClient", "PresetCapabilityResolver", "create_client"]
