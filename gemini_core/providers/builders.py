"""Gemini 请求构建。

本模块全部是纯函数，负责：

1. 规范化 / 校验 API 端点。
2. 拼接请求 URL（流式 streamGenerateContent 或非流式 generateContent）。
3. 根据模型能力，把分层配置一次性组装成不可变的 RequestBody。
4. 把文件引用、内联附件和文本组装成一条用户消息。

模型能力通过 CapabilityResolver 注入，不在这里硬编码。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlsplit

from gemini_core.domain.models import (
    DEFAULT_IMAGE_GENERATION_CONFIG,
    AdvancedConfig,
    ApiConfig,
    Attachment,
    Content,
    ContentPart,
    EndpointValidation,
    FileDataPart,
    FileReference,
    GenerationConfig,
    ImageGenerationConfig,
    InlineDataPart,
    SafetySetting,
    TextPart,
)
from gemini_core.providers.base import CapabilityResolver
from gemini_core.providers.registry import default_resolver


OFFICIAL_API_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
API_VERSION_SUFFIX = "/v1beta"
STREAM_METHOD = "streamGenerateContent"
BUFFERED_METHOD = "generateContent"
DEFAULT_THINKING_LEVEL = "high"
IMAGE_RESPONSE_MODALITIES = ("TEXT", "IMAGE")


@dataclass(frozen=True)
class RequestBody:
    """一次请求的完整请求体。

    各可选段落为 None 时不会出现在 payload 中。
    """

    contents: List[Dict[str, Any]]
    generation_config: Optional[Dict[str, Any]] = None
    safety_settings: Optional[List[Dict[str, Any]]] = None
    system_instruction: Optional[Dict[str, Any]] = None
    tools: Optional[List[Dict[str, Any]]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contents": self.contents}
        if self.generation_config is not None:
            payload["generationConfig"] = self.generation_config
        if self.safety_settings is not None:
            payload["safetySettings"] = self.safety_settings
        if self.system_instruction is not None:
            payload["systemInstruction"] = self.system_instruction
        if self.tools is not None:
            payload["tools"] = self.tools
        return payload


# ============ URL 校验和构建 ============


def normalize_api_endpoint(endpoint: str) -> str:
    """规范化 API 端点地址。

    - 空字符串或仅包含空白字符返回官方默认地址
    - 去掉末尾斜杠，缺少 /v1beta 后缀时自动补上
    """

    trimmed = (endpoint or "").strip()
    if not trimmed:
        return OFFICIAL_API_ENDPOINT
    normalized = trimmed.rstrip("/")
    if not normalized.endswith(API_VERSION_SUFFIX):
        normalized = f"{normalized}{API_VERSION_SUFFIX}"
    return normalized


def validate_api_endpoint(url: str) -> EndpointValidation:
    """校验 API 端点格式。空字符串有效（表示使用官方默认地址）。"""

    if not url or not url.strip():
        return EndpointValidation(valid=True)

    trimmed = url.strip()
    if not trimmed.startswith(("http://", "https://")):
        return EndpointValidation(valid=False, error="URL must start with http:// or https://")

    try:
        parsed = urlsplit(trimmed)
        hostname = parsed.hostname
    except ValueError:
        return EndpointValidation(valid=False, error="URL format is invalid")

    if parsed.scheme not in ("http", "https"):
        return EndpointValidation(valid=False, error="URL scheme must be http or https")
    if not hostname:
        return EndpointValidation(valid=False, error="URL must contain a valid hostname")
    return EndpointValidation(valid=True)


def build_request_url(config: ApiConfig, stream: bool = True) -> str:
    """拼接完整请求 URL；流式请求额外带上 alt=sse。"""

    endpoint = normalize_api_endpoint(config.endpoint)
    method = STREAM_METHOD if stream else BUFFERED_METHOD
    url = f"{endpoint}/models/{config.model}:{method}?key={config.api_key}"
    if stream:
        return f"{url}&alt=sse"
    return url


def build_request_headers(config: ApiConfig) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "x-goog-api-key": config.api_key,
    }


# ============ 请求体构建 ============


def build_thinking_config_for_model(
    model_id: str,
    advanced_config: Optional[AdvancedConfig] = None,
    resolver: Optional[CapabilityResolver] = None,
) -> Optional[Dict[str, Any]]:
    """根据模型能力构建 thinkingConfig。

    - level 型模型：thinkingLevel，默认 "high"
    - budget 型模型：thinkingBudget，默认取模型声明的默认值
    - 模型支持思维链摘要且调用方要求时，额外带 includeThoughts，
      即使模型既不是 level 型也不是 budget 型
    没有任何字段时返回 None。
    """

    capabilities = (resolver or default_resolver).resolve(model_id)
    config: Dict[str, Any] = {}

    if capabilities.thinking_config_type == "level":
        level = advanced_config.thinking_level if advanced_config else None
        config["thinkingLevel"] = level or DEFAULT_THINKING_LEVEL
    elif capabilities.thinking_config_type == "budget":
        budget_config = capabilities.thinking_budget_config
        if budget_config is not None:
            budget = advanced_config.thinking_budget if advanced_config else None
            config["thinkingBudget"] = budget if budget is not None else budget_config.default_value

    if capabilities.supports_thought_summary and advanced_config and advanced_config.include_thoughts:
        config["includeThoughts"] = True

    return config or None


def build_image_config(config: ImageGenerationConfig, include_image_size: bool = True) -> Dict[str, Any]:
    if not include_image_size:
        return {"aspectRatio": config.aspect_ratio}
    return {"aspectRatio": config.aspect_ratio, "imageSize": config.image_size}


def build_tools(web_search_enabled: bool = False, url_context_enabled: bool = False) -> Optional[List[Dict[str, Any]]]:
    tools: List[Dict[str, Any]] = []
    if web_search_enabled:
        tools.append({"googleSearch": {}})
    if url_context_enabled:
        tools.append({"urlContext": {}})
    return tools or None


def build_request_body(
    contents: Sequence[Union[Content, Mapping[str, Any]]],
    generation_config: Optional[GenerationConfig] = None,
    safety_settings: Optional[Sequence[SafetySetting]] = None,
    system_instruction: Optional[str] = None,
    advanced_config: Optional[AdvancedConfig] = None,
    model_id: Optional[str] = None,
    web_search_enabled: bool = False,
    url_context_enabled: bool = False,
    resolver: Optional[CapabilityResolver] = None,
) -> RequestBody:
    """构建 Gemini API 请求体。

    thinkingConfig / imageConfig / responseModalities / mediaResolution
    都放在 generationConfig 内部，而不是请求体顶层。模型能力优先于调用方
    配置的形状：例如对 budget 型模型填写 thinking_level 不会生效。
    """

    gen: Dict[str, Any] = generation_config.to_payload() if generation_config else {}

    if model_id:
        capabilities = (resolver or default_resolver).resolve(model_id)
        thinking_config = build_thinking_config_for_model(model_id, advanced_config, resolver)
        if thinking_config:
            gen["thinkingConfig"] = thinking_config
        if capabilities.supports_image_generation:
            gen["responseModalities"] = list(IMAGE_RESPONSE_MODALITIES)
            image_config = (advanced_config.image_config if advanced_config else None) or DEFAULT_IMAGE_GENERATION_CONFIG
            gen["imageConfig"] = build_image_config(image_config, capabilities.supports_image_size)
    elif advanced_config:
        # 没有模型 ID 的旧调用方式：只认显式填写的字段
        if advanced_config.thinking_level:
            gen["thinkingConfig"] = {"thinkingLevel": advanced_config.thinking_level}
        if advanced_config.image_config:
            gen["imageConfig"] = build_image_config(advanced_config.image_config, True)

    if advanced_config and advanced_config.media_resolution:
        gen["mediaResolution"] = advanced_config.media_resolution

    system = None
    if system_instruction and system_instruction.strip():
        system = {"role": "user", "parts": [{"text": system_instruction}]}

    return RequestBody(
        contents=[_content_payload(c) for c in contents],
        generation_config=gen or None,
        safety_settings=[s.to_payload() for s in safety_settings] if safety_settings else None,
        system_instruction=system,
        tools=build_tools(web_search_enabled, url_context_enabled),
    )


def _content_payload(content: Union[Content, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(content, Content):
        return content.to_payload()
    return dict(content)


# ============ 文件引用与附件 ============


def file_reference_to_part(ref: FileReference) -> FileDataPart:
    return FileDataPart(file_uri=ref.uri, mime_type=ref.mime_type)


def attachment_to_part(attachment: Attachment) -> InlineDataPart:
    return InlineDataPart(mime_type=attachment.mime_type, data=attachment.data)


def build_content_with_file_references(
    text: str,
    file_references: Optional[Sequence[FileReference]] = None,
    inline_attachments: Optional[Sequence[Attachment]] = None,
) -> Content:
    """构建包含文件引用的用户消息。

    顺序固定为：文件引用（仅 ready 状态）→ 内联附件 → 文本。
    仍在上传或上传失败的文件引用会被直接忽略。
    """

    parts: List[ContentPart] = []
    for ref in file_references or []:
        if ref.status == "ready":
            parts.append(file_reference_to_part(ref))
    for attachment in inline_attachments or []:
        parts.append(attachment_to_part(attachment))
    if text.strip():
        parts.append(TextPart(text=text))
    return Content(role="user", parts=parts)
