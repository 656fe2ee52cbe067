"""请求流水线使用的统一数据模型。

本模块定义了流水线内部与调用方之间共享的标准数据结构：

- ApiConfig / GenerationConfig / SafetySetting / AdvancedConfig:
  调用方传入的分层配置。
- Content 与各种 Part: 对话内容，负责把自己序列化为 Gemini 的 JSON 格式。
- StreamChunk: 一次解析出的上游输出单元（流式的一行或非流式的整个响应体）。
- PipelineResult: 一次调用最终交给调用方的结果，构造后不再修改。

HTTP 细节（URL、请求头、SSE 分帧）都不在这里，见 providers 包。
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from gemini_core.domain.cancellation import CancellationToken
    from gemini_core.domain.exceptions import PipelineError


Role = Literal["user", "model"]
ThinkingLevel = Literal["minimal", "low", "medium", "high"]
MediaResolution = Literal[
    "MEDIA_RESOLUTION_LOW",
    "MEDIA_RESOLUTION_MEDIUM",
    "MEDIA_RESOLUTION_HIGH",
]
HarmCategory = Literal[
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]
HarmBlockThreshold = Literal[
    "BLOCK_NONE",
    "BLOCK_LOW_AND_ABOVE",
    "BLOCK_MEDIUM_AND_ABOVE",
    "BLOCK_ONLY_HIGH",
]
FileStatus = Literal["uploading", "ready", "error"]
UrlRetrievalStatus = Literal[
    "URL_RETRIEVAL_STATUS_SUCCESS",
    "URL_RETRIEVAL_STATUS_UNSAFE",
    "URL_RETRIEVAL_STATUS_UNSPECIFIED",
    "URL_RETRIEVAL_STATUS_ERROR",
]

HARM_CATEGORIES: Tuple[str, ...] = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
HARM_BLOCK_THRESHOLDS: Tuple[str, ...] = (
    "BLOCK_NONE",
    "BLOCK_LOW_AND_ABOVE",
    "BLOCK_MEDIUM_AND_ABOVE",
    "BLOCK_ONLY_HIGH",
)
URL_RETRIEVAL_STATUSES: Tuple[str, ...] = (
    "URL_RETRIEVAL_STATUS_SUCCESS",
    "URL_RETRIEVAL_STATUS_UNSAFE",
    "URL_RETRIEVAL_STATUS_UNSPECIFIED",
    "URL_RETRIEVAL_STATUS_ERROR",
)

ChunkCallback = Callable[[str], None]


# ============ 配置 ============


@dataclass
class ApiConfig:
    """端点、密钥与模型。endpoint 为空表示使用官方默认地址。"""

    endpoint: str
    api_key: str
    model: str


@dataclass
class GenerationConfig:
    """采样参数。未设置的字段不会出现在请求体里（不会发送 null）。"""

    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_output_tokens: Optional[int] = None
    stop_sequences: Optional[List[str]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.top_p is not None:
            payload["topP"] = self.top_p
        if self.top_k is not None:
            payload["topK"] = self.top_k
        if self.max_output_tokens is not None:
            payload["maxOutputTokens"] = self.max_output_tokens
        if self.stop_sequences:
            payload["stopSequences"] = list(self.stop_sequences)
        return payload


@dataclass
class SafetySetting:
    category: HarmCategory
    threshold: HarmBlockThreshold

    def __post_init__(self) -> None:
        if self.category not in HARM_CATEGORIES:
            raise ValueError(f"Unknown harm category: {self.category}")
        if self.threshold not in HARM_BLOCK_THRESHOLDS:
            raise ValueError(f"Unknown harm block threshold: {self.threshold}")

    def to_payload(self) -> Dict[str, Any]:
        return {"category": self.category, "threshold": self.threshold}


@dataclass
class ImageGenerationConfig:
    """图片生成参数（宽高比与分辨率档位）。"""

    aspect_ratio: str = "1:1"
    image_size: str = "1K"


DEFAULT_IMAGE_GENERATION_CONFIG = ImageGenerationConfig(aspect_ratio="1:1", image_size="1K")


@dataclass
class AdvancedConfig:
    """高级模型参数。

    thinking_level 与 thinking_budget 二选一，具体用哪个由模型能力决定，
    而不是由这里填了哪个字段决定。
    """

    thinking_level: Optional[ThinkingLevel] = None
    thinking_budget: Optional[int] = None
    include_thoughts: bool = False
    image_config: Optional[ImageGenerationConfig] = None
    media_resolution: Optional[MediaResolution] = None


# ============ 对话内容 ============


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class InlineDataPart:
    """内联二进制（base64）内容，如图片、PDF。"""

    mime_type: str
    data: str

    def to_payload(self) -> Dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class FileDataPart:
    """通过 Files API 上传后的文件引用。"""

    file_uri: str
    mime_type: str

    def to_payload(self) -> Dict[str, Any]:
        return {"file_data": {"file_uri": self.file_uri, "mime_type": self.mime_type}}


@dataclass(frozen=True)
class ThoughtPart:
    text: str
    thought_signature: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"text": self.text, "thought": True}
        if self.thought_signature:
            payload["thoughtSignature"] = self.thought_signature
        return payload


@dataclass(frozen=True)
class ThoughtSignaturePart:
    """思维链签名，画图模型连续对话时回传给上游。"""

    thought_signature: str

    def to_payload(self) -> Dict[str, Any]:
        return {"thoughtSignature": self.thought_signature}


ContentPart = Union[TextPart, InlineDataPart, FileDataPart, ThoughtPart, ThoughtSignaturePart]


@dataclass
class Content:
    role: Role
    parts: List[ContentPart] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [part.to_payload() for part in self.parts]}


@dataclass
class FileReference:
    """已上传（或正在上传）的文件。只有 status == "ready" 的引用会进入请求。"""

    uri: str
    mime_type: str
    status: FileStatus = "ready"
    name: Optional[str] = None


@dataclass
class Attachment:
    mime_type: str
    data: str
    name: Optional[str] = None


# ============ 响应 ============


@dataclass(frozen=True)
class StreamChunk:
    """一次解析出的上游输出单元，解析后不再修改。"""

    candidates: Tuple[Dict[str, Any], ...] = ()
    usage_metadata: Optional[Dict[str, Any]] = None
    url_context_metadata: Optional[Dict[str, Any]] = None
    model_version: Optional[str] = None
    response_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "StreamChunk":
        candidates = data.get("candidates")
        usage = data.get("usageMetadata")
        url_meta = data.get("urlContextMetadata")
        return cls(
            candidates=tuple(c for c in candidates if isinstance(c, dict)) if isinstance(candidates, list) else (),
            usage_metadata=usage if isinstance(usage, dict) else None,
            url_context_metadata=url_meta if isinstance(url_meta, dict) else None,
            model_version=data.get("modelVersion"),
            response_id=data.get("responseId"),
            raw=data,
        )

    def first_candidate(self) -> Optional[Dict[str, Any]]:
        return self.candidates[0] if self.candidates else None

    def first_candidate_parts(self) -> List[Dict[str, Any]]:
        """第一个候选的 parts；本集成中上游最多只返回一个候选。"""

        candidate = self.first_candidate()
        if not candidate:
            return []
        content = candidate.get("content")
        if not isinstance(content, dict):
            return []
        parts = content.get("parts")
        if not isinstance(parts, list):
            return []
        return [p for p in parts if isinstance(p, dict)]


@dataclass(frozen=True)
class ImageData:
    mime_type: str
    data: str

    @property
    def fingerprint(self) -> str:
        """mimeType + base64 前 100 个字符，用于跨 chunk 去重。"""

        return f"{self.mime_type}:{self.data[:100]}"


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int
    completion_tokens: int
    thoughts_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class UrlMetadata:
    retrieved_url: str
    url_retrieval_status: UrlRetrievalStatus


@dataclass(frozen=True)
class UrlContextMetadata:
    url_metadata: Tuple[UrlMetadata, ...]


@dataclass(frozen=True)
class ThoughtExtraction:
    """单个 chunk 贡献的内容。"""

    text: str = ""
    thought: str = ""
    thought_signature: Optional[str] = None
    images: Tuple[ImageData, ...] = ()
    thought_images: Tuple[ImageData, ...] = ()


@dataclass(frozen=True)
class PipelineResult:
    """一次调用的最终结果。

    - thought_summary / images / thought_images 为空时统一为 None。
    - duration_ms: 从发送请求到组装完成的总耗时。
    - ttfb_ms: 首字节时间（流式为响应头到达，非流式为完整响应体到达）。
    """

    text: str
    thought_summary: Optional[str] = None
    thought_signature: Optional[str] = None
    images: Optional[List[ImageData]] = None
    thought_images: Optional[List[ImageData]] = None
    duration_ms: Optional[int] = None
    ttfb_ms: Optional[int] = None
    token_usage: Optional[TokenUsage] = None
    url_context_metadata: Optional[UrlContextMetadata] = None


@dataclass
class PipelineRequest:
    """一次调用需要的全部输入。

    on_chunk / on_thought_chunk 只在流式模式下触发，与读流循环在同一线程、
    按到达顺序同步调用。
    """

    contents: List[Union[Content, Dict[str, Any]]]
    api_config: ApiConfig
    generation_config: Optional[GenerationConfig] = None
    safety_settings: Optional[List[SafetySetting]] = None
    system_instruction: Optional[str] = None
    advanced_config: Optional[AdvancedConfig] = None
    stream: bool = True
    cancel_token: Optional["CancellationToken"] = None
    web_search_enabled: bool = False
    url_context_enabled: bool = False
    on_chunk: Optional[ChunkCallback] = None
    on_thought_chunk: Optional[ChunkCallback] = None


@dataclass(frozen=True)
class PipelineOutcome:
    """result 与 error 恰好有一个非空。error.kind 是五种错误标签之一。"""

    result: Optional[PipelineResult] = None
    error: Optional["PipelineError"] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return self.error is not None and self.error.kind == "cancelled"

    def unwrap(self) -> PipelineResult:
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise ValueError("PipelineOutcome carries neither result nor error")
        return self.result


@dataclass(frozen=True)
class EndpointValidation:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ConnectionCheck:
    success: bool
    error: Optional[str] = None
