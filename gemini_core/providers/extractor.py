"""响应内容提取。

把 StreamChunk 拆成：正文、思维链、思维链签名、正式回复图片、思维链图片、
Token 用量与 URL 上下文元数据。

- extract_* 系列是无状态的单 chunk 函数。
- ResponseAccumulator 是单次调用的累加器：正文 / 思维链追加，签名与用量
  后写覆盖，两个图片桶各自按指纹去重（开启思维链时上游可能在多个 chunk
  里重复返回同一张图片）。
"""

from typing import Any, Dict, List, Optional, Set

from gemini_core.domain.models import (
    URL_RETRIEVAL_STATUSES,
    ImageData,
    PipelineResult,
    StreamChunk,
    ThoughtExtraction,
    TokenUsage,
    UrlContextMetadata,
    UrlMetadata,
)


def _is_thought_part(part: Dict[str, Any]) -> bool:
    return part.get("thought") is True


def _image_from_part(part: Dict[str, Any]) -> Optional[ImageData]:
    inline = part.get("inlineData")
    if not isinstance(inline, dict):
        return None
    mime_type = inline.get("mimeType")
    data = inline.get("data")
    if not isinstance(mime_type, str) or not isinstance(data, str):
        return None
    if not mime_type.startswith("image/"):
        return None
    return ImageData(mime_type=mime_type, data=data)


def extract_text_from_chunk(chunk: StreamChunk) -> str:
    """拼接第一个候选中所有 text 字段（不区分思维链）。"""

    return "".join(
        part["text"] for part in chunk.first_candidate_parts() if isinstance(part.get("text"), str)
    )


def extract_images_from_chunk(chunk: StreamChunk) -> List[ImageData]:
    images: List[ImageData] = []
    for part in chunk.first_candidate_parts():
        image = _image_from_part(part)
        if image is not None:
            images.append(image)
    return images


def extract_thought_summary(chunk: StreamChunk) -> Optional[ThoughtExtraction]:
    """分离一个 chunk 中的正文、思维链、签名和两类图片。

    只看第一个候选。没有任何内容时返回 None，调用方可以直接跳过。
    """

    parts = chunk.first_candidate_parts()
    if not parts:
        return None

    text = ""
    thought = ""
    signature: Optional[str] = None
    images: List[ImageData] = []
    thought_images: List[ImageData] = []

    for part in parts:
        # 签名通常只出现在最后一个 part 上，后出现的覆盖先出现的
        part_signature = part.get("thoughtSignature")
        if isinstance(part_signature, str) and part_signature:
            signature = part_signature

        is_thought = _is_thought_part(part)
        part_text = part.get("text")
        if isinstance(part_text, str):
            if is_thought:
                thought += part_text
            else:
                text += part_text

        image = _image_from_part(part)
        if image is not None:
            if is_thought:
                thought_images.append(image)
            else:
                images.append(image)

    if not text and not thought and not signature and not images and not thought_images:
        return None

    return ThoughtExtraction(
        text=text,
        thought=thought,
        thought_signature=signature,
        images=tuple(images),
        thought_images=tuple(thought_images),
    )


def _as_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def extract_token_usage(chunk: StreamChunk) -> Optional[TokenUsage]:
    usage = chunk.usage_metadata
    if not usage:
        return None
    return TokenUsage(
        prompt_tokens=_as_count(usage.get("promptTokenCount")),
        completion_tokens=_as_count(usage.get("candidatesTokenCount")),
        thoughts_tokens=_as_count(usage.get("thoughtsTokenCount")),
        total_tokens=_as_count(usage.get("totalTokenCount")),
    )


def extract_url_context_metadata(chunk: StreamChunk) -> Optional[UrlContextMetadata]:
    """提取 URL 上下文元数据，只保留 retrievedUrl 为字符串且状态合法的条目。"""

    raw = chunk.url_context_metadata
    if raw is None:
        candidate = chunk.first_candidate() or {}
        candidate_meta = candidate.get("urlContextMetadata")
        raw = candidate_meta if isinstance(candidate_meta, dict) else None
    if raw is None:
        return None

    items = raw.get("urlMetadata")
    if not isinstance(items, list):
        return None

    parsed: List[UrlMetadata] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        url = item.get("retrievedUrl")
        status = item.get("urlRetrievalStatus")
        if not isinstance(url, str) or status not in URL_RETRIEVAL_STATUSES:
            continue
        parsed.append(UrlMetadata(retrieved_url=url, url_retrieval_status=status))

    if not parsed:
        return None
    return UrlContextMetadata(url_metadata=tuple(parsed))


class ResponseAccumulator:
    """单次调用的提取结果累加器，不与其他调用共享。"""

    def __init__(self, keep_raw_chunks: bool = False):
        self.text = ""
        self.thought = ""
        self.thought_signature: Optional[str] = None
        self.images: List[ImageData] = []
        self.thought_images: List[ImageData] = []
        self.token_usage: Optional[TokenUsage] = None
        self.url_context_metadata: Optional[UrlContextMetadata] = None
        self.raw_chunks: List[Dict[str, Any]] = []
        self._keep_raw_chunks = keep_raw_chunks
        self._seen_images: Set[str] = set()
        self._seen_thought_images: Set[str] = set()

    def add(self, chunk: StreamChunk) -> Optional[ThoughtExtraction]:
        """累加一个 chunk，返回该 chunk 的贡献（无内容时为 None）。"""

        if self._keep_raw_chunks:
            self.raw_chunks.append(chunk.raw)

        extracted = extract_thought_summary(chunk)
        if extracted is not None:
            self.text += extracted.text
            self.thought += extracted.thought
            if extracted.thought_signature:
                self.thought_signature = extracted.thought_signature
            self._add_images(extracted.images, self.images, self._seen_images)
            self._add_images(extracted.thought_images, self.thought_images, self._seen_thought_images)

        # 上游每个 chunk 给的是累计值而不是增量，直接覆盖
        usage = extract_token_usage(chunk)
        if usage is not None:
            self.token_usage = usage

        url_meta = extract_url_context_metadata(chunk)
        if url_meta is not None:
            self.url_context_metadata = url_meta

        return extracted

    @staticmethod
    def _add_images(new_images, bucket: List[ImageData], seen: Set[str]) -> None:
        for image in new_images:
            fingerprint = image.fingerprint
            if fingerprint in seen:
                continue
            seen.add(fingerprint)
            bucket.append(image)

    def to_result(self, duration_ms: Optional[int] = None, ttfb_ms: Optional[int] = None) -> PipelineResult:
        return PipelineResult(
            text=self.text,
            thought_summary=self.thought or None,
            thought_signature=self.thought_signature,
            images=list(self.images) or None,
            thought_images=list(self.thought_images) or None,
            duration_ms=duration_ms,
            ttfb_ms=ttfb_ms,
            token_usage=self.token_usage,
            url_context_metadata=self.url_context_metadata,
        )
