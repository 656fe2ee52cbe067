"""SSE 事件流解析。

上游流式响应是按行分帧的 SSE：每个事件行形如 ``data: {json}``，
以 ``data: [DONE]`` 结束。本模块负责：

- LineBuffer: 把任意边界的字节块还原成完整的文本行（保留不完整的尾部片段）。
- parse_sse_line: 把一行解析成 StreamChunk；坏行静默跳过，不会中断整个流。
- unwrap_response_data: 某些端点返回 {"response": {...}, "traceId": ...}，
  这里统一解包，流式和非流式路径都会用到。
"""

from __future__ import annotations

import codecs
import json
from typing import Any, Iterable, Iterator, List, Optional

from gemini_core.domain.models import StreamChunk

SSE_DATA_PREFIX = "data: "
SSE_DONE_SENTINEL = "[DONE]"


def unwrap_response_data(data: Any) -> Any:
    """解包 {"response": {...}} 形式的响应，其他形状原样返回。"""

    if isinstance(data, dict):
        inner = data.get("response")
        if isinstance(inner, dict):
            return inner
    return data


def parse_sse_line(line: str) -> Optional[StreamChunk]:
    """解析一行 SSE 数据。

    以下情况返回 None：
    - 不以 "data: " 开头
    - 负载为空或为 [DONE]
    - 负载不是合法 JSON，或解包后不是 JSON 对象
    """

    if not line.startswith(SSE_DATA_PREFIX):
        return None
    payload = line[len(SSE_DATA_PREFIX):].strip()
    if not payload or payload == SSE_DONE_SENTINEL:
        return None
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return None
    data = unwrap_response_data(parsed)
    if not isinstance(data, dict):
        return None
    return StreamChunk.from_payload(data)


class LineBuffer:
    """增量 UTF-8 解码 + 按换行切分。

    feed() 只返回完整的行，最后一个不完整的片段留到下一次 feed 时拼接；
    多字节字符被切在两个字节块之间也能正确还原。
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        self._pending += self._decoder.decode(data)
        lines = self._pending.split("\n")
        self._pending = lines.pop()
        return lines

    def flush(self) -> str:
        """流正常结束时取出剩余片段。"""

        rest = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return rest


def iter_chunks(byte_blocks: Iterable[bytes]) -> Iterator[StreamChunk]:
    """把字节块序列解析成 StreamChunk 序列，结果与字节块的切分方式无关。"""

    buffer = LineBuffer()
    for block in byte_blocks:
        for line in buffer.feed(block):
            chunk = parse_sse_line(line)
            if chunk is not None:
                yield chunk
    rest = buffer.flush()
    if rest:
        chunk = parse_sse_line(rest)
        if chunk is not None:
            yield chunk
