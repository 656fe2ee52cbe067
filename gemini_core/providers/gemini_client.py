"""Gemini 请求流水线。

一次调用的状态流转：

    校验 → 构建 → 发送 → {流式接收 | 非流式接收} → 完成 / 取消 / 失败

- 校验失败直接抛 ValidationError，不会发起任何网络请求。
- 流式模式下每读一个字节块前检查取消令牌；令牌被取消时关闭响应，
  抛出带部分输出的 RequestCancelledError。
- 非 2xx 状态码在分流之前统一转换为 HttpError。
- httpx 的传输层异常转换为 NetworkError；如果此时令牌已被取消
  （另一线程通过 on_cancel 关闭了响应），按取消处理。
- 其余异常一律归为 UnknownError，调用方只需要面对五种错误。

execute() 抛异常，run() 把结果或错误包装成 PipelineOutcome 返回。
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from gemini_core.config.settings import settings
from gemini_core.domain.exceptions import (
    HttpError,
    NetworkError,
    PipelineError,
    RequestCancelledError,
    UnknownError,
    ValidationError,
)
from gemini_core.domain.models import (
    ApiConfig,
    ConnectionCheck,
    Content,
    GenerationConfig,
    PipelineOutcome,
    PipelineRequest,
    PipelineResult,
    StreamChunk,
    TextPart,
)
from gemini_core.infrastructure.debug.recorder import DebugHandle, DebugRecorder, debug_recorder
from gemini_core.infrastructure.logging.logger import logger
from gemini_core.providers.base import CapabilityResolver
from gemini_core.providers.builders import (
    build_request_body,
    build_request_headers,
    build_request_url,
    validate_api_endpoint,
)
from gemini_core.providers.extractor import ResponseAccumulator
from gemini_core.providers.parsers import LineBuffer, parse_sse_line, unwrap_response_data
from gemini_core.providers.registry import default_resolver

CONNECTION_TEST_PROMPT = "Hi"
CONNECTION_TEST_MAX_TOKENS = 10

_CONNECTION_STATUS_MESSAGES = {
    401: "Invalid API key",
    429: "Too many requests",
    500: "Service temporarily unavailable",
    502: "Service temporarily unavailable",
    503: "Service temporarily unavailable",
}


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def extract_error_message(raw_text: str, default: str) -> str:
    """从 {"error": {"message": ...}} 形式的响应体中取出错误信息。"""

    try:
        body = json.loads(raw_text) if raw_text else None
    except json.JSONDecodeError:
        return default
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
    return default


@dataclass
class _CallState:
    started: float
    accumulator: ResponseAccumulator
    ttfb_ms: Optional[int] = None
    status_code: int = 200
    debug_body: Any = None
    cleanup: List[Any] = field(default_factory=list)


class GeminiClient:
    """Gemini 流水线客户端。

    每次调用都使用独立的 httpx.Client、累加器和取消令牌，调用之间不共享可变状态。
    """

    name = "gemini"

    def __init__(
        self,
        cfg=settings,
        resolver: Optional[CapabilityResolver] = None,
        recorder: Optional[DebugRecorder] = None,
    ):
        self._settings = cfg
        self._resolver = resolver or default_resolver
        self._recorder = recorder or debug_recorder

    # ---- 流水线入口 ----

    def run(self, request: PipelineRequest) -> PipelineOutcome:
        """执行一次调用，错误以数据形式返回而不是抛出。"""

        try:
            return PipelineOutcome(result=self.execute(request))
        except PipelineError as exc:
            return PipelineOutcome(error=exc)

    def execute(self, request: PipelineRequest) -> PipelineResult:
        config = request.api_config
        self._validate(config)

        try:
            body = build_request_body(
                request.contents,
                generation_config=request.generation_config,
                safety_settings=request.safety_settings,
                system_instruction=request.system_instruction,
                advanced_config=request.advanced_config,
                model_id=config.model,
                web_search_enabled=request.web_search_enabled,
                url_context_enabled=request.url_context_enabled,
                resolver=self._resolver,
            )
        except Exception as exc:
            self._log(logging.ERROR, "Failed to build request body", error=str(exc))
            raise UnknownError(code="BUILD_FAILED", message=str(exc)) from exc

        payload = body.to_payload()
        url = build_request_url(config, stream=request.stream)
        headers = build_request_headers(config)

        self._log(
            logging.INFO,
            "Sending streaming request" if request.stream else "Sending non-streaming request",
            model=config.model,
            message_count=len(request.contents),
            web_search_enabled=request.web_search_enabled,
            url_context_enabled=request.url_context_enabled,
        )
        gen = request.generation_config
        advanced = request.advanced_config
        self._log(
            logging.DEBUG,
            "Request parameters",
            model=config.model,
            temperature=gen.temperature if gen else None,
            max_output_tokens=gen.max_output_tokens if gen else None,
            thinking_level=advanced.thinking_level if advanced else None,
        )

        handle = self._recorder.start(url, "POST", payload, headers)
        state = _CallState(
            started=time.perf_counter(),
            accumulator=ResponseAccumulator(keep_raw_chunks=self._recorder.enabled),
        )
        token = request.cancel_token

        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                if token is not None:
                    state.cleanup.append(token.on_cancel(client.close))
                if request.stream:
                    self._receive_stream(client, url, payload, headers, request, state, handle)
                else:
                    self._receive_buffered(client, url, payload, headers, request, state, handle)
        except (RequestCancelledError, HttpError):
            raise
        except PipelineError as exc:
            self._log(logging.ERROR, "Gemini API error", kind=exc.kind, message=exc.message)
            self._recorder.fail(handle, exc.message, exc.status_code)
            raise
        except (httpx.TransportError, httpx.StreamError) as exc:
            if token is not None and token.cancelled:
                raise self._cancelled(state, handle) from exc
            self._log(logging.ERROR, "Network connection failed", error=str(exc))
            self._recorder.fail(handle, "Network connection failed")
            raise NetworkError(
                code="NETWORK_ERROR",
                message=f"Network connection failed: {exc}",
            ) from exc
        except Exception as exc:
            if token is not None and token.cancelled:
                raise self._cancelled(state, handle) from exc
            message = str(exc) or exc.__class__.__name__
            self._log(logging.ERROR, "Unknown error", error=message)
            self._recorder.fail(handle, message)
            raise UnknownError(code="UNKNOWN_ERROR", message=message) from exc
        finally:
            for unregister in state.cleanup:
                unregister()

        duration_ms = _elapsed_ms(state.started)
        result = state.accumulator.to_result(duration_ms=duration_ms, ttfb_ms=state.ttfb_ms)
        self._log(
            logging.INFO,
            "Streaming request completed" if request.stream else "Non-streaming request completed",
            response_length=len(result.text),
            has_thought=result.thought_summary is not None,
            image_count=len(result.images or []),
            thought_image_count=len(result.thought_images or []),
            has_token_usage=result.token_usage is not None,
            duration_ms=duration_ms,
            ttfb_ms=state.ttfb_ms,
        )
        self._recorder.complete(handle, state.status_code, state.debug_body, state.ttfb_ms)
        return result

    # ---- 接收 ----

    def _receive_stream(
        self,
        client: httpx.Client,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        request: PipelineRequest,
        state: _CallState,
        handle: Optional[DebugHandle],
    ) -> None:
        token = request.cancel_token
        if token is not None and token.cancelled:
            raise self._cancelled(state, handle)

        with client.stream("POST", url, json=payload, headers=headers) as resp:
            state.ttfb_ms = _elapsed_ms(state.started)
            state.status_code = resp.status_code
            if not _is_success(resp.status_code):
                raw_text = resp.read().decode("utf-8", errors="replace")
                raise self._http_error(resp.status_code, raw_text, handle)

            if token is not None:
                state.cleanup.append(token.on_cancel(resp.close))

            acc = state.accumulator
            buffer = LineBuffer()
            blocks = resp.iter_bytes()
            while True:
                if token is not None and token.cancelled:
                    resp.close()
                    raise self._cancelled(state, handle)
                block = next(blocks, None)
                if block is None:
                    break
                for line in buffer.feed(block):
                    self._consume_line(line, acc, request)

            rest = buffer.flush()
            if rest:
                self._consume_line(rest, acc, request)
            state.debug_body = acc.raw_chunks

    @staticmethod
    def _consume_line(line: str, acc: ResponseAccumulator, request: PipelineRequest) -> None:
        chunk = parse_sse_line(line)
        if chunk is None:
            return
        extracted = acc.add(chunk)
        if extracted is None:
            return
        if extracted.text and request.on_chunk:
            request.on_chunk(extracted.text)
        if extracted.thought and request.on_thought_chunk:
            request.on_thought_chunk(extracted.thought)

    def _receive_buffered(
        self,
        client: httpx.Client,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        request: PipelineRequest,
        state: _CallState,
        handle: Optional[DebugHandle],
    ) -> None:
        token = request.cancel_token
        if token is not None and token.cancelled:
            raise self._cancelled(state, handle)

        resp = client.post(url, json=payload, headers=headers)
        # 非流式下首字节时间即完整响应体到达的时间
        state.ttfb_ms = _elapsed_ms(state.started)
        state.status_code = resp.status_code
        raw_text = resp.text
        if not _is_success(resp.status_code):
            raise self._http_error(resp.status_code, raw_text, handle)
        if token is not None and token.cancelled:
            raise self._cancelled(state, handle)

        try:
            raw_data = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise UnknownError(
                code="INVALID_RESPONSE",
                message="Response body is not valid JSON",
                status_code=resp.status_code,
            ) from exc
        data = unwrap_response_data(raw_data)
        if not isinstance(data, dict):
            raise UnknownError(
                code="INVALID_RESPONSE",
                message="Response body is not a JSON object",
                status_code=resp.status_code,
            )
        state.accumulator.add(StreamChunk.from_payload(data))
        state.debug_body = raw_data

    # ---- 便捷封装 ----

    def send_message(
        self,
        contents: Sequence[Union[Content, Dict[str, Any]]],
        api_config: ApiConfig,
        on_chunk=None,
        **options: Any,
    ) -> str:
        """流式调用，只返回正文。"""

        request = PipelineRequest(
            contents=list(contents), api_config=api_config, stream=True, on_chunk=on_chunk, **options
        )
        return self.execute(request).text

    def send_message_with_thoughts(
        self,
        contents: Sequence[Union[Content, Dict[str, Any]]],
        api_config: ApiConfig,
        on_chunk=None,
        on_thought_chunk=None,
        **options: Any,
    ) -> PipelineResult:
        """流式调用，返回包含思维链、图片与用量的完整结果。"""

        request = PipelineRequest(
            contents=list(contents),
            api_config=api_config,
            stream=True,
            on_chunk=on_chunk,
            on_thought_chunk=on_thought_chunk,
            **options,
        )
        return self.execute(request)

    def send_message_non_streaming(
        self,
        contents: Sequence[Union[Content, Dict[str, Any]]],
        api_config: ApiConfig,
        **options: Any,
    ) -> str:
        request = PipelineRequest(contents=list(contents), api_config=api_config, stream=False, **options)
        return self.execute(request).text

    def send_message_non_streaming_with_thoughts(
        self,
        contents: Sequence[Union[Content, Dict[str, Any]]],
        api_config: ApiConfig,
        **options: Any,
    ) -> PipelineResult:
        request = PipelineRequest(contents=list(contents), api_config=api_config, stream=False, **options)
        return self.execute(request)

    # ---- 连接测试 ----

    def test_connection(self, api_config: ApiConfig) -> ConnectionCheck:
        """发送一条极短的非流式请求检查端点和密钥是否可用，从不抛异常。"""

        validation = validate_api_endpoint(api_config.endpoint)
        if not validation.valid:
            return ConnectionCheck(success=False, error=validation.error)
        if not api_config.api_key or not api_config.api_key.strip():
            return ConnectionCheck(success=False, error="API key must not be empty")

        body = build_request_body(
            [Content(role="user", parts=[TextPart(text=CONNECTION_TEST_PROMPT)])],
            GenerationConfig(max_output_tokens=CONNECTION_TEST_MAX_TOKENS),
        )
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    build_request_url(api_config, stream=False),
                    json=body.to_payload(),
                    headers=build_request_headers(api_config),
                )
        except httpx.TransportError as exc:
            self._log(logging.WARNING, "Connection test failed", error=str(exc))
            return ConnectionCheck(success=False, error="Network connection failed")
        except Exception as exc:
            self._log(logging.WARNING, "Connection test failed", error=str(exc))
            return ConnectionCheck(success=False, error=str(exc) or "Unknown error")

        if _is_success(resp.status_code):
            return ConnectionCheck(success=True)
        message = _CONNECTION_STATUS_MESSAGES.get(resp.status_code)
        if message is None:
            message = extract_error_message(resp.text, f"Connection failed: {resp.status_code}")
        self._log(logging.WARNING, "Connection test failed", status=resp.status_code, message=message)
        return ConnectionCheck(success=False, error=message)

    # ---- 辅助方法 ----

    def _validate(self, config: ApiConfig) -> None:
        validation = validate_api_endpoint(config.endpoint)
        if not validation.valid:
            self._log(logging.ERROR, "API endpoint validation failed", error=validation.error)
            raise ValidationError(code="INVALID_ENDPOINT", message=validation.error or "Invalid API endpoint")
        if not config.api_key or not config.api_key.strip():
            self._log(logging.ERROR, "API key is empty")
            raise ValidationError(code="MISSING_API_KEY", message="API key must not be empty")

    def _http_error(self, status_code: int, raw_text: str, handle: Optional[DebugHandle]) -> HttpError:
        message = extract_error_message(raw_text, f"API request failed: {status_code}")
        self._log(logging.ERROR, "API request failed", status=status_code, message=message)
        self._recorder.fail(handle, message, status_code, raw_text)
        return HttpError(status_code=status_code, message=message)

    def _cancelled(self, state: _CallState, handle: Optional[DebugHandle]) -> RequestCancelledError:
        acc = state.accumulator
        self._log(
            logging.INFO,
            "Request cancelled",
            partial_response_length=len(acc.text),
            partial_thought_length=len(acc.thought),
        )
        self._recorder.complete(
            handle,
            200,
            {"cancelled": True, "partial_response": acc.text, "partial_thought": acc.thought},
            state.ttfb_ms,
        )
        return RequestCancelledError(
            partial_text=acc.text,
            partial_thought=acc.thought,
            partial_images=list(acc.images),
        )

    def _log(self, level: int, event: str, **fields: Any) -> None:
        logger.log(level, event, extra={"extra": {"provider": self.name, **fields}})
