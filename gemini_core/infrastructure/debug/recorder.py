"""请求调试记录器。

仅在 settings.debug_mode 打开时工作，否则所有方法都是空操作。
记录内容：脱敏后的 URL 与请求头、请求体、状态码、响应（流式为按序的全部
chunk，非流式为解析后的响应体）、耗时与首字节时间；失败时额外保存原始
响应文本，便于排查。

记录器自身出错只写日志，绝不影响请求本身的结果。
"""

from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from gemini_core.config.settings import settings as default_settings
from gemini_core.infrastructure.logging.logger import logger, redact_secrets

SECRET_HEADERS = {"authorization", "cookie", "set-cookie", "x-api-key", "x-goog-api-key"}


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    masked: Dict[str, str] = {}
    for key, value in headers.items():
        masked[key] = "***" if key.lower() in SECRET_HEADERS else value
    return masked


@dataclass
class DebugRecord:
    id: str
    timestamp: str
    url: str
    method: str
    headers: Dict[str, str]
    request_body: Any
    status_code: Optional[int] = None
    response_body: Any = None
    error: Optional[str] = None
    raw_response: Optional[str] = None
    duration_ms: Optional[int] = None
    ttfb_ms: Optional[int] = None


@dataclass
class DebugHandle:
    """start() 返回给流水线的句柄，complete()/fail() 时回传。"""

    request_id: str
    started_at: float = field(default_factory=time.perf_counter)


class DebugRecorder:
    def __init__(self, config=None):
        self._settings = config or default_settings
        self._lock = threading.Lock()
        self._records: List[DebugRecord] = []

    @property
    def enabled(self) -> bool:
        return bool(getattr(self._settings, "debug_mode", False))

    def start(
        self,
        url: str,
        method: str,
        body: Any,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[DebugHandle]:
        if not self.enabled:
            return None
        try:
            handle = DebugHandle(request_id=f"dbg-{uuid4().hex}")
            record = DebugRecord(
                id=handle.request_id,
                timestamp=_utcnow(),
                url=redact_secrets(url),
                method=method,
                headers=redact_headers(headers or {}),
                request_body=body,
            )
            with self._lock:
                self._records.append(record)
                limit = max(1, int(getattr(self._settings, "debug_max_records", 50)))
                if len(self._records) > limit:
                    del self._records[: len(self._records) - limit]
            self._flush(record)
            return handle
        except Exception as exc:
            logger.warning("Debug recorder start failed: %s", exc)
            return None

    def complete(
        self,
        handle: Optional[DebugHandle],
        status_code: int,
        response_body: Any,
        ttfb_ms: Optional[int] = None,
    ) -> None:
        if handle is None:
            return
        try:
            record = self._find(handle.request_id)
            if record is None:
                return
            record.status_code = status_code
            record.response_body = response_body
            record.duration_ms = _elapsed_ms(handle)
            record.ttfb_ms = ttfb_ms
            self._flush(record)
        except Exception as exc:
            logger.warning("Debug recorder complete failed: %s", exc)

    def fail(
        self,
        handle: Optional[DebugHandle],
        error: str,
        status_code: Optional[int] = None,
        raw_response: Optional[str] = None,
    ) -> None:
        if handle is None:
            return
        try:
            record = self._find(handle.request_id)
            if record is None:
                return
            record.error = error
            record.status_code = status_code
            record.raw_response = raw_response
            record.duration_ms = _elapsed_ms(handle)
            self._flush(record)
        except Exception as exc:
            logger.warning("Debug recorder fail failed: %s", exc)

    def records(self) -> List[DebugRecord]:
        with self._lock:
            return list(self._records)

    def get(self, request_id: str) -> Optional[DebugRecord]:
        return self._find(request_id)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def _find(self, request_id: str) -> Optional[DebugRecord]:
        with self._lock:
            for record in reversed(self._records):
                if record.id == request_id:
                    return record
        return None

    def _flush(self, record: DebugRecord) -> None:
        debug_dir = getattr(self._settings, "debug_dir", None)
        if not debug_dir:
            return
        root = Path(debug_dir)
        root.mkdir(parents=True, exist_ok=True)
        path = root / f"{record.id}.json"
        tmp_path = root / f"{record.id}.{uuid4().hex}.json.tmp"
        tmp_path.write_text(
            json.dumps(asdict(record), ensure_ascii=False, indent=2, default=str),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)


def _elapsed_ms(handle: DebugHandle) -> int:
    return int((time.perf_counter() - handle.started_at) * 1000)


debug_recorder = DebugRecorder()
