"""请求取消令牌。"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class CancellationToken:
    """单次调用的取消令牌。

    每个调用持有自己的令牌，读流循环在每次阻塞读取前检查 cancelled。
    on_cancel 注册的回调会在 cancel() 时执行一次，流水线用它关闭
    正在读取的响应，让阻塞在另一个线程里的读取尽快返回。
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                logger.warning("Cancellation callback failed: %s", exc)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """注册取消回调；若已取消则立即执行。返回注销函数。"""

        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
