import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from gemini_core.config.settings import settings

# URL 中的 key=... 查询参数
_API_KEY_PATTERN = re.compile(r"([?&]key=)[^&\s\"']+")


def redact_secrets(text: str) -> str:
    return _API_KEY_PATTERN.sub(r"\1***", text)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("gemini_core")
    logger.setLevel(logging.INFO)
    if any(getattr(h, "_gemini_core_handler", False) for h in logger.handlers):
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "gemini_core.log", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh._gemini_core_handler = True

    class JsonFormatter(logging.Formatter):
        def format(self, record: logging.LogRecord) -> str:
            msg = redact_secrets(record.getMessage() or "")
            if settings.log_redact_content:
                msg = msg[:64]
            payload = {
                "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
                "level": record.levelname,
                "name": record.name,
                "msg": msg,
            }
            extra = getattr(record, "extra", None)
            if isinstance(extra, dict):
                payload.update(extra)
            return json.dumps(payload, ensure_ascii=False, default=str)

    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
