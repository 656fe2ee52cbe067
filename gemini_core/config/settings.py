"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置。
流水线本身只从这里读取调试开关、日志目录和 HTTP 超时，
端点 / 密钥 / 模型通常由调用方以 ApiConfig 的形式直接传入。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("GEMINI_CORE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class GeminiCoreSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    gemini_endpoint: str = Field(
        default="",
        description="API 端点地址，留空表示使用官方默认地址",
    )
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_model: str = Field(default="gemini-2.5-flash", description="默认模型 ID")
    http_timeout: Optional[float] = Field(
        default=None,
        ge=1.0,
        description="HTTP 超时时间（秒），None 表示不限制，由调用方通过取消令牌控制",
    )

    # ---- 调试记录 ----
    debug_mode: bool = Field(default=False, description="是否启用请求调试记录")
    debug_max_records: int = Field(default=50, ge=1, le=1000, description="内存中保留的调试记录数")
    debug_dir: Optional[str] = Field(default=None, description="调试记录落盘目录（可选）")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v.strip()) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = GeminiCoreSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = GeminiCoreSettings
