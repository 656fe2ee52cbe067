import pytest
from pydantic import ValidationError as PydanticValidationError

from gemini_core.config.settings import GeminiCoreSettings


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("GEMINI_CORE_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)
    for name in ("HTTP_TIMEOUT", "DEBUG_MODE", "DEBUG_MAX_RECORDS"):
        monkeypatch.delenv(name, raising=False)
    cfg = GeminiCoreSettings(_env_file=None)
    assert cfg.http_timeout is None
    assert cfg.debug_mode is False
    assert cfg.debug_max_records == 50


def test_yaml_config_file(monkeypatch, tmp_path):
    config_file = tmp_path / "gemini.yaml"
    config_file.write_text("gemini_model: gemini-3-pro-preview\ndebug_mode: true\n", encoding="utf-8")
    monkeypatch.setenv("GEMINI_CORE_CONFIG_FILE", str(config_file))
    monkeypatch.delenv("GEMINI_MODEL", raising=False)
    monkeypatch.delenv("DEBUG_MODE", raising=False)
    cfg = GeminiCoreSettings(_env_file=None)
    assert cfg.gemini_model == "gemini-3-pro-preview"
    assert cfg.debug_mode is True


def test_env_overrides_yaml(monkeypatch, tmp_path):
    config_file = tmp_path / "gemini.yaml"
    config_file.write_text("gemini_model: from-yaml\n", encoding="utf-8")
    monkeypatch.setenv("GEMINI_CORE_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("GEMINI_MODEL", "from-env")
    assert GeminiCoreSettings(_env_file=None).gemini_model == "from-env"


def test_short_api_key_rejected():
    with pytest.raises(PydanticValidationError):
        GeminiCoreSettings(gemini_api_key="short", _env_file=None)
