"""模型能力配置。

本模块集中维护“模型 ID → 能力”的映射，请求构建据此决定：

- 思考配置用 thinkingLevel（Gemini 3 系列）还是 thinkingBudget（Gemini 2.5 系列），
  或者不发送。
- 是否允许 includeThoughts（思维链摘要）。
- 是否为画图模型：需要 responseModalities=["TEXT","IMAGE"] 与 imageConfig，
  以及是否支持 imageSize。

未知模型按最长前缀匹配预设（如 "gemini-2.5-flash-preview-09-2025" 归到
"gemini-2.5-flash"），都匹配不上时返回 DEFAULT_CAPABILITIES。"""

from dataclasses import dataclass
from typing import Dict, Literal, Mapping, Optional


ThinkingConfigType = Literal["level", "budget", "none"]


@dataclass(frozen=True)
class ThinkingBudgetConfig:
    """thinkingBudget 的取值范围与默认值（-1 表示动态预算）。"""

    min_value: int
    max_value: int
    default_value: int


@dataclass(frozen=True)
class ModelCapabilities:
    """单个模型的静态能力。"""

    thinking_config_type: ThinkingConfigType = "none"
    thinking_budget_config: Optional[ThinkingBudgetConfig] = None
    supports_thought_summary: bool = False
    supports_image_generation: bool = False
    supports_image_size: bool = True


DEFAULT_CAPABILITIES = ModelCapabilities()


PRESET_CAPABILITIES: Mapping[str, ModelCapabilities] = {
    "gemini-3-pro-preview": ModelCapabilities(
        thinking_config_type="level",
        supports_thought_summary=True,
    ),
    "gemini-3-pro-image-preview": ModelCapabilities(
        thinking_config_type="none",
        supports_thought_summary=True,
        supports_image_generation=True,
        supports_image_size=True,
    ),
    "gemini-2.5-pro": ModelCapabilities(
        thinking_config_type="budget",
        thinking_budget_config=ThinkingBudgetConfig(min_value=128, max_value=32768, default_value=-1),
        supports_thought_summary=True,
    ),
    "gemini-2.5-flash": ModelCapabilities(
        thinking_config_type="budget",
        thinking_budget_config=ThinkingBudgetConfig(min_value=0, max_value=24576, default_value=-1),
        supports_thought_summary=True,
    ),
    "gemini-2.5-flash-lite": ModelCapabilities(
        thinking_config_type="budget",
        thinking_budget_config=ThinkingBudgetConfig(min_value=512, max_value=24576, default_value=0),
        supports_thought_summary=True,
    ),
    # gemini-2.5-flash-image 不支持 imageSize
    "gemini-2.5-flash-image": ModelCapabilities(
        supports_image_generation=True,
        supports_image_size=False,
    ),
}


def get_preset_capabilities(model_id: str) -> ModelCapabilities:
    """按精确匹配、再按最长前缀匹配查找预设能力。"""

    key = (model_id or "").strip().lower()
    if key.startswith("models/"):
        key = key[len("models/"):]
    if key in PRESET_CAPABILITIES:
        return PRESET_CAPABILITIES[key]
    best: Optional[str] = None
    for name in PRESET_CAPABILITIES:
        if key.startswith(name) and (best is None or len(name) > len(best)):
            best = name
    if best is not None:
        return PRESET_CAPABILITIES[best]
    return DEFAULT_CAPABILITIES


class PresetCapabilityResolver:
    """默认的能力解析器。

    - overrides: 自定义模型的能力（优先级最高）。
    - redirects: 自定义模型 ID → 目标模型 ID，例如把 "my-painter" 指向
      "gemini-3-pro-image-preview"，以便获得画图能力。
    """

    def __init__(
        self,
        overrides: Optional[Mapping[str, ModelCapabilities]] = None,
        redirects: Optional[Mapping[str, str]] = None,
    ):
        self._overrides: Dict[str, ModelCapabilities] = dict(overrides or {})
        self._redirects: Dict[str, str] = dict(redirects or {})

    def resolve(self, model_id: str) -> ModelCapabilities:
        if model_id in self._overrides:
            return self._overrides[model_id]
        target = model_id
        seen = {model_id}
        while target in self._redirects:
            target = self._redirects[target]
            if target in seen:
                break
            seen.add(target)
            if target in self._overrides:
                return self._overrides[target]
        return get_preset_capabilities(target)


default_resolver = PresetCapabilityResolver()
