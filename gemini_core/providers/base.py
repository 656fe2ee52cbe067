"""模型能力查询接口。

请求构建只依赖此协议，不直接依赖具体的模型表：

- 默认实现是 registry.PresetCapabilityResolver（内置预设 + 覆盖 + 重定向）。
- 上层应用可以注入自己的实现（例如从用户的自定义模型列表读取）。

这样 build_request_body 就是 (内容, 配置, 能力快照) 的纯函数。
"""

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from gemini_core.providers.registry import ModelCapabilities


class CapabilityResolver(Protocol):
    """模型能力解析协议。

    实现者需要提供：
    - resolve(model_id): 返回该模型的能力配置；未知模型应返回保守的默认能力，
      而不是抛异常。
    """

    def resolve(self, model_id: str) -> "ModelCapabilities":
        ...
