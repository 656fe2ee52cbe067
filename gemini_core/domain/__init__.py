"""领域层模型与协议。

包含：
- models: 配置、对话内容、StreamChunk 与 PipelineResult 等数据模型。
- exceptions: 流水线错误分类。
- cancellation: 单次调用的取消令牌。
"""
