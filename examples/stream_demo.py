"""Minimal demonstration of the streaming pipeline."""

import sys

from gemini_core.api.service import default_api_config, send_message_with_thoughts
from gemini_core.domain.models import AdvancedConfig, Content, TextPart

if __name__ == "__main__":
    question = "用三句话解释 SSE 流式响应的工作方式"
    contents = [Content(role="user", parts=[TextPart(text=question)])]
    print("User:", question)
    print("Gemini: ", end="", flush=True)
    result = send_message_with_thoughts(
        contents,
        default_api_config(),
        on_chunk=lambda text: print(text, end="", flush=True),
        advanced_config=AdvancedConfig(include_thoughts=True),
    )
    print()
    if result.thought_summary:
        print("Thoughts:", result.thought_summary, file=sys.stderr)
    if result.token_usage:
        print("Tokens:", result.token_usage.total_tokens)
