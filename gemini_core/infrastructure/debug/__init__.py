from gemini_core.infrastructure.debug.recorder import DebugRecord, DebugRecorder, debug_recorder

__all__ = ["DebugRecord", "DebugRecorder", "debug_recorder"]
