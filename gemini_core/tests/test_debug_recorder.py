import json

from gemini_core.infrastructure.debug.recorder import DebugRecorder, redact_headers
from gemini_core.infrastructure.logging.logger import redact_secrets


class DebugSettings:
    debug_mode = True
    debug_max_records = 3
    debug_dir = None


class DisabledSettings(DebugSettings):
    debug_mode = False


def test_disabled_recorder_is_noop():
    recorder = DebugRecorder(DisabledSettings())
    handle = recorder.start("https://x/models/m:generateContent?key=abc", "POST", {})
    assert handle is None
    recorder.complete(handle, 200, {})
    recorder.fail(handle, "boom")
    assert recorder.records() == []


def test_start_complete_and_fail():
    recorder = DebugRecorder(DebugSettings())
    handle = recorder.start(
        "https://x/models/m:streamGenerateContent?key=abc&alt=sse",
        "POST",
        {"contents": []},
        {"x-goog-api-key": "abc", "Content-Type": "application/json"},
    )
    recorder.complete(handle, 200, [{"candidates": []}], ttfb_ms=12)
    record = recorder.get(handle.request_id)
    assert record.url == "https://x/models/m:streamGenerateContent?key=***&alt=sse"
    assert record.headers == {"x-goog-api-key": "***", "Content-Type": "application/json"}
    assert record.status_code == 200
    assert record.ttfb_ms == 12
    assert record.duration_ms is not None

    handle = recorder.start("https://x?key=abc", "POST", {})
    recorder.fail(handle, "bad request", 400, '{"error": {}}')
    record = recorder.get(handle.request_id)
    assert record.error == "bad request"
    assert record.raw_response == '{"error": {}}'


def test_records_are_bounded():
    recorder = DebugRecorder(DebugSettings())
    ids = [recorder.start(f"https://x/{i}", "POST", {}).request_id for i in range(5)]
    assert [r.id for r in recorder.records()] == ids[-3:]
    recorder.clear()
    assert recorder.records() == []


def test_records_flush_to_debug_dir(tmp_path):
    class FileSettings(DebugSettings):
        debug_dir = str(tmp_path / "debug")

    recorder = DebugRecorder(FileSettings())
    handle = recorder.start("https://x?key=abc", "POST", {"contents": []})
    recorder.complete(handle, 200, {"ok": True})
    saved = json.loads((tmp_path / "debug" / f"{handle.request_id}.json").read_text(encoding="utf-8"))
    assert saved["status_code"] == 200
    assert saved["response_body"] == {"ok": True}
    assert "abc" not in saved["url"]
    assert list((tmp_path / "debug").glob("*.tmp")) == []


def test_redaction_helpers():
    assert redact_secrets("GET /m?alt=sse&key=abc123") == "GET /m?alt=sse&key=***"
    assert redact_secrets("no secrets here") == "no secrets here"
    assert redact_headers({"Authorization": "Bearer t", "Accept": "*/*"}) == {
        "Authorization": "***",
        "Accept": "*/*",
    }
