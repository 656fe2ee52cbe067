import json

from gemini_core.providers.extractor import extract_text_from_chunk
from gemini_core.providers.parsers import LineBuffer, iter_chunks, parse_sse_line, unwrap_response_data


def _line(text):
    return "data: " + json.dumps(
        {"candidates": [{"content": {"parts": [{"text": text}]}}]}, ensure_ascii=False
    )


def test_parse_sse_line_ignores_non_data_lines():
    assert parse_sse_line("") is None
    assert parse_sse_line(": keep-alive") is None
    assert parse_sse_line("event: message") is None
    assert parse_sse_line("data: [DONE]") is None
    assert parse_sse_line("data: ") is None


def test_parse_sse_line_skips_malformed_payloads():
    assert parse_sse_line("data: {not json") is None
    assert parse_sse_line("data: [1, 2]") is None
    assert parse_sse_line('data: "text"') is None


def test_parse_sse_line_parses_and_unwraps():
    chunk = parse_sse_line(_line("Hi"))
    assert extract_text_from_chunk(chunk) == "Hi"

    wrapped = 'data: {"response": {"candidates": [{"content": {"parts": [{"text": "x"}]}}]}, "traceId": "t"}'
    chunk = parse_sse_line(wrapped)
    assert extract_text_from_chunk(chunk) == "x"
    assert "traceId" not in chunk.raw


def test_unwrap_response_data():
    assert unwrap_response_data({"response": {"a": 1}}) == {"a": 1}
    assert unwrap_response_data({"response": "str"}) == {"response": "str"}
    assert unwrap_response_data([1]) == [1]


def test_line_buffer_keeps_trailing_fragment():
    buf = LineBuffer()
    assert buf.feed(b"data: a\ndata: ") == ["data: a"]
    assert buf.feed(b"b\n") == ["data: b"]
    assert buf.feed(b"tail") == []
    assert buf.flush() == "tail"
    assert buf.flush() == ""


def test_line_buffer_handles_split_multibyte_characters():
    data = "data: 你好\n".encode("utf-8")
    buf = LineBuffer()
    lines = []
    for i in range(len(data)):
        lines.extend(buf.feed(data[i:i + 1]))
    assert lines == ["data: 你好"]


def test_chunk_boundary_invariance():
    stream = ("\n".join([_line("你好"), _line(" world"), "data: [DONE]"]) + "\n").encode("utf-8")
    expected = [extract_text_from_chunk(c) for c in iter_chunks([stream])]
    assert expected == ["你好", " world"]

    for i in range(len(stream) + 1):
        texts = [extract_text_from_chunk(c) for c in iter_chunks([stream[:i], stream[i:]])]
        assert texts == expected

    single_bytes = [stream[i:i + 1] for i in range(len(stream))]
    assert [extract_text_from_chunk(c) for c in iter_chunks(single_bytes)] == expected


def test_trailing_line_without_newline_is_parsed():
    stream = (_line("a") + "\n" + _line("b")).encode("utf-8")
    assert [extract_text_from_chunk(c) for c in iter_chunks([stream])] == ["a", "b"]


def test_crlf_lines_are_accepted():
    stream = (_line("a") + "\r\n\r\n").encode("utf-8")
    assert [extract_text_from_chunk(c) for c in iter_chunks([stream])] == ["a"]
