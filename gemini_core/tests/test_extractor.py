from gemini_core.domain.models import ImageData, StreamChunk, TokenUsage
from gemini_core.providers.extractor import (
    ResponseAccumulator,
    extract_images_from_chunk,
    extract_text_from_chunk,
    extract_thought_summary,
    extract_token_usage,
    extract_url_context_metadata,
)


def _chunk(parts, **extra):
    data = {"candidates": [{"content": {"role": "model", "parts": parts}}]}
    data.update(extra)
    return StreamChunk.from_payload(data)


def _image(data="iVBORw0KGgo", mime="image/png", thought=False):
    part = {"inlineData": {"mimeType": mime, "data": data}}
    if thought:
        part["thought"] = True
    return part


def test_thought_parts_go_to_thought_only():
    res = extract_thought_summary(_chunk([{"thought": True, "text": "thinking"}, {"text": "answer"}]))
    assert res.thought == "thinking"
    assert res.text == "answer"


def test_signature_last_wins():
    res = extract_thought_summary(
        _chunk([{"text": "a", "thoughtSignature": "s1"}, {"text": "b", "thoughtSignature": "s2"}])
    )
    assert res.thought_signature == "s2"


def test_images_routed_by_thought_flag():
    res = extract_thought_summary(_chunk([_image("AAA"), _image("BBB", thought=True), _image("x", mime="audio/wav")]))
    assert res.images == (ImageData("image/png", "AAA"),)
    assert res.thought_images == (ImageData("image/png", "BBB"),)


def test_empty_chunk_returns_none():
    assert extract_thought_summary(StreamChunk.from_payload({})) is None
    assert extract_thought_summary(_chunk([{"text": ""}])) is None
    assert extract_thought_summary(StreamChunk.from_payload({"candidates": [{"finishReason": "STOP"}]})) is None


def test_only_first_candidate_is_used():
    chunk = StreamChunk.from_payload(
        {
            "candidates": [
                {"content": {"parts": [{"text": "first"}]}},
                {"content": {"parts": [{"text": "second"}]}},
            ]
        }
    )
    assert extract_text_from_chunk(chunk) == "first"


def test_extract_text_and_images_helpers():
    chunk = _chunk([{"thought": True, "text": "t"}, {"text": "a"}, _image("IMG")])
    assert extract_text_from_chunk(chunk) == "ta"
    assert extract_images_from_chunk(chunk) == [ImageData("image/png", "IMG")]


def test_token_usage_defaults_missing_counts_to_zero():
    chunk = StreamChunk.from_payload({"usageMetadata": {"promptTokenCount": 3, "totalTokenCount": 5}})
    assert extract_token_usage(chunk) == TokenUsage(
        prompt_tokens=3, completion_tokens=0, thoughts_tokens=0, total_tokens=5
    )
    assert extract_token_usage(StreamChunk.from_payload({})) is None


def test_url_context_metadata_filters_invalid_entries():
    chunk = StreamChunk.from_payload(
        {
            "urlContextMetadata": {
                "urlMetadata": [
                    {"retrievedUrl": "https://a.example", "urlRetrievalStatus": "URL_RETRIEVAL_STATUS_SUCCESS"},
                    {"retrievedUrl": "https://b.example", "urlRetrievalStatus": "BOGUS"},
                    {"retrievedUrl": 42, "urlRetrievalStatus": "URL_RETRIEVAL_STATUS_ERROR"},
                ]
            }
        }
    )
    meta = extract_url_context_metadata(chunk)
    assert [m.retrieved_url for m in meta.url_metadata] == ["https://a.example"]

    bad = StreamChunk.from_payload({"urlContextMetadata": {"urlMetadata": [{"retrievedUrl": "x"}]}})
    assert extract_url_context_metadata(bad) is None


def test_url_context_metadata_falls_back_to_candidate():
    chunk = StreamChunk.from_payload(
        {
            "candidates": [
                {
                    "content": {"parts": [{"text": "a"}]},
                    "urlContextMetadata": {
                        "urlMetadata": [
                            {"retrievedUrl": "https://c.example", "urlRetrievalStatus": "URL_RETRIEVAL_STATUS_UNSAFE"}
                        ]
                    },
                }
            ]
        }
    )
    meta = extract_url_context_metadata(chunk)
    assert meta.url_metadata[0].url_retrieval_status == "URL_RETRIEVAL_STATUS_UNSAFE"


def test_accumulator_dedups_images_per_bucket():
    acc = ResponseAccumulator()
    acc.add(_chunk([_image("SAME"), _image("SAME", thought=True)]))
    acc.add(_chunk([_image("SAME"), _image("SAME", thought=True)]))
    acc.add(_chunk([_image("OTHER")]))
    assert [img.data for img in acc.images] == ["SAME", "OTHER"]
    assert [img.data for img in acc.thought_images] == ["SAME"]


def test_accumulator_dedup_uses_prefix_fingerprint():
    acc = ResponseAccumulator()
    prefix = "A" * 100
    acc.add(_chunk([_image(prefix + "x")]))
    acc.add(_chunk([_image(prefix + "y")]))
    acc.add(_chunk([_image(prefix + "x", mime="image/jpeg")]))
    assert len(acc.images) == 2


def test_accumulator_appends_text_and_overwrites_usage():
    acc = ResponseAccumulator(keep_raw_chunks=True)
    acc.add(_chunk([{"text": "Hi"}], usageMetadata={"promptTokenCount": 1, "totalTokenCount": 2}))
    acc.add(_chunk([{"thought": True, "text": "hmm"}]))
    acc.add(_chunk([{"text": " there"}], usageMetadata={"promptTokenCount": 1, "totalTokenCount": 7}))
    result = acc.to_result(duration_ms=10, ttfb_ms=2)
    assert result.text == "Hi there"
    assert result.thought_summary == "hmm"
    assert result.token_usage.total_tokens == 7
    assert result.duration_ms == 10
    assert len(acc.raw_chunks) == 3


def test_empty_result_buckets_are_none():
    result = ResponseAccumulator().to_result()
    assert result.text == ""
    assert result.thought_summary is None
    assert result.images is None
    assert result.thought_images is None
    assert result.token_usage is None
