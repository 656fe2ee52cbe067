from gemini_core.domain.cancellation import CancellationToken
from gemini_core.domain.exceptions import (
    HttpError,
    NetworkError,
    PipelineError,
    RequestCancelledError,
    UnknownError,
    ValidationError,
    is_retryable_status,
)
from gemini_core.domain.models import ImageData, PipelineOutcome, PipelineResult


def test_error_kinds_and_retryability():
    assert ValidationError(code="X", message="m").kind == "validation"
    assert ValidationError(code="X", message="m").retryable is False
    assert NetworkError(code="NETWORK_ERROR", message="m").retryable is True
    assert UnknownError(code="UNKNOWN_ERROR", message="m").retryable is True
    assert RequestCancelledError().retryable is False
    for err in (ValidationError("X", "m"), HttpError(500, "m"), NetworkError("X", "m"), UnknownError("X", "m")):
        assert isinstance(err, PipelineError)


def test_retryable_status_codes():
    assert is_retryable_status(408)
    assert is_retryable_status(429)
    assert is_retryable_status(500)
    assert is_retryable_status(503)
    assert not is_retryable_status(400)
    assert not is_retryable_status(404)
    assert HttpError(404, "not found").retryable is False
    assert HttpError(502, "bad gateway").retryable is True


def test_to_dict():
    err = HttpError(429, "slow down", request_id="r1")
    data = err.to_dict()
    assert data["kind"] == "http"
    assert data["status_code"] == 429
    assert data["extra"] == {"request_id": "r1"}

    cancelled = RequestCancelledError(partial_text="a", partial_thought="b", partial_images=[ImageData("image/png", "x")])
    data = cancelled.to_dict()
    assert data["code"] == "REQUEST_CANCELLED"
    assert data["partial_text"] == "a"
    assert data["partial_image_count"] == 1


def test_outcome_unwrap():
    ok = PipelineOutcome(result=PipelineResult(text="t"))
    assert ok.ok
    assert ok.unwrap().text == "t"

    failed = PipelineOutcome(error=NetworkError("NETWORK_ERROR", "down"))
    assert not failed.ok
    assert not failed.cancelled
    try:
        failed.unwrap()
    except NetworkError as e:
        assert e.message == "down"
    else:
        raise AssertionError("unwrap should raise")


def test_cancellation_token_runs_callbacks_once():
    token = CancellationToken()
    fired = []
    token.on_cancel(lambda: fired.append("a"))
    unregister = token.on_cancel(lambda: fired.append("b"))
    unregister()
    token.cancel()
    token.cancel()
    assert token.cancelled
    assert fired == ["a"]

    token.on_cancel(lambda: fired.append("late"))
    assert fired == ["a", "late"]


def test_cancellation_callback_errors_do_not_stop_others():
    token = CancellationToken()
    fired = []

    def broken():
        raise RuntimeError("boom")

    token.on_cancel(broken)
    token.on_cancel(lambda: fired.append("ok"))
    token.cancel()
    assert fired == ["ok"]


def test_empty_outcome_unwrap_raises():
    try:
        PipelineOutcome().unwrap()
    except ValueError as e:
        assert "neither result nor error" in str(e)
    else:
        raise AssertionError("unwrap should raise")
