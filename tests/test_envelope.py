"""Tests for provider envelope resolution."""

from scam_analyzer.adapters.llm.envelope import (
    ContentReply,
    MissingContent,
    ProviderError,
    ReasoningOnly,
    Truncated,
    read_envelope,
)


def test_content_reply() -> None:
    """Test a normal answer."""
    envelope = read_envelope({
        "choices": [{"message": {"content": '{"riskLevel": "SAFE"}'}, "finish_reason": "stop"}]
    })

    assert envelope == ContentReply(content='{"riskLevel": "SAFE"}', finish_reason="stop")


def test_provider_error() -> None:
    """Test an error object in a 2xx body."""
    assert read_envelope({"error": {"message": "model overloaded"}}) == ProviderError("model overloaded")
    assert read_envelope({"error": {"code": 502}}) == ProviderError("502")


def test_truncated_before_content() -> None:
    """Test length cut-off with no content."""
    data = {"choices": [{"message": {"content": "", "reasoning": "thinking"}, "finish_reason": "length"}]}

    assert read_envelope(data) == Truncated()


def test_reasoning_only() -> None:
    """Test a reasoning model that produced no content."""
    data = {"choices": [{"message": {"content": None, "reasoning_content": "..."}, "finish_reason": "stop"}]}

    assert isinstance(read_envelope(data), ReasoningOnly)


def test_missing_content() -> None:
    """Test bodies without any usable answer."""
    assert read_envelope({"id": "x", "choices": []}) == MissingContent(keys=("id", "choices"))
    assert read_envelope({"choices": ["oops"]}) == MissingContent(keys=("choices",))
    assert read_envelope([]) == MissingContent(keys=())
