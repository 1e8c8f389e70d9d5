"""Provider response envelope, resolved once into a closed set of shapes."""

import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class ContentReply:
    """The model answered with text."""

    content: str
    finish_reason: str = ""


@dataclass(frozen=True)
class ReasoningOnly:
    """Only a reasoning field came back; the model class is incompatible."""

    finish_reason: str = ""


@dataclass(frozen=True)
class Truncated:
    """Generation stopped at the length limit before any content."""


@dataclass(frozen=True)
class ProviderError:
    """2xx body carrying an ``error`` object."""

    message: str


@dataclass(frozen=True)
class MissingContent:
    """No usable content for any other reason."""

    keys: tuple[str, ...]


Envelope = Union[ContentReply, ReasoningOnly, Truncated, ProviderError, MissingContent]


def read_envelope(data: Any) -> Envelope:
    """Resolve a decoded chat-completions body into one envelope variant."""
    if not isinstance(data, dict):
        return MissingContent(keys=())

    error = data.get("error")
    if error:
        if isinstance(error, dict):
            message = error.get("message") or error.get("code") or json.dumps(error)
        else:
            message = str(error)
        return ProviderError(message=str(message))

    choices = data.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(choice, dict):
        choice = {}
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}
    finish_reason = choice.get("finish_reason") or ""

    content = message.get("content")
    if isinstance(content, str) and content:
        return ContentReply(content=content, finish_reason=finish_reason)

    if finish_reason == "length":
        return Truncated()
    if message.get("reasoning") or message.get("reasoning_content"):
        return ReasoningOnly(finish_reason=finish_reason)
    return MissingContent(keys=tuple(data.keys()))
