"""Keep API keys out of logs and error messages."""

import re

_OPENAI_KEY = re.compile(r"sk-[a-zA-Z0-9]{20,}")
_GOOGLE_KEY = re.compile(r"AIza[A-Za-z0-9_-]{35}")
_LONG_TOKEN = re.compile(r"[A-Za-z0-9]{40,}")


def mask_api_key(api_key: str) -> str:
    """Show only the first and last four characters of a key."""
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    middle = "*" * min(len(api_key) - 8, 16)
    return f"{api_key[:4]}{middle}{api_key[-4:]}"


def redact_api_keys(message: str) -> str:
    """Replace anything that looks like an API key with a placeholder."""
    if not message:
        return ""
    redacted = _OPENAI_KEY.sub("sk-****REDACTED****", message)
    redacted = _GOOGLE_KEY.sub("AIza****REDACTED****", redacted)
    return _LONG_TOKEN.sub("****REDACTED****", redacted)
