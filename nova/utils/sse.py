"""Server-Sent Events framing in the OpenAI chat-completions streaming shape."""

import json
from typing import Any

DONE_EVENT = "data: [DONE]\n\n"


def sse_event(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def content_event(text: str) -> str:
    """One text delta."""
    return sse_event({"choices": [{"delta": {"content": text}, "index": 0}]})


def error_event(message: str) -> str:
    return sse_event({"error": message})
