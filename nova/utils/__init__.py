"""Utility helpers."""

from nova.utils.intent_parser import Intent, detect_correction, parse_intent, select_tool_nudge
from nova.utils.message_chunker import chunk_message
from nova.utils.sse import DONE_EVENT, content_event, error_event

__all__ = [
    "DONE_EVENT",
    "Intent",
    "chunk_message",
    "content_event",
    "detect_correction",
    "error_event",
    "parse_intent",
    "select_tool_nudge",
]
