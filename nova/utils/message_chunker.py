"""Split long outbound messages at natural boundaries."""

import re

# Webex rejects messages longer than this
WEBEX_MAX_MESSAGE_LENGTH = 7439


def chunk_message(content: str, max_length: int = WEBEX_MAX_MESSAGE_LENGTH) -> list[str]:
    """
    Split a long message into chunks no longer than ``max_length``.

    Splits prefer paragraph breaks, then line breaks, sentence ends,
    clause separators and word boundaries, and only cut hard as a last resort.
    """
    if len(content) <= max_length:
        return [content]

    chunks = []
    remaining = content
    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break
        split_at = find_split_point(remaining, max_length)
        chunk = remaining[:split_at].rstrip()
        remaining = remaining[split_at:].lstrip()
        if chunk:
            chunks.append(chunk)
    return chunks


def find_split_point(text: str, max_length: int) -> int:
    """Find the best position at or before ``max_length`` to split ``text``."""
    window = text[:max_length]
    half = max_length // 2

    for separator in ("\n\n", "\n"):
        position = window.rfind(separator)
        if position > half:
            return position + len(separator)

    sentence_ends = list(re.finditer(r"[.!?](?:\s|$)", window))
    if sentence_ends and sentence_ends[-1].end() > half:
        return sentence_ends[-1].end()

    for separator in ("; ", ", ", " "):
        position = window.rfind(separator)
        if position > half:
            return position + len(separator)

    return max_length
