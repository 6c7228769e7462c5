"""Recognition of common request phrasings in a user message.

The grammar is a fixed set of regex rules. Anything it does not match yields an
empty :class:`Intent`, which means no first-pass nudge.
"""

import re
from collections.abc import Iterable

from pydantic import BaseModel, Field

COUNT_PATTERN = re.compile(r"\b(how many|how much|count|total|number of)\b", re.IGNORECASE)
LIST_PATTERN = re.compile(r"\b(list|show|display)\b", re.IGNORECASE)

SUBJECT_PATTERNS: dict[str, re.Pattern[str]] = {
    "article": re.compile(r"\b(articles?|knowledge|kb)\b", re.IGNORECASE),
    "incident": re.compile(r"\bincidents?\b", re.IGNORECASE),
    "catalog": re.compile(r"\bcatalog\b", re.IGNORECASE),
    "file": re.compile(r"\b(files?|documents?|docs?)\b", re.IGNORECASE),
    "drive": re.compile(r"\bdrive\b", re.IGNORECASE),
    "issue": re.compile(r"\b(issues?|tickets?)\b", re.IGNORECASE),
    "repo": re.compile(r"\b(repos?|repositor(?:y|ies))\b", re.IGNORECASE),
    "email": re.compile(r"\b(e-?mails?|inbox|gmail)\b", re.IGNORECASE),
}

# Tried in order; the first match wins
INCIDENT_NUMBER_PATTERNS = [
    re.compile(r"\binc\s*(\d{7,})\b", re.IGNORECASE),
    re.compile(r"\bi\s+and\s+c\s*(\d{7,})\b", re.IGNORECASE),
    re.compile(
        r"\bincident\s+(?:number\s+)?(?:is\s+)?(?:i\s+and\s+c\s*)?(\d{7,})\b",
        re.IGNORECASE,
    ),
]
ARTICLE_NUMBER_PATTERN = re.compile(r"\bKB\d+\b", re.IGNORECASE)
ISSUE_KEY_PATTERN = re.compile(r"\b[A-Z][A-Z0-9]+-\d+\b")

TOPIC_PATTERNS = [
    re.compile(r"search\s+(?:for\s+)?['\"]?([^'\"?.,!]+)", re.IGNORECASE),
    re.compile(r"find\s+(?:articles?\s+(?:about|on|for)\s+)?['\"]?([^'\"?.,!]+)", re.IGNORECASE),
    re.compile(r"(?:about|regarding|concerning)\s+([a-z\s]+?)(?:\?|$|,|\.)", re.IGNORECASE),
    re.compile(r"\bto\s+(\w+\s+[a-z\s]+?)(?:\?|$|,|\.)", re.IGNORECASE),
]
STOP_WORDS = re.compile(
    r"\b(what|is|are|the|a|an|first|to|how|can|could|i|you|me|my|for|about|on|with|"
    r"regarding|concerning|tell|show|give|provide|find|search|know|need|want|help|"
    r"please|any|there)\b",
    re.IGNORECASE,
)
MAX_TOPIC_WORDS = 3

CORRECTION_PATTERNS = [
    re.compile(r"you (should|must|need to|have to) (start|begin|say|respond|answer|format|write|use)", re.IGNORECASE),
    re.compile(r"(start|begin|say|respond|answer|format|write|use) (like this|this way|like that|as follows)", re.IGNORECASE),
    re.compile(r"follow (this|that) (pattern|format|style|way|example)", re.IGNORECASE),
    re.compile(r"(this|that) is (how|the way) (you|i) (should|must|need to)", re.IGNORECASE),
    re.compile(r"(don't|do not) (start|say|respond|answer|format|write|use) (it )?(like that|that way)", re.IGNORECASE),
    re.compile(r"(instead|rather), (start|say|respond|answer|format|write|use)", re.IGNORECASE),
    re.compile(r"(correct|right) (way|format|pattern|style) (is|to|would be)", re.IGNORECASE),
    re.compile(r"you (should|must|need to) (always|never|try to)", re.IGNORECASE),
    re.compile(r"(prefer|like|want) (you|it) to (start|say|respond|answer|format|write|use)", re.IGNORECASE),
]
INSTRUCTION_PATTERN = re.compile(
    r"(?:should|must|need to|like this|this way|as follows|would be|to)\s+(.+)", re.IGNORECASE
)
EXPLICIT_CORRECTION_PATTERN = re.compile(
    r"^(no|actually|wait|correction|that's wrong|that's not right|incorrect)\b", re.IGNORECASE
)
INSTEAD_PATTERN = re.compile(r"(?:instead|rather|actually|should|must|need to)\s+(.+)", re.IGNORECASE)
EXPLICIT_CORRECTION = "explicit_correction"


class Correction(BaseModel):
    """An instruction the user gave about how the assistant should respond."""

    instruction: str
    pattern: str


class Intent(BaseModel):
    """What the grammar recognized in one message."""

    is_count_query: bool = False
    is_list_query: bool = False
    subjects: set[str] = Field(default_factory=set)
    incident_number: str | None = None
    article_number: str | None = None
    issue_key: str | None = None
    topic: str | None = None
    correction: Correction | None = None

    @property
    def is_empty(self) -> bool:
        return self == Intent()


def parse_intent(message: str) -> Intent:
    """Apply every grammar rule to ``message``."""
    if not message or not message.strip():
        return Intent()

    intent = Intent(
        is_count_query=bool(COUNT_PATTERN.search(message)),
        is_list_query=bool(LIST_PATTERN.search(message)),
        subjects={name for name, pattern in SUBJECT_PATTERNS.items() if pattern.search(message)},
        incident_number=extract_incident_number(message),
        correction=detect_correction(message),
    )

    article = ARTICLE_NUMBER_PATTERN.search(message)
    if article:
        intent.article_number = article.group(0).upper()

    issue = ISSUE_KEY_PATTERN.search(message)
    if issue:
        intent.issue_key = issue.group(0).upper()

    if not intent.is_count_query and not intent.incident_number:
        intent.topic = extract_topic(message)

    return intent


def extract_incident_number(message: str) -> str | None:
    """Normalize spoken or typed incident numbers to ``INC`` plus digits."""
    for pattern in INCIDENT_NUMBER_PATTERNS:
        match = pattern.search(message)
        if match:
            return f"INC{match.group(1)}"
    return None


def extract_topic(message: str) -> str | None:
    """Pull a short search topic (at most three words) out of a question."""
    topic = ""
    for pattern in TOPIC_PATTERNS:
        match = pattern.search(message)
        if match:
            topic = match.group(1)
            break

    words = [w for w in _strip_stop_words(topic).split() if len(w) > 2]
    if not words:
        words = [w for w in _strip_stop_words(message).split() if len(w) > 2]

    topic = " ".join(words[:MAX_TOPIC_WORDS]).lower()
    return topic or None


def _strip_stop_words(text: str) -> str:
    text = STOP_WORDS.sub(" ", text)
    return re.sub(r"[?.,!'\"]", " ", text)


def detect_correction(message: str) -> Correction | None:
    """Detect a user teaching the assistant how to respond."""
    if not message:
        return None

    for pattern in CORRECTION_PATTERNS:
        if pattern.search(message):
            match = INSTRUCTION_PATTERN.search(message)
            instruction = match.group(1).strip() if match else message.strip()
            instruction = instruction.strip("\"'")
            return Correction(instruction=instruction or message.strip(), pattern=pattern.pattern)

    if EXPLICIT_CORRECTION_PATTERN.search(message.strip()):
        match = INSTEAD_PATTERN.search(message)
        if match:
            return Correction(instruction=match.group(1).strip(), pattern=EXPLICIT_CORRECTION)

    return None


def select_tool_nudge(intent: Intent, available: Iterable[str]) -> str | None:
    """Name of the tool the model should be pointed at on the first pass, if any."""
    available = set(available)
    subjects = intent.subjects

    if intent.is_count_query and "article" in subjects:
        candidate = "servicenow_get_article_count"
    elif intent.is_count_query and "incident" in subjects:
        candidate = "servicenow_get_incident_count"
    elif intent.incident_number:
        candidate = "servicenow_get_incident"
    elif intent.is_list_query and "file" in subjects and "drive" in subjects:
        candidate = "google_drive_list_files"
    else:
        return None

    return candidate if candidate in available else None


def nudge_text(tool_name: str, intent: Intent) -> str:
    """System prompt addition steering the model to ``tool_name``."""
    text = f"The user's request matches the `{tool_name}` tool. Call it before answering."
    if tool_name == "servicenow_get_incident" and intent.incident_number:
        text += f' Use incident_number "{intent.incident_number}".'
    return text
